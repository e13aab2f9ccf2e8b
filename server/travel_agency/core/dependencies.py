"""FastAPI dependencies for database, authentication, and collaborators."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
import jwt
from jwt import PyJWTError

from ..schemas.auth import Requester
from ..services.notification_service import NotificationSender, build_notification_sender
from ..services.payment_service import PaymentProcessor, SimulatedPaymentProcessor
from .config import settings
from .database import get_db
from .exceptions import AuthenticationError, Unauthorized


def decode_bearer_token(token: str) -> Requester:
    """
    Validate a bearer token and extract the requester identity.

    Args:
        token: Encoded HS256 JWT

    Returns:
        Requester: Identity carried by the token

    Raises:
        AuthenticationError: If the token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(token, settings.bearer_token_secret, algorithms=["HS256"])
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {e}") from e

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError(detail="Invalid token payload")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]

    return Requester(user_id=str(user_id), email=payload.get("email"), roles=list(roles))


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Requester:
    """
    Authentication dependency that validates Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        Requester: Identity from the validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError as e:
        raise AuthenticationError(detail="Invalid authorization header format") from e

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    return decode_bearer_token(token)


async def require_admin(requester: Requester = Depends(get_current_user)) -> Requester:
    """Authorization dependency that only lets administrators through."""
    if not requester.is_admin:
        raise Unauthorized("This action is restricted to administrators.")
    return requester


@lru_cache(maxsize=1)
def _default_notification_sender() -> NotificationSender:
    return build_notification_sender(settings)


async def get_notification_sender() -> NotificationSender:
    """Notification sender used for waiting-list and booking messages."""
    return _default_notification_sender()


_payment_processor = SimulatedPaymentProcessor()


async def get_payment_processor() -> PaymentProcessor:
    """Payment processor used to charge bookings."""
    return _payment_processor


RequiredAuth = Depends(get_current_user)
AdminAuth = Depends(require_admin)
DatabaseSession = Depends(get_db)
NotificationSenderDependency = Depends(get_notification_sender)
PaymentProcessorDependency = Depends(get_payment_processor)
