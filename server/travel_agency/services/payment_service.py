"""Payment processing for bookings."""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Protocol

from ..core.exceptions import InvalidPaymentDetails
from ..schemas.booking import CardDetails

logger = logging.getLogger(__name__)

_EXPIRY_PATTERN = re.compile(r"^(\d{2})/(\d{2})$")


@dataclass(frozen=True)
class ChargeResult:
    """Outcome of a charge attempt."""

    succeeded: bool
    reference: str | None = None
    reason: str | None = None


class PaymentProcessor(Protocol):
    """Charges an amount of money for a booking."""

    async def charge(self, amount: int, reference: str | None = None) -> ChargeResult:
        ...


def generate_reference(prefix: str = "PAY") -> str:
    """Return a short random payment reference such as ``PAY-1a2b3c4d``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class SimulatedPaymentProcessor:
    """Processor that accepts every charge without moving money."""

    async def charge(self, amount: int, reference: str | None = None) -> ChargeResult:
        reference = reference or generate_reference("FAKE")
        logger.info(
            "Simulated charge accepted",
            extra={"amount": amount, "payment_reference": reference},
        )
        return ChargeResult(succeeded=True, reference=reference)


def validate_card(card: CardDetails) -> None:
    """
    Check the format of card details. Nothing is stored or verified remotely.

    Args:
        card: Card details entered by the requester

    Raises:
        InvalidPaymentDetails: If any field has the wrong format
    """
    errors = []

    digits = "".join(ch for ch in card.card_number if ch.isdigit())
    if not 13 <= len(digits) <= 19:
        errors.append("Invalid card number.")

    match = _EXPIRY_PATTERN.match(card.expiry or "")
    if not match:
        errors.append("Invalid expiry date. Use MM/YY.")
    elif not 1 <= int(match.group(1)) <= 12:
        errors.append("Invalid expiry month.")

    cvv_digits = "".join(ch for ch in card.cvv if ch.isdigit())
    if not 3 <= len(cvv_digits) <= 4:
        errors.append("Invalid CVV.")

    if len(card.holder_name.strip()) < 3:
        errors.append("Card holder name is required.")

    if errors:
        raise InvalidPaymentDetails(errors)
