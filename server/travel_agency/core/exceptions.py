"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .timeutils import utcnow

logger = logging.getLogger(__name__)


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.message = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        # Create the problem details object
        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if detail:
            self.problem_details["detail"] = detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        # Add extensions
        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    def __str__(self) -> str:
        return self.message or self.title


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if errors:
            extensions["violations"] = errors

        super().__init__(
            status_code=422,
            title="Validation Error",
            detail=detail,
            type_uri="https://example.com/problems/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri="https://example.com/problems/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not error_id:
            error_id = str(uuid.uuid4())

        extensions = {
            "error_id": error_id,
            "timestamp": utcnow().isoformat() + "Z",
        }

        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail=detail,
            type_uri="https://example.com/problems/internal-server-error",
            instance=instance,
            extensions=extensions,
        )


# Business rule rejections

class BookingRejection(ProblemDetailsException):
    """
    Base class for business-rule rejections of booking and waiting-list operations.

    Every rejection carries a stable machine-readable ``code``, an actionable
    ``detail`` for the end user and a ``retryable`` flag. Context keyword
    arguments are added to the problem details as extensions.
    """

    status = 409
    code = "BOOKING_REJECTED"
    title_text = "Booking Rejected"
    default_detail = "The request could not be completed"
    retryable = False

    def __init__(self, detail: Optional[str] = None, **context: Any):
        extensions: Dict[str, Any] = {"code": self.code, "retryable": self.retryable}
        extensions.update({key: value for key, value in context.items() if value is not None})
        self.context = context

        super().__init__(
            status_code=self.status,
            title=self.title_text,
            detail=detail or self.default_detail,
            type_uri="https://example.com/problems/" + self.code.lower().replace("_", "-"),
            extensions=extensions,
        )


class InvalidPartySize(BookingRejection):
    """Requested number of rooms is outside the allowed range."""

    status = 422
    code = "INVALID_PARTY_SIZE"
    title_text = "Invalid Party Size"

    def __init__(self, party_size: int, max_party_size: int):
        super().__init__(
            f"Number of rooms must be between 1 and {max_party_size}; {party_size} was requested.",
            party_size=party_size,
            max_party_size=max_party_size,
        )


class TooCloseToDeparture(BookingRejection):
    """Trip starts too soon for the requested change."""

    code = "TOO_CLOSE_TO_DEPARTURE"
    title_text = "Too Close To Departure"

    def __init__(self, action: str, days: int, start_date: Optional[str] = None):
        super().__init__(
            f"This trip can no longer be {action}: changes close {days} days before departure.",
            action=action,
            deadline_days=days,
            start_date=start_date,
        )


class TooManyUpcomingBookings(BookingRejection):
    """Requester already holds the maximum number of upcoming bookings."""

    code = "TOO_MANY_UPCOMING_BOOKINGS"
    title_text = "Too Many Upcoming Bookings"

    def __init__(self, limit: int, current: int):
        super().__init__(
            f"You can hold at most {limit} upcoming trips. Cancel one or wait until a trip has started.",
            limit=limit,
            current=current,
        )


class DuplicateBooking(BookingRejection):
    """Requester already has an active booking for this trip."""

    code = "DUPLICATE_BOOKING"
    title_text = "Duplicate Booking"

    def __init__(self, trip_id: int, booking_id: Optional[int] = None):
        super().__init__(
            "You already have a booking for this trip. Edit it to change the number of rooms.",
            trip_id=trip_id,
            booking_id=booking_id,
        )


class NotYourTurn(BookingRejection):
    """Someone ahead in the waiting list has priority for this trip."""

    code = "NOT_YOUR_TURN"
    title_text = "Not Your Turn"

    def __init__(self, trip_id: int, position: Optional[int] = None):
        if position:
            detail = f"Other travellers are ahead of you in the waiting list (you are number {position})."
        else:
            detail = "Other travellers are waiting for this trip. Join the waiting list to get a turn."
        super().__init__(detail, trip_id=trip_id, position=position)


class InsufficientInventory(BookingRejection):
    """Not enough rooms left on the trip."""

    code = "INSUFFICIENT_INVENTORY"
    title_text = "Insufficient Rooms"

    def __init__(self, trip_id: int, requested: int, available: int):
        if available > 0:
            detail = f"Only {available} rooms are left on this trip; {requested} were requested."
        else:
            detail = "This trip is fully booked. Join the waiting list to be notified when a room frees up."
        super().__init__(detail, trip_id=trip_id, requested=requested, available=available)


class ConcurrentModification(BookingRejection):
    """Another transaction changed the trip inventory or the booking first."""

    code = "CONCURRENT_MODIFICATION"
    title_text = "Concurrent Modification"
    default_detail = (
        "Someone else booked the last room before you. "
        "Please try again or join the waiting list."
    )
    booking_detail = "This booking was changed by another request. Please reload it and try again."
    retryable = True

    def __init__(self, trip_id: Optional[int] = None, booking_id: Optional[int] = None):
        detail = self.booking_detail if booking_id is not None else None
        super().__init__(detail, trip_id=trip_id, booking_id=booking_id)


class AlreadyCancelled(BookingRejection):
    """Booking is already cancelled."""

    code = "ALREADY_CANCELLED"
    title_text = "Booking Already Cancelled"

    def __init__(self, booking_id: int):
        super().__init__("This booking has already been cancelled.", booking_id=booking_id)


class AlreadyPaid(BookingRejection):
    """Booking is already paid and can no longer be edited or paid again."""

    code = "ALREADY_PAID"
    title_text = "Booking Already Paid"

    def __init__(self, booking_id: int):
        super().__init__("This booking has already been paid.", booking_id=booking_id)


class AlreadyQueued(BookingRejection):
    """Requester is already in the waiting list for this trip."""

    code = "ALREADY_QUEUED"
    title_text = "Already In Waiting List"

    def __init__(self, trip_id: int):
        super().__init__("You are already in the waiting list for this trip.", trip_id=trip_id)


class RoomsAvailable(BookingRejection):
    """Trip still has rooms, so the waiting list is closed."""

    code = "ROOMS_AVAILABLE"
    title_text = "Rooms Available"

    def __init__(self, trip_id: int, available: int):
        super().__init__(
            "Rooms are still available for this trip. Book directly instead of joining the waiting list.",
            trip_id=trip_id,
            available=available,
        )


class BookingNotFound(BookingRejection):
    """Booking does not exist."""

    status = 404
    code = "BOOKING_NOT_FOUND"
    title_text = "Booking Not Found"

    def __init__(self, booking_id: int):
        super().__init__(f"Booking {booking_id} could not be found.", booking_id=booking_id)


class TripNotFound(BookingRejection):
    """Trip does not exist."""

    status = 404
    code = "TRIP_NOT_FOUND"
    title_text = "Trip Not Found"

    def __init__(self, trip_id: int):
        super().__init__(f"Trip {trip_id} could not be found.", trip_id=trip_id)


class Unauthorized(BookingRejection):
    """Requester may not act on this resource."""

    status = 403
    code = "UNAUTHORIZED"
    title_text = "Access Forbidden"
    default_detail = "You are not allowed to perform this action."

    def __init__(self, detail: Optional[str] = None, **context: Any):
        super().__init__(detail, **context)


class InvalidPaymentDetails(BookingRejection):
    """Card details failed format validation."""

    status = 422
    code = "INVALID_PAYMENT_DETAILS"
    title_text = "Invalid Payment Details"

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors), errors=errors)


class PaymentDeclined(BookingRejection):
    """Payment processor declined the charge."""

    status = 402
    code = "PAYMENT_DECLINED"
    title_text = "Payment Declined"
    retryable = True

    def __init__(self, booking_id: int, reason: Optional[str] = None):
        super().__init__(
            "The payment was declined. No money was taken; please try again or use another card.",
            booking_id=booking_id,
            reason=reason,
        )


class InvalidRating(BookingRejection):
    """Review rating is outside the allowed range."""

    status = 422
    code = "INVALID_RATING"
    title_text = "Invalid Rating"

    def __init__(self, rating: int, minimum: int, maximum: int):
        super().__init__(
            f"Rating must be between {minimum} and {maximum}; {rating} was given.",
            rating=rating,
            minimum=minimum,
            maximum=maximum,
        )


class AlreadyReviewed(BookingRejection):
    """Requester has already reviewed this trip."""

    code = "ALREADY_REVIEWED"
    title_text = "Trip Already Reviewed"

    def __init__(self, trip_id: int, review_id: Optional[int] = None):
        super().__init__(
            "You already reviewed this trip. Delete your review to write a new one.",
            trip_id=trip_id,
            review_id=review_id,
        )


class ReviewNotFound(BookingRejection):
    """Review does not exist."""

    status = 404
    code = "REVIEW_NOT_FOUND"
    title_text = "Review Not Found"

    def __init__(self, review_id: int):
        super().__init__(f"Review {review_id} could not be found.", review_id=review_id)


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Exception handler that renders request validation errors as Problem Details.

    Args:
        request: FastAPI request object
        exc: Request validation error raised by FastAPI

    Returns:
        JSONResponse: Problem Details formatted response with violations
    """
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    error = ValidationError(errors=violations, instance=request.url.path)
    return await problem_details_handler(request, error)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error = InternalServerError(instance=str(request.url))
    logger.error(
        "Unhandled exception",
        extra={"error_id": error.problem_details["error_id"], "path": request.url.path},
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content=error.problem_details,
        media_type="application/problem+json",
    )
