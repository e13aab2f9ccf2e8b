"""Booking router for booking operations."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.dependencies import (
    DatabaseSession,
    NotificationSenderDependency,
    PaymentProcessorDependency,
    RequiredAuth,
)
from ..core.exceptions import ProblemDetailsException
from ..schemas.auth import Requester
from ..schemas.booking import (
    Booking,
    BookingList,
    CancelBookingRequest,
    CreateBookingRequest,
    EditBookingRequest,
    GetBookingRequest,
    ListBookingsRequest,
    PayBookingRequest,
)
from ..schemas.common import Money
from ..services.booking_service import BookingLifecycle, BookingOutcome
from ..services.notification_service import NotificationSender
from ..services.payment_service import PaymentProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=booking_model.id,
        trip_id=booking_model.trip_id,
        requester_ref=booking_model.requester_ref,
        party_size=booking_model.party_size,
        unit_price=Money(amount=booking_model.unit_price_amount, currency=settings.currency),
        total_price=Money(amount=booking_model.total_price_amount, currency=settings.currency),
        status=booking_model.status,
        payment_reference=booking_model.payment_reference,
        created_at=booking_model.created_at,
        paid_at=booking_model.paid_at,
        cancelled_at=booking_model.cancelled_at,
    )


def _outcome_response(outcome: BookingOutcome) -> JSONResponse:
    """Turn a lifecycle outcome into a response, raising its rejection."""
    if not outcome.ok:
        raise outcome.rejection

    response_data = _convert_booking_to_schema(outcome.booking)
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


def _internal_error(action: str, error: Exception, **context) -> HTTPException:
    logger.error(
        f"Unexpected error in booking {action}",
        extra={**context, "error": str(error)},
        exc_info=True
    )
    return HTTPException(
        status_code=500,
        detail="Internal server error"
    )


@router.post("/create", response_model=Booking)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
    sender: NotificationSender = NotificationSenderDependency,
) -> JSONResponse:
    """
    Book rooms on a trip.

    Rejected with a problem response when the party size is invalid, the
    trip departs too soon, the requester has too many upcoming bookings or
    already booked this trip, another requester is ahead on the waiting
    list, or the rooms are gone.
    """
    lifecycle = BookingLifecycle(db, sender=sender)

    try:
        outcome = await lifecycle.create_booking(request.trip_id, requester, request.party_size)
        return _outcome_response(outcome)

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("creation", e, trip_id=request.trip_id, requester_ref=requester.user_id)


@router.post("/edit", response_model=Booking)
async def edit_booking(
    request: EditBookingRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
    sender: NotificationSender = NotificationSenderDependency,
) -> JSONResponse:
    """Change the number of rooms of an unpaid booking."""
    lifecycle = BookingLifecycle(db, sender=sender)

    try:
        outcome = await lifecycle.edit_booking(request.booking_id, requester, request.party_size)
        return _outcome_response(outcome)

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("edit", e, booking_id=request.booking_id)


@router.post("/pay", response_model=Booking)
async def pay_booking(
    request: PayBookingRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
    sender: NotificationSender = NotificationSenderDependency,
    processor: PaymentProcessor = PaymentProcessorDependency,
) -> JSONResponse:
    """Pay for a booking and send the payment confirmation."""
    lifecycle = BookingLifecycle(db, sender=sender)

    try:
        outcome = await lifecycle.pay_booking(
            request.booking_id,
            requester,
            processor,
            card=request.card,
            payment_reference=request.payment_reference,
        )
        return _outcome_response(outcome)

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("payment", e, booking_id=request.booking_id)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
    sender: NotificationSender = NotificationSenderDependency,
) -> JSONResponse:
    """
    Cancel a booking.

    The released rooms go to the next requester on the trip's waiting list.
    """
    lifecycle = BookingLifecycle(db, sender=sender)

    try:
        outcome = await lifecycle.cancel_booking(request.booking_id, requester)
        return _outcome_response(outcome)

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("cancellation", e, booking_id=request.booking_id)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """Get a booking owned by the caller, or any booking for administrators."""
    lifecycle = BookingLifecycle(db)

    try:
        booking = await lifecycle.get_booking(request.booking_id, requester)
        response_data = _convert_booking_to_schema(booking)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("retrieval", e, booking_id=request.booking_id)


@router.post("/list", response_model=BookingList)
async def list_bookings(
    request: ListBookingsRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """List the caller's bookings, newest first."""
    lifecycle = BookingLifecycle(db)

    try:
        bookings = await lifecycle.list_bookings(requester, request.filter)
        response_data = BookingList(items=[_convert_booking_to_schema(b) for b in bookings])

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("listing", e, requester_ref=requester.user_id)
