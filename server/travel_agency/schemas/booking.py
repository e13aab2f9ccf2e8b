"""Booking-related Pydantic schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus
from .common import Money


class BookingFilter(str, Enum):
    """Filter for listing a requester's bookings."""
    ALL = "all"
    UPCOMING = "upcoming"
    PAST = "past"


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking."""

    trip_id: int = Field(..., ge=1, description="Trip to book")
    party_size: int = Field(..., description="Number of rooms")


class EditBookingRequest(BaseModel):
    """Request schema for changing the number of rooms of a booking."""

    booking_id: int = Field(..., ge=1, description="Booking to edit")
    party_size: int = Field(..., description="New number of rooms")


class CardDetails(BaseModel):
    """Card details; only their format is checked."""

    card_number: str = Field(..., max_length=32, description="Card number, spaces and dashes allowed")
    expiry: str = Field(..., max_length=5, description="Expiry as MM/YY")
    cvv: str = Field(..., max_length=4, description="Card verification value")
    holder_name: str = Field(..., max_length=128, description="Name on the card")


class PayBookingRequest(BaseModel):
    """Request schema for paying a booking."""

    booking_id: int = Field(..., ge=1, description="Booking to pay")
    card: CardDetails | None = Field(None, description="Card details for format validation")
    payment_reference: str | None = Field(None, max_length=64, description="Reference from an external gateway")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: int = Field(..., ge=1, description="Booking to cancel")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: int = Field(..., ge=1, description="Booking to retrieve")


class ListBookingsRequest(BaseModel):
    """Request schema for listing the caller's bookings."""

    filter: BookingFilter = Field(BookingFilter.ALL, description="Which bookings to return")


class Booking(BaseModel):
    """Booking response schema."""

    id: int = Field(..., description="Unique booking ID")
    trip_id: int = Field(..., description="Associated trip ID")
    requester_ref: str = Field(..., description="Requester reference")
    party_size: int = Field(..., ge=1, description="Number of rooms booked")
    unit_price: Money = Field(..., description="Price per room at booking time")
    total_price: Money = Field(..., description="Total price")
    status: BookingStatus = Field(..., description="Booking status")
    payment_reference: str = Field(..., description="Payment reference, PENDING until paid")
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")
    paid_at: datetime | None = Field(None, description="Payment time (ISO 8601)")
    cancelled_at: datetime | None = Field(None, description="Cancellation time (ISO 8601)")


class BookingList(BaseModel):
    """Response schema for a list of bookings."""

    items: list[Booking] = Field(..., description="Bookings")
