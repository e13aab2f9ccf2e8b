"""Booking model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..core.timeutils import utcnow

if TYPE_CHECKING:
    from .trip import Trip


PENDING_PAYMENT_REFERENCE = "PENDING"
PROCESSING_PAYMENT_REFERENCE = "PROCESSING"


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Booking(Base):
    """Booking entity holding a number of rooms on a trip."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key to trip
    trip_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Booking details
    requester_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)

    # Price snapshot taken at creation (minor units)
    unit_price_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # Lifecycle flags
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    payment_reference: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=PENDING_PAYMENT_REFERENCE
    )

    # Optimistic concurrency token; payment claims the row through it
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __mapper_args__ = {"version_id_col": version}

    # Constraints
    __table_args__ = (
        CheckConstraint("party_size > 0", name="ck_booking_party_size_positive"),
        CheckConstraint("unit_price_amount >= 0", name="ck_booking_unit_price_non_negative"),
        CheckConstraint("total_price_amount >= 0", name="ck_booking_total_price_non_negative"),
        CheckConstraint("length(requester_ref) > 0", name="ck_booking_requester_ref_not_empty"),
        # One active booking per requester and trip
        Index(
            "uq_booking_active_trip_requester",
            "trip_id",
            "requester_ref",
            unique=True,
            postgresql_where=text("NOT cancelled"),
            sqlite_where=text("cancelled = 0"),
        ),
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="bookings")

    @property
    def status(self) -> BookingStatus:
        """Lifecycle state derived from the paid and cancelled flags."""
        if self.cancelled:
            return BookingStatus.CANCELLED
        if self.paid:
            return BookingStatus.PAID
        return BookingStatus.CONFIRMED

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, trip_id={self.trip_id}, requester_ref='{self.requester_ref}', "
            f"party_size={self.party_size}, status={self.status.value})>"
        )
