"""Trip model definition."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..core.timeutils import utcnow

if TYPE_CHECKING:
    from .booking import Booking
    from .inventory import InventoryAdjustment
    from .review import Review
    from .waitlist import WaitingListEntry


class Trip(Base):
    """Trip entity with a limited pool of rooms."""

    __tablename__ = "trips"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Trip details
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(128), nullable=False)
    package_type: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Room inventory, mutated only through the inventory ledger
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    available_rooms: Mapped[int] = mapped_column(Integer, nullable=False)

    # Price information (stored as minor units, e.g., cents)
    price_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    old_price_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_discount_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    discount_activated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    discount_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    # Optimistic concurrency token, checked on every UPDATE of the row
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    # Constraints
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_trip_capacity_non_negative"),
        CheckConstraint("available_rooms >= 0", name="ck_trip_available_rooms_non_negative"),
        CheckConstraint("available_rooms <= capacity", name="ck_trip_available_rooms_lte_capacity"),
        CheckConstraint("price_amount >= 0", name="ck_trip_price_amount_non_negative"),
        CheckConstraint("end_date >= start_date", name="ck_trip_end_after_start"),
    )

    # Relationships
    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="trip",
        cascade="all, delete-orphan"
    )
    waiting_list_entries: Mapped[list["WaitingListEntry"]] = relationship(
        "WaitingListEntry",
        back_populates="trip",
        cascade="all, delete-orphan"
    )
    inventory_adjustments: Mapped[list["InventoryAdjustment"]] = relationship(
        "InventoryAdjustment",
        back_populates="trip",
        cascade="all, delete-orphan"
    )
    reviews: Mapped[list["Review"]] = relationship(
        "Review",
        back_populates="trip",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<Trip(id={self.id}, title='{self.title}', start_date={self.start_date}, "
            f"rooms={self.available_rooms}/{self.capacity}, version={self.version})>"
        )
