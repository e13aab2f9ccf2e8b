"""Waiting list model definition."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..core.timeutils import utcnow

if TYPE_CHECKING:
    from .trip import Trip


class WaitingListEntry(Base):
    """Waiting list entry for a trip that is sold out."""

    __tablename__ = "waiting_list_entries"

    # Autoincrement id breaks ties between equal join timestamps
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key to trip
    trip_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Entry details
    requester_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    # Turn notification, set exactly once
    notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    # Constraints
    __table_args__ = (
        CheckConstraint("length(requester_ref) > 0", name="ck_waiting_list_requester_ref_not_empty"),
        UniqueConstraint("trip_id", "requester_ref", name="uq_waiting_list_trip_requester"),
        Index("ix_waiting_list_trip_order", "trip_id", "joined_at", "id"),
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="waiting_list_entries")

    def __repr__(self) -> str:
        return (
            f"<WaitingListEntry(id={self.id}, trip_id={self.trip_id}, "
            f"requester_ref='{self.requester_ref}', joined_at={self.joined_at}, "
            f"notified_at={self.notified_at})>"
        )
