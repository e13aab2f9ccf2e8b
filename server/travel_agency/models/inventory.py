"""Inventory adjustment model definition."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..core.timeutils import utcnow

if TYPE_CHECKING:
    from .trip import Trip


class InventoryAdjustment(Base):
    """Audit record of a single reserve or release on a trip's rooms."""

    __tablename__ = "inventory_adjustments"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key to trip
    trip_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Adjustment details
    delta: Mapped[int] = mapped_column(Integer, nullable=False)  # negative for reserve
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    actor: Mapped[str] = mapped_column(String(128), nullable=False)

    # Previous and new values for audit trail
    available_before: Mapped[int] = mapped_column(Integer, nullable=False)
    available_after: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)

    # Constraints
    __table_args__ = (
        CheckConstraint("delta != 0", name="ck_inventory_adjustment_delta_nonzero"),
        CheckConstraint("length(reason) > 0", name="ck_inventory_adjustment_reason_not_empty"),
        CheckConstraint("available_before >= 0", name="ck_inventory_adjustment_before_non_negative"),
        CheckConstraint("available_after >= 0", name="ck_inventory_adjustment_after_non_negative"),
        CheckConstraint(
            "available_after = available_before + delta",
            name="ck_inventory_adjustment_delta_consistency"
        ),
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="inventory_adjustments")

    def __repr__(self) -> str:
        return (
            f"<InventoryAdjustment(id={self.id}, trip_id={self.trip_id}, "
            f"delta={self.delta}, reason='{self.reason}', created_at={self.created_at})>"
        )
