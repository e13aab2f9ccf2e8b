"""Admin policy settings model definition."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from ..core.timeutils import utcnow


class PolicySettings(Base):
    """Single row of booking time frames maintained by administrators."""

    __tablename__ = "admin_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    booking_lead_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    cancellation_deadline_days: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    reminder_days: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    max_discount_duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    waitlist_notification_expiration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("booking_lead_days BETWEEN 0 AND 365", name="ck_admin_settings_lead_days_range"),
        CheckConstraint(
            "cancellation_deadline_days BETWEEN 0 AND 365",
            name="ck_admin_settings_cancellation_days_range"
        ),
        CheckConstraint("reminder_days BETWEEN 0 AND 365", name="ck_admin_settings_reminder_days_range"),
        CheckConstraint(
            "max_discount_duration_days BETWEEN 1 AND 7",
            name="ck_admin_settings_discount_days_range"
        ),
        CheckConstraint(
            "waitlist_notification_expiration_days BETWEEN 1 AND 14",
            name="ck_admin_settings_waitlist_expiration_range"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<PolicySettings(id={self.id}, lead={self.booking_lead_days}, "
            f"cancel={self.cancellation_deadline_days}, "
            f"waitlist_expiration={self.waitlist_notification_expiration_days})>"
        )
