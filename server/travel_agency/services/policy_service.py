"""Booking policy loading from the admin settings table."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, settings as default_settings
from ..models.policy import PolicySettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Policy:
    """Time frames that govern booking, cancellation and the waiting list."""

    booking_lead_days: int
    cancellation_deadline_days: int
    reminder_days: int
    max_discount_duration_days: int
    waitlist_notification_expiration_days: int

    @classmethod
    def from_settings(cls, config: Settings) -> "Policy":
        return cls(
            booking_lead_days=config.booking_lead_days,
            cancellation_deadline_days=config.cancellation_deadline_days,
            reminder_days=config.reminder_days,
            max_discount_duration_days=config.max_discount_duration_days,
            waitlist_notification_expiration_days=config.waitlist_notification_expiration_days,
        )

    @classmethod
    def from_row(cls, row: PolicySettings) -> "Policy":
        return cls(
            booking_lead_days=row.booking_lead_days,
            cancellation_deadline_days=row.cancellation_deadline_days,
            reminder_days=row.reminder_days,
            max_discount_duration_days=row.max_discount_duration_days,
            waitlist_notification_expiration_days=row.waitlist_notification_expiration_days,
        )


class PolicyService:
    """Service that resolves the active booking policy."""

    def __init__(self, db: AsyncSession, config: Settings | None = None):
        self.db = db
        self.config = config or default_settings

    async def load(self) -> Policy:
        """
        Load the admin policy, falling back to configured defaults.

        The defaults apply when no settings row exists or the table cannot
        be read. Must be called before the caller starts writing, since a
        failed read rolls the session back.

        Returns:
            Policy: Active policy
        """
        try:
            result = await self.db.execute(select(PolicySettings).order_by(PolicySettings.id).limit(1))
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(
                "Admin settings unavailable - using default policy",
                extra={"error": str(e)},
            )
            await self.db.rollback()
            return Policy.from_settings(self.config)

        if row is None:
            return Policy.from_settings(self.config)

        return Policy.from_row(row)

    async def save(self, policy: Policy) -> PolicySettings:
        """Store the policy in the settings row, creating it if needed."""
        result = await self.db.execute(select(PolicySettings).order_by(PolicySettings.id).limit(1))
        row = result.scalar_one_or_none()
        if row is None:
            row = PolicySettings()
            self.db.add(row)

        row.booking_lead_days = policy.booking_lead_days
        row.cancellation_deadline_days = policy.cancellation_deadline_days
        row.reminder_days = policy.reminder_days
        row.max_discount_duration_days = policy.max_discount_duration_days
        row.waitlist_notification_expiration_days = policy.waitlist_notification_expiration_days

        await self.db.commit()
        logger.info("Admin settings updated", extra={"policy": str(policy)})
        return row
