"""Upcoming trip reminders for paid bookings."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.timeutils import utcnow
from ..models.booking import Booking
from ..models.trip import Trip
from .notification_service import TRIP_REMINDER, NotificationSender, deliver, render_message
from .policy_service import PolicyService

logger = logging.getLogger(__name__)


class ReminderService:
    """Service that reminds travellers of trips starting soon."""

    def __init__(self, db: AsyncSession, sender: NotificationSender):
        self.db = db
        self.sender = sender

    async def send_trip_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Send one reminder per paid booking whose trip starts within the reminder window.

        A booking is marked as reminded only after its message was accepted,
        so failed deliveries are retried on the next run.

        Returns:
            Number of reminders sent
        """
        policy = await PolicyService(self.db).load()
        now = now or utcnow()
        window_end = now + timedelta(days=policy.reminder_days)

        stmt = (
            select(Booking, Trip)
            .join(Trip, Booking.trip_id == Trip.id)
            .where(
                Booking.paid.is_(True),
                Booking.cancelled.is_(False),
                Booking.reminder_sent_at.is_(None),
                Trip.start_date > now,
                Trip.start_date <= window_end,
            )
            .order_by(Trip.start_date, Booking.id)
        )
        result = await self.db.execute(stmt)
        due = list(result.all())

        sent = 0
        for booking, trip in due:
            days_until_trip = max((trip.start_date.date() - now.date()).days, 1)
            subject, body = render_message(
                TRIP_REMINDER,
                trip=trip,
                booking=booking,
                days_until_trip=days_until_trip,
                base_url=settings.public_base_url,
            )
            if not await deliver(self.sender, booking.contact_email, subject, body):
                continue

            booking.reminder_sent_at = now
            await self.db.commit()
            sent += 1

            logger.info(
                "Trip reminder sent",
                extra={
                    "booking_id": booking.id,
                    "trip_id": trip.id,
                    "days_until_trip": days_until_trip,
                }
            )

        return sent
