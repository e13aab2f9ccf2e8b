"""Background worker that reminds travellers of upcoming trips."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.observability import get_logger
from ..services.notification_service import LoggingNotificationSender, NotificationSender
from ..services.reminder_service import ReminderService
from .base import BaseWorker

logger = get_logger(__name__)


class TripReminderWorker(BaseWorker):
    """Background worker that sends reminders for paid bookings starting soon."""

    def __init__(
        self,
        interval_seconds: int = 86400,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        sender: Optional[NotificationSender] = None,
    ):
        super().__init__(name="TripReminder", interval_seconds=interval_seconds, session_factory=session_factory)
        self.sender = sender or LoggingNotificationSender()

    async def process(self) -> int:
        """Send due reminders."""
        async with self.session_factory() as db:
            sent = await ReminderService(db, self.sender).send_trip_reminders()

        if sent > 0:
            logger.info(f"Sent {sent} trip reminders", sent=sent, worker=self.name)
        return sent
