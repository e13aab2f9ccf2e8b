"""Background worker that expires waiting list notifications."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.observability import get_logger
from ..services.notification_service import NotificationSender
from ..services.policy_service import PolicyService
from ..services.waitlist_service import ExpiryReport, WaitingListQueue
from .base import BaseWorker

logger = get_logger(__name__)


class WaitlistExpiryWorker(BaseWorker):
    """
    Background worker that reclaims turns nobody acted on.

    Each run removes waiting list entries notified longer ago than the
    notification window, passes their turn to the next waiting requester,
    and then catches up on trips whose rooms were released without anyone
    being notified.
    """

    def __init__(
        self,
        interval_seconds: int = 86400,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        sender: Optional[NotificationSender] = None,
    ):
        """
        Initialize the waiting list expiry worker.

        Args:
            interval_seconds: How often to sweep (default: daily)
            session_factory: Session factory, defaults to the application's
            sender: Notification sender for turn messages
        """
        super().__init__(name="WaitlistExpiry", interval_seconds=interval_seconds, session_factory=session_factory)
        self.sender = sender

    async def process(self) -> ExpiryReport:
        """Run one sweep."""
        async with self.session_factory() as db:
            policy = await PolicyService(db).load()
            queue = WaitingListQueue(db, sender=self.sender)

            report = await queue.expire_notifications(
                expiration_days=policy.waitlist_notification_expiration_days
            )
            caught_up = await queue.notify_waiting_trips(
                expiration_days=policy.waitlist_notification_expiration_days
            )

        if report.expired or caught_up:
            logger.info(
                "Waiting list sweep finished",
                expired=report.expired,
                cascaded=report.cascaded,
                cascade_failures=report.cascade_failures,
                caught_up=caught_up,
                worker=self.name,
            )

        return report
