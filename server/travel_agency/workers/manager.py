"""Worker manager for coordinating background tasks."""

import asyncio
import logging
from typing import Dict, Optional

from ..core.config import Settings, settings as default_settings
from ..services.notification_service import NotificationSender, build_notification_sender
from .base import BaseWorker
from .discount_expiry_worker import DiscountExpiryWorker
from .trip_reminder_worker import TripReminderWorker
from .waitlist_expiry_worker import WaitlistExpiryWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Manages background workers for the application.

    Coordinates starting, stopping, and monitoring of all background workers.
    """

    def __init__(self, config: Optional[Settings] = None, sender: Optional[NotificationSender] = None):
        self.config = config or default_settings
        self.sender = sender or build_notification_sender(self.config)
        self.workers: Dict[str, BaseWorker] = {}
        self._setup_workers()

    def _setup_workers(self) -> None:
        """Initialize all workers."""
        self.workers["waitlist_expiry"] = WaitlistExpiryWorker(
            interval_seconds=self.config.waitlist_expiry_interval_seconds,
            sender=self.sender,
        )
        self.workers["discount_expiry"] = DiscountExpiryWorker(
            interval_seconds=self.config.discount_expiry_interval_seconds,
        )
        self.workers["trip_reminder"] = TripReminderWorker(
            interval_seconds=self.config.trip_reminder_interval_seconds,
            sender=self.sender,
        )

        logger.info(f"Initialized {len(self.workers)} workers")

    async def start_all(self) -> None:
        """Start all workers."""
        logger.info("Starting all workers")

        for name, worker in self.workers.items():
            try:
                await worker.start()
                logger.info(f"Started worker: {name}")
            except Exception as e:
                logger.error(f"Failed to start worker {name}: {str(e)}", exc_info=True)

        logger.info(f"Started {len(self.workers)} workers")

    async def stop_all(self) -> None:
        """Stop all workers gracefully."""
        logger.info("Stopping all workers")

        running = {name: worker for name, worker in self.workers.items() if worker.is_running}
        results = await asyncio.gather(
            *(worker.stop() for worker in running.values()),
            return_exceptions=True
        )

        for name, result in zip(running.keys(), results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping worker {name}: {str(result)}")
            else:
                logger.info(f"Stopped worker: {name}")

        logger.info("All workers stopped")

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        """Map worker names to their running status."""
        return {name: worker.is_running for name, worker in self.workers.items()}


# Global worker manager instance
worker_manager = WorkerManager()
