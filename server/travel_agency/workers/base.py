"""Base worker class for periodic booking maintenance tasks."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core import database
from ..core.observability import get_logger
from ..core.timeutils import utcnow

logger = get_logger(__name__)


class BaseWorker(ABC):
    """
    Abstract base class for background workers.

    Runs ``process`` every ``interval_seconds`` on the event loop until
    stopped. Each run opens its own session from ``session_factory`` (the
    application's factory unless one is injected). A failing iteration is
    logged and the loop carries on after the next interval.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: int = 60,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        """
        Initialize the worker.

        Args:
            name: Worker name for logging
            interval_seconds: How often to run the task
            session_factory: Session factory, defaults to the application's
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self._session_factory = session_factory
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.last_run_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or database.async_session_factory

    @abstractmethod
    async def process(self) -> Any:
        """Process one iteration of the background task."""

    async def start(self) -> None:
        """Start the worker."""
        if self._running:
            logger.warning("Worker is already running", worker=self.name)
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info("Worker started", worker=self.name, interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        if not self._running:
            logger.warning("Worker is not running", worker=self.name)
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Worker stopped", worker=self.name)

    async def _run(self) -> None:
        while self._running:
            started = utcnow()
            try:
                await self.process()
                self.last_error = None
            except asyncio.CancelledError:
                logger.info("Worker loop cancelled", worker=self.name)
                break
            except Exception as e:
                self.last_error = str(e)
                logger.error("Worker iteration failed", worker=self.name, error=str(e), exc_info=True)
            finally:
                self.last_run_at = started

            duration = (utcnow() - started).total_seconds()
            logger.debug("Worker iteration completed", worker=self.name, duration_seconds=duration)
            await asyncio.sleep(max(0.0, self.interval_seconds - duration))
