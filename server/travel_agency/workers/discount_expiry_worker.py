"""Background worker that ends expired trip discounts."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.observability import get_logger
from ..services.trip_service import TripService
from .base import BaseWorker

logger = get_logger(__name__)


class DiscountExpiryWorker(BaseWorker):
    """Background worker that reverts discounted trips to their regular price."""

    def __init__(
        self,
        interval_seconds: int = 3600,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        super().__init__(name="DiscountExpiry", interval_seconds=interval_seconds, session_factory=session_factory)

    async def process(self) -> int:
        """Expire discounts that have run out."""
        async with self.session_factory() as db:
            expired_count = await TripService(db).expire_discounts()

        if expired_count > 0:
            logger.info(
                f"Expired {expired_count} discounts",
                expired_count=expired_count,
                worker=self.name,
            )
        return expired_count
