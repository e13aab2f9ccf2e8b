"""Waiting list queue: FIFO turn order, turn notifications and their expiry."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import AlreadyQueued, RoomsAvailable, TripNotFound
from ..core.observability import metrics_collector
from ..core.timeutils import utcnow
from ..models.trip import Trip
from ..models.waitlist import WaitingListEntry
from .inventory_service import is_concurrency_failure
from .notification_service import (
    ROOM_AVAILABLE,
    LoggingNotificationSender,
    NotificationSender,
    deliver,
    render_message,
)
from .policy_service import PolicyService

logger = logging.getLogger(__name__)

QUEUE_ORDER = (WaitingListEntry.joined_at, WaitingListEntry.id)


@dataclass
class NotifyResult:
    """Entry that received the turn and whether the message went out."""

    entry: WaitingListEntry
    delivered: bool


@dataclass
class QueuePosition:
    """A requester's entry with its place in the queue."""

    entry: WaitingListEntry
    position: int
    total: int


@dataclass
class ExpiryReport:
    """Outcome of one notification expiry sweep."""

    expired: int = 0
    cascaded: int = 0
    cascade_failures: int = 0
    expired_entry_ids: list[int] = field(default_factory=list)


class WaitingListQueue:
    """Service for waiting list operations."""

    def __init__(self, db: AsyncSession, sender: Optional[NotificationSender] = None):
        self.db = db
        self.sender = sender or LoggingNotificationSender()

    async def _get_trip(self, trip_id: int) -> Trip:
        stmt = select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        trip = result.scalar_one_or_none()
        if trip is None:
            raise TripNotFound(trip_id)
        return trip

    async def join(self, trip_id: int, requester_ref: str, contact_email: Optional[str] = None) -> WaitingListEntry:
        """
        Append a requester to the end of a trip's waiting list.

        Args:
            trip_id: Sold-out trip to wait for
            requester_ref: Requester joining the queue
            contact_email: Where the turn notification is sent

        Returns:
            Created waiting list entry

        Raises:
            TripNotFound: If the trip does not exist
            RoomsAvailable: If the trip still has rooms
            AlreadyQueued: If the requester is already in this trip's queue
        """
        trip = await self._get_trip(trip_id)

        if trip.available_rooms > 0:
            raise RoomsAvailable(trip_id=trip_id, available=trip.available_rooms)

        existing_entry = await self.get_entry(trip_id, requester_ref)
        if existing_entry:
            raise AlreadyQueued(trip_id)

        entry = WaitingListEntry(
            trip_id=trip_id,
            requester_ref=requester_ref,
            contact_email=contact_email,
            joined_at=utcnow(),
        )

        try:
            self.db.add(entry)
            await self.db.commit()
        except IntegrityError as e:
            # Concurrent join by the same requester
            await self.db.rollback()
            raise AlreadyQueued(trip_id) from e

        metrics_collector.record_waitlist_join()
        logger.info(
            "Requester joined waiting list",
            extra={
                "waitlist_entry_id": entry.id,
                "trip_id": trip_id,
                "requester_ref": requester_ref,
            }
        )

        return entry

    async def is_my_turn(self, trip_id: int, requester_ref: str) -> bool:
        """
        Return True if the requester may book the trip now.

        The queue head is the entry with the earliest ``(joined_at, id)``.
        Everyone may book while the queue is empty; otherwise only the head.
        """
        head = await self.get_head(trip_id)
        return head is None or head.requester_ref == requester_ref

    async def notify_next(self, trip_id: int, expiration_days: Optional[int] = None) -> Optional[NotifyResult]:
        """
        Tell the earliest not-yet-notified requester that a room is available.

        The entry is claimed and committed as notified before the message is
        sent, so concurrent callers never notify the same entry twice and the
        expiry window starts even when delivery fails. The entry stays in the
        queue until it books, leaves or expires.

        Args:
            trip_id: Trip that may have rooms available
            expiration_days: Notification window for the message; loaded from
                the admin policy when omitted

        Returns:
            NotifyResult for the notified entry, or None when the trip has no
            rooms or nobody is waiting for a notification
        """
        if expiration_days is None:
            policy = await PolicyService(self.db).load()
            expiration_days = policy.waitlist_notification_expiration_days

        trip = await self._get_trip(trip_id)
        if trip.available_rooms <= 0:
            logger.debug("Notify skipped - no rooms available", extra={"trip_id": trip_id})
            return None

        stmt = (
            select(WaitingListEntry)
            .where(
                WaitingListEntry.trip_id == trip_id,
                WaitingListEntry.notified.is_(False),
            )
            .order_by(*QUEUE_ORDER)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        entry = result.scalar_one_or_none()

        if entry is None:
            logger.debug("Notify skipped - nobody waiting", extra={"trip_id": trip_id})
            return None

        entry_id = entry.id
        notified_at = utcnow()
        try:
            claim = await self.db.execute(
                update(WaitingListEntry)
                .where(WaitingListEntry.id == entry_id, WaitingListEntry.notified.is_(False))
                .values(notified=True, notified_at=notified_at)
                .execution_options(synchronize_session=False)
            )
            claimed = claim.rowcount > 0
            if claimed:
                await self.db.commit()
        except DBAPIError as e:
            if not is_concurrency_failure(e):
                raise
            claimed = False

        if not claimed:
            await self.db.rollback()
            logger.info(
                "Notify skipped - entry claimed by a concurrent notifier",
                extra={"trip_id": trip_id, "waitlist_entry_id": entry_id},
            )
            return None

        await self.db.refresh(entry)

        subject, body = render_message(
            ROOM_AVAILABLE,
            trip=trip,
            entry=entry,
            expiration_days=expiration_days,
            expires_at=notified_at + timedelta(days=expiration_days),
            base_url=settings.public_base_url,
        )
        delivered = await deliver(self.sender, entry.contact_email, subject, body)
        metrics_collector.record_notification(delivered)

        logger.info(
            "Waiting list turn notified",
            extra={
                "trip_id": trip_id,
                "waitlist_entry_id": entry.id,
                "requester_ref": entry.requester_ref,
                "delivered": delivered,
                "available_rooms": trip.available_rooms,
            }
        )

        return NotifyResult(entry=entry, delivered=delivered)

    async def remove(self, trip_id: int, requester_ref: str) -> bool:
        """
        Delete a requester's entry for a trip without committing.

        Removing an absent entry is a no-op.

        Returns:
            bool: True if an entry was deleted
        """
        result = await self.db.execute(
            delete(WaitingListEntry).where(
                WaitingListEntry.trip_id == trip_id,
                WaitingListEntry.requester_ref == requester_ref,
            )
        )
        removed = result.rowcount > 0
        if removed:
            logger.info(
                "Waiting list entry removed",
                extra={"trip_id": trip_id, "requester_ref": requester_ref},
            )
        return removed

    async def leave(self, trip_id: int, requester_ref: str) -> bool:
        """Remove the requester from a trip's waiting list and commit."""
        removed = await self.remove(trip_id, requester_ref)
        await self.db.commit()
        return removed

    async def remove_entry(self, entry_id: int) -> bool:
        """Remove an entry by ID and commit; used by administrators."""
        result = await self.db.execute(delete(WaitingListEntry).where(WaitingListEntry.id == entry_id))
        await self.db.commit()
        removed = result.rowcount > 0
        logger.info(
            "Waiting list entry removed by ID",
            extra={"waitlist_entry_id": entry_id, "removed": removed},
        )
        return removed

    async def clear(self, trip_id: int) -> int:
        """Remove every entry of a trip's queue and commit; used by administrators."""
        result = await self.db.execute(delete(WaitingListEntry).where(WaitingListEntry.trip_id == trip_id))
        await self.db.commit()
        logger.info(
            "Waiting list cleared",
            extra={"trip_id": trip_id, "removed": result.rowcount},
        )
        return result.rowcount

    async def expire_notifications(
        self,
        expiration_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ExpiryReport:
        """
        Remove entries whose turn notification is older than the window.

        Each expired entry is deleted and committed on its own. When its trip
        still has rooms, the turn then passes to the next entry that has not
        been notified yet. A failing cascade is logged and never undoes the
        removal.

        Args:
            expiration_days: Window length; loaded from the admin policy when omitted
            now: Reference time, defaults to the current time

        Returns:
            ExpiryReport: Counts of expired entries and cascaded notifications
        """
        if expiration_days is None:
            policy = await PolicyService(self.db).load()
            expiration_days = policy.waitlist_notification_expiration_days

        now = now or utcnow()
        cutoff = now - timedelta(days=expiration_days)

        stmt = (
            select(WaitingListEntry.id, WaitingListEntry.trip_id, WaitingListEntry.requester_ref)
            .where(
                WaitingListEntry.notified.is_(True),
                WaitingListEntry.notified_at < cutoff,
            )
            .order_by(WaitingListEntry.notified_at, WaitingListEntry.id)
        )
        result = await self.db.execute(stmt)
        expired_rows = list(result.all())

        report = ExpiryReport()

        for entry_id, trip_id, requester_ref in expired_rows:
            await self.db.execute(delete(WaitingListEntry).where(WaitingListEntry.id == entry_id))
            await self.db.commit()

            report.expired += 1
            report.expired_entry_ids.append(entry_id)
            metrics_collector.record_notification_expired()
            logger.info(
                "Waiting list notification expired",
                extra={
                    "waitlist_entry_id": entry_id,
                    "trip_id": trip_id,
                    "requester_ref": requester_ref,
                    "cutoff": cutoff.isoformat(),
                }
            )

            try:
                notified = await self.notify_next(trip_id, expiration_days=expiration_days)
            except Exception as e:
                await self.db.rollback()
                report.cascade_failures += 1
                logger.error(
                    "Failed to pass turn to next waiting requester",
                    extra={"trip_id": trip_id, "error": str(e)},
                    exc_info=True,
                )
                continue

            if notified:
                report.cascaded += 1

        if report.expired:
            logger.info(
                "Notification expiry sweep completed",
                extra={
                    "expired": report.expired,
                    "cascaded": report.cascaded,
                    "cascade_failures": report.cascade_failures,
                }
            )

        return report

    async def notify_waiting_trips(self, expiration_days: Optional[int] = None) -> int:
        """
        Notify the next requester on trips that have rooms but no outstanding turn.

        Catches up on notifications that were lost, for example when a
        cancellation committed but its notification step failed.

        Returns:
            int: Number of entries notified
        """
        unnotified = exists().where(
            WaitingListEntry.trip_id == Trip.id,
            WaitingListEntry.notified.is_(False),
        )
        outstanding = exists().where(
            WaitingListEntry.trip_id == Trip.id,
            WaitingListEntry.notified.is_(True),
        )
        stmt = (
            select(Trip.id)
            .where(Trip.available_rooms > 0, unnotified, ~outstanding)
            .order_by(Trip.id)
        )
        result = await self.db.execute(stmt)
        trip_ids = list(result.scalars())

        notified = 0
        for trip_id in trip_ids:
            try:
                if await self.notify_next(trip_id, expiration_days=expiration_days):
                    notified += 1
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    "Catch-up notification failed",
                    extra={"trip_id": trip_id, "error": str(e)},
                    exc_info=True,
                )

        return notified

    async def get_entry(self, trip_id: int, requester_ref: str) -> Optional[WaitingListEntry]:
        """Get a requester's entry for a trip."""
        stmt = select(WaitingListEntry).where(
            WaitingListEntry.trip_id == trip_id,
            WaitingListEntry.requester_ref == requester_ref,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_head(self, trip_id: int) -> Optional[WaitingListEntry]:
        """Get the entry whose turn it is."""
        stmt = (
            select(WaitingListEntry)
            .where(WaitingListEntry.trip_id == trip_id)
            .order_by(*QUEUE_ORDER)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_queue(self, trip_id: int) -> list[WaitingListEntry]:
        """Get all entries for a trip in turn order."""
        stmt = (
            select(WaitingListEntry)
            .where(WaitingListEntry.trip_id == trip_id)
            .order_by(*QUEUE_ORDER)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_position(self, trip_id: int, requester_ref: str) -> Optional[int]:
        """Get the 1-based queue position of a requester, or None if not queued."""
        queue = await self.get_queue(trip_id)
        for index, entry in enumerate(queue, start=1):
            if entry.requester_ref == requester_ref:
                return index
        return None

    async def get_status(self, requester_ref: str) -> list[QueuePosition]:
        """
        Get every entry of a requester with its queue position.

        Returns:
            list[QueuePosition]: Newest join first
        """
        stmt = (
            select(WaitingListEntry)
            .where(WaitingListEntry.requester_ref == requester_ref)
            .order_by(WaitingListEntry.joined_at.desc())
        )
        result = await self.db.execute(stmt)
        entries = list(result.scalars())

        positions = []
        for entry in entries:
            queue = await self.get_queue(entry.trip_id)
            position = next(
                (index for index, item in enumerate(queue, start=1) if item.id == entry.id),
                len(queue),
            )
            positions.append(QueuePosition(entry=entry, position=position, total=len(queue)))
        return positions

    async def count_waiting(self, trip_id: int) -> int:
        """Get the number of entries in a trip's queue."""
        stmt = select(func.count(WaitingListEntry.id)).where(WaitingListEntry.trip_id == trip_id)
        result = await self.db.execute(stmt)
        return result.scalar() or 0
