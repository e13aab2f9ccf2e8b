"""Inventory ledger: the only writer of a trip's available rooms."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import ConcurrentModification, InsufficientInventory, TripNotFound
from ..core.observability import metrics_collector
from ..models.inventory import InventoryAdjustment
from ..models.trip import Trip

logger = logging.getLogger(__name__)

SERIALIZATION_FAILURE_SQLSTATES = {"40001", "40P01"}
SYSTEM_ACTOR = "system"


def is_concurrency_failure(exc: BaseException) -> bool:
    """
    Return True if a database error means another transaction got there first.

    Covers optimistic version mismatches, PostgreSQL serialization failures
    and deadlocks, and SQLite lock contention.
    """
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate in SERIALIZATION_FAILURE_SQLSTATES:
            return True
        if isinstance(exc, OperationalError) and "database is locked" in str(orig):
            return True
    return False


class InventoryLedger:
    """
    Reserve and release rooms on a trip inside the caller's transaction.

    Every movement re-reads the trip row, applies the delta and flushes. The
    flush is an ``UPDATE ... WHERE version = ?`` so a concurrent writer turns
    into ``ConcurrentModification`` instead of a lost update. The ledger never
    commits; the caller decides the transaction boundary.
    """

    def __init__(self, db: AsyncSession, actor: str = SYSTEM_ACTOR):
        self.db = db
        self.actor = actor

    async def get_trip(self, trip_id: int) -> Trip:
        """
        Read the current state of a trip, bypassing the session's identity map.

        Raises:
            TripNotFound: If the trip does not exist
        """
        stmt = (
            select(Trip)
            .where(Trip.id == trip_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        trip = result.scalar_one_or_none()
        if trip is None:
            raise TripNotFound(trip_id)
        return trip

    async def get_available(self, trip_id: int) -> int:
        """Return the number of rooms currently available on a trip."""
        trip = await self.get_trip(trip_id)
        return trip.available_rooms

    async def reserve(self, trip_id: int, rooms: int, reason: str = "booking", actor: str | None = None) -> Trip:
        """
        Take rooms out of a trip's availability.

        Args:
            trip_id: Trip to reserve on
            rooms: Number of rooms, at least 1
            reason: Audit reason
            actor: Audit actor, defaults to the ledger's actor

        Returns:
            Trip: Trip with the decremented availability

        Raises:
            ValueError: If rooms is not positive
            TripNotFound: If the trip does not exist
            InsufficientInventory: If fewer rooms are available than requested
            ConcurrentModification: If another transaction updated the trip first
        """
        if rooms < 1:
            raise ValueError(f"rooms must be positive, got {rooms}")

        trip = await self.get_trip(trip_id)

        if trip.available_rooms < rooms:
            logger.info(
                "Reserve rejected - insufficient rooms",
                extra={
                    "trip_id": trip_id,
                    "requested_rooms": rooms,
                    "available_rooms": trip.available_rooms,
                }
            )
            raise InsufficientInventory(trip_id=trip_id, requested=rooms, available=trip.available_rooms)

        await self._apply(trip, -rooms, reason, actor)
        metrics_collector.record_inventory_movement("reserve", rooms)
        return trip

    async def release(self, trip_id: int, rooms: int, reason: str = "cancellation", actor: str | None = None) -> Trip:
        """
        Return rooms to a trip's availability, never beyond its capacity.

        Args:
            trip_id: Trip to release on
            rooms: Number of rooms, at least 1
            reason: Audit reason
            actor: Audit actor, defaults to the ledger's actor

        Returns:
            Trip: Trip with the incremented availability

        Raises:
            ValueError: If rooms is not positive
            TripNotFound: If the trip does not exist
            ConcurrentModification: If another transaction updated the trip first
        """
        if rooms < 1:
            raise ValueError(f"rooms must be positive, got {rooms}")

        trip = await self.get_trip(trip_id)
        delta = min(trip.capacity, trip.available_rooms + rooms) - trip.available_rooms

        if delta != rooms:
            logger.warning(
                "Release capped at trip capacity",
                extra={
                    "trip_id": trip_id,
                    "requested_rooms": rooms,
                    "released_rooms": delta,
                    "capacity": trip.capacity,
                }
            )
        if delta == 0:
            return trip

        await self._apply(trip, delta, reason, actor)
        metrics_collector.record_inventory_movement("release", delta)
        return trip

    async def _apply(self, trip: Trip, delta: int, reason: str, actor: str | None) -> None:
        trip_id = trip.id
        before = trip.available_rooms
        trip.available_rooms = before + delta

        self.db.add(
            InventoryAdjustment(
                trip_id=trip_id,
                delta=delta,
                reason=reason,
                actor=actor or self.actor,
                available_before=before,
                available_after=trip.available_rooms,
            )
        )

        try:
            await self.db.flush()
        except (StaleDataError, DBAPIError) as e:
            if is_concurrency_failure(e):
                logger.warning(
                    "Inventory update lost to a concurrent transaction",
                    extra={"trip_id": trip_id, "delta": delta, "error": str(e)},
                )
                raise ConcurrentModification(trip_id=trip_id) from e
            raise

        metrics_collector.set_available_rooms(trip_id, before + delta)
        logger.info(
            "Inventory updated",
            extra={
                "trip_id": trip_id,
                "delta": delta,
                "reason": reason,
                "available_before": before,
                "available_after": before + delta,
            }
        )

    async def get_adjustments(self, trip_id: int) -> list[InventoryAdjustment]:
        """Get the audit trail of a trip, newest first."""
        stmt = (
            select(InventoryAdjustment)
            .where(InventoryAdjustment.trip_id == trip_id)
            .order_by(InventoryAdjustment.created_at.desc(), InventoryAdjustment.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())
