"""Trip service for business logic operations."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import TripNotFound, ValidationError
from ..core.observability import metrics_collector
from ..core.timeutils import to_naive_utc, utcnow
from ..models.trip import Trip
from ..schemas.trip import CreateTripRequest
from .inventory_service import is_concurrency_failure
from .policy_service import Policy, PolicyService

logger = logging.getLogger(__name__)


class TripService:
    """Service for trip-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_trip(self, request: CreateTripRequest) -> Trip:
        """
        Create a new trip with all of its rooms available.

        Args:
            request: Trip creation request

        Returns:
            Created trip entity
        """
        trip = Trip(
            title=request.title,
            destination=request.destination,
            country=request.country,
            package_type=request.package_type,
            description=request.description,
            start_date=to_naive_utc(request.start_date),
            end_date=to_naive_utc(request.end_date),
            capacity=request.capacity,
            available_rooms=request.capacity,
            price_amount=request.price_amount,
        )

        self.db.add(trip)
        await self.db.commit()
        await self.db.refresh(trip)

        metrics_collector.set_available_rooms(trip.id, trip.available_rooms)
        logger.info(
            "Trip created successfully",
            extra={
                "trip_id": trip.id,
                "title": trip.title,
                "capacity": trip.capacity,
                "start_date": trip.start_date.isoformat(),
            }
        )

        return trip

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        """Get trip by ID."""
        stmt = select(Trip).where(Trip.id == trip_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_trip_or_raise(self, trip_id: int) -> Trip:
        """Get trip by ID or raise TripNotFound."""
        trip = await self.get_trip(trip_id)
        if not trip:
            logger.warning("Trip not found", extra={"trip_id": trip_id})
            raise TripNotFound(trip_id)
        return trip

    async def activate_discount(
        self,
        trip_id: int,
        price_amount: int,
        expires_at: Optional[datetime] = None,
        policy: Optional[Policy] = None,
    ) -> Trip:
        """
        Put a trip on a discounted price for a limited time.

        The discount ends at the requested time but never later than the
        maximum discount duration after activation. Activating again while a
        discount runs keeps the original undiscounted price.

        Args:
            trip_id: Trip to discount
            price_amount: Discounted price per room in minor units
            expires_at: Requested end of the discount
            policy: Active policy, loaded when omitted

        Returns:
            Discounted trip

        Raises:
            TripNotFound: If the trip does not exist
            ValidationError: If the price is not below the regular price or
                the end lies in the past
        """
        if policy is None:
            policy = await PolicyService(self.db).load()

        trip = await self.get_trip_or_raise(trip_id)
        regular_price = trip.old_price_amount if trip.is_discount_active else trip.price_amount

        if price_amount >= regular_price:
            raise ValidationError(
                detail="The discounted price must be lower than the regular price",
                errors=[{"path": "price_amount", "message": f"Must be lower than {regular_price}"}],
            )

        now = utcnow()
        latest_end = now + timedelta(days=policy.max_discount_duration_days)
        end = min(to_naive_utc(expires_at), latest_end) if expires_at else latest_end

        if end <= now:
            raise ValidationError(
                detail="The discount must end in the future",
                errors=[{"path": "expires_at", "message": "Must be in the future"}],
            )

        trip.old_price_amount = regular_price
        trip.price_amount = price_amount
        trip.is_discount_active = True
        trip.discount_activated_at = now
        trip.discount_expires_at = end

        await self.db.commit()

        logger.info(
            "Discount activated",
            extra={
                "trip_id": trip_id,
                "price_amount": price_amount,
                "old_price_amount": regular_price,
                "discount_expires_at": end.isoformat(),
            }
        )
        return trip

    async def expire_discounts(self, now: Optional[datetime] = None, policy: Optional[Policy] = None) -> int:
        """
        Revert trips whose discount has run out to their regular price.

        A discount has run out at ``discount_expires_at`` or after the
        maximum discount duration since activation, whichever comes first.

        Returns:
            Number of discounts expired
        """
        if policy is None:
            policy = await PolicyService(self.db).load()

        now = now or utcnow()
        max_duration = timedelta(days=policy.max_discount_duration_days)

        stmt = select(Trip.id).where(Trip.is_discount_active.is_(True)).order_by(Trip.id)
        result = await self.db.execute(stmt)
        trip_ids = list(result.scalars())

        expired_count = 0
        for trip_id in trip_ids:
            trip = await self.db.get(Trip, trip_id, populate_existing=True)
            if trip is None or not trip.is_discount_active:
                continue

            ends = []
            if trip.discount_expires_at is not None:
                ends.append(trip.discount_expires_at)
            if trip.discount_activated_at is not None:
                ends.append(trip.discount_activated_at + max_duration)
            if ends and min(ends) > now:
                continue

            restored_price = trip.old_price_amount if trip.old_price_amount is not None else trip.price_amount
            trip.price_amount = restored_price
            trip.old_price_amount = None
            trip.is_discount_active = False
            trip.discount_activated_at = None
            trip.discount_expires_at = None

            try:
                await self.db.commit()
            except (StaleDataError, DBAPIError) as e:
                await self.db.rollback()
                if not is_concurrency_failure(e):
                    raise
                # Picked up again on the next run
                logger.warning(
                    "Discount expiry lost to a concurrent update",
                    extra={"trip_id": trip_id, "error": str(e)},
                )
                continue

            expired_count += 1
            logger.info(
                "Discount expired",
                extra={"trip_id": trip_id, "price_amount": restored_price},
            )

        return expired_count
