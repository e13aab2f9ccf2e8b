"""Trip reviews: one rating per traveller and trip."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AlreadyReviewed, InvalidRating, ReviewNotFound, TripNotFound, Unauthorized
from ..core.observability import metrics_collector
from ..models.review import MAX_RATING, MIN_RATING, Review
from ..models.trip import Trip
from ..schemas.auth import Requester

logger = logging.getLogger(__name__)


@dataclass
class RatingSummary:
    """Average rating of a trip and how many reviews it is based on."""

    count: int
    average: Optional[float]


class ReviewService:
    """Service for writing, removing and listing trip reviews."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_review(self, trip_id: int, requester: Requester, rating: int, comment: str = "") -> Review:
        """
        Store a requester's review of a trip.

        Args:
            trip_id: Reviewed trip
            requester: Author of the review
            rating: Score from 1 to 5
            comment: Optional free text

        Returns:
            Created review

        Raises:
            InvalidRating: If the rating is outside 1 to 5
            TripNotFound: If the trip does not exist
            AlreadyReviewed: If the requester already reviewed this trip
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRating(rating, minimum=MIN_RATING, maximum=MAX_RATING)

        if await self.db.get(Trip, trip_id) is None:
            raise TripNotFound(trip_id)

        existing = await self.get_review_for(trip_id, requester.user_id)
        if existing is not None:
            raise AlreadyReviewed(trip_id, review_id=existing.id)

        review = Review(
            trip_id=trip_id,
            requester_ref=requester.user_id,
            rating=rating,
            comment=(comment or "").strip(),
        )

        try:
            self.db.add(review)
            await self.db.commit()
        except IntegrityError as e:
            # Concurrent review by the same requester
            await self.db.rollback()
            raise AlreadyReviewed(trip_id) from e

        metrics_collector.record_review_created(rating)
        logger.info(
            "Trip reviewed",
            extra={
                "review_id": review.id,
                "trip_id": trip_id,
                "requester_ref": requester.user_id,
                "rating": rating,
            }
        )
        return review

    async def delete_review(self, review_id: int, requester: Requester) -> None:
        """
        Delete a review; allowed for its author and administrators.

        Raises:
            ReviewNotFound: If the review does not exist
            Unauthorized: If the requester is neither the author nor an admin
        """
        review = await self.db.get(Review, review_id)
        if review is None:
            raise ReviewNotFound(review_id)

        if review.requester_ref != requester.user_id and not requester.is_admin:
            raise Unauthorized(
                "You are not authorized to delete this review.",
                review_id=review_id,
            )

        trip_id = review.trip_id
        await self.db.delete(review)
        await self.db.commit()

        logger.info(
            "Review deleted",
            extra={"review_id": review_id, "trip_id": trip_id, "deleted_by": requester.user_id},
        )

    async def get_review_for(self, trip_id: int, requester_ref: str) -> Optional[Review]:
        stmt = select(Review).where(Review.trip_id == trip_id, Review.requester_ref == requester_ref)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_reviews(self, trip_id: int) -> list[Review]:
        """List a trip's reviews, newest first."""
        if await self.db.get(Trip, trip_id) is None:
            raise TripNotFound(trip_id)

        stmt = (
            select(Review)
            .where(Review.trip_id == trip_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def rating_summary(self, trip_id: int) -> RatingSummary:
        stmt = select(func.count(Review.id), func.avg(Review.rating)).where(Review.trip_id == trip_id)
        count, average = (await self.db.execute(stmt)).one()
        return RatingSummary(count=count, average=round(float(average), 2) if average is not None else None)
