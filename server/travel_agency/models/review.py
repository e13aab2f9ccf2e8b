"""Trip review model definition."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..core.timeutils import utcnow

if TYPE_CHECKING:
    from .trip import Trip

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 500


class Review(Base):
    """A traveller's rating of a trip; one per requester and trip."""

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key to trip
    trip_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Review details
    requester_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(String(MAX_COMMENT_LENGTH), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    # Constraints
    __table_args__ = (
        CheckConstraint(f"rating BETWEEN {MIN_RATING} AND {MAX_RATING}", name="ck_review_rating_range"),
        CheckConstraint("length(requester_ref) > 0", name="ck_review_requester_ref_not_empty"),
        UniqueConstraint("trip_id", "requester_ref", name="uq_review_trip_requester"),
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="reviews")

    def __repr__(self) -> str:
        return (
            f"<Review(id={self.id}, trip_id={self.trip_id}, "
            f"requester_ref='{self.requester_ref}', rating={self.rating})>"
        )
