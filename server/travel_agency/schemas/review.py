"""Trip review related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class CreateReviewRequest(BaseModel):
    """Request schema for reviewing a trip."""

    trip_id: int = Field(..., ge=1, description="Trip to review")
    rating: int = Field(..., description="Score from 1 to 5")
    comment: str = Field("", max_length=500, description="Optional free text")


class DeleteReviewRequest(BaseModel):
    """Request schema for deleting a review."""

    review_id: int = Field(..., ge=1, description="Review to delete")


class ListReviewsRequest(BaseModel):
    """Request schema for listing a trip's reviews."""

    trip_id: int = Field(..., ge=1, description="Trip whose reviews are listed")


class Review(BaseModel):
    """Review response schema."""

    id: int = Field(..., description="Unique review ID")
    trip_id: int = Field(..., description="Reviewed trip ID")
    requester_ref: str = Field(..., description="Author reference")
    rating: int = Field(..., ge=1, le=5, description="Score from 1 to 5")
    comment: str = Field(..., description="Free text")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")


class ReviewList(BaseModel):
    """Response schema for a trip's reviews."""

    trip_id: int = Field(..., description="Trip ID")
    count: int = Field(..., ge=0, description="Number of reviews")
    average_rating: float | None = Field(None, description="Mean rating, absent without reviews")
    items: list[Review] = Field(..., description="Reviews, newest first")


class DeleteReviewResponse(BaseModel):
    """Response schema for deleting a review."""

    deleted: bool = Field(..., description="Whether the review was deleted")
