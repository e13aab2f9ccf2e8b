"""Review router for trip reviews."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession, RequiredAuth
from ..core.exceptions import ProblemDetailsException
from ..schemas.auth import Requester
from ..schemas.review import (
    CreateReviewRequest,
    DeleteReviewRequest,
    DeleteReviewResponse,
    ListReviewsRequest,
    Review,
    ReviewList,
)
from ..services.review_service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/review", tags=["review"])


def _convert_review_to_schema(review_model) -> Review:
    """Convert review model to schema."""
    return Review(
        id=review_model.id,
        trip_id=review_model.trip_id,
        requester_ref=review_model.requester_ref,
        rating=review_model.rating,
        comment=review_model.comment,
        created_at=review_model.created_at,
    )


def _internal_error(action: str, error: Exception, **context) -> HTTPException:
    logger.error(
        f"Unexpected error in review {action}",
        extra={**context, "error": str(error)},
        exc_info=True
    )
    return HTTPException(
        status_code=500,
        detail="Internal server error"
    )


@router.post("/create", response_model=Review)
async def create_review(
    request: CreateReviewRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """
    Review a trip with a rating from 1 to 5 and an optional comment.

    Each requester may review a trip once.
    """
    try:
        review = await ReviewService(db).create_review(
            request.trip_id, requester, request.rating, request.comment
        )
        response_data = _convert_review_to_schema(review)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("create", e, trip_id=request.trip_id, requester_ref=requester.user_id)


@router.post("/delete", response_model=DeleteReviewResponse)
async def delete_review(
    request: DeleteReviewRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """Delete a review. Allowed for its author and administrators."""
    try:
        await ReviewService(db).delete_review(request.review_id, requester)
        response_data = DeleteReviewResponse(deleted=True)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("delete", e, review_id=request.review_id, requester_ref=requester.user_id)


@router.post("/list", response_model=ReviewList)
async def list_reviews(
    request: ListReviewsRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """List a trip's reviews with their average rating."""
    service = ReviewService(db)

    try:
        reviews = await service.list_reviews(request.trip_id)
        summary = await service.rating_summary(request.trip_id)
        response_data = ReviewList(
            trip_id=request.trip_id,
            count=summary.count,
            average_rating=summary.average,
            items=[_convert_review_to_schema(review) for review in reviews],
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("list", e, trip_id=request.trip_id)
