"""Trip router for trip management operations."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.dependencies import AdminAuth, DatabaseSession, RequiredAuth
from ..core.exceptions import ProblemDetailsException
from ..schemas.auth import Requester
from ..schemas.common import Money
from ..schemas.trip import ActivateDiscountRequest, CreateTripRequest, GetTripRequest, Trip
from ..services.trip_service import TripService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/trip", tags=["trip"])


def _convert_trip_to_schema(trip_model) -> Trip:
    """Convert trip model to schema."""
    old_price = None
    if trip_model.is_discount_active and trip_model.old_price_amount is not None:
        old_price = Money(amount=trip_model.old_price_amount, currency=settings.currency)

    return Trip(
        id=trip_model.id,
        title=trip_model.title,
        destination=trip_model.destination,
        country=trip_model.country,
        package_type=trip_model.package_type,
        description=trip_model.description,
        start_date=trip_model.start_date,
        end_date=trip_model.end_date,
        capacity=trip_model.capacity,
        available_rooms=trip_model.available_rooms,
        price=Money(amount=trip_model.price_amount, currency=settings.currency),
        old_price=old_price,
        is_discount_active=trip_model.is_discount_active,
        discount_expires_at=trip_model.discount_expires_at,
    )


@router.post("/create", response_model=Trip)
async def create_trip(
    request: CreateTripRequest,
    db: AsyncSession = DatabaseSession,
    admin: Requester = AdminAuth,
) -> JSONResponse:
    """Create a new trip. Restricted to administrators."""
    trip_service = TripService(db)

    try:
        trip = await trip_service.create_trip(request)
        response_data = _convert_trip_to_schema(trip)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in trip creation",
            extra={
                "title": request.title,
                "admin": admin.user_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.post("/get", response_model=Trip)
async def get_trip(
    request: GetTripRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """Get trip details including current availability."""
    trip_service = TripService(db)

    try:
        trip = await trip_service.get_trip_or_raise(request.trip_id)
        response_data = _convert_trip_to_schema(trip)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in trip retrieval",
            extra={
                "trip_id": request.trip_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.post("/discount", response_model=Trip)
async def activate_discount(
    request: ActivateDiscountRequest,
    db: AsyncSession = DatabaseSession,
    admin: Requester = AdminAuth,
) -> JSONResponse:
    """
    Put a trip on a discounted price.

    The discount ends at ``expires_at`` but never later than the maximum
    discount duration configured by the administrators.
    """
    trip_service = TripService(db)

    try:
        trip = await trip_service.activate_discount(
            request.trip_id,
            request.price_amount,
            expires_at=request.expires_at,
        )
        response_data = _convert_trip_to_schema(trip)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in discount activation",
            extra={
                "trip_id": request.trip_id,
                "admin": admin.user_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )
