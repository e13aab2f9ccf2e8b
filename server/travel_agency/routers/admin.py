"""Admin router for booking policy settings."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession
from ..core.exceptions import ProblemDetailsException
from ..schemas.auth import Requester
from ..schemas.policy import PolicySettings
from ..services.policy_service import Policy, PolicyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.post("/settings/get", response_model=PolicySettings)
async def get_settings(
    db: AsyncSession = DatabaseSession,
    admin: Requester = AdminAuth,
) -> JSONResponse:
    """Get the active booking policy."""
    policy = await PolicyService(db).load()
    response_data = PolicySettings(**asdict(policy))

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/settings/update", response_model=PolicySettings)
async def update_settings(
    request: PolicySettings,
    db: AsyncSession = DatabaseSession,
    admin: Requester = AdminAuth,
) -> JSONResponse:
    """
    Replace the booking policy.

    Takes effect for every operation started after the update.
    """
    try:
        await PolicyService(db).save(Policy(**request.model_dump()))

        logger.info(
            "Booking policy updated",
            extra={"admin": admin.user_id, **request.model_dump()}
        )

        return JSONResponse(
            status_code=200,
            content=request.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in settings update",
            extra={"admin": admin.user_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )
