"""Waitlist router for waiting list operations."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession, NotificationSenderDependency, RequiredAuth
from ..core.exceptions import ProblemDetailsException
from ..schemas.auth import Requester
from ..schemas.waitlist import (
    ClearWaitlistResponse,
    LeaveWaitlistResponse,
    NotifyNextResponse,
    RemoveWaitlistEntryRequest,
    TripWaitlistRequest,
    WaitingListEntry,
    WaitingListQueue as WaitingListQueueResponse,
    WaitingListStatus,
)
from ..services.notification_service import NotificationSender
from ..services.trip_service import TripService
from ..services.waitlist_service import WaitingListQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/waitlist", tags=["waitlist"])


def _convert_entry_to_schema(
    entry_model,
    position: Optional[int] = None,
    total: Optional[int] = None,
) -> WaitingListEntry:
    """Convert waiting list entry model to schema."""
    return WaitingListEntry(
        id=entry_model.id,
        trip_id=entry_model.trip_id,
        requester_ref=entry_model.requester_ref,
        joined_at=entry_model.joined_at,
        notified=entry_model.notified,
        notified_at=entry_model.notified_at,
        position=position,
        total_waiting=total,
    )


def _internal_error(action: str, error: Exception, **context) -> HTTPException:
    logger.error(
        f"Unexpected error in waitlist {action}",
        extra={**context, "error": str(error)},
        exc_info=True
    )
    return HTTPException(
        status_code=500,
        detail="Internal server error"
    )


@router.post("/join", response_model=WaitingListEntry)
async def join_waitlist(
    request: TripWaitlistRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """
    Join the waiting list of a sold-out trip.

    Rejected while the trip still has rooms or when the caller is already
    in its queue.
    """
    queue = WaitingListQueue(db)

    try:
        entry = await queue.join(request.trip_id, requester.user_id, contact_email=requester.email)
        total = await queue.count_waiting(request.trip_id)
        response_data = _convert_entry_to_schema(entry, position=total, total=total)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("join", e, trip_id=request.trip_id, requester_ref=requester.user_id)


@router.post("/leave", response_model=LeaveWaitlistResponse)
async def leave_waitlist(
    request: TripWaitlistRequest,
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """Leave a trip's waiting list. Leaving twice is not an error."""
    queue = WaitingListQueue(db)

    try:
        removed = await queue.leave(request.trip_id, requester.user_id)
        response_data = LeaveWaitlistResponse(removed=removed)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("leave", e, trip_id=request.trip_id, requester_ref=requester.user_id)


@router.post("/status", response_model=WaitingListStatus)
async def waitlist_status(
    db: AsyncSession = DatabaseSession,
    requester: Requester = RequiredAuth,
) -> JSONResponse:
    """List the caller's waiting list entries with their queue positions."""
    queue = WaitingListQueue(db)

    try:
        positions = await queue.get_status(requester.user_id)
        response_data = WaitingListStatus(
            items=[
                _convert_entry_to_schema(item.entry, position=item.position, total=item.total)
                for item in positions
            ]
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("status", e, requester_ref=requester.user_id)


@router.post("/queue", response_model=WaitingListQueueResponse)
async def trip_queue(
    request: TripWaitlistRequest,
    db: AsyncSession = DatabaseSession,
    admin: Requester = AdminAuth,
) -> JSONResponse:
    """Show a trip's queue in turn order. Restricted to administrators."""
    queue = WaitingListQueue(db)

    try:
        trip = await TripService(db).get_trip_or_raise(request.trip_id)
        entries = await queue.get_queue(request.trip_id)
        total = len(entries)
        response_data = WaitingListQueueResponse(
            trip_id=trip.id,
            available_rooms=trip.available_rooms,
            items=[
                _convert_entry_to_schema(entry, position=index, total=total)
                for index, entry in enumerate(entries, start=1)
            ],
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("queue", e, trip_id=request.trip_id)


@router.post("/notify-next", response_model=NotifyNextResponse)
async def notify_next(
    request: TripWaitlistRequest,
    db: AsyncSession = DatabaseSession,
    admin: Requester = AdminAuth,
    sender: NotificationSender = NotificationSenderDependency,
) -> JSONResponse:
    """
    Give the turn to the next waiting requester by hand.

    Does nothing while the trip has no rooms or nobody is waiting for a
    notification. Restricted to administrators.
    """
    queue = WaitingListQueue(db, sender=sender)

    try:
        trip = await TripService(db).get_trip_or_raise(request.trip_id)
        if trip.available_rooms <= 0:
            response_data = NotifyNextResponse(
                notified=False,
                message="No rooms available to notify waiting users.",
            )
        else:
            result = await queue.notify_next(request.trip_id)
            if result is None:
                response_data = NotifyNextResponse(
                    notified=False,
                    message="No waiting users to notify.",
                )
            else:
                response_data = NotifyNextResponse(
                    notified=True,
                    delivered=result.delivered,
                    entry=_convert_entry_to_schema(result.entry),
                    message="Next user has been notified.",
                )

        logger.info(
            "Manual waiting list notification",
            extra={
                "trip_id": request.trip_id,
                "admin": admin.user_id,
                "notified": response_data.notified,
            }
        )

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("notify-next", e, trip_id=request.trip_id)


@router.post("/remove", response_model=LeaveWaitlistResponse)
async def remove_entry(
    request: RemoveWaitlistEntryRequest,
    db: AsyncSession = DatabaseSession,
    admin: Requester = AdminAuth,
) -> JSONResponse:
    """Remove a single entry from a queue. Restricted to administrators."""
    queue = WaitingListQueue(db)

    try:
        removed = await queue.remove_entry(request.entry_id)
        response_data = LeaveWaitlistResponse(removed=removed)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("remove", e, entry_id=request.entry_id)


@router.post("/clear", response_model=ClearWaitlistResponse)
async def clear_waitlist(
    request: TripWaitlistRequest,
    db: AsyncSession = DatabaseSession,
    admin: Requester = AdminAuth,
) -> JSONResponse:
    """Remove every entry of a trip's queue. Restricted to administrators."""
    queue = WaitingListQueue(db)

    try:
        await TripService(db).get_trip_or_raise(request.trip_id)
        removed = await queue.clear(request.trip_id)
        response_data = ClearWaitlistResponse(removed=removed)

        return JSONResponse(
            status_code=200,
            content=response_data.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        raise _internal_error("clear", e, trip_id=request.trip_id)
