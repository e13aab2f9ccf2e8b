"""Waiting list related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class TripWaitlistRequest(BaseModel):
    """Request schema for waiting list operations on a trip."""

    trip_id: int = Field(..., ge=1, description="Trip whose waiting list is addressed")


class RemoveWaitlistEntryRequest(BaseModel):
    """Request schema for removing a waiting list entry."""

    entry_id: int = Field(..., ge=1, description="Entry to remove")


class WaitingListEntry(BaseModel):
    """Waiting list entry response schema."""

    id: int = Field(..., description="Unique entry ID")
    trip_id: int = Field(..., description="Associated trip ID")
    requester_ref: str = Field(..., description="Requester reference")
    joined_at: datetime = Field(..., description="Join time (ISO 8601)")
    notified: bool = Field(..., description="Whether the requester was told it is their turn")
    notified_at: datetime | None = Field(None, description="Notification time (ISO 8601)")
    position: int | None = Field(None, ge=1, description="1-based position in the queue")
    total_waiting: int | None = Field(None, ge=1, description="Number of entries in the queue")


class WaitingListStatus(BaseModel):
    """Response schema for the caller's waiting list entries."""

    items: list[WaitingListEntry] = Field(..., description="Entries with queue positions")


class WaitingListQueue(BaseModel):
    """Response schema for a trip's queue."""

    trip_id: int = Field(..., description="Trip ID")
    available_rooms: int = Field(..., description="Rooms currently available")
    items: list[WaitingListEntry] = Field(..., description="Entries in turn order")


class LeaveWaitlistResponse(BaseModel):
    """Response schema for leaving or removing from a waiting list."""

    removed: bool = Field(..., description="Whether an entry was removed")


class NotifyNextResponse(BaseModel):
    """Response schema for the manual notify-next action."""

    notified: bool = Field(..., description="Whether an entry was notified")
    delivered: bool = Field(False, description="Whether the message reached the sender")
    entry: WaitingListEntry | None = Field(None, description="Entry that received the turn")
    message: str = Field(..., description="Outcome for the administrator")


class ClearWaitlistResponse(BaseModel):
    """Response schema for clearing a trip's waiting list."""

    removed: int = Field(..., ge=0, description="Number of entries removed")
