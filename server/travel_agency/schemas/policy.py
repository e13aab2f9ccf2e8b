"""Admin policy Pydantic schemas."""

from pydantic import BaseModel, Field


class PolicySettings(BaseModel):
    """Booking time frames maintained by administrators."""

    booking_lead_days: int = Field(..., ge=0, le=365, description="Days before departure when booking closes")
    cancellation_deadline_days: int = Field(
        ...,
        ge=0,
        le=365,
        description="Days before departure when cancellation closes"
    )
    reminder_days: int = Field(..., ge=0, le=365, description="Days before departure to send reminders")
    max_discount_duration_days: int = Field(..., ge=1, le=7, description="Longest a discount may run")
    waitlist_notification_expiration_days: int = Field(
        ...,
        ge=1,
        le=14,
        description="Days a notified waiting requester keeps the turn"
    )
