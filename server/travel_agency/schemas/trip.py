"""Trip-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from .common import Money


class CreateTripRequest(BaseModel):
    """Request schema for creating a trip."""

    title: str = Field(..., min_length=1, max_length=255, description="Trip name")
    destination: str = Field(..., min_length=1, max_length=255, description="City or place")
    country: str = Field(..., min_length=1, max_length=128, description="Country")
    package_type: str = Field("", max_length=64, description="Package type, e.g. Family or Cruise")
    description: str = Field("", max_length=2000, description="Short description")
    start_date: datetime = Field(..., description="Trip start (ISO 8601)")
    end_date: datetime = Field(..., description="Trip end (ISO 8601)")
    capacity: int = Field(..., ge=0, le=1000, description="Total number of rooms")
    price_amount: int = Field(..., ge=0, le=99999900, description="Price per room in minor units")

    @model_validator(mode="after")
    def check_dates(self) -> "CreateTripRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class GetTripRequest(BaseModel):
    """Request schema for getting a trip."""

    trip_id: int = Field(..., ge=1, description="Trip to retrieve")


class ActivateDiscountRequest(BaseModel):
    """Request schema for activating a discount on a trip."""

    trip_id: int = Field(..., ge=1, description="Trip to discount")
    price_amount: int = Field(..., ge=0, description="Discounted price per room in minor units")
    expires_at: datetime | None = Field(
        None,
        description="Requested expiry; clamped to the maximum discount duration"
    )


class Trip(BaseModel):
    """Trip response schema."""

    id: int = Field(..., description="Unique trip ID")
    title: str = Field(..., description="Trip name")
    destination: str = Field(..., description="City or place")
    country: str = Field(..., description="Country")
    package_type: str = Field(..., description="Package type")
    description: str = Field(..., description="Short description")
    start_date: datetime = Field(..., description="Trip start (ISO 8601)")
    end_date: datetime = Field(..., description="Trip end (ISO 8601)")
    capacity: int = Field(..., ge=0, description="Total number of rooms")
    available_rooms: int = Field(..., ge=0, description="Rooms still available")
    price: Money = Field(..., description="Current price per room")
    old_price: Money | None = Field(None, description="Price before the active discount")
    is_discount_active: bool = Field(..., description="Whether a discount is active")
    discount_expires_at: datetime | None = Field(None, description="When the discount ends (ISO 8601)")
