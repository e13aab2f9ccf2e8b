"""Models module exporting all database models."""

from .booking import PENDING_PAYMENT_REFERENCE, Booking, BookingStatus
from .inventory import InventoryAdjustment
from .policy import PolicySettings
from .review import Review
from .trip import Trip
from .waitlist import WaitingListEntry

__all__ = [
    # Core entity
    "Trip",

    # Booking entities
    "Booking",
    "BookingStatus",
    "PENDING_PAYMENT_REFERENCE",

    # Waiting list entity
    "WaitingListEntry",

    # Inventory entity
    "InventoryAdjustment",

    # Admin policy entity
    "PolicySettings",

    # Review entity
    "Review",
]
