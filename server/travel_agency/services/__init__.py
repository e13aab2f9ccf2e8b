"""Service layer package."""

from .booking_service import BookingLifecycle, BookingOutcome
from .inventory_service import InventoryLedger
from .policy_service import Policy, PolicyService
from .reminder_service import ReminderService
from .review_service import ReviewService
from .trip_service import TripService
from .waitlist_service import WaitingListQueue

__all__ = [
    "BookingLifecycle",
    "BookingOutcome",
    "InventoryLedger",
    "Policy",
    "PolicyService",
    "ReminderService",
    "ReviewService",
    "TripService",
    "WaitingListQueue",
]
