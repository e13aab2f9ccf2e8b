"""Background workers for the booking engine."""

from .discount_expiry_worker import DiscountExpiryWorker
from .trip_reminder_worker import TripReminderWorker
from .waitlist_expiry_worker import WaitlistExpiryWorker

__all__ = ["DiscountExpiryWorker", "TripReminderWorker", "WaitlistExpiryWorker"]
