"""FastAPI routers package."""

from .admin import router as admin_router
from .booking import router as booking_router
from .health import router as health_router
from .metrics import router as metrics_router
from .review import router as review_router
from .trip import router as trip_router
from .waitlist import router as waitlist_router

__all__ = [
    "admin_router",
    "booking_router",
    "health_router",
    "metrics_router",
    "review_router",
    "trip_router",
    "waitlist_router",
]
