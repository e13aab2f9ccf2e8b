"""Travel agency booking service: room inventory, bookings and waiting lists."""

__version__ = "1.0.0"
