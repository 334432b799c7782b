"""HTTP API module."""

from .app import create_app
from .routes import router, set_booking_service, get_booking_service

__all__ = [
    "create_app",
    "router",
    "set_booking_service",
    "get_booking_service",
]
