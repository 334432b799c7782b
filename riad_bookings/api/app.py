"""FastAPI application for the booking webhook."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from riad_bookings import __version__
from riad_bookings.config import get_settings
from riad_bookings.services.booking_service import BookingService, create_booking_service
from riad_bookings.services.email_client import reset_email_client
from riad_bookings.utils.logger import get_logger

from .routes import router as bookings_router, set_booking_service

logger = get_logger(__name__)


def create_app(service: BookingService | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        service: Booking service to serve (from config if not provided)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle."""
        booking_service = service or create_booking_service()
        set_booking_service(booking_service)
        app.state.booking_service = booking_service
        logger.info("booking_service_initialized", ledger=booking_service.ledger.name)

        yield

        set_booking_service(None)
        await reset_email_client()
        logger.info("booking_service_stopped")

    settings = get_settings()

    app = FastAPI(
        title="Riad Bookings API",
        description="Booking webhook: OPS sheet write with retry and alerting, guest and owner emails.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for monitoring and load balancers."""
        booking_service = getattr(app.state, "booking_service", None)
        return {
            "status": "healthy" if booking_service else "starting",
            "ledger": booking_service.ledger.name if booking_service else None,
            "version": __version__,
        }

    app.include_router(bookings_router)
    return app
