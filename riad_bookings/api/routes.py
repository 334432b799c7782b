"""Booking webhook API routes."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from riad_bookings.models.booking import BookingRecord
from riad_bookings.services.booking_service import BookingService
from riad_bookings.services.email_client import EmailConfigurationError
from riad_bookings.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])

# Service will be injected from app.py
_booking_service: Optional[BookingService] = None


def set_booking_service(service: BookingService | None):
    """Set booking service instance."""
    global _booking_service
    _booking_service = service


def get_booking_service() -> BookingService:
    """Get booking service."""
    if _booking_service is None:
        raise HTTPException(500, "Booking service not initialized")
    return _booking_service


class CheckStepResponse(BaseModel):
    step: str
    success: bool
    error: Optional[str] = None


class SystemCheckResponse(BaseModel):
    """Full booking flow check response."""

    success: bool
    message: str
    bookingId: str
    results: list[CheckStepResponse]
    note: str = "Delete the test row from Master_Guests sheet after verifying"


@router.post("")
async def create_booking(request: Request):
    """
    Receive a booking after PayPal checkout.

    - 200 when the payment is completed (even if the sheet write or
      emails failed; those are alerted and logged)
    - 400 when the payment is not completed or the body is not a JSON object
    - 500 on unexpected errors
    """
    try:
        body = await request.json()
    except ValueError:
        logger.warning("booking_invalid_json")
        return JSONResponse(
            {"success": False, "error": "Invalid request body"},
            status_code=400,
        )

    if not isinstance(body, dict):
        logger.warning("booking_body_not_object", body_type=type(body).__name__)
        return JSONResponse(
            {"success": False, "error": "Invalid request body"},
            status_code=400,
        )

    try:
        service = get_booking_service()
        result = await service.submit(body)
    except Exception:
        logger.exception("booking_creation_error")
        return JSONResponse(
            {"success": False, "error": "Server error"},
            status_code=500,
        )

    if not result.accepted:
        return JSONResponse(
            {
                "success": False,
                "error": "Payment not completed",
                "paypalStatus": result.payment_status,
            },
            status_code=400,
        )

    return {
        "success": True,
        "bookingId": result.booking_id,
        "message": "Booking confirmed",
    }


@router.get("")
async def list_bookings():
    """Bookings live in the OPS dashboard."""
    return {"message": "View bookings at ops.riaddisiena.com"}


@router.post("/test-email")
async def send_test_email():
    """Send a sample guest confirmation to the owner inbox."""
    service = get_booking_service()
    notifier = service.notifier

    try:
        notifier.channel_factory()
    except EmailConfigurationError:
        return JSONResponse({"error": "RESEND_API_KEY not configured"}, status_code=500)

    record = BookingRecord(
        booking_id="RDS-TEST-001",
        first_name="Chris",
        last_name="Test",
        email=notifier.owner_address,
        phone="+1 555 123 4567",
        property_name=service.default_property,
        accommodation_name="Tresor Cache",
        room="Tresor Cache",
        check_in="2026-04-06",
        check_out="2026-04-10",
        nights=4,
        guests_count=2,
        total=440,
    )

    result = await notifier.send_guest_confirmation(record)
    if not result.success:
        return JSONResponse(
            {"error": "Failed to send email", "details": result.error},
            status_code=500,
        )

    return {
        "success": True,
        "message": f"Test booking confirmation email sent to {notifier.owner_address}",
    }


@router.post("/test-full", response_model=SystemCheckResponse)
async def run_full_booking_test():
    """Run the real booking flow once against the sheet and email provider."""
    service = get_booking_service()
    check = await service.run_system_check()

    return SystemCheckResponse(
        success=check.success,
        message=(
            "ALL SYSTEMS WORKING - Full booking flow verified"
            if check.success
            else "SOME STEPS FAILED - Check results below"
        ),
        bookingId=check.booking_id,
        results=[
            CheckStepResponse(step=s.step, success=s.success, error=s.error)
            for s in check.steps
        ],
    )
