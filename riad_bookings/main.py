"""Main entry point for the Riad bookings webhook service."""

import asyncio
import sys

from riad_bookings.config import get_settings
from riad_bookings.services.booking_service import create_booking_service
from riad_bookings.services.email_client import reset_email_client
from riad_bookings.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_serve() -> None:
    """Run the HTTP server."""
    import uvicorn

    from riad_bookings.api import create_app

    settings = get_settings()
    logger.info("server_starting", host=settings.app.host, port=settings.app.port)
    uvicorn.run(create_app(), host=settings.app.host, port=settings.app.port)


async def cmd_check() -> bool:
    """Run the end-to-end system check against the real sheet and email provider."""
    service = create_booking_service()
    print("\n🔍 Running full booking flow check...\n")

    try:
        check = await service.run_system_check()
    finally:
        await reset_email_client()

    for step in check.steps:
        mark = "✅" if step.success else "❌"
        detail = f" - {step.error}" if step.error else ""
        print(f"   {mark} {step.step}{detail}")

    print(f"\nTest booking: {check.booking_id}")
    print("Delete the test row from Master_Guests sheet after verifying.\n")
    return check.success


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    setup_logging(settings.app.log_level, settings.app.log_format)

    command = sys.argv[1] if len(sys.argv) > 1 else "serve"

    if command == "serve":
        cmd_serve()
    elif command == "check":
        ok = asyncio.run(cmd_check())
        sys.exit(0 if ok else 1)
    else:
        print(f"Unknown command: {command}")
        print("Usage: python -m riad_bookings.main [serve|check]")
        sys.exit(1)


if __name__ == "__main__":
    main()
