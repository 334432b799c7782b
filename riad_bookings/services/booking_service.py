"""Booking service - webhook payload to ledger row and emails."""

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from riad_bookings.config import get_settings
from riad_bookings.models.booking import (
    BookingRecord,
    BookingSubmission,
    PaymentRejected,
    SubmissionResult,
)
from riad_bookings.services.ledger import LedgerWriteError, LedgerWriter, create_ledger_writer
from riad_bookings.services.normalizer import generate_booking_id, normalize
from riad_bookings.services.notifications import NotificationDispatcher
from riad_bookings.utils.logger import get_logger
from riad_bookings.utils.retry import retry_with_backoff

logger = get_logger(__name__)


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class CheckStep:
    """One step of the end-to-end system check."""

    step: str
    success: bool
    error: str | None = None


@dataclass
class SystemCheckResult:
    """Result of run_system_check."""

    booking_id: str
    steps: list[CheckStep] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(step.success for step in self.steps)


# =============================================================================
# Booking Service
# =============================================================================


class BookingService:
    """
    Processes confirmed-payment booking webhooks.

    Pipeline per request:
    1. Normalize payload (reject if payment not completed)
    2. Append to the OPS ledger with bounded exponential backoff
    3. Alert the owner if every ledger attempt failed
    4. Send guest confirmation and owner notification

    The response tracks payment capture: once the payment is completed the
    booking is accepted, whatever happens in steps 2-4.
    """

    def __init__(
        self,
        ledger: LedgerWriter,
        notifier: NotificationDispatcher,
        default_property: str = "Riad di Siena",
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        """
        Initialize booking service.

        Args:
            ledger: Ledger writer for confirmed bookings
            notifier: Email dispatcher
            default_property: Property used when the payload names none
            max_attempts: Ledger attempt ceiling
            base_delay: Backoff delay after the first failed attempt (seconds)
            sleep: Awaitable sleep override (tests)
        """
        self.ledger = ledger
        self.notifier = notifier
        self.default_property = default_property
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    async def _write_ledger(self, record: BookingRecord) -> bool:
        committed = await self.ledger.append(record)
        if not committed:
            raise LedgerWriteError("Sheet write returned false", booking_id=record.booking_id)
        return committed

    async def submit(self, payload: Mapping[str, Any] | BookingSubmission) -> SubmissionResult:
        """
        Process one booking webhook.

        Args:
            payload: JSON object posted by the website

        Returns:
            SubmissionResult; ``accepted`` is False only when the payment is
            not completed
        """
        normalized = normalize(payload, default_property=self.default_property)

        if isinstance(normalized, PaymentRejected):
            logger.warning(
                "booking_payment_not_completed",
                paypal_status=normalized.payment_status,
            )
            return SubmissionResult(
                accepted=False,
                payment_status=normalized.payment_status,
                errors=[normalized.reason],
            )

        record = normalized
        with structlog.contextvars.bound_contextvars(booking_id=record.booking_id):
            return await self._process(record)

    async def _process(self, record: BookingRecord) -> SubmissionResult:
        logger.info(
            "booking_received",
            property=record.property_name,
            accommodation=record.accommodation_name,
            check_in=record.check_in,
            nights=record.nights,
            total=record.total_price,
        )

        result = SubmissionResult(
            accepted=True,
            booking_id=record.booking_id,
            payment_status="COMPLETED",
        )

        retry_kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep

        outcome = await retry_with_backoff(
            lambda: self._write_ledger(record),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            operation_name=f"ledger_append:{self.ledger.name}",
            **retry_kwargs,
        )
        result.ledger_attempts = outcome.attempts_used
        result.ledger_written = outcome.success

        if outcome.success:
            logger.info("ledger_write_succeeded", attempts=outcome.attempts_used)
        else:
            logger.error(
                "ledger_write_exhausted",
                attempts=outcome.attempts_used,
                error=str(outcome.last_error),
            )
            result.errors.append(f"Ledger write failed after {outcome.attempts_used} attempts")
            result.escalation = await self.notifier.escalate(
                record,
                attempts=outcome.attempts_used,
                last_error=outcome.last_error,
            )
            result.escalated = True

        result.notifications = await self.notifier.dispatch(record)

        if result.notifications.guest is not None and not result.notifications.guest.success:
            result.errors.append("Guest confirmation email failed")
        if not result.notifications.owner.success:
            result.errors.append("Owner notification email failed")

        logger.info(
            "booking_processed",
            ledger_written=result.ledger_written,
            ledger_attempts=result.ledger_attempts,
            escalated=result.escalated,
            guest_emailed=bool(result.notifications.guest and result.notifications.guest.success),
            owner_emailed=result.notifications.owner.success,
        )
        return result

    async def run_system_check(self) -> SystemCheckResult:
        """
        Exercise the real ledger and email channel once, end to end.

        Writes a clearly marked TEST row (to be deleted by hand) and sends
        both booking emails to the owner inbox. No retries.
        """
        booking_id = generate_booking_id(prefix="TEST")
        record = BookingRecord(
            booking_id=booking_id,
            first_name="Test",
            last_name="Guest",
            email=self.notifier.owner_address,
            phone="+1 555 000 0000",
            property_name=self.default_property,
            accommodation_name="Test Room",
            room="Test Room",
            check_in="2026-05-01",
            check_out="2026-05-03",
            nights=2,
            guests_count=2,
            total=200,
            external_payment_ref="TEST-PAYPAL-ORDER",
            remarks="This is a test booking - DELETE THIS ROW",
        )
        check = SystemCheckResult(booking_id=booking_id)
        started = time.monotonic()

        try:
            written = await self.ledger.append(record)
            check.steps.append(CheckStep(
                step="1. Write to OPS Sheet",
                success=written,
                error=None if written else "Sheet write returned false",
            ))
        except Exception as e:
            check.steps.append(CheckStep(step="1. Write to OPS Sheet", success=False, error=str(e)))

        outcome = await self.notifier.dispatch(record)
        check.steps.append(CheckStep(
            step="2a. Owner notification email",
            success=outcome.owner.success,
            error=outcome.owner.error,
        ))
        guest = outcome.guest
        check.steps.append(CheckStep(
            step="2b. Guest confirmation email",
            success=bool(guest and guest.success),
            error=guest.error if guest else "Skipped",
        ))

        logger.info(
            "system_check_complete",
            booking_id=booking_id,
            success=check.success,
            duration_s=round(time.monotonic() - started, 2),
        )
        return check


# =============================================================================
# Factory Functions
# =============================================================================


def create_booking_service(
    ledger: LedgerWriter | None = None,
    notifier: NotificationDispatcher | None = None,
) -> BookingService:
    """
    Create and configure a BookingService.

    Args:
        ledger: Ledger writer (from config if not provided)
        notifier: Notification dispatcher (from config if not provided)

    Returns:
        Configured BookingService
    """
    settings = get_settings()

    return BookingService(
        ledger=ledger or create_ledger_writer(settings.ledger),
        notifier=notifier or NotificationDispatcher(
            sender=settings.email.from_address,
            owner_address=settings.email.owner_address,
        ),
        default_property=settings.app.default_property,
        max_attempts=settings.app.ledger_max_attempts,
        base_delay=settings.app.ledger_base_delay_seconds,
    )
