"""Booking notifications - guest/owner fan-out and ledger failure escalation."""

import asyncio
from typing import Callable, Protocol

from riad_bookings.models.booking import BookingRecord, DispatchOutcome, SendResult
from riad_bookings.services.email_client import EmailMessage, get_email_client
from riad_bookings.services.templates import (
    guest_confirmation,
    ledger_failure_alert,
    owner_notification,
)
from riad_bookings.utils.logger import get_logger, mask_email

logger = get_logger(__name__)


class NotificationChannel(Protocol):
    """Anything that can deliver an EmailMessage."""

    async def send(self, message: EmailMessage) -> SendResult: ...


class NotificationDispatcher:
    """
    Best-effort booking emails.

    Every public method returns a result value and never raises: a
    failed email must not turn a paid booking into an error response.
    """

    def __init__(
        self,
        sender: str,
        owner_address: str,
        channel_factory: Callable[[], NotificationChannel] = get_email_client,
    ):
        """
        Initialize dispatcher.

        Args:
            sender: From address for all booking emails
            owner_address: Owner inbox for notifications and alerts
            channel_factory: Returns the channel; called per send so a
                missing configuration surfaces as a failed send
        """
        self.sender = sender
        self.owner_address = owner_address
        self.channel_factory = channel_factory

    async def _deliver(self, kind: str, build: Callable[[], EmailMessage]) -> SendResult:
        """Build and send one message, converting any failure to a SendResult."""
        try:
            message = build()
            result = await self.channel_factory().send(message)
        except Exception as e:
            logger.error(f"{kind}_failed", error=str(e), exc_type=type(e).__name__)
            return SendResult(success=False, error=str(e))

        if result.success:
            logger.info(f"{kind}_sent", message_id=result.message_id)
        else:
            logger.error(f"{kind}_failed", error=result.error)
        return result

    async def send_guest_confirmation(self, record: BookingRecord) -> SendResult:
        return await self._deliver(
            "guest_confirmation",
            lambda: guest_confirmation(record, self.sender, self.owner_address),
        )

    async def send_owner_notification(self, record: BookingRecord) -> SendResult:
        return await self._deliver(
            "owner_notification",
            lambda: owner_notification(record, self.sender, self.owner_address),
        )

    async def dispatch(self, record: BookingRecord) -> DispatchOutcome:
        """
        Send guest confirmation and owner notification concurrently.

        The guest email is skipped when the booking has no address.

        Args:
            record: Confirmed booking

        Returns:
            DispatchOutcome with one SendResult per message
        """
        if not record.email:
            logger.info("guest_confirmation_skipped", reason="no_email")
            owner = await self.send_owner_notification(record)
            return DispatchOutcome(owner=owner)

        logger.debug("dispatching_notifications", guest=mask_email(record.email))
        guest, owner = await asyncio.gather(
            self.send_guest_confirmation(record),
            self.send_owner_notification(record),
        )
        return DispatchOutcome(owner=owner, guest=guest)

    async def escalate(
        self,
        record: BookingRecord,
        attempts: int,
        last_error: BaseException | None = None,
    ) -> SendResult:
        """
        Alert the owner that the booking could not be written to the ledger.

        Args:
            record: Booking that failed to persist
            attempts: Ledger attempts made
            last_error: Last ledger error, included in the alert

        Returns:
            SendResult of the alert email
        """
        logger.warning("ledger_failure_alert_sending", attempts=attempts)
        return await self._deliver(
            "ledger_failure_alert",
            lambda: ledger_failure_alert(
                record,
                self.sender,
                self.owner_address,
                attempts=attempts,
                last_error=str(last_error) if last_error else None,
            ),
        )
