"""Shared fixtures and fakes for booking tests."""

import pytest

from riad_bookings.models.booking import BookingRecord, SendResult
from riad_bookings.services.notifications import NotificationDispatcher


# =============================================================================
# Fakes
# =============================================================================


class FakeLedger:
    """
    Ledger whose append outcomes are scripted.

    Each outcome is True, False, or an exception instance to raise.
    When the script runs out the last outcome repeats.
    """

    name = "fake"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or [True]
        self.appended: list[BookingRecord] = []

    @property
    def calls(self) -> int:
        return len(self.appended)

    async def append(self, record: BookingRecord) -> bool:
        index = min(len(self.appended), len(self.outcomes) - 1)
        self.appended.append(record)
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeChannel:
    """Email channel recording every message; fails chosen categories."""

    def __init__(self, fail: set[str] | None = None, raise_for: set[str] | None = None):
        self.fail = fail or set()
        self.raise_for = raise_for or set()
        self.sent = []

    def by_category(self, category: str) -> list:
        return [m for m in self.sent if m.tags.get("category") == category]

    async def send(self, message) -> SendResult:
        category = message.tags.get("category", "")
        self.sent.append(message)
        if category in self.raise_for:
            raise ConnectionError(f"{category} channel down")
        if category in self.fail:
            return SendResult(success=False, error="HTTP 422: rejected")
        return SendResult(success=True, message_id=f"msg-{len(self.sent)}")


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def completed_payload():
    """Webhook body for a completed PayPal payment."""
    return {
        "firstName": "Ana",
        "lastName": "Lopez",
        "email": "ana.lopez@example.com",
        "phone": "+34 600 000 000",
        "message": "Arriving late, around 9pm",
        "checkIn": "2026-04-06",
        "checkOut": "2026-04-10",
        "nights": 4,
        "guests": 2,
        "total": 440,
        "room": "Tresor Cache",
        "property": "Riad di Siena",
        "paypalOrderId": "5O190127TN364715T",
        "paypalStatus": "COMPLETED",
    }


@pytest.fixture
def booking_record():
    """A canonical booking record."""
    return BookingRecord(
        booking_id="RDS-1767225600000",
        first_name="Ana",
        last_name="Maria Lopez",
        email="ana.lopez@example.com",
        phone="+34 600 000 000",
        property_name="Riad di Siena",
        accommodation_name="Tresor Cache",
        room="Tresor Cache",
        check_in="2026-04-06",
        check_out="2026-04-10",
        nights=4,
        guests_count=2,
        total=440,
        external_payment_ref="5O190127TN364715T",
        remarks="Arriving late",
    )


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def dispatcher(channel):
    return NotificationDispatcher(
        sender="Riad di Siena <operations@mail.riaddisiena.com>",
        owner_address="owner@riaddisiena.com",
        channel_factory=lambda: channel,
    )


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()
