"""Pydantic models for booking webhooks and the canonical booking record."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

PAYMENT_COMPLETED = "COMPLETED"
MAX_TOTAL_EXPONENT = 12

# Column layout of the Master_Guests worksheet. Blank columns are filled in
# by staff after arrival.
OPS_SHEET_COLUMNS: tuple[str, ...] = (
    "booking_id",
    "source",
    "status",
    "first_name",
    "last_name",
    "email",
    "phone",
    "country",
    "language",
    "property",
    "room",
    "check_in",
    "check_out",
    "nights",
    "guests",
    "adults",
    "children",
    "total_price",
    "deposit",
    "remarks",
    "arrival_time",
    "transfer",
    "arrival_status",
    "dietary",
    "internal_notes",
    "payment_status",
    "payment_reference",
    "created_at",
)


def _coerce_int(value: Any) -> int | None:
    """Lenient int parsing: junk becomes None so business defaults apply."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _coerce_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


# =============================================================================
# Inbound Payload
# =============================================================================


class BookingSubmission(BaseModel):
    """
    Booking webhook payload as posted by the website checkout.

    Accepts both the current form schema and the legacy one
    (``name`` instead of first/last, ``roomPreference`` instead of
    room/tent/experience). Every field is optional.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Guest info
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    email: str | None = None
    phone: str | None = None
    message: str | None = None

    # Stay details
    check_in: str | None = Field(None, alias="checkIn")
    check_out: str | None = Field(None, alias="checkOut")
    nights: int | None = None
    guests: int | None = None
    adults: int | None = None
    children: int | None = None
    total: Decimal | None = None

    # Accommodation
    room: str | None = None
    room_id: str | None = Field(None, alias="roomId")
    property_name: str | None = Field(None, alias="property")
    tent: str | None = None
    tent_id: str | None = Field(None, alias="tentId")
    tent_level: str | None = Field(None, alias="tentLevel")
    experience: str | None = None
    experience_id: str | None = Field(None, alias="experienceId")

    # PayPal
    paypal_order_id: str | None = Field(None, alias="paypalOrderId")
    paypal_status: str | None = Field(None, alias="paypalStatus")

    # Legacy fields (from old forms)
    name: str | None = None
    room_preference: str | None = Field(None, alias="roomPreference")

    @field_validator("nights", "guests", "adults", "children", mode="before")
    @classmethod
    def parse_count(cls, v: Any) -> int | None:
        return _coerce_int(v)

    @field_validator("total", mode="before")
    @classmethod
    def parse_total(cls, v: Any) -> Decimal | None:
        if v is None or v == "" or isinstance(v, bool):
            return None
        try:
            total = Decimal(str(v).replace(",", "").lstrip("€").strip())
        except InvalidOperation:
            return None
        # Out-of-range exponents overflow the default decimal context on display
        if not total.is_finite() or abs(total.adjusted()) > MAX_TOTAL_EXPONENT:
            return None
        return total

    @field_validator(
        "first_name", "last_name", "email", "phone", "message",
        "check_in", "check_out", "room", "room_id", "property_name", "tent",
        "tent_id", "tent_level", "experience", "experience_id",
        "paypal_order_id", "paypal_status", "name", "room_preference",
        mode="before",
    )
    @classmethod
    def parse_text(cls, v: Any) -> str | None:
        return _coerce_str(v)

    @property
    def payment_completed(self) -> bool:
        return self.paypal_status == PAYMENT_COMPLETED


# =============================================================================
# Canonical Record
# =============================================================================


class BookingRecord(BaseModel):
    """Canonical, immutable record of a confirmed paid stay."""

    model_config = ConfigDict(frozen=True)

    booking_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""

    property_name: str
    accommodation_name: str = ""
    room: str | None = None
    tent: str | None = None
    experience: str | None = None

    check_in: str = ""
    check_out: str = ""
    nights: int = Field(1, ge=1)
    guests_count: int = Field(1, ge=1)
    total: Decimal = Decimal("0")

    external_payment_ref: str = ""
    remarks: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def guest_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def total_display(self) -> str:
        """Total without currency symbol: 440, 412.5."""
        return f"{self.total.normalize():f}"

    @property
    def total_price(self) -> str:
        return f"€{self.total_display}"

    def to_ledger_dict(self) -> dict[str, Any]:
        """Flat booking data as written to the ledger and alert emails."""
        return {
            "booking_id": self.booking_id,
            "guest_name": self.guest_name,
            "email": self.email,
            "phone": self.phone,
            "property": self.property_name,
            "room_type": self.accommodation_name,
            "check_in": self.check_in,
            "check_out": self.check_out,
            "nights": self.nights,
            "guests_count": self.guests_count,
            "total_price": self.total_price,
            "paypal_order_id": self.external_payment_ref,
            "remarks": self.remarks,
        }

    def to_ops_row(self) -> list[Any]:
        """Row in OPS_SHEET_COLUMNS order."""
        values = {
            "booking_id": self.booking_id,
            "source": "Website",
            "status": "confirmed",
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "property": self.property_name,
            "room": self.accommodation_name,
            "check_in": self.check_in,
            "check_out": self.check_out,
            "nights": self.nights,
            "guests": self.guests_count,
            "total_price": self.total_price,
            "remarks": self.remarks,
            "arrival_status": "pending",
            "payment_status": "pending",
            "payment_reference": f"PayPal: {self.external_payment_ref}",
            "created_at": self.created_at.isoformat(),
        }
        return [values.get(column, "") for column in OPS_SHEET_COLUMNS]


# =============================================================================
# Result Values
# =============================================================================


@dataclass(frozen=True)
class PaymentRejected:
    """Normalization result for a payload whose payment is not completed."""

    payment_status: str | None
    reason: str = "Payment not completed"


@dataclass
class SendResult:
    """Outcome of a single email send."""

    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class DispatchOutcome:
    """Outcome of the guest + owner notification fan-out."""

    owner: SendResult
    guest: SendResult | None = None  # None when the guest has no email

    @property
    def guest_skipped(self) -> bool:
        return self.guest is None


@dataclass
class SubmissionResult:
    """Result of processing one booking webhook."""

    accepted: bool
    booking_id: str | None = None
    payment_status: str | None = None
    ledger_written: bool = False
    ledger_attempts: int = 0
    escalated: bool = False
    escalation: SendResult | None = None
    notifications: DispatchOutcome | None = None
    errors: list[str] = field(default_factory=list)
