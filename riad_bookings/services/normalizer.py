"""Booking normalizer - webhook payload to canonical booking record."""

import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from riad_bookings.models.booking import (
    BookingRecord,
    BookingSubmission,
    PaymentRejected,
)

DEFAULT_PROPERTY = "Riad di Siena"


def generate_booking_id(prefix: str = "RDS") -> str:
    """Booking reference shown to guests: RDS-<epoch milliseconds>."""
    return f"{prefix}-{time.time_ns() // 1_000_000}"


def _positive_or_one(value: int | None) -> int:
    return value if value and value > 0 else 1


def resolve_guest_name(submission: BookingSubmission) -> tuple[str, str]:
    """
    Resolve (first, last) from explicit fields or the legacy ``name``.

    The legacy name is split on whitespace: first token is the first
    name, the rest joined with single spaces is the last name.
    """
    tokens = (submission.name or "").split()
    legacy_first = tokens[0] if tokens else ""
    legacy_last = " ".join(tokens[1:])

    first = submission.first_name or legacy_first
    last = submission.last_name or legacy_last
    return first, last


def resolve_accommodation(submission: BookingSubmission) -> str:
    """Precedence: room > tent > experience > legacy roomPreference."""
    return (
        submission.room
        or submission.tent
        or submission.experience
        or submission.room_preference
        or ""
    )


def normalize(
    payload: Mapping[str, Any] | BookingSubmission,
    *,
    default_property: str | None = None,
    booking_id: str | None = None,
    now: datetime | None = None,
) -> BookingRecord | PaymentRejected:
    """
    Map a webhook payload to a canonical booking record.

    Args:
        payload: Raw JSON object or an already parsed submission
        default_property: Property used when the payload names none
        booking_id: Use this id instead of generating one
        now: Receipt time (UTC now if not provided)

    Returns:
        BookingRecord for completed payments, PaymentRejected otherwise
    """
    if isinstance(payload, BookingSubmission):
        submission = payload
    else:
        submission = BookingSubmission.model_validate(dict(payload))

    if not submission.payment_completed:
        return PaymentRejected(payment_status=submission.paypal_status)

    first_name, last_name = resolve_guest_name(submission)

    return BookingRecord(
        booking_id=booking_id or generate_booking_id(),
        first_name=first_name,
        last_name=last_name,
        email=submission.email or "",
        phone=submission.phone or "",
        property_name=submission.property_name or default_property or DEFAULT_PROPERTY,
        accommodation_name=resolve_accommodation(submission),
        room=submission.room or None,
        tent=submission.tent or None,
        experience=submission.experience or None,
        check_in=submission.check_in or "",
        check_out=submission.check_out or "",
        nights=_positive_or_one(submission.nights),
        guests_count=_positive_or_one(submission.guests or submission.adults),
        total=submission.total or 0,
        external_payment_ref=submission.paypal_order_id or "",
        remarks=submission.message or "",
        created_at=now or datetime.now(timezone.utc),
    )
