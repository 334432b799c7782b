"""Tests for the booking normalizer."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from riad_bookings.models.booking import BookingRecord, BookingSubmission, PaymentRejected
from riad_bookings.services import normalizer
from riad_bookings.services.normalizer import (
    generate_booking_id,
    normalize,
    resolve_accommodation,
    resolve_guest_name,
)


def completed(**fields):
    return {"paypalStatus": "COMPLETED", **fields}


# =============================================================================
# Payment Status
# =============================================================================


@pytest.mark.parametrize("status", [None, "", "PENDING", "completed", "DECLINED", "VOIDED"])
def test_non_completed_payment_is_rejected(status):
    """Test anything but the exact COMPLETED sentinel is rejected."""
    payload = {"firstName": "Ana", "room": "Tresor Cache"}
    if status is not None:
        payload["paypalStatus"] = status

    result = normalize(payload)

    assert isinstance(result, PaymentRejected)
    assert result.payment_status == (status if status is not None else None)
    assert result.reason == "Payment not completed"


def test_completed_payment_builds_record(completed_payload):
    """Test a completed payment produces a canonical record."""
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    record = normalize(completed_payload, booking_id="RDS-1", now=now)

    assert isinstance(record, BookingRecord)
    assert record.booking_id == "RDS-1"
    assert record.guest_name == "Ana Lopez"
    assert record.email == "ana.lopez@example.com"
    assert record.property_name == "Riad di Siena"
    assert record.accommodation_name == "Tresor Cache"
    assert record.nights == 4
    assert record.guests_count == 2
    assert record.total_price == "€440"
    assert record.external_payment_ref == "5O190127TN364715T"
    assert record.remarks == "Arriving late, around 9pm"
    assert record.created_at == now


def test_record_is_immutable(completed_payload):
    """Test the canonical record cannot be modified after creation."""
    record = normalize(completed_payload)

    with pytest.raises(ValidationError):
        record.email = "someone@else.com"


# =============================================================================
# Name Resolution
# =============================================================================


def test_legacy_name_is_split():
    """Test legacy name: first token is first name, rest is last name."""
    record = normalize(completed(name="Ana Maria Lopez"))

    assert record.first_name == "Ana"
    assert record.last_name == "Maria Lopez"


def test_legacy_name_extra_whitespace():
    """Test runs of whitespace collapse when splitting the legacy name."""
    record = normalize(completed(name="  Ana   Maria  Lopez "))

    assert record.first_name == "Ana"
    assert record.last_name == "Maria Lopez"


def test_legacy_single_token_name():
    """Test a one-word legacy name leaves the last name empty."""
    record = normalize(completed(name="Zahra"))

    assert record.first_name == "Zahra"
    assert record.last_name == ""
    assert record.guest_name == "Zahra"


def test_explicit_names_win_over_legacy():
    """Test firstName/lastName take precedence over name."""
    record = normalize(completed(firstName="Chris", lastName="Test", name="Ana Maria Lopez"))

    assert (record.first_name, record.last_name) == ("Chris", "Test")


def test_each_half_resolves_independently():
    """Test a missing lastName falls back to the legacy name remainder."""
    submission = BookingSubmission.model_validate({"firstName": "Chris", "name": "Ana Maria Lopez"})

    assert resolve_guest_name(submission) == ("Chris", "Maria Lopez")


def test_no_name_defaults_to_empty():
    """Test missing names default to empty strings."""
    record = normalize(completed())

    assert record.first_name == ""
    assert record.last_name == ""
    assert record.guest_name == ""


# =============================================================================
# Accommodation & Property
# =============================================================================


def test_room_takes_precedence_over_tent():
    """Test room beats tent when both are present."""
    record = normalize(completed(room="Tresor Cache", tent="Dune Suite"))

    assert record.accommodation_name == "Tresor Cache"


@pytest.mark.parametrize(
    "fields,expected",
    [
        ({"tent": "Dune Suite", "experience": "Sunset Trek", "roomPreference": "Any"}, "Dune Suite"),
        ({"experience": "Sunset Trek", "roomPreference": "Any"}, "Sunset Trek"),
        ({"roomPreference": "Garden Room"}, "Garden Room"),
        ({"room": "", "tent": "Dune Suite"}, "Dune Suite"),
        ({}, ""),
    ],
)
def test_accommodation_precedence(fields, expected):
    """Test room > tent > experience > roomPreference > empty."""
    submission = BookingSubmission.model_validate(fields)

    assert resolve_accommodation(submission) == expected


def test_default_property():
    """Test missing property falls back to the riad."""
    record = normalize(completed())

    assert record.property_name == "Riad di Siena"


def test_configured_default_property():
    """Test the default property can be overridden."""
    record = normalize(completed(), default_property="The Kasbah")

    assert record.property_name == "The Kasbah"


def test_explicit_property_kept():
    record = normalize(completed(property="The Desert Camp"), default_property="The Kasbah")

    assert record.property_name == "The Desert Camp"


# =============================================================================
# Numeric Defaults
# =============================================================================


@pytest.mark.parametrize("value", [None, 0, "", "abc", False, -2, "inf", "1e400", float("inf"), "nan"])
def test_nights_default_to_one(value):
    """Test absent, zero or junk nights default to 1."""
    payload = completed()
    if value is not None:
        payload["nights"] = value

    record = normalize(payload)

    assert record.nights == 1


def test_guests_fall_back_to_adults_then_one():
    """Test guests count falls back to adults, then 1."""
    assert normalize(completed(adults=3)).guests_count == 3
    assert normalize(completed(guests=0, adults=2)).guests_count == 2
    assert normalize(completed()).guests_count == 1


def test_overflowing_counts_fall_back_to_one():
    record = normalize(completed(guests="1e400", adults=float("inf")))

    assert record.guests_count == 1


def test_numeric_strings_accepted():
    record = normalize(completed(nights="3", guests="2", total="412.50"))

    assert record.nights == 3
    assert record.guests_count == 2
    assert record.total == Decimal("412.50")
    assert record.total_price == "€412.5"


@pytest.mark.parametrize(
    "total,expected",
    [(None, "€0"), (0, "€0"), (440, "€440"), (1000, "€1000"), ("€250", "€250"), ("not-a-number", "€0"),
     ("1e9999999", "€0"), ("1e-9999999", "€0"), ("Infinity", "€0")],
)
def test_total_price_formatting(total, expected):
    """Test total price is currency formatted with a zero default."""
    payload = completed()
    if total is not None:
        payload["total"] = total

    assert normalize(payload).total_price == expected


def test_missing_optional_text_defaults_to_empty():
    record = normalize(completed())

    assert record.email == ""
    assert record.phone == ""
    assert record.check_in == ""
    assert record.check_out == ""
    assert record.external_payment_ref == ""
    assert record.remarks == ""


def test_unknown_fields_ignored():
    record = normalize(completed(utm_source="instagram", roomId="r-12", tentLevel="luxury"))

    assert isinstance(record, BookingRecord)


# =============================================================================
# Booking IDs
# =============================================================================


def test_booking_id_format():
    booking_id = generate_booking_id()

    prefix, millis = booking_id.split("-")
    assert prefix == "RDS"
    assert millis.isdigit() and len(millis) >= 13


def test_resubmission_gets_new_booking_id(completed_payload, monkeypatch):
    """Test resubmitting the same payload yields a new booking id.

    Duplicate submissions are not deduplicated: each one becomes its own
    booking and its own ledger row.
    """
    ticks = iter([1_767_225_600_000_000_000, 1_767_225_600_005_000_000])
    monkeypatch.setattr(normalizer, "time", SimpleNamespace(time_ns=lambda: next(ticks)))

    first = normalize(completed_payload)
    second = normalize(completed_payload)

    assert first.booking_id == "RDS-1767225600000"
    assert second.booking_id == "RDS-1767225600005"
    assert first.booking_id != second.booking_id
