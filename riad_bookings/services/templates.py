"""Email templates for guest confirmations, owner notifications and alerts."""

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime, timezone
from html import escape

from riad_bookings.models.booking import BookingRecord
from riad_bookings.services.email_client import EmailMessage


# =============================================================================
# Helpers
# =============================================================================


def format_date(value: str) -> str:
    """
    Render an ISO date as "Monday, April 6, 2026".

    Unparsable input is returned unchanged.
    """
    try:
        parsed = date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        return value
    return f"{parsed:%A}, {parsed:%B} {parsed.day}, {parsed.year}"


def ledger_csv_line(record: BookingRecord) -> str:
    """Booking as one CSV line in OPS sheet column order, for manual entry."""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="").writerow(record.to_ops_row())
    return buffer.getvalue()


def _accommodation_label(record: BookingRecord) -> str:
    return record.accommodation_name or "Accommodation"


def _rows(pairs: list[tuple[str, str]]) -> str:
    return "\n".join(
        f"    <tr><th>{escape(label)}</th><td>{value}</td></tr>" for label, value in pairs
    )


# =============================================================================
# Property Content
# =============================================================================


@dataclass(frozen=True)
class PropertyContent:
    """Property-specific copy used in guest emails."""

    name: str
    subtitle: str
    directions: str
    signoff: str
    footer: str
    check_in_time: str
    check_out_time: str


KASBAH = PropertyContent(
    name="The Kasbah",
    subtitle="Thank you for choosing The Kasbah. We are preparing your rooms in the Draa Valley.",
    directions=(
        "<p>The Kasbah is located in the Draa Valley, approximately 2 hours from "
        "Ouarzazate airport or 5 hours from Marrakech.</p>"
        "<p><strong>We will coordinate your transfer details</strong> once you confirm "
        "your arrival time.</p>"
    ),
    signoff="The Kasbah",
    footer="The Kasbah · Draa Valley · Morocco",
    check_in_time="3:00 PM",
    check_out_time="11:00 AM",
)

DESERT_CAMP = PropertyContent(
    name="The Desert Camp",
    subtitle="Thank you for choosing The Desert Camp. The Sahara awaits.",
    directions=(
        "<p>The camp is located in the Erg Chebbi dunes near Merzouga, approximately "
        "5 hours from Ouarzazate or 9 hours from Marrakech.</p>"
        "<p><strong>We will coordinate your transfer and camel trek</strong> once you "
        "confirm your arrival time.</p>"
    ),
    signoff="The Desert Camp",
    footer="The Desert Camp · Erg Chebbi · Sahara",
    check_in_time="4:00 PM",
    check_out_time="10:00 AM",
)

RIAD = PropertyContent(
    name="Riad di Siena",
    subtitle="Thank you for choosing Riad di Siena. We are preparing the house to receive you.",
    directions=(
        "<p>The Medina is pedestrian-only. Have your driver drop you at "
        "<strong>Café Medina Rouge</strong> (near Koutoubia Mosque). From there, it's a "
        "2-minute walk to our door at 35–37 Derb Fhal Zefriti.</p>"
        "<p>We can arrange a private driver from the airport for 200 MAD. Just let us "
        "know when you confirm your arrival.</p>"
    ),
    signoff="The Riad",
    footer="Riad di Siena · 35–37 Derb Fhal Zefriti · Marrakech Medina",
    check_in_time="3:00 PM",
    check_out_time="11:00 AM",
)


def get_property_content(property_name: str) -> PropertyContent:
    """Pick guest copy by property name; the riad is the default."""
    lowered = property_name.lower()
    if "kasbah" in lowered:
        return KASBAH
    if "desert" in lowered or "camp" in lowered:
        return DESERT_CAMP
    return RIAD


# =============================================================================
# Guest Confirmation
# =============================================================================


def guest_confirmation(record: BookingRecord, sender: str, owner_address: str) -> EmailMessage:
    """Confirmation email to the guest, BCC to the owner."""
    content = get_property_content(record.property_name)
    check_in = format_date(record.check_in)
    check_out = format_date(record.check_out)

    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Georgia, serif; color: #1a1a1a; line-height: 1.8; max-width: 600px; margin: 0 auto;">
  <p>Dear {escape(record.first_name)},</p>
  <p>{escape(content.subtitle)}</p>

  <h2>Your Stay</h2>
  <p>
    <strong>Booking reference:</strong> {escape(record.booking_id)}<br>
    <strong>Check-in:</strong> {escape(check_in)} from {content.check_in_time}<br>
    <strong>Check-out:</strong> {escape(check_out)} by {content.check_out_time}<br>
    <strong>Room:</strong> {escape(_accommodation_label(record))}<br>
    <strong>Guests:</strong> {record.guests_count}<br>
    <strong>Total Paid:</strong> {escape(record.total_price)} (including city taxes)
  </p>

  <h2>Getting Here</h2>
  {content.directions}

  <p>We look forward to welcoming you soon.</p>
  <p>{escape(content.signoff)}</p>
  <p style="font-size: 12px; color: #666;">{escape(content.footer)}</p>
</body>
</html>
"""

    return EmailMessage(
        sender=sender,
        to=[record.email],
        bcc=[owner_address],
        subject=f"Your reservation at {content.name} / {check_in} to {check_out}",
        html=html,
        tags={"category": "guest_confirmation"},
    )


# =============================================================================
# Owner Notification
# =============================================================================


def owner_notification(record: BookingRecord, sender: str, owner_address: str) -> EmailMessage:
    """New booking notice to the owner."""
    accommodation = _accommodation_label(record)

    details = [
        ("Booking ID", f"<strong>{escape(record.booking_id)}</strong>"),
        ("Guest", escape(record.guest_name)),
        ("Email", escape(record.email) or "-"),
        ("Phone", escape(record.phone) or "-"),
        ("Property", escape(record.property_name)),
        ("Accommodation", escape(accommodation)),
        ("Check-in", escape(format_date(record.check_in))),
        ("Check-out", escape(format_date(record.check_out))),
        ("Nights", str(record.nights)),
        ("Guests", str(record.guests_count)),
    ]
    if record.external_payment_ref:
        details.append(("PayPal Order", escape(record.external_payment_ref)))
    if record.remarks:
        details.append(("Message", escape(record.remarks)))

    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1>NEW BOOKING</h1>
  <p><strong>{escape(record.guest_name)}</strong> just booked <strong>{escape(accommodation)}</strong>
  at <strong>{escape(record.property_name)}</strong></p>
  <p style="font-size: 24px; font-weight: bold;">{escape(record.total_price)}</p>
  <table>
{_rows(details)}
  </table>
</body>
</html>
"""

    return EmailMessage(
        sender=sender,
        to=[owner_address],
        subject=(
            f"New Booking: {record.first_name} {record.last_name} - "
            f"{record.total_price} - {accommodation}"
        ),
        html=html,
        reply_to=record.email or None,
        tags={"category": "owner_notification"},
    )


# =============================================================================
# Ledger Failure Alert
# =============================================================================


def ledger_failure_alert(
    record: BookingRecord,
    sender: str,
    owner_address: str,
    attempts: int,
    last_error: str | None = None,
) -> EmailMessage:
    """
    Alert carrying the full booking so it can be added to the sheet by hand.

    Includes every record field and a CSV line in sheet column order.
    """
    data = record.to_ledger_dict()
    details = [(label.replace("_", " ").title(), escape(str(value)) or "-") for label, value in data.items()]
    timestamp = datetime.now(timezone.utc).isoformat()
    error_line = f"<p><strong>Last error:</strong> {escape(last_error)}</p>" if last_error else ""

    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: #fef2f2; border: 2px solid #dc2626; padding: 20px;">
    <h1 style="color: #dc2626;">SHEET WRITE FAILED - ACTION REQUIRED</h1>
    <p>A booking payment was received but failed to write to the OPS sheet after
    {attempts} attempts. Add this booking manually.</p>
  </div>
  <table>
{_rows(details)}
  </table>
  <p><strong>Timestamp:</strong> {timestamp}</p>
  {error_line}
  <div style="background: #f5f5f5; padding: 15px; font-family: monospace; white-space: pre-wrap;">
<strong>CSV format (for copy/paste):</strong>
{escape(ledger_csv_line(record))}
  </div>
</body>
</html>
"""

    return EmailMessage(
        sender=sender,
        to=[owner_address],
        subject=f"URGENT: Sheet write failed - {record.guest_name} - {record.check_in}",
        html=html,
        tags={"category": "ledger_failure_alert"},
    )
