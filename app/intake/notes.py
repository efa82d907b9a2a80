from __future__ import annotations

from datetime import date
from typing import Optional

from app.intake.models import TRANSPORT, VILLA, YACHT, InquiryPayload, NormalizedLead

DEFAULT_SOURCE = "website"


def _parse_iso(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _fmt_long(d: date) -> str:
    return f"{d:%b} {d.day}, {d.year}"


def _fmt_short(d: date) -> str:
    return f"{d:%b} {d.day}"


def stay_nights(lead: NormalizedLead) -> Optional[int]:
    start, end = _parse_iso(lead.check_in), _parse_iso(lead.check_out)
    if start is None or end is None:
        return None
    return (end - start).days


def opportunity_name(payload: InquiryPayload, lead: NormalizedLead) -> str:
    """'Villa Sol – Feb 15 to Feb 22 – Rivera'"""
    name = payload.property_name or lead.property_id or "Inquiry"
    start, end = _parse_iso(lead.check_in), _parse_iso(lead.check_out)
    if lead.category == VILLA and start and end:
        name += f" – {_fmt_short(start)} to {_fmt_short(end)}"
    elif payload.charter_date:
        name += f" – {payload.charter_date}"
    elif payload.pickup_date:
        name += f" – {payload.pickup_date}"
    who = lead.last_name or lead.first_name
    if who:
        name += f" – {who}"
    return name


def build_lead_context_note(payload: InquiryPayload, lead: NormalizedLead) -> str:
    contact_line = f"Contact: {lead.display_name}"
    if lead.email:
        contact_line += f" ({lead.email})"
    lines: list[str] = [
        "LEAD CONTEXT",
        "───────────────",
        contact_line,
        f"Property: {payload.property_name}",
    ]
    if lead.phone:
        lines.append(f"Phone: {lead.phone}" + (" (prefers WhatsApp)" if payload.prefer_whatsapp else ""))

    if lead.category == VILLA:
        start, end = _parse_iso(lead.check_in), _parse_iso(lead.check_out)
        if start and end:
            lines.append(f"Dates: {_fmt_long(start)} - {_fmt_long(end)} ({stay_nights(lead)} nights)")
        if lead.guests:
            lines.append(f"Guests: {lead.guests}")
    elif lead.category == YACHT:
        for label, value in (
            ("Charter Date", payload.charter_date),
            ("Time", payload.charter_time),
            ("Duration", payload.charter_duration),
            ("Occasion", payload.occasion),
        ):
            if value:
                lines.append(f"{label}: {value}")
        if lead.guests:
            lines.append(f"Guests: {lead.guests}")
    elif lead.category == TRANSPORT:
        for label, value in (
            ("Pickup", payload.pickup_location),
            ("Dropoff", payload.dropoff_location),
            ("Date", payload.pickup_date),
            ("Time", payload.pickup_time),
        ):
            if value:
                lines.append(f"{label}: {value}")

    if payload.budget_text:
        lines.append(f"Budget: {payload.budget_text}")

    lines.append(f"Source: {payload.source or DEFAULT_SOURCE}")
    if payload.utm_campaign or payload.utm_source:
        lines.append(f"Campaign: {payload.utm_source or '-'} / {payload.utm_campaign or '-'}")
    lines.append(f"Dedup key: {lead.dedup_key}")
    lines.append(f"Trace: {lead.trace_id}")

    if payload.message:
        lines.append("")
        lines.append("Message:")
        lines.append(payload.message)

    lines.append("")
    lines.append("Next Steps:")
    lines.append("• Confirm availability")
    lines.append("• Send quote with options")

    return "\n".join(lines)
