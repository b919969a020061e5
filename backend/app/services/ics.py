"""
iCalendar (.ics) export for a single appointment.
"""

import uuid
from datetime import datetime, timedelta


def _format(dt: datetime) -> str:
    """Naive UTC → 20250306T143000Z"""
    return dt.strftime("%Y%m%dT%H%M%SZ")


def escape_ics(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def generate_ics(
    title: str,
    description: str,
    location: str,
    start: datetime,
    duration_minutes: int,
    now: datetime | None = None,
    uid: str | None = None,
) -> str:
    """One VEVENT with a 1-hour display alarm. Lines are CRLF-joined."""
    end = start + timedelta(minutes=duration_minutes)
    now = now or datetime.utcnow()
    uid = uid or f"{uuid.uuid4().hex}@booking"

    return "\r\n".join([
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Shop Booking//Booking System//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{_format(now)}",
        f"DTSTART:{_format(start)}",
        f"DTEND:{_format(end)}",
        f"SUMMARY:{escape_ics(title)}",
        f"DESCRIPTION:{escape_ics(description)}",
        f"LOCATION:{escape_ics(location)}",
        "STATUS:CONFIRMED",
        "BEGIN:VALARM",
        "TRIGGER:-PT1H",
        "ACTION:DISPLAY",
        "DESCRIPTION:Reminder",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ])
