# backend/app/services/slots/config.py
"""
Booking configuration and time helpers for slots calculation.

Internally every time of day is an integer number of minutes from midnight.
Strings only appear at the edges:
  - "HH:MM"      : stored hours, cache members
  - "H:MM AM/PM" : slot labels shown to customers
"""

from dataclasses import dataclass
from functools import lru_cache
import re


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for booking/slots system.

    Attributes:
        slot_step_minutes: Base grid step in minutes (fixed at 15)
        walkin_buffer_minutes: Look-ahead for "available now" reporting
        assignment_window_hours: Half-width of the auto-assignment load window
        default_booking_window_days: Used when a shop has no window configured
        max_recurring_count: Upper bound for a recurring series
        cache_ttl_seconds: Redis cache TTL for base grid
    """
    slot_step_minutes: int = 15
    walkin_buffer_minutes: int = 15
    assignment_window_hours: int = 24
    default_booking_window_days: int = 60
    max_recurring_count: int = 12
    cache_ttl_seconds: int = 86400  # 24 hours

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes <= 0 or (24 * 60) % self.slot_step_minutes:
            raise ValueError(
                f"slot_step_minutes must divide a day evenly, got {self.slot_step_minutes}"
            )
        if self.walkin_buffer_minutes < 0:
            raise ValueError("walkin_buffer_minutes must be >= 0")
        if self.assignment_window_hours <= 0:
            raise ValueError("assignment_window_hours must be > 0")
        if self.max_recurring_count < 1:
            raise ValueError("max_recurring_count must be >= 1")

    @property
    def slots_per_day(self) -> int:
        """Number of slots in a day (96 for 15 min)."""
        return (24 * 60) // self.slot_step_minutes

    def slots_needed(self, duration_minutes: int) -> int:
        """Slots occupied by a service, rounded up. Always at least one."""
        step = self.slot_step_minutes
        return max(1, -(-duration_minutes // step))


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton)."""
    return BookingConfig()


# ── Time helpers ─────────────────────────────────────────────────────────

_HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")


def time_str_to_minutes(value: str) -> int:
    """ "09:30" → 570. Raises ValueError on malformed input. """
    match = _HHMM_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time_str(minutes: int) -> str:
    """570 → "09:30" """
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_label(minutes: int) -> str:
    """
    Render minutes from midnight as a 12-hour label.

    0 → "12:00 AM", 570 → "9:30 AM", 720 → "12:00 PM", 1035 → "5:15 PM"
    """
    hour, minute = divmod(minutes % (24 * 60), 60)
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {period}"


def label_to_minutes(label: str) -> int:
    """
    Parse a 12-hour label back to minutes from midnight.

    Accepts both "9:00 AM" and "09:00 am"; zero-padding never matters.
    """
    match = _LABEL_RE.match(label or "")
    if not match:
        raise ValueError(f"Invalid slot label {label!r}")
    hour, minute, period = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hour <= 12 or minute > 59:
        raise ValueError(f"Invalid slot label {label!r}")
    hour = hour % 12
    if period == "PM":
        hour += 12
    return hour * 60 + minute
