# backend/app/services/slots/calculator.py
"""
Level 1: slot generation for one open window.

Produces start times t0, t0+step, … strictly before close time, as minutes
from local midnight. Labels ("9:15 AM") are rendered only at the edges.

Contains:
✓ shop/staff weekly hours (via calendar.resolve_calendar)
✓ blocked dates

Does NOT contain:
✗ Bookings (Level 2, occupancy.py)
✗ Staff pool (Level 2, availability.py)
"""

from datetime import date

from .calendar import CalendarDay, OpenInterval, resolve_for_snapshot
from .config import BookingConfig, get_booking_config, minutes_to_label, minutes_to_time_str
from .types import ShopSnapshot, StaffMember


class SlotSequence:
    """
    Lazy, restartable sequence of slot start minutes for one window.

    Iterating twice yields the same values; nothing is materialised until
    iterated. An empty or inverted window yields nothing.
    """

    def __init__(self, window: CalendarDay, step: int):
        self.window = window
        self.step = step

    def __iter__(self):
        if not isinstance(self.window, OpenInterval):
            return
        t = self.window.open_minutes
        while t < self.window.close_minutes:
            yield t
            t += self.step

    def __len__(self) -> int:
        if not isinstance(self.window, OpenInterval):
            return 0
        span = self.window.close_minutes - self.window.open_minutes
        if span <= 0:
            return 0
        return -(-span // self.step)

    def labels(self) -> list[str]:
        return [minutes_to_label(t) for t in self]

    def fits(self, start: int, slots_needed: int) -> bool:
        """True when slots_needed consecutive slots from start end by closing."""
        if not isinstance(self.window, OpenInterval):
            return False
        return (
            self.window.contains(start)
            and start + slots_needed * self.step <= self.window.close_minutes
        )


def generate_slots(window: CalendarDay, config: BookingConfig | None = None) -> SlotSequence:
    config = config or get_booking_config()
    return SlotSequence(window, config.slot_step_minutes)


def calculate_day_slots(
    snapshot: ShopSnapshot,
    target_date: date,
    staff: StaffMember | None = None,
    config: BookingConfig | None = None,
) -> list[tuple[str, int]]:
    """
    Calculate base slots for the shop (or one staff member) on a date.

    Returns:
        List of ("HH:MM", minutes) pairs. Empty list = closed.
    """
    config = config or get_booking_config()
    window = resolve_for_snapshot(snapshot, target_date, staff)
    return [(minutes_to_time_str(t), t) for t in generate_slots(window, config)]
