# backend/app/services/slots/occupancy.py
"""
Occupancy index: slot → set of staff occupied at that slot, for one local day.

A booking occupies every slot whose [t, t+step) overlaps
[start, start + duration). The index keeps the booked intervals, so the
lookup works on whatever grid the slots were generated on: a shop opening
at 09:10 puts its slots at 9:10, 9:25, … and bookings are matched against
those. For grid-aligned starts that is exactly ceil(duration / step)
consecutive slots from the start slot.

Bookings without staff contribute nothing.
"""

from collections import defaultdict
from datetime import date
from typing import Iterable

from .config import BookingConfig, get_booking_config, minutes_to_label
from .types import BookingInfo, BookingStatus, LocalFrame

DAY_MINUTES = 24 * 60


class OccupancyIndex:
    """Booked intervals per staff id for one local day."""

    def __init__(self, target_date: date, step: int):
        self.target_date = target_date
        self.step = step
        self._intervals: dict[int, list[tuple[int, int]]] = defaultdict(list)

    def mark(self, staff_id: int, start_minute: int, end_minute: int) -> None:
        """Mark staff as occupying [start_minute, end_minute) clipped to the day."""
        start = max(start_minute, 0)
        end = min(end_minute, DAY_MINUTES)
        if start < end:
            self._intervals[staff_id].append((start, end))

    def is_occupied(self, staff_id: int, minute: int) -> bool:
        slot_end = minute + self.step
        return any(
            start < slot_end and minute < end
            for start, end in self._intervals.get(staff_id, ())
        )

    def occupied_at(self, minute: int) -> frozenset[int]:
        return frozenset(sid for sid in self._intervals if self.is_occupied(sid, minute))

    def staff_minutes(self, staff_id: int, origin: int = 0) -> set[int]:
        """Occupied slot minutes of a grid anchored at `origin` (midnight by default)."""
        minutes = set()
        for start, end in self._intervals.get(staff_id, ()):
            t = origin + ((start - origin) // self.step) * self.step
            while t < end:
                if 0 <= t < DAY_MINUTES:
                    minutes.add(t)
                t += self.step
        return minutes

    def by_label(self, origin: int = 0) -> dict[str, set[int]]:
        by_minute: dict[int, set[int]] = defaultdict(set)
        for sid in self._intervals:
            for t in self.staff_minutes(sid, origin):
                by_minute[t].add(sid)
        return {minutes_to_label(t): staff for t, staff in sorted(by_minute.items())}

    def __contains__(self, minute: int) -> bool:
        return bool(self.occupied_at(minute))


def build_occupancy(
    bookings: Iterable[BookingInfo],
    target_date: date,
    frame: LocalFrame,
    config: BookingConfig | None = None,
    staff_ids: Iterable[int] | None = None,
    statuses: frozenset[BookingStatus] = frozenset({BookingStatus.CONFIRMED}),
) -> OccupancyIndex:
    """
    Build the occupancy index of `target_date` in the caller's local frame.

    Args:
        bookings: Bookings around the day (earlier days are fine, they are
                  clipped; a late booking can spill past midnight)
        frame: Local frame applied to every booking start
        staff_ids: Restrict to these staff (None = everyone)
        statuses: Statuses that occupy time (confirmed only by default)
    """
    config = config or get_booking_config()
    allowed = set(staff_ids) if staff_ids is not None else None
    index = OccupancyIndex(target_date, config.slot_step_minutes)

    for booking in bookings:
        if booking.staff_id is None:
            continue
        if booking.status not in statuses:
            continue
        if allowed is not None and booking.staff_id not in allowed:
            continue

        start = frame.minutes_into_day(booking.start, target_date)
        end = start + booking.duration_minutes
        if end <= 0 or start >= DAY_MINUTES:
            continue
        index.mark(booking.staff_id, start, end)

    return index
