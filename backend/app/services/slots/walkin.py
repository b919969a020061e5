# backend/app/services/slots/walkin.py
"""
Walk-in presence: who can take a customer right now.

A working staff member is busy when a non-cancelled booking is in progress,
or when one starts within walkin_buffer_minutes from now.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .calendar import OpenInterval, resolve_for_snapshot
from .config import BookingConfig, get_booking_config, minutes_to_time_str
from .types import BookingStatus, LocalFrame, ShopSnapshot, to_utc_naive


@dataclass
class WalkInStatus:
    is_open: bool
    available_count: int = 0
    total_working_count: int = 0
    names: list[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "is_open": self.is_open,
            "available_count": self.available_count,
            "total_working_count": self.total_working_count,
            "names": self.names,
            "message": self.message,
        }


def busy_staff_ids(
    snapshot: ShopSnapshot,
    now: datetime,
    buffer_minutes: int,
) -> set[int]:
    """Staff with a booking in progress or starting in (now, now + buffer]."""
    horizon = now + timedelta(minutes=buffer_minutes)
    busy: set[int] = set()
    for booking in snapshot.bookings:
        if booking.staff_id is None or booking.status == BookingStatus.CANCELLED:
            continue
        in_progress = booking.start <= now < booking.end
        starts_soon = now < booking.start <= horizon
        if in_progress or starts_soon:
            busy.add(booking.staff_id)
    return busy


def walk_in_status(
    snapshot: ShopSnapshot,
    now: datetime,
    offset_minutes: int = 0,
    config: BookingConfig | None = None,
) -> WalkInStatus:
    config = config or get_booking_config()
    now = to_utc_naive(now)
    frame = LocalFrame(offset_minutes)

    today = frame.local_date(now)
    current = frame.minutes_into_day(now, today)

    shop_window = resolve_for_snapshot(snapshot, today)
    if not isinstance(shop_window, OpenInterval):
        return WalkInStatus(is_open=False, message="Closed today")
    if current < shop_window.open_minutes:
        return WalkInStatus(
            is_open=False,
            message=f"Opens at {minutes_to_time_str(shop_window.open_minutes)}",
        )
    if current >= shop_window.close_minutes:
        return WalkInStatus(is_open=False, message="Closed for today")

    working = [
        s for s in snapshot.active_staff
        if resolve_for_snapshot(snapshot, today, s).contains(current)
    ]
    busy = busy_staff_ids(snapshot, now, config.walkin_buffer_minutes)
    available = [s for s in working if s.id not in busy]

    if available:
        noun = "barber" if len(available) == 1 else "barbers"
        message = f"{len(available)} {noun} available now"
    else:
        message = "All barbers busy"

    return WalkInStatus(
        is_open=True,
        available_count=len(available),
        total_working_count=len(working),
        names=[s.name for s in available],
        message=message,
    )
