# backend/app/services/slots/assignment.py
"""
Auto-assignment of a staff member when the customer picked "Any Available".

Local-density heuristic: the qualified staff member with the fewest
non-cancelled bookings within ±assignment_window_hours of the requested start
wins; ties go to the first in pool order (sort_order, then id).

Candidates that are on shift and free for the whole appointment are preferred.
When nobody is, the heuristic runs over the full pool so the booking still
lands on someone (it is then rejected by the write path if it overlaps).
"""

import logging
from datetime import datetime, timedelta

from .availability import qualified_pool
from .calendar import resolve_for_snapshot
from .config import BookingConfig, get_booking_config
from .errors import ServiceNotFound
from .types import BookingStatus, LocalFrame, ShopSnapshot, StaffMember, to_utc_naive

logger = logging.getLogger(__name__)


def count_nearby_bookings(
    snapshot: ShopSnapshot,
    staff_id: int,
    start: datetime,
    window: timedelta,
) -> int:
    """Non-cancelled bookings of staff starting within [start - window, start + window]."""
    lo, hi = start - window, start + window
    return sum(
        1
        for b in snapshot.bookings
        if b.staff_id == staff_id
        and b.status != BookingStatus.CANCELLED
        and lo <= b.start <= hi
    )


def is_free_for(
    snapshot: ShopSnapshot,
    staff: StaffMember,
    start: datetime,
    duration_minutes: int,
    frame: LocalFrame,
) -> bool:
    """Staff is on shift for [start, end) and has no confirmed overlap."""
    end = start + timedelta(minutes=duration_minutes)
    local_day = frame.local_date(start)
    window = resolve_for_snapshot(snapshot, local_day, staff)
    if not window.is_open:
        return False

    begin_min = frame.minutes_into_day(start, local_day)
    if not window.contains(begin_min) or begin_min + duration_minutes > window.close_minutes:
        return False

    return not any(
        b.staff_id == staff.id
        and b.status == BookingStatus.CONFIRMED
        and b.overlaps(start, end)
        for b in snapshot.bookings
    )


def auto_assign(
    snapshot: ShopSnapshot,
    service_id: int,
    start: datetime,
    offset_minutes: int = 0,
    config: BookingConfig | None = None,
) -> int | None:
    """
    Pick a staff member for the requested start.

    Returns:
        Staff id, or None when the shop has no active staff (the booking
        then proceeds unassigned).
    """
    config = config or get_booking_config()
    start = to_utc_naive(start)
    frame = LocalFrame(offset_minutes)

    service = snapshot.services.get(service_id)
    if service is None:
        raise ServiceNotFound(f"Service {service_id} not found")

    pool, _ = qualified_pool(snapshot, service_id)
    if not pool:
        logger.info(f"auto_assign: no active staff in shop={snapshot.shop_id}")
        return None

    free = [
        s for s in pool
        if is_free_for(snapshot, s, start, service.duration_minutes, frame)
    ]
    candidates = free or pool

    window = timedelta(hours=config.assignment_window_hours)
    best: StaffMember | None = None
    best_count = 0
    for staff in candidates:
        count = count_nearby_bookings(snapshot, staff.id, start, window)
        if best is None or count < best_count:
            best, best_count = staff, count

    logger.info(
        f"auto_assign: shop={snapshot.shop_id} service={service_id} "
        f"start={start.isoformat()} → staff={best.id} ({best_count} nearby bookings)"
    )
    return best.id
