# backend/app/routers/slots.py
"""
Slots API endpoints.

Level 1: GET /slots/calendar - Calendar of bookable days for a shop
Level 2: GET /slots/day - Detailed slots for a day (service-specific)

GET /slots/walk-in - Who can take a walk-in customer right now
GET /slots/resolve - Effective open window (debug/admin)
"""

import logging
from datetime import date, datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..redis_client import redis_client
from ..schemas.slots import (
    CalendarResolveResponse,
    SlotsCalendarResponse,
    SlotsDayResponse,
    SlotsDayStatus,
    WalkInResponse,
)
from ..services.slots import (
    SlotsRedisStore,
    calculate_day_slots,
    compute_availability,
    get_booking_config,
    walk_in_status,
)
from ..services.slots.calendar import OpenInterval, StaffOverride, resolve_for_snapshot
from ..services.slots.config import minutes_to_time_str
from ..services.slots.errors import ServiceNotFound, ShopNotFound, StaffNotFound
from ..services.slots.loader import load_day_snapshot, load_shop_snapshot
from ..services.slots.types import LocalFrame

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slots", tags=["slots"])


def _offset(offset: int | None) -> int:
    return settings.default_offset_minutes if offset is None else offset


@router.get("/calendar", response_model=SlotsCalendarResponse)
def get_slots_calendar(
    shop_id: int,
    staff_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    offset: int | None = None,
    db: Session = Depends(get_db),
):
    """Get calendar of days inside the booking window (Level 1)."""
    config = get_booking_config()
    offset = _offset(offset)
    frame = LocalFrame(offset)
    now = datetime.utcnow()
    today = frame.local_date(now)

    try:
        # Only hours/blocked dates/staff are needed here, not bookings
        snapshot = load_shop_snapshot(db, shop_id, now, now)
    except ShopNotFound:
        raise HTTPException(status_code=404, detail="Not found")

    staff = None
    if staff_id is not None:
        staff = snapshot.get_staff(staff_id)
        if staff is None:
            raise HTTPException(status_code=404, detail="Not found")

    window_end = today + timedelta(days=snapshot.booking_window_days)
    start_date = max(start_date or today, today)
    end_date = min(end_date or window_end, window_end)
    if end_date < start_date:
        end_date = start_date

    dates = []
    current = start_date
    while current <= end_date:
        dates.append(current)
        current += timedelta(days=1)

    # Slots of today that already started are not counted
    from_minutes = {today: frame.minutes_into_day(now, today) + 1}

    # The cache holds the shop grid only; staff calendars are computed
    cached_counts: dict[date, int | None] = {}
    store = SlotsRedisStore(redis_client, config)
    if staff is None:
        try:
            cached_counts = store.mget_counts(shop_id, dates, from_minutes)
        except RedisError as e:
            logger.warning(f"Slots cache unavailable, calculating directly: {e}")
            store = None

    days_to_cache: dict[date, list[tuple[str, int]]] = {}
    days = []
    for dt in dates:
        window = resolve_for_snapshot(snapshot, dt, staff)
        count = cached_counts.get(dt)

        if count is None:
            # Cache miss: calculate
            slots = calculate_day_slots(snapshot, dt, staff, config)
            if staff is None:
                days_to_cache[dt] = slots
            cutoff = from_minutes.get(dt, 0)
            count = len([m for _, m in slots if m >= cutoff])

        days.append(SlotsDayStatus(
            date=dt,
            is_open=window.is_open,
            is_blocked=dt in snapshot.blocked or (staff is not None and dt in staff.blocked),
            reason=None if window.is_open else window.reason,
            open_slots_count=count,
        ))

    if days_to_cache and store is not None:
        try:
            store.store_multiple_days(shop_id, days_to_cache)
        except RedisError as e:
            logger.warning(f"Failed to cache slots for shop={shop_id}: {e}")

    return SlotsCalendarResponse(
        shop_id=shop_id,
        staff_id=staff_id,
        start_date=start_date,
        end_date=end_date,
        days=days,
        booking_window_days=snapshot.booking_window_days,
        slot_step_minutes=config.slot_step_minutes,
    )


@router.get("/day", response_model=SlotsDayResponse)
def get_slots_day(
    shop_id: int,
    service_id: int,
    target_date: date = Query(..., alias="date"),
    staff_id: int | None = None,
    offset: int | None = None,
    db: Session = Depends(get_db),
):
    """Get unavailable and bookable times for a service on a specific day (Level 2)."""
    config = get_booking_config()
    offset = _offset(offset)
    now = datetime.utcnow()
    today = LocalFrame(offset).local_date(now)

    if target_date < today:
        raise HTTPException(status_code=400, detail="Date cannot be in the past")

    try:
        snapshot = load_day_snapshot(db, shop_id, target_date, offset)
    except ShopNotFound:
        raise HTTPException(status_code=404, detail="Not found")

    if target_date > today + timedelta(days=snapshot.booking_window_days):
        raise HTTPException(
            status_code=400,
            detail=f"Date cannot be more than {snapshot.booking_window_days} days ahead",
        )

    try:
        result = compute_availability(
            snapshot, target_date, service_id, offset, staff_id, now, config
        )
    except (ServiceNotFound, StaffNotFound):
        raise HTTPException(status_code=404, detail="Not found")

    return SlotsDayResponse(**result.to_dict())


@router.get("/walk-in", response_model=WalkInResponse)
def get_walk_in(
    shop_id: int,
    offset: int | None = None,
    db: Session = Depends(get_db),
):
    offset = _offset(offset)
    now = datetime.utcnow()
    today = LocalFrame(offset).local_date(now)

    try:
        snapshot = load_day_snapshot(db, shop_id, today, offset)
    except ShopNotFound:
        raise HTTPException(status_code=404, detail="Not found")

    return WalkInResponse(**walk_in_status(snapshot, now, offset).to_dict())


@router.get("/resolve", response_model=CalendarResolveResponse)
def resolve_day(
    shop_id: int,
    target_date: date = Query(..., alias="date"),
    staff_id: int | None = None,
    db: Session = Depends(get_db),
):
    """Resolved open window for the shop or one staff member (admin endpoint)."""
    now = datetime.utcnow()
    try:
        snapshot = load_shop_snapshot(db, shop_id, now, now)
    except ShopNotFound:
        raise HTTPException(status_code=404, detail="Not found")

    staff = None
    if staff_id is not None:
        staff = snapshot.get_staff(staff_id)
        if staff is None:
            raise HTTPException(status_code=404, detail="Not found")

    window = resolve_for_snapshot(snapshot, target_date, staff)
    if not isinstance(window, OpenInterval):
        return CalendarResolveResponse(
            shop_id=shop_id,
            staff_id=staff_id,
            date=target_date,
            is_open=False,
            reason=window.reason,
        )

    return CalendarResolveResponse(
        shop_id=shop_id,
        staff_id=staff_id,
        date=target_date,
        is_open=True,
        open_time=minutes_to_time_str(window.open_minutes),
        close_time=minutes_to_time_str(window.close_minutes),
        source="staff" if isinstance(window.source, StaffOverride) else "shop",
    )
