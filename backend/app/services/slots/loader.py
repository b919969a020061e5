# backend/app/services/slots/loader.py
"""
Read side of the persistence boundary: ORM rows → engine value objects.

Every query is scoped to one shop and, for bookings, one UTC range.
"""

from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session, selectinload

from ...models.generated import BlockedDates, Bookings, BusinessHours, Services, Shops, Staff
from .errors import ShopNotFound
from .types import (
    BlockedDay,
    BookingInfo,
    BookingStatus,
    DayHours,
    LocalFrame,
    ServiceInfo,
    ShopSnapshot,
    StaffMember,
)


def load_shop_snapshot(
    db: Session,
    shop_id: int,
    start: datetime,
    end: datetime,
) -> ShopSnapshot:
    """
    Load a shop with its staff, services and the non-cancelled bookings
    starting in [start, end) (naive UTC).
    """
    shop = db.get(Shops, shop_id)
    if shop is None:
        raise ShopNotFound(f"Shop {shop_id} not found")

    return ShopSnapshot(
        shop_id=shop.id,
        name=shop.name,
        hours=_hours_map(_get_shop_hours(db, shop_id)),
        blocked=_blocked_map(_get_blocked_dates(db, shop_id, staff_id=None)),
        staff=tuple(_to_staff(s) for s in _get_staff(db, shop_id)),
        services={s.id: _to_service(s) for s in _get_services(db, shop_id)},
        bookings=tuple(_to_booking(b) for b in _get_bookings(db, shop_id, start, end)),
        booking_window_days=shop.booking_window_days,
    )


def load_day_snapshot(
    db: Session,
    shop_id: int,
    target_date: date,
    offset_minutes: int = 0,
) -> ShopSnapshot:
    """Snapshot covering one local day (plus the previous day for spill-over)."""
    day_start, day_end = LocalFrame(offset_minutes).day_bounds_utc(target_date)
    return load_shop_snapshot(db, shop_id, day_start - timedelta(days=1), day_end)


def load_around(
    db: Session,
    shop_id: int,
    instant: datetime,
    hours: int = 24,
) -> ShopSnapshot:
    """Snapshot of bookings within ±hours (plus a day of slack) around instant."""
    span = timedelta(hours=hours)
    return load_shop_snapshot(db, shop_id, instant - span - timedelta(days=1), instant + span + timedelta(minutes=1))


# ── Converters ───────────────────────────────────────────────────────────


def _hours_map(rows) -> dict[int, DayHours]:
    return {
        r.day: DayHours(
            weekday=r.day,
            is_open=bool(r.is_open),
            open_time=r.open_time,
            close_time=r.close_time,
        )
        for r in rows
    }


def _blocked_map(rows) -> dict[date, BlockedDay]:
    return {r.date: BlockedDay(day=r.date, reason=r.reason) for r in rows}


def _to_staff(row: Staff) -> StaffMember:
    return StaffMember(
        id=row.id,
        name=row.name,
        is_active=bool(row.is_active),
        service_ids=frozenset(s.id for s in row.services),
        hours=_hours_map(row.hours),
        blocked=_blocked_map(row.blocked_dates),
        sort_order=row.sort_order or 0,
    )


def _to_service(row: Services) -> ServiceInfo:
    return ServiceInfo(
        id=row.id,
        name=row.name,
        duration_minutes=row.duration_minutes,
        price=row.price or 0.0,
    )


def _to_booking(row: Bookings) -> BookingInfo:
    return BookingInfo(
        id=row.id,
        service_id=row.service_id,
        staff_id=row.staff_id,
        start=row.appointment_time,
        duration_minutes=row.duration_minutes,
        status=BookingStatus(row.status),
    )


# ── Database helpers ─────────────────────────────────────────────────────


def _get_shop_hours(db: Session, shop_id: int) -> list:
    return db.query(BusinessHours).filter(BusinessHours.shop_id == shop_id).all()


def _get_blocked_dates(db: Session, shop_id: int, staff_id: int | None) -> list:
    query = db.query(BlockedDates).filter(BlockedDates.shop_id == shop_id)
    if staff_id is None:
        query = query.filter(BlockedDates.staff_id.is_(None))
    else:
        query = query.filter(BlockedDates.staff_id == staff_id)
    return query.all()


def _get_staff(db: Session, shop_id: int) -> list:
    return (
        db.query(Staff)
        .options(
            selectinload(Staff.hours),
            selectinload(Staff.services),
            selectinload(Staff.blocked_dates),
        )
        .filter(Staff.shop_id == shop_id)
        .order_by(Staff.sort_order, Staff.id)
        .all()
    )


def _get_services(db: Session, shop_id: int) -> list:
    return db.query(Services).filter(Services.shop_id == shop_id).all()


def _get_bookings(db: Session, shop_id: int, start: datetime, end: datetime) -> list:
    return (
        db.query(Bookings)
        .filter(
            Bookings.shop_id == shop_id,
            Bookings.appointment_time >= start,
            Bookings.appointment_time < end,
            Bookings.status != BookingStatus.CANCELLED.value,
        )
        .order_by(Bookings.appointment_time)
        .all()
    )
