# backend/app/services/bookings.py
"""
Write side of the booking store.

The availability endpoints are advisory. This module is where the
no-overlap rule is enforced: every write that gives a staff member time
(create, reschedule, reassign) checks for overlapping confirmed bookings of
that staff member inside the same transaction as the write.

On SQLite the transaction starts with BEGIN IMMEDIATE (see database.py),
so the check and the write hold the database write lock together. On
databases with row locks the staff row is locked FOR UPDATE first, which
serialises writers per staff member.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..models.generated import Bookings, Services, Shops, Staff
from .slots.assignment import auto_assign
from .slots.config import BookingConfig, get_booking_config
from .slots.errors import (
    BookingNotFound,
    ConflictError,
    InvalidBookingAction,
    SeriesInstanceFailure,
    ServiceNotFound,
    ShopNotFound,
    StaffNotFound,
)
from .slots.loader import load_around
from .slots.recurring import Cadence, expand_recurring, new_series_id
from .slots.types import BookingStatus, to_utc_naive

logger = logging.getLogger(__name__)

# Upper bound on a single appointment; limits the overlap query
MAX_BOOKING_SPAN = timedelta(days=1)


@dataclass
class SeriesResult:
    group_id: str | None
    bookings: list[Bookings] = field(default_factory=list)
    failures: list[SeriesInstanceFailure] = field(default_factory=list)


# ── Create ───────────────────────────────────────────────────────────────


def create_booking(
    db: Session,
    shop_id: int,
    service_id: int,
    start: datetime,
    customer_name: str,
    customer_phone: str,
    customer_email: str | None = None,
    staff_id: int | None = None,
    offset_minutes: int = 0,
    recurring_group_id: str | None = None,
    config: BookingConfig | None = None,
) -> Bookings:
    """
    Create one confirmed booking.

    staff_id=None → auto-assign (the booking stays unassigned when the shop
    has no active staff).

    Raises:
        ConflictError: the staff member already has an overlapping booking
    """
    config = config or get_booking_config()
    start = to_utc_naive(start)

    try:
        if db.get(Shops, shop_id) is None:
            raise ShopNotFound(f"Shop {shop_id} not found")
        service = _get_service(db, shop_id, service_id)

        was_auto_assigned = False
        if staff_id is None:
            snapshot = load_around(db, shop_id, start, config.assignment_window_hours)
            staff_id = auto_assign(snapshot, service_id, start, offset_minutes, config)
            was_auto_assigned = staff_id is not None
        else:
            _get_active_staff(db, shop_id, staff_id)

        end = start + timedelta(minutes=service.duration_minutes)
        if staff_id is not None:
            _lock_staff(db, staff_id)
            _check_overlap(db, staff_id, start, end)

        booking = Bookings(
            shop_id=shop_id,
            service_id=service_id,
            staff_id=staff_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_email=customer_email or None,
            appointment_time=start,
            duration_minutes=service.duration_minutes,
            status=BookingStatus.CONFIRMED.value,
            manage_token=secrets.token_urlsafe(24),
            was_auto_assigned=was_auto_assigned,
            recurring_group_id=recurring_group_id,
            offset_minutes=offset_minutes,
            reminder_sent=False,
            review_sent=False,
        )
        db.add(booking)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(
        f"Booking created: booking_id={booking.id}, shop={shop_id}, "
        f"service={service_id}, staff={staff_id}"
        f"{' (auto-assigned)' if was_auto_assigned else ''}, "
        f"time={start.isoformat()}"
    )
    return booking


def create_series(
    db: Session,
    shop_id: int,
    service_id: int,
    start: datetime,
    cadence: Cadence | str,
    count: int,
    customer_name: str,
    customer_phone: str,
    customer_email: str | None = None,
    staff_id: int | None = None,
    offset_minutes: int = 0,
    config: BookingConfig | None = None,
) -> SeriesResult:
    """
    Book every instance of a recurring series independently.

    A conflicting instance is reported in `failures` and does not undo the
    instances booked before it.
    """
    config = config or get_booking_config()
    cadence = Cadence(cadence)
    if count > config.max_recurring_count:
        raise ValueError(f"count must be <= {config.max_recurring_count}")

    instants = expand_recurring(to_utc_naive(start), cadence, count)
    result = SeriesResult(group_id=new_series_id() if len(instants) > 1 else None)

    for index, instant in enumerate(instants):
        try:
            booking = create_booking(
                db,
                shop_id=shop_id,
                service_id=service_id,
                start=instant,
                customer_name=customer_name,
                customer_phone=customer_phone,
                customer_email=customer_email,
                staff_id=staff_id,
                offset_minutes=offset_minutes,
                recurring_group_id=result.group_id,
                config=config,
            )
        except ConflictError as e:
            result.failures.append(SeriesInstanceFailure(index=index, start=instant, reason=str(e)))
            continue
        result.bookings.append(booking)

    if result.failures:
        logger.warning(
            f"Recurring series {result.group_id}: {len(result.bookings)} booked, "
            f"{len(result.failures)} failed "
            f"(indexes {[f.index for f in result.failures]})"
        )
    return result


# ── Lifecycle ────────────────────────────────────────────────────────────


def get_booking(db: Session, booking_id: int) -> Bookings:
    booking = db.get(Bookings, booking_id)
    if booking is None:
        raise BookingNotFound(f"Booking {booking_id} not found")
    return booking


def get_booking_by_token(db: Session, token: str) -> Bookings:
    booking = db.query(Bookings).filter(Bookings.manage_token == token).first()
    if booking is None:
        raise BookingNotFound("Booking not found")
    return booking


def cancel_booking(db: Session, booking_id: int) -> Bookings:
    return _set_status(db, booking_id, BookingStatus.CANCELLED)


def complete_booking(db: Session, booking_id: int) -> Bookings:
    return _set_status(db, booking_id, BookingStatus.COMPLETED)


def mark_noshow(db: Session, booking_id: int) -> Bookings:
    return _set_status(db, booking_id, BookingStatus.NOSHOW)


def reschedule_booking(
    db: Session,
    booking_id: int,
    new_start: datetime,
    now: datetime | None = None,
) -> Bookings:
    """
    Move a confirmed booking to new_start, keeping its staff.

    Raises:
        InvalidBookingAction: not confirmed, or new_start is not in the future
        ConflictError: staff already busy at the new time
    """
    new_start = to_utc_naive(new_start)
    try:
        booking = get_booking(db, booking_id)
        _require_confirmed(booking, "rescheduled")
        if now is not None and new_start <= to_utc_naive(now):
            raise InvalidBookingAction("Cannot reschedule to a past time")

        if booking.staff_id is not None:
            end = new_start + timedelta(minutes=booking.duration_minutes)
            _lock_staff(db, booking.staff_id)
            _check_overlap(db, booking.staff_id, new_start, end, exclude_id=booking.id)

        old_start = booking.appointment_time
        booking.appointment_time = new_start
        booking.reminder_sent = False
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(
        f"Booking rescheduled: booking_id={booking.id}, "
        f"{old_start.isoformat()} → {new_start.isoformat()}"
    )
    return booking


def reassign_staff(
    db: Session,
    booking_id: int,
    staff_id: int | None,
    was_auto_assigned: bool = False,
) -> Bookings:
    """
    Put a booking on another staff member (or unassign it with None).

    An explicit reassignment clears the auto-assigned flag.
    """
    try:
        booking = get_booking(db, booking_id)
        if staff_id is not None:
            _get_active_staff(db, booking.shop_id, staff_id)
            if booking.status == BookingStatus.CONFIRMED.value:
                end = booking.appointment_time + timedelta(minutes=booking.duration_minutes)
                _lock_staff(db, staff_id)
                _check_overlap(db, staff_id, booking.appointment_time, end, exclude_id=booking.id)

        booking.staff_id = staff_id
        booking.was_auto_assigned = was_auto_assigned
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(f"Booking reassigned: booking_id={booking.id}, staff={staff_id}")
    return booking


# ── Helpers ──────────────────────────────────────────────────────────────


def _set_status(db: Session, booking_id: int, status: BookingStatus) -> Bookings:
    try:
        booking = get_booking(db, booking_id)
        _require_confirmed(booking, status.value)
        booking.status = status.value
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(f"Booking {booking.id} → {status.value}")
    return booking


def _require_confirmed(booking: Bookings, action: str) -> None:
    if booking.status != BookingStatus.CONFIRMED.value:
        raise InvalidBookingAction(
            f"Booking {booking.id} is {booking.status} and cannot be {action}"
        )


def _get_service(db: Session, shop_id: int, service_id: int) -> Services:
    service = db.get(Services, service_id)
    if service is None or service.shop_id != shop_id:
        raise ServiceNotFound(f"Service {service_id} not found")
    return service


def _get_active_staff(db: Session, shop_id: int, staff_id: int) -> Staff:
    staff = db.get(Staff, staff_id)
    if staff is None or staff.shop_id != shop_id:
        raise StaffNotFound(f"Staff {staff_id} not found")
    if not staff.is_active:
        raise InvalidBookingAction(f"Staff {staff_id} is not active")
    return staff


def _lock_staff(db: Session, staff_id: int) -> None:
    """Row lock on the staff member; a no-op on SQLite (already write-locked)."""
    db.query(Staff.id).filter(Staff.id == staff_id).with_for_update().first()


def _check_overlap(
    db: Session,
    staff_id: int,
    start: datetime,
    end: datetime,
    exclude_id: int | None = None,
) -> None:
    """Raise ConflictError if staff has a confirmed booking overlapping [start, end)."""
    query = db.query(Bookings).filter(
        Bookings.staff_id == staff_id,
        Bookings.status == BookingStatus.CONFIRMED.value,
        Bookings.appointment_time < end,
        Bookings.appointment_time > start - MAX_BOOKING_SPAN,
    )
    if exclude_id is not None:
        query = query.filter(Bookings.id != exclude_id)

    for existing in query.all():
        existing_end = existing.appointment_time + timedelta(minutes=existing.duration_minutes)
        if existing.appointment_time < end and existing_end > start:
            logger.info(
                f"Booking conflict: staff={staff_id} requested "
                f"{start.isoformat()}–{end.isoformat()} overlaps booking={existing.id}"
            )
            raise ConflictError(staff_id, start, end, existing.id)
