# backend/app/services/slots/availability.py
"""
Level 2: Service availability calculation.

Calculates unavailable (and bookable) start times for a service on one day.

Two modes:
- Single-staff: the customer picked a staff member. A slot is unavailable
  when that staff member is occupied there, or when the service would run
  past closing from it.
- Any-Available: the pool is every active staff member qualified for the
  service (all active staff when nobody is qualified). A slot is unavailable
  only when every pool member is busy at it.

All times are minutes from local midnight in the caller's frame.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.orm import Session

from .calendar import OpenInterval, resolve_for_snapshot
from .calculator import generate_slots
from .config import BookingConfig, get_booking_config, minutes_to_label
from .errors import ServiceNotFound, StaffNotFound
from .occupancy import OccupancyIndex, build_occupancy
from .types import LocalFrame, ShopSnapshot, StaffMember

logger = logging.getLogger(__name__)


@dataclass
class DayAvailability:
    shop_id: int
    service_id: int
    staff_id: int | None
    date: date
    offset_minutes: int
    service_duration_min: int
    slots_needed: int
    pool: list[int] = field(default_factory=list)
    pool_degraded: bool = False
    slots: list[int] = field(default_factory=list)
    unavailable: set[int] = field(default_factory=set)
    # bookable start → staff who can take the whole appointment from there
    staff_by_slot: dict[int, list[int]] = field(default_factory=dict)

    @property
    def unavailable_labels(self) -> list[str]:
        return [minutes_to_label(t) for t in sorted(self.unavailable)]

    @property
    def slot_labels(self) -> list[str]:
        return [minutes_to_label(t) for t in self.slots]

    @property
    def bookable(self) -> list[int]:
        return sorted(self.staff_by_slot)

    @property
    def bookable_labels(self) -> list[str]:
        return [minutes_to_label(t) for t in self.bookable]

    def to_dict(self) -> dict:
        return {
            "shop_id": self.shop_id,
            "service_id": self.service_id,
            "staff_id": self.staff_id,
            "date": self.date.isoformat(),
            "offset_minutes": self.offset_minutes,
            "service_duration_min": self.service_duration_min,
            "slots_needed": self.slots_needed,
            "pool_size": len(self.pool),
            "pool_degraded": self.pool_degraded,
            "slots": self.slot_labels,
            "unavailable": self.unavailable_labels,
            "available_times": [
                {"time": minutes_to_label(t), "staff_ids": self.staff_by_slot[t]}
                for t in self.bookable
            ],
        }


def qualified_pool(snapshot: ShopSnapshot, service_id: int) -> tuple[list[StaffMember], bool]:
    """
    Active staff qualified for the service, in pool order.

    Returns:
        (pool, degraded). degraded is True when nobody is qualified and the
        pool was widened to every active staff member.
    """
    active = snapshot.active_staff
    qualified = [s for s in active if s.is_qualified(service_id)]
    if qualified:
        return qualified, False
    if active:
        logger.info(
            f"No staff qualified for service={service_id} in shop={snapshot.shop_id}, "
            f"widening pool to {len(active)} active staff"
        )
    return active, True


def compute_availability(
    snapshot: ShopSnapshot,
    target_date: date,
    service_id: int,
    offset_minutes: int = 0,
    staff_id: int | None = None,
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> DayAvailability:
    """
    Calculate availability for a service on target_date.

    Pure function of its inputs: same snapshot, same answer.
    """
    config = config or get_booking_config()
    frame = LocalFrame(offset_minutes)

    service = snapshot.services.get(service_id)
    if service is None:
        raise ServiceNotFound(f"Service {service_id} not found")

    slots_needed = config.slots_needed(service.duration_minutes)
    result = DayAvailability(
        shop_id=snapshot.shop_id,
        service_id=service_id,
        staff_id=staff_id,
        date=target_date,
        offset_minutes=offset_minutes,
        service_duration_min=service.duration_minutes,
        slots_needed=slots_needed,
    )
    past_before = _past_cutoff(target_date, frame, now)

    if staff_id is not None:
        _single_staff(snapshot, result, frame, config, past_before)
    else:
        _any_available(snapshot, result, frame, config, past_before)

    return result


def available_slots(
    snapshot: ShopSnapshot,
    target_date: date,
    offset_minutes: int,
    service_id: int,
    staff_id: int | None = None,
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> list[str]:
    """Unavailable slot labels for the day; the caller subtracts them."""
    return compute_availability(
        snapshot, target_date, service_id, offset_minutes, staff_id, now, config
    ).unavailable_labels


# ── Modes ────────────────────────────────────────────────────────────────


def _single_staff(
    snapshot: ShopSnapshot,
    result: DayAvailability,
    frame: LocalFrame,
    config: BookingConfig,
    past_before: int | None,
) -> None:
    staff = snapshot.get_staff(result.staff_id)
    if staff is None:
        raise StaffNotFound(f"Staff {result.staff_id} not found")
    if not staff.is_active:
        # Inactive staff have no calendar at all
        return

    window = resolve_for_snapshot(snapshot, result.date, staff)
    slots = generate_slots(window, config)
    occupancy = build_occupancy(
        snapshot.bookings, result.date, frame, config, staff_ids=[staff.id]
    )

    result.pool = [staff.id]
    result.slots = list(slots)

    for t in slots:
        is_past = past_before is not None and t < past_before
        if is_past or occupancy.is_occupied(staff.id, t) or not slots.fits(t, result.slots_needed):
            result.unavailable.add(t)
            continue
        if _window_free(staff.id, t, result.slots_needed, config, occupancy, window):
            result.staff_by_slot[t] = [staff.id]


def _any_available(
    snapshot: ShopSnapshot,
    result: DayAvailability,
    frame: LocalFrame,
    config: BookingConfig,
    past_before: int | None,
) -> None:
    pool, degraded = qualified_pool(snapshot, result.service_id)
    result.pool = [s.id for s in pool]
    result.pool_degraded = degraded

    shop_window = resolve_for_snapshot(snapshot, result.date)
    slots = generate_slots(shop_window, config)
    result.slots = list(slots)
    if not result.slots:
        return

    occupancy = build_occupancy(
        snapshot.bookings, result.date, frame, config, staff_ids=result.pool
    )
    staff_windows = {
        s.id: resolve_for_snapshot(snapshot, result.date, s) for s in pool
    }

    for t in slots:
        if past_before is not None and t < past_before:
            result.unavailable.add(t)
            continue

        # Off-shift staff count as busy: they cannot take the slot either
        busy = {
            sid for sid in result.pool
            if occupancy.is_occupied(sid, t) or not staff_windows[sid].contains(t)
        }
        if len(busy) >= len(result.pool):
            result.unavailable.add(t)
            continue

        if not slots.fits(t, result.slots_needed):
            continue

        candidates = [
            sid for sid in result.pool
            if _window_free(sid, t, result.slots_needed, config, occupancy, staff_windows[sid])
        ]
        if candidates:
            result.staff_by_slot[t] = candidates


# ── Helpers ──────────────────────────────────────────────────────────────


def _window_free(
    staff_id: int,
    start: int,
    slots_needed: int,
    config: BookingConfig,
    occupancy: OccupancyIndex,
    window,
) -> bool:
    """True when staff is on shift and unoccupied for the whole appointment."""
    if not isinstance(window, OpenInterval):
        return False
    step = config.slot_step_minutes
    if start + slots_needed * step > window.close_minutes:
        return False
    for i in range(slots_needed):
        t = start + i * step
        if not window.contains(t) or occupancy.is_occupied(staff_id, t):
            return False
    return True


def _past_cutoff(target_date: date, frame: LocalFrame, now: datetime | None) -> int | None:
    """
    Minute before which slots on target_date are in the past.

    None = nothing is past (future day, or no clock given).
    """
    if now is None:
        return None
    today = frame.local_date(now)
    if target_date > today:
        return None
    if target_date < today:
        return 24 * 60
    # A slot starting exactly now is already gone
    return frame.minutes_into_day(now, target_date) + 1


# ── Database entry point ─────────────────────────────────────────────────


def calculate_service_availability(
    db: Session,
    shop_id: int,
    service_id: int,
    target_date: date,
    offset_minutes: int = 0,
    staff_id: int | None = None,
    now: datetime | None = None,
    config: BookingConfig | None = None,
) -> DayAvailability:
    """Load the shop for target_date and calculate availability."""
    from .loader import load_day_snapshot

    snapshot = load_day_snapshot(db, shop_id, target_date, offset_minutes)
    return compute_availability(
        snapshot, target_date, service_id, offset_minutes, staff_id, now, config
    )
