# backend/app/services/slots/calendar.py
"""
Calendar resolution: effective open window for the shop or one staff member.

Lookup order:
  1. Blocked date (staff block, then shop block) → Closed
  2. Staff override hours for the weekday → StaffOverride
  3. Shop hours for the weekday            → ShopDefault
  4. No record / is_open = False           → Closed
"""

from dataclasses import dataclass
from datetime import date

from .config import time_str_to_minutes
from .types import BlockedDay, DayHours, ShopSnapshot, StaffMember


@dataclass(frozen=True)
class ShopDefault:
    """Hours taken from the shop's weekly schedule (None = no record)."""
    hours: DayHours | None


@dataclass(frozen=True)
class StaffOverride:
    """Hours taken from the staff member's own weekly schedule."""
    hours: DayHours


HoursSource = ShopDefault | StaffOverride


@dataclass(frozen=True)
class OpenInterval:
    """[open_minutes, close_minutes) in local minutes from midnight."""
    open_minutes: int
    close_minutes: int
    source: HoursSource | None = None

    is_open = True

    def contains(self, minute: int) -> bool:
        return self.open_minutes <= minute < self.close_minutes


@dataclass(frozen=True)
class Closed:
    reason: str | None = None

    is_open = False

    def contains(self, minute: int) -> bool:
        return False


CalendarDay = OpenInterval | Closed


def select_hours(
    shop_hours: dict[int, DayHours],
    weekday: int,
    staff: StaffMember | None = None,
) -> HoursSource:
    """Two-level lookup: staff override for the weekday, else shop default."""
    if staff is not None:
        override = staff.hours.get(weekday)
        if override is not None:
            return StaffOverride(override)
    return ShopDefault(shop_hours.get(weekday))


def resolve_calendar(
    shop_hours: dict[int, DayHours],
    shop_blocked: dict[date, BlockedDay],
    target_date: date,
    staff: StaffMember | None = None,
) -> CalendarDay:
    """
    Resolve the effective open window for `target_date`.

    staff=None resolves the shop itself. A shop-wide block closes every
    staff member too, so a staff member without overrides always resolves
    exactly like the shop.
    """
    if staff is not None:
        blocked = staff.blocked.get(target_date)
        if blocked is not None:
            return Closed(blocked.reason or "Day off")

    blocked = shop_blocked.get(target_date)
    if blocked is not None:
        return Closed(blocked.reason or "Closed")

    source = select_hours(shop_hours, target_date.weekday(), staff)
    hours = source.hours
    if hours is None or not hours.is_open:
        return Closed("Closed")

    # Stored hours are validated on write (schemas/hours.py)
    return OpenInterval(
        open_minutes=time_str_to_minutes(hours.open_time),
        close_minutes=time_str_to_minutes(hours.close_time),
        source=source,
    )


def resolve_for_snapshot(
    snapshot: ShopSnapshot,
    target_date: date,
    staff: StaffMember | None = None,
) -> CalendarDay:
    return resolve_calendar(snapshot.hours, snapshot.blocked, target_date, staff)
