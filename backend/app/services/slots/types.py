# backend/app/services/slots/types.py
"""
Value objects the scheduling engine works on.

Everything here is plain data read from the store by loader.py (or built by
hand in tests). The engine never touches a Session.

Instants are naive UTC datetimes, the same convention the bookings table uses.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NOSHOW = "noshow"


@dataclass(frozen=True)
class DayHours:
    """One WeeklyHours record: weekday 0 = Monday … 6 = Sunday."""
    weekday: int
    is_open: bool
    open_time: str = "09:00"
    close_time: str = "18:00"


@dataclass(frozen=True)
class BlockedDay:
    day: date
    reason: str | None = None


@dataclass(frozen=True)
class StaffMember:
    id: int
    name: str
    is_active: bool = True
    service_ids: frozenset[int] = frozenset()
    hours: dict[int, DayHours] = field(default_factory=dict)
    blocked: dict[date, BlockedDay] = field(default_factory=dict)
    sort_order: int = 0

    def is_qualified(self, service_id: int) -> bool:
        return service_id in self.service_ids


@dataclass(frozen=True)
class ServiceInfo:
    id: int
    name: str
    duration_minutes: int
    price: float = 0.0


@dataclass(frozen=True)
class BookingInfo:
    id: int | None
    service_id: int
    staff_id: int | None
    start: datetime
    duration_minutes: int
    status: BookingStatus = BookingStatus.CONFIRMED

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start


@dataclass(frozen=True)
class ShopSnapshot:
    """
    Everything the engine needs to answer questions about one shop.

    bookings holds every booking in the loaded range regardless of status;
    each component filters the statuses it cares about.
    """
    shop_id: int
    name: str = ""
    hours: dict[int, DayHours] = field(default_factory=dict)
    blocked: dict[date, BlockedDay] = field(default_factory=dict)
    staff: tuple[StaffMember, ...] = ()
    services: dict[int, ServiceInfo] = field(default_factory=dict)
    bookings: tuple[BookingInfo, ...] = ()
    booking_window_days: int = 60

    @property
    def active_staff(self) -> list[StaffMember]:
        """Active staff in pool iteration order (sort_order, then id)."""
        return sorted(
            (s for s in self.staff if s.is_active),
            key=lambda s: (s.sort_order, s.id),
        )

    def get_staff(self, staff_id: int) -> StaffMember | None:
        for member in self.staff:
            if member.id == staff_id:
                return member
        return None


def to_utc_naive(instant: datetime) -> datetime:
    """Normalise an instant to naive UTC (aware values are converted)."""
    if instant.tzinfo is not None:
        return instant.astimezone(timezone.utc).replace(tzinfo=None)
    return instant


@dataclass(frozen=True)
class LocalFrame:
    """
    Client-local wall clock, described by a browser-style UTC offset.

    offset_minutes follows Date.getTimezoneOffset(): minutes to ADD to local
    time to get UTC (EST = 300, CET = -60). All slot keys, booking keys and
    "now" are converted through the same frame before comparison.
    """
    offset_minutes: int = 0

    def to_local(self, instant: datetime) -> datetime:
        return to_utc_naive(instant) - timedelta(minutes=self.offset_minutes)

    def to_utc(self, local: datetime) -> datetime:
        return local + timedelta(minutes=self.offset_minutes)

    def local_date(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def minutes_into_day(self, instant: datetime, day: date) -> int:
        """Minutes from local midnight of `day` (negative for earlier days)."""
        local = self.to_local(instant)
        midnight = datetime.combine(day, datetime.min.time())
        return int((local - midnight).total_seconds() // 60)

    def day_bounds_utc(self, day: date) -> tuple[datetime, datetime]:
        """UTC instants of local [day 00:00, next day 00:00)."""
        midnight = datetime.combine(day, datetime.min.time())
        return self.to_utc(midnight), self.to_utc(midnight + timedelta(days=1))

    def instant_at(self, day: date, minutes: int) -> datetime:
        """UTC instant of local `day` + `minutes`."""
        midnight = datetime.combine(day, datetime.min.time())
        return self.to_utc(midnight + timedelta(minutes=minutes))
