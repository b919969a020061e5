# backend/app/services/slots/errors.py
"""
Scheduling errors.

Nothing here is raised for "no availability"; empty results are normal.
"""

from dataclasses import dataclass
from datetime import datetime


class SchedulingError(Exception):
    """Base class for scheduling errors."""


class ConfigurationError(SchedulingError, ValueError):
    """Malformed shop configuration (hours), rejected when it is saved."""


class ShopNotFound(SchedulingError):
    pass


class ServiceNotFound(SchedulingError):
    pass


class StaffNotFound(SchedulingError):
    pass


class BookingNotFound(SchedulingError):
    pass


class InvalidBookingAction(SchedulingError):
    """Action not allowed in the booking's current state."""


class ConflictError(SchedulingError):
    """A write would overlap another confirmed booking of the same staff."""

    def __init__(self, staff_id: int, start: datetime, end: datetime, existing_id: int | None = None):
        self.staff_id = staff_id
        self.start = start
        self.end = end
        self.existing_id = existing_id
        super().__init__(
            f"Staff {staff_id} is already booked between "
            f"{start.isoformat()} and {end.isoformat()}"
        )


@dataclass(frozen=True)
class SeriesInstanceFailure:
    """One recurring instance that could not be booked."""
    index: int
    start: datetime
    reason: str
