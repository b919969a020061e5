# backend/app/services/slots/__init__.py
"""
Scheduling and availability engine.

Level 1: Shop base slots (cached in Redis Sorted Sets)
Level 2: Service availability per staff pool (calculated on-the-fly)
"""

from .config import BookingConfig, get_booking_config
from .calendar import resolve_calendar
from .calculator import calculate_day_slots, generate_slots
from .occupancy import build_occupancy
from .availability import available_slots, calculate_service_availability, compute_availability
from .assignment import auto_assign
from .walkin import walk_in_status
from .recurring import Cadence, expand_recurring
from .redis_store import SlotsRedisStore
from .invalidator import invalidate_shop_cache

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "resolve_calendar",
    "generate_slots",
    "calculate_day_slots",
    "build_occupancy",
    "compute_availability",
    "available_slots",
    "calculate_service_availability",
    "auto_assign",
    "walk_in_status",
    "Cadence",
    "expand_recurring",
    "SlotsRedisStore",
    "invalidate_shop_cache",
]
