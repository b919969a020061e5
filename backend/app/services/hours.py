# backend/app/services/hours.py
"""
Weekly hours writes.

Hours are validated here, when saved, so the engine never meets a malformed
time string. Saving shop hours invalidates the shop's cached slot grid.
"""

import logging

from redis import Redis
from sqlalchemy.orm import Session

from ..models.generated import BusinessHours, Shops, Staff, StaffHours
from .slots.config import time_str_to_minutes
from .slots.errors import ConfigurationError, ShopNotFound, StaffNotFound
from .slots.invalidator import invalidate_shop_cache

logger = logging.getLogger(__name__)


def normalize_hours(hours: list[dict]) -> list[dict]:
    """
    Validate a weekly schedule.

    "9:00" is stored as "09:00". At most one record per weekday.

    Raises:
        ConfigurationError: malformed time or duplicate weekday
    """
    seen: set[int] = set()
    result = []
    for entry in hours:
        day = entry["day"]
        if not 0 <= day <= 6:
            raise ConfigurationError(f"Invalid weekday {day}")
        if day in seen:
            raise ConfigurationError(f"Duplicate hours for weekday {day}")
        seen.add(day)

        normalized = dict(entry)
        for key in ("open_time", "close_time"):
            try:
                minutes = time_str_to_minutes(str(entry[key]).strip())
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            normalized[key] = f"{minutes // 60:02d}:{minutes % 60:02d}"
        result.append(normalized)
    return result


def replace_shop_hours(
    db: Session,
    shop_id: int,
    hours: list[dict],
    redis: Redis | None = None,
) -> list[BusinessHours]:
    """Upsert the shop's hours for the given weekdays."""
    hours = normalize_hours(hours)
    if db.get(Shops, shop_id) is None:
        raise ShopNotFound(f"Shop {shop_id} not found")

    existing = {
        h.day: h for h in db.query(BusinessHours).filter(BusinessHours.shop_id == shop_id)
    }
    try:
        for entry in hours:
            row = existing.get(entry["day"])
            if row is None:
                row = BusinessHours(shop_id=shop_id, day=entry["day"])
                db.add(row)
                existing[entry["day"]] = row
            row.is_open = entry["is_open"]
            row.open_time = entry["open_time"]
            row.close_time = entry["close_time"]
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Shop hours saved: shop={shop_id}, days={[e['day'] for e in hours]}")
    invalidate_shop_cache(redis, shop_id)
    return sorted(existing.values(), key=lambda h: h.day)


def replace_staff_hours(
    db: Session,
    staff_id: int,
    hours: list[dict],
) -> list[StaffHours]:
    """
    Upsert a staff member's override hours.

    Staff calendars are not cached, so nothing is invalidated.
    """
    hours = normalize_hours(hours)
    if db.get(Staff, staff_id) is None:
        raise StaffNotFound(f"Staff {staff_id} not found")

    existing = {
        h.day: h for h in db.query(StaffHours).filter(StaffHours.staff_id == staff_id)
    }
    try:
        for entry in hours:
            row = existing.get(entry["day"])
            if row is None:
                row = StaffHours(staff_id=staff_id, day=entry["day"])
                db.add(row)
                existing[entry["day"]] = row
            row.is_open = entry["is_open"]
            row.open_time = entry["open_time"]
            row.close_time = entry["close_time"]
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Staff hours saved: staff={staff_id}, days={[e['day'] for e in hours]}")
    return sorted(existing.values(), key=lambda h: h.day)
