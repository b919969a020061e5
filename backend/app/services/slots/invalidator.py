# backend/app/services/slots/invalidator.py
"""
Cache invalidation for shop base slots.

Triggers:
✓ Shop weekly hours saved → invalidate all dates
✓ Shop blocked date created/deleted → invalidate that date

Does NOT trigger:
✗ Booking created/cancelled (Level 2 calculates on-the-fly)
✗ Staff hours or staff blocked dates (not part of the shop grid)
"""

import logging
from datetime import date

from redis import Redis
from redis.exceptions import RedisError

from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)


def invalidate_shop_cache(
    redis: Redis | None,
    shop_id: int,
    dates: list[date] | None = None,
) -> int:
    """
    Invalidate cached grids for a shop.

    A Redis outage must not fail the admin write that triggered it: the error
    is logged and 0 is returned (cached days then live until their TTL).

    Returns:
        Number of deleted cache keys
    """
    if redis is None:
        return 0
    try:
        deleted = SlotsRedisStore(redis).delete_day_slots(shop_id, dates)
    except RedisError as e:
        logger.error(f"Failed to invalidate slots cache for shop={shop_id}: {e}")
        return 0

    logger.info(
        f"Invalidated {deleted} slot cache keys for shop={shop_id} "
        f"({'all dates' if not dates else ', '.join(d.isoformat() for d in dates)})"
    )
    return deleted
