# backend/app/services/slots/redis_store.py
"""
Redis storage for shop base slots using Sorted Sets.

Key format: slots:day:{shop_id}:{date}
Value: Sorted Set where member = "HH:MM", score = minutes from local midnight.

Query: ZRANGEBYSCORE key {from_minute} +inf → slots not yet started.
Sentinel: "__empty__" with score=-1 marks "calculated, shop closed".

Only the shop-wide grid is cached (hours + blocked dates). Bookings and
staff are always read fresh.
"""

import logging
from datetime import date

from redis import Redis

from .config import BookingConfig, get_booking_config

logger = logging.getLogger(__name__)

EMPTY_SENTINEL = "__empty__"


def _decode(member) -> str:
    return member.decode() if isinstance(member, bytes) else member


class SlotsRedisStore:
    """Redis storage wrapper using Sorted Sets for slot data."""

    KEY_PREFIX = "slots:day"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, shop_id: int, dt: date) -> str:
        return f"{self.KEY_PREFIX}:{shop_id}:{dt.isoformat()}"

    def _write(self, pipe, key: str, slots: list[tuple[str, int]]) -> None:
        pipe.delete(key)
        if slots:
            pipe.zadd(key, {time_str: minutes for time_str, minutes in slots})
        else:
            # Closed day: sentinel so EXISTS returns True
            pipe.zadd(key, {EMPTY_SENTINEL: -1})
        pipe.expire(key, self.config.cache_ttl_seconds)

    # ── Write ────────────────────────────────────────────────────────────

    def store_day_slots(
        self,
        shop_id: int,
        dt: date,
        slots: list[tuple[str, int]],
    ) -> None:
        """
        Store calculated slots for a day.

        Args:
            shop_id: Shop ID
            dt: Target date
            slots: List of ("HH:MM", minutes) pairs.
                   Empty list → sentinel is stored.
        """
        pipe = self.redis.pipeline()
        self._write(pipe, self._key(shop_id, dt), slots)
        pipe.execute()

    def store_multiple_days(
        self,
        shop_id: int,
        days_slots: dict[date, list[tuple[str, int]]],
    ) -> None:
        """Batch store slots for multiple days via pipeline."""
        if not days_slots:
            return

        pipe = self.redis.pipeline()
        for dt, slots in days_slots.items():
            self._write(pipe, self._key(shop_id, dt), slots)
        pipe.execute()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_available_slots(
        self,
        shop_id: int,
        dt: date,
        from_minute: int = 0,
    ) -> list[str] | None:
        """
        Get slots starting at or after from_minute.

        Returns:
            Sorted list of "HH:MM" strings, or None on cache miss.
        """
        key = self._key(shop_id, dt)
        if not self.redis.exists(key):
            logger.debug(f"slots cache miss {key}")
            return None

        members = self.redis.zrangebyscore(key, from_minute, "+inf")
        return [m for m in map(_decode, members) if m != EMPTY_SENTINEL]

    def mget_counts(
        self,
        shop_id: int,
        dates: list[date],
        from_minutes: dict[date, int] | None = None,
    ) -> dict[date, int | None]:
        """
        Batch get slot counts for multiple dates.

        Args:
            from_minutes: Per-date lower bound (e.g. "now" for today);
                          dates not listed count from midnight.

        Returns:
            Dict mapping date → count (or None on cache miss).
        """
        if not dates:
            return {}

        from_minutes = from_minutes or {}
        keys = [self._key(shop_id, dt) for dt in dates]

        # First pass: check existence
        pipe = self.redis.pipeline()
        for key in keys:
            pipe.exists(key)
        exists_results = pipe.execute()

        # Second pass: count slots for existing keys
        pipe = self.redis.pipeline()
        for dt, key, exists in zip(dates, keys, exists_results):
            if exists:
                pipe.zcount(key, from_minutes.get(dt, 0), "+inf")
        count_results = pipe.execute()

        result: dict[date, int | None] = {}
        count_idx = 0
        for dt, exists in zip(dates, exists_results):
            if exists:
                result[dt] = count_results[count_idx]
                count_idx += 1
            else:
                result[dt] = None

        return result

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_day_slots(
        self,
        shop_id: int,
        dates: list[date] | None = None,
    ) -> int:
        """
        Delete cached slots.

        Args:
            shop_id: Shop ID
            dates: Specific dates, or None to delete all for the shop.

        Returns:
            Number of deleted keys.
        """
        if dates:
            keys = [self._key(shop_id, dt) for dt in dates]
        else:
            keys = list(self.redis.scan_iter(f"{self.KEY_PREFIX}:{shop_id}:*"))

        if not keys:
            return 0

        return self.redis.delete(*keys)
