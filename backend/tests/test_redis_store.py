from datetime import timedelta

import fakeredis
import pytest
from redis.exceptions import ConnectionError

from app.services.slots.calculator import calculate_day_slots
from app.services.slots.invalidator import invalidate_shop_cache
from app.services.slots.redis_store import EMPTY_SENTINEL, SlotsRedisStore

from factories import DAY


@pytest.fixture
def store():
    return SlotsRedisStore(fakeredis.FakeRedis(decode_responses=True))


def test_store_and_read_day(store, shop):
    store.store_day_slots(1, DAY, calculate_day_slots(shop, DAY))

    assert store.get_available_slots(1, DAY)[:2] == ["09:00", "09:15"]
    assert store.get_available_slots(1, DAY, from_minute=17 * 60) == ["17:00", "17:15", "17:30", "17:45"]
    assert 0 < store.redis.ttl(store._key(1, DAY)) <= store.config.cache_ttl_seconds


def test_closed_day_is_cached_as_empty(store):
    store.store_day_slots(1, DAY, [])

    assert store.get_available_slots(1, DAY) == []
    assert store.redis.zrange(store._key(1, DAY), 0, -1) == [EMPTY_SENTINEL]


def test_miss_returns_none(store):
    assert store.get_available_slots(1, DAY) is None


def test_mget_counts(store, shop):
    tomorrow = DAY + timedelta(days=1)
    store.store_multiple_days(1, {
        DAY: calculate_day_slots(shop, DAY),
        tomorrow: [],
    })

    counts = store.mget_counts(1, [DAY, tomorrow, DAY + timedelta(days=2)], {DAY: 12 * 60 + 1})

    assert counts == {DAY: 23, tomorrow: 0, DAY + timedelta(days=2): None}


def test_delete_all_dates_for_a_shop(store, shop):
    store.store_multiple_days(1, {DAY: calculate_day_slots(shop, DAY), DAY + timedelta(days=1): []})
    store.store_day_slots(2, DAY, [])

    assert store.delete_day_slots(1) == 2
    assert store.get_available_slots(2, DAY) == []


def test_invalidate_specific_dates(store):
    store.store_day_slots(1, DAY, [])
    store.store_day_slots(1, DAY + timedelta(days=1), [])

    assert invalidate_shop_cache(store.redis, 1, [DAY]) == 1
    assert store.get_available_slots(1, DAY) is None
    assert store.get_available_slots(1, DAY + timedelta(days=1)) == []


class _DownRedis:
    def scan_iter(self, *args, **kwargs):
        raise ConnectionError("down")

    def delete(self, *keys):
        raise ConnectionError("down")


def test_invalidation_survives_redis_outage():
    assert invalidate_shop_cache(_DownRedis(), 1) == 0
    assert invalidate_shop_cache(None, 1) == 0
