from dataclasses import replace
from datetime import timedelta

import pytest

from app.services.slots.assignment import auto_assign, count_nearby_bookings
from app.services.slots.errors import ServiceNotFound
from app.services.slots.types import BookingStatus

from factories import BEARD, DAY, HAIRCUT, at, booking


def test_picks_staff_with_fewest_nearby_bookings(with_bookings):
    snapshot = with_bookings(
        booking(1, 9), booking(1, 11),
        booking(2, 10),
        booking(3, 10), booking(3, 12),
    )
    assert auto_assign(snapshot, HAIRCUT, at(15)) == 2


def test_ties_go_to_sort_order(with_bookings):
    snapshot = with_bookings(booking(1, 9), booking(2, 9), booking(3, 9))
    assert auto_assign(snapshot, HAIRCUT, at(15)) == 1

    reordered = replace(
        snapshot,
        staff=(snapshot.staff[0], snapshot.staff[1], replace(snapshot.staff[2], sort_order=-1)),
    )
    assert auto_assign(reordered, HAIRCUT, at(15)) == 3


def test_busy_staff_is_skipped_when_someone_is_free(with_bookings):
    snapshot = with_bookings(
        booking(1, 15),
        booking(2, 9), booking(2, 11),
        booking(3, 9), booking(3, 11), booking(3, 12),
    )
    assert auto_assign(snapshot, HAIRCUT, at(15)) == 2


def test_falls_back_to_whole_pool_when_nobody_is_free(with_bookings):
    snapshot = with_bookings(booking(1, 15), booking(2, 15), booking(3, 15), booking(3, 9))
    assert auto_assign(snapshot, HAIRCUT, at(15)) == 1


def test_window_bounds_are_inclusive(with_bookings):
    window = timedelta(hours=24)
    snapshot = with_bookings(
        booking(1, 15, day=DAY - timedelta(days=1)),           # exactly 24h before
        booking(1, 15, 15, day=DAY + timedelta(days=1)),       # 24h15m after
        booking(1, 14, status=BookingStatus.CANCELLED),
    )
    assert count_nearby_bookings(snapshot, 1, at(15), window) == 1


def test_unqualified_service_assigns_from_all_active(shop):
    assert auto_assign(shop, BEARD, at(10)) == 1


def test_no_active_staff_leaves_booking_unassigned(shop):
    snapshot = replace(shop, staff=tuple(replace(s, is_active=False) for s in shop.staff))
    assert auto_assign(snapshot, HAIRCUT, at(10)) is None


def test_unknown_service(shop):
    with pytest.raises(ServiceNotFound):
        auto_assign(shop, 99, at(10))
