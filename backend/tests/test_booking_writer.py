import random
import threading
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from app.database import make_engine
from app.models.generated import Base, Bookings, Staff
from app.services.bookings import (
    cancel_booking,
    complete_booking,
    create_booking,
    create_series,
    get_booking,
    get_booking_by_token,
    mark_noshow,
    reassign_staff,
    reschedule_booking,
)
from app.services.slots.errors import (
    BookingNotFound,
    ConflictError,
    InvalidBookingAction,
    ServiceNotFound,
    ShopNotFound,
)

from factories import DAY, FADE, HAIRCUT, at, seed_shop


def book(db, start, staff_id=1, service_id=HAIRCUT, **kwargs):
    return create_booking(
        db, shop_id=1, service_id=service_id, start=start,
        customer_name="Sam", customer_phone="5551234567", staff_id=staff_id, **kwargs,
    )


def test_create_booking(seeded_db):
    booking = book(seeded_db, at(10))

    assert booking.id is not None
    assert booking.status == "confirmed"
    assert booking.duration_minutes == 30
    assert booking.staff_id == 1
    assert not booking.was_auto_assigned
    assert len(booking.manage_token) >= 24


def test_overlapping_booking_is_rejected(seeded_db):
    book(seeded_db, at(10), service_id=FADE)

    with pytest.raises(ConflictError) as exc:
        book(seeded_db, at(10, 30))
    assert exc.value.staff_id == 1

    # Adjacent and other-staff bookings are fine
    book(seeded_db, at(10, 45))
    book(seeded_db, at(10, 15), staff_id=2)
    assert seeded_db.query(Bookings).count() == 3


def test_auto_assign_spreads_load(seeded_db):
    first = book(seeded_db, at(10), staff_id=None)
    second = book(seeded_db, at(10), staff_id=None)

    assert (first.staff_id, second.staff_id) == (1, 2)
    assert first.was_auto_assigned and second.was_auto_assigned


def test_no_active_staff_books_unassigned(seeded_db):
    seeded_db.query(Staff).update({Staff.is_active: False})
    seeded_db.commit()

    booking = book(seeded_db, at(10), staff_id=None)

    assert booking.staff_id is None
    assert not booking.was_auto_assigned


def test_unknown_shop_or_service(seeded_db):
    with pytest.raises(ShopNotFound):
        create_booking(seeded_db, 99, HAIRCUT, at(10), "Sam", "5551234567")
    with pytest.raises(ServiceNotFound):
        book(seeded_db, at(10), service_id=99)


def test_inactive_staff_cannot_be_booked(seeded_db):
    seeded_db.get(Staff, 3).is_active = False
    seeded_db.commit()

    with pytest.raises(InvalidBookingAction):
        book(seeded_db, at(10), staff_id=3)


def test_cancelled_booking_frees_the_slot(seeded_db):
    booking = book(seeded_db, at(10))
    cancel_booking(seeded_db, booking.id)

    assert book(seeded_db, at(10)).staff_id == 1


def test_lifecycle_actions_need_a_confirmed_booking(seeded_db):
    done = complete_booking(seeded_db, book(seeded_db, at(10)).id)
    missed = mark_noshow(seeded_db, book(seeded_db, at(11)).id)

    assert done.status == "completed"
    assert missed.status == "noshow"
    with pytest.raises(InvalidBookingAction):
        cancel_booking(seeded_db, done.id)
    with pytest.raises(BookingNotFound):
        get_booking(seeded_db, 999)


def test_lookup_by_manage_token(seeded_db):
    booking = book(seeded_db, at(10))

    assert get_booking_by_token(seeded_db, booking.manage_token).id == booking.id
    with pytest.raises(BookingNotFound):
        get_booking_by_token(seeded_db, "nope")


def test_reschedule_checks_overlap_excluding_itself(seeded_db):
    booking = book(seeded_db, at(10))
    book(seeded_db, at(12))
    booking.reminder_sent = True
    seeded_db.commit()

    moved = reschedule_booking(seeded_db, booking.id, at(10, 15))
    assert moved.appointment_time == at(10, 15)
    assert not moved.reminder_sent

    with pytest.raises(ConflictError):
        reschedule_booking(seeded_db, booking.id, at(11, 45))
    assert get_booking(seeded_db, booking.id).appointment_time == at(10, 15)


def test_reschedule_to_the_past_is_rejected(seeded_db):
    booking = book(seeded_db, at(10))

    with pytest.raises(InvalidBookingAction):
        reschedule_booking(seeded_db, booking.id, at(9), now=at(9, 30))


def test_reassign_staff(seeded_db):
    booking = book(seeded_db, at(10), staff_id=None)
    book(seeded_db, at(10), staff_id=2)

    with pytest.raises(ConflictError):
        reassign_staff(seeded_db, booking.id, 2)

    moved = reassign_staff(seeded_db, booking.id, 3)
    assert moved.staff_id == 3
    assert not moved.was_auto_assigned

    assert reassign_staff(seeded_db, booking.id, None).staff_id is None


def test_series_keeps_successes_and_reports_failures(seeded_db):
    book(seeded_db, at(10, day=DAY + timedelta(days=7)))

    result = create_series(
        seeded_db, shop_id=1, service_id=HAIRCUT, start=at(10), cadence="weekly", count=3,
        customer_name="Sam", customer_phone="5551234567", staff_id=1,
    )

    assert len(result.bookings) == 2
    assert [f.index for f in result.failures] == [1]
    assert result.failures[0].start == at(10, day=DAY + timedelta(days=7))
    assert result.group_id
    assert {b.recurring_group_id for b in result.bookings} == {result.group_id}


def test_single_instance_series_has_no_group(seeded_db):
    result = create_series(
        seeded_db, shop_id=1, service_id=HAIRCUT, start=at(10), cadence="none", count=1,
        customer_name="Sam", customer_phone="5551234567", staff_id=1,
    )
    assert result.group_id is None
    assert result.bookings[0].recurring_group_id is None


def test_series_length_is_capped(seeded_db):
    with pytest.raises(ValueError):
        create_series(
            seeded_db, shop_id=1, service_id=HAIRCUT, start=at(10), cadence="weekly", count=13,
            customer_name="Sam", customer_phone="5551234567",
        )


def test_random_sequence_never_double_books(seeded_db):
    rng = random.Random(42)
    for _ in range(60):
        start = at(9) + timedelta(minutes=15 * rng.randrange(36))
        try:
            book(seeded_db, start, service_id=rng.choice([HAIRCUT, FADE]))
        except ConflictError:
            pass

    rows = seeded_db.query(Bookings).filter(Bookings.staff_id == 1).all()
    intervals = sorted(
        (b.appointment_time, b.appointment_time + timedelta(minutes=b.duration_minutes))
        for b in rows
    )
    assert len(intervals) > 1
    for (_, prev_end), (next_start, _) in zip(intervals, intervals[1:]):
        assert prev_end <= next_start


def test_concurrent_writers_single_winner(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = Session()
    seed_shop(setup)
    setup.close()

    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def attempt():
        db = Session()
        try:
            barrier.wait()
            try:
                book(db, at(10))
                result = "ok"
            except ConflictError:
                result = "conflict"
            except Exception as e:
                result = repr(e)
        finally:
            db.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == workers - 1

    check = Session()
    assert check.query(Bookings).filter(Bookings.status == "confirmed").count() == 1
    check.close()
    engine.dispose()
