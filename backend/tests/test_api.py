import json
from datetime import datetime, timedelta

import fakeredis
import pytest
from fastapi.testclient import TestClient

from app.database import get_db
from app.main import app
from app.services.events import P2P_QUEUE
from app.services.slots.types import LocalFrame

from factories import FADE, HAIRCUT


@pytest.fixture
def redis(monkeypatch):
    r = fakeredis.FakeRedis(decode_responses=True)
    for module in (
        "app.main",
        "app.routers.slots",
        "app.routers.hours",
        "app.routers.blocked_dates",
        "app.services.events",
    ):
        monkeypatch.setattr(f"{module}.redis_client", r)
    return r


@pytest.fixture
def client(seeded_db, redis):
    def override_get_db():
        yield seeded_db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def next_week():
    return LocalFrame(0).local_date(datetime.utcnow()) + timedelta(days=7)


def _start(day, hour, minute=0):
    return (datetime.combine(day, datetime.min.time()) + timedelta(hours=hour, minutes=minute)).isoformat()


def _create(client, day, hour, minute=0, **extra):
    body = {
        "shop_id": 1,
        "service_id": HAIRCUT,
        "customer_name": "Sam",
        "customer_phone": "555-123-4567",
        "appointment_time": _start(day, hour, minute),
        "offset_minutes": 0,
        **extra,
    }
    return client.post("/bookings/", json=body)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "redis": True}


# ── Slots ────────────────────────────────────────────────────────────────


def test_day_slots(client, next_week):
    resp = client.get("/slots/day", params={
        "shop_id": 1, "service_id": FADE, "date": next_week.isoformat(), "offset": 0,
    })

    assert resp.status_code == 200
    data = resp.json()
    assert data["slots"][0] == "9:00 AM"
    assert data["slots_needed"] == 3
    assert data["pool_size"] == 3
    assert data["available_times"][-1]["time"] == "5:15 PM"


def test_day_slots_outside_booking_window(client, next_week):
    params = {"shop_id": 1, "service_id": HAIRCUT, "offset": 0}

    past = client.get("/slots/day", params={**params, "date": (next_week - timedelta(days=14)).isoformat()})
    far = client.get("/slots/day", params={**params, "date": (next_week + timedelta(days=60)).isoformat()})

    assert past.status_code == 400
    assert far.status_code == 400


def test_day_slots_unknown_ids(client, next_week):
    params = {"date": next_week.isoformat(), "offset": 0}

    assert client.get("/slots/day", params={**params, "shop_id": 9, "service_id": HAIRCUT}).status_code == 404
    assert client.get("/slots/day", params={**params, "shop_id": 1, "service_id": 99}).status_code == 404
    assert client.get(
        "/slots/day", params={**params, "shop_id": 1, "service_id": HAIRCUT, "staff_id": 99}
    ).status_code == 404


def test_booked_time_disappears_for_that_barber(client, next_week):
    assert _create(client, next_week, 10, staff_id=1).status_code == 201

    data = client.get("/slots/day", params={
        "shop_id": 1, "service_id": HAIRCUT, "date": next_week.isoformat(), "offset": 0, "staff_id": 1,
    }).json()

    assert "10:00 AM" in data["unavailable"]
    assert "10:30 AM" not in data["unavailable"]


def test_calendar_lists_booking_window_and_blocked_days(client, next_week, redis):
    resp = client.post("/blocked_dates/", json={
        "shop_id": 1, "date": next_week.isoformat(), "reason": "Holiday",
    })
    assert resp.status_code == 201

    data = client.get("/slots/calendar", params={"shop_id": 1, "offset": 0}).json()
    days = {d["date"]: d for d in data["days"]}

    assert len(data["days"]) == data["booking_window_days"] + 1
    assert days[next_week.isoformat()]["is_open"] is False
    assert days[next_week.isoformat()]["is_blocked"] is True
    assert days[next_week.isoformat()]["reason"] == "Holiday"
    tomorrow = (next_week - timedelta(days=6)).isoformat()
    assert days[tomorrow]["open_slots_count"] == 36

    # Cached days are invalidated when the block is lifted
    assert redis.exists(f"slots:day:1:{next_week.isoformat()}")
    assert client.delete(f"/blocked_dates/{resp.json()['id']}").status_code == 204
    assert not redis.exists(f"slots:day:1:{next_week.isoformat()}")

    again = client.get("/slots/calendar", params={"shop_id": 1, "offset": 0}).json()
    assert {d["date"]: d for d in again["days"]}[next_week.isoformat()]["open_slots_count"] == 36


def test_staff_calendar_uses_staff_blocks(client, next_week):
    client.post("/blocked_dates/", json={"shop_id": 1, "date": next_week.isoformat(), "staff_id": 2})

    staff_days = client.get("/slots/calendar", params={"shop_id": 1, "staff_id": 2, "offset": 0}).json()
    shop_days = client.get("/slots/calendar", params={"shop_id": 1, "offset": 0}).json()

    assert {d["date"]: d for d in staff_days["days"]}[next_week.isoformat()]["reason"] == "Day off"
    assert {d["date"]: d for d in shop_days["days"]}[next_week.isoformat()]["is_open"] is True


def test_walk_in_and_resolve(client, next_week):
    walk_in = client.get("/slots/walk-in", params={"shop_id": 1, "offset": 0})
    assert walk_in.status_code == 200
    assert set(walk_in.json()) == {"is_open", "available_count", "total_working_count", "names", "message"}

    resolved = client.get("/slots/resolve", params={"shop_id": 1, "date": next_week.isoformat()}).json()
    assert resolved["open_time"] == "09:00"
    assert resolved["close_time"] == "18:00"
    assert resolved["source"] == "shop"


# ── Bookings ─────────────────────────────────────────────────────────────


def test_create_auto_assigned_booking(client, next_week, redis):
    resp = _create(client, next_week, 10)

    assert resp.status_code == 201
    data = resp.json()
    assert data["success"] is True
    booking = data["bookings"][0]
    assert booking["staff_id"] == 1
    assert booking["was_auto_assigned"] is True

    event = json.loads(redis.lpop(P2P_QUEUE))
    assert event["type"] == "booking_created"
    assert event["booking_id"] == booking["id"]


def test_conflicting_booking_returns_409(client, next_week):
    assert _create(client, next_week, 10, staff_id=1).status_code == 201
    assert _create(client, next_week, 10, 15, staff_id=1).status_code == 409


def test_recurring_booking_reports_failures(client, next_week):
    _create(client, next_week + timedelta(days=7), 10, staff_id=1)

    resp = _create(client, next_week, 10, staff_id=1, recurring="weekly", recurring_count=3)

    data = resp.json()
    assert resp.status_code == 201
    assert len(data["booking_ids"]) == 2
    assert data["group_id"]
    assert [f["index"] for f in data["failures"]] == [1]


def test_invalid_booking_payload(client, next_week):
    assert _create(client, next_week, 10, customer_phone="12").status_code == 422
    assert _create(client, next_week, 10, recurring="weekly", recurring_count=20).status_code == 400


def test_admin_actions(client, next_week, redis):
    booking = _create(client, next_week, 10).json()["bookings"][0]
    url = f"/bookings/{booking['id']}"

    moved = client.patch(url, json={"staff_id": 2})
    assert moved.json()["staff_id"] == 2
    assert moved.json()["was_auto_assigned"] is False

    rescheduled = client.patch(url, json={"action": "reschedule", "new_time": _start(next_week, 11)})
    assert rescheduled.json()["appointment_time"].startswith(f"{next_week.isoformat()}T11:00")

    assert client.patch(url, json={"action": "cancel"}).json()["status"] == "cancelled"
    assert client.patch(url, json={"action": "cancel"}).status_code == 400
    assert client.patch(url, json={}).status_code == 400
    assert client.patch("/bookings/999", json={"action": "cancel"}).status_code == 404

    types = [json.loads(e)["type"] for e in redis.lrange(P2P_QUEUE, 0, -1)]
    assert types == ["booking_created", "booking_rescheduled", "booking_cancelled"]


def test_reschedule_requires_new_time(client, next_week):
    booking = _create(client, next_week, 10).json()["bookings"][0]
    assert client.patch(f"/bookings/{booking['id']}", json={"action": "reschedule"}).status_code == 400


def test_customer_manage_link(client, next_week):
    mine = _create(client, next_week, 10, staff_id=1).json()["bookings"][0]
    _create(client, next_week, 12, staff_id=1)
    token = mine["manage_token"]

    taken = client.post(f"/bookings/manage/{token}/reschedule", json={
        "new_appointment_time": _start(next_week, 12),
    })
    assert taken.status_code == 409

    ok = client.post(f"/bookings/manage/{token}/reschedule", json={
        "new_appointment_time": _start(next_week, 14),
    })
    assert ok.status_code == 200

    assert client.post(f"/bookings/manage/{token}/cancel").json()["status"] == "cancelled"
    assert client.post(f"/bookings/manage/{token}/cancel").status_code == 400
    assert client.post("/bookings/manage/unknown/cancel").status_code == 404


def test_past_booking_cannot_be_managed(client):
    yesterday = LocalFrame(0).local_date(datetime.utcnow()) - timedelta(days=1)
    booking = _create(client, yesterday, 10, staff_id=1).json()["bookings"][0]

    assert client.post(f"/bookings/manage/{booking['manage_token']}/cancel").status_code == 400


def test_ics_download(client, next_week):
    booking = _create(client, next_week, 10, staff_id=1).json()["bookings"][0]

    resp = client.get(f"/bookings/{booking['id']}/ics")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/calendar")
    assert "SUMMARY:Haircut at Sharp Cuts" in resp.text
    assert client.get("/bookings/999/ics").status_code == 404


# ── Hours ────────────────────────────────────────────────────────────────


def test_put_shop_hours(client, next_week):
    weekday = next_week.weekday()
    resp = client.put("/hours/shop/1", json={"hours": [
        {"day": weekday, "is_open": True, "open_time": "10:00", "close_time": "14:00"},
    ]})
    assert resp.status_code == 200

    data = client.get("/slots/day", params={
        "shop_id": 1, "service_id": HAIRCUT, "date": next_week.isoformat(), "offset": 0,
    }).json()
    assert data["slots"][0] == "10:00 AM"
    assert data["slots"][-1] == "1:45 PM"


def test_put_malformed_hours(client):
    resp = client.put("/hours/shop/1", json={"hours": [
        {"day": 0, "is_open": True, "open_time": "9am", "close_time": "18:00"},
    ]})
    assert resp.status_code == 400
    assert client.put("/hours/staff/99", json={"hours": []}).status_code == 404


def test_put_staff_hours(client, next_week):
    weekday = next_week.weekday()
    resp = client.put("/hours/staff/3", json={"hours": [
        {"day": weekday, "is_open": False},
    ]})
    assert resp.status_code == 200

    resolved = client.get("/slots/resolve", params={
        "shop_id": 1, "date": next_week.isoformat(), "staff_id": 3,
    }).json()
    assert resolved["is_open"] is False
