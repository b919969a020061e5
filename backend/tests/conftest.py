from dataclasses import replace

import fakeredis
import pytest
from sqlalchemy.orm import sessionmaker

from app.database import make_engine
from app.models.generated import Base
from app.services.slots.types import ServiceInfo, ShopSnapshot, StaffMember

from factories import BEARD, COLOR, FADE, HAIRCUT, seed_shop, week


@pytest.fixture
def shop():
    """
    Open 09:00–18:00 every day. Three barbers qualified for everything
    except the beard trim, which nobody is qualified for.
    """
    qualified = frozenset({HAIRCUT, FADE, COLOR})
    return ShopSnapshot(
        shop_id=1,
        name="Sharp Cuts",
        hours=week(),
        staff=(
            StaffMember(1, "Alex", service_ids=qualified, sort_order=0),
            StaffMember(2, "Ben", service_ids=qualified, sort_order=1),
            StaffMember(3, "Chris", service_ids=qualified, sort_order=2),
        ),
        services={
            HAIRCUT: ServiceInfo(HAIRCUT, "Haircut", 30, 35.0),
            FADE: ServiceInfo(FADE, "Skin Fade", 45, 45.0),
            BEARD: ServiceInfo(BEARD, "Beard Trim", 15, 20.0),
            COLOR: ServiceInfo(COLOR, "Color", 60, 80.0),
        },
    )


@pytest.fixture
def with_bookings(shop):
    def _with(*bookings):
        return replace(shop, bookings=tuple(bookings))
    return _with


# ── Database ─────────────────────────────────────────────────────────────


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db):
    seed_shop(db)
    return db


@pytest.fixture
def fake_redis(monkeypatch):
    r = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr("app.services.events.redis_client", r)
    return r
