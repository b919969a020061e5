# backend/app/main.py

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from redis.exceptions import RedisError

from .config import settings
from .database import engine
from .models.generated import Base
from .redis_client import redis_client
from .routers import blocked_dates, bookings, hours, slots
from .services.notifier import notification_consumer_loop
from .services.reminder_checker import reminder_checker_loop
from .services.review_checker import review_checker_loop

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(url: str) -> None:
    if url.startswith("sqlite:///") and url != "sqlite:///:memory:":
        Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _ensure_sqlite_dir(settings.resolved_database_url)
    Base.metadata.create_all(bind=engine)

    tasks: list[asyncio.Task] = []
    if settings.enable_background_jobs:
        tasks = [
            asyncio.create_task(reminder_checker_loop()),
            asyncio.create_task(review_checker_loop()),
            asyncio.create_task(notification_consumer_loop(settings.redis_url)),
        ]
        logger.info(f"Started {len(tasks)} background jobs")

    yield

    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


app = FastAPI(title="Shop Booking API", lifespan=lifespan)

app.include_router(slots.router)
app.include_router(bookings.router)
app.include_router(hours.router)
app.include_router(blocked_dates.router)


@app.get("/health")
def health():
    try:
        redis_ok = redis_client.ping()
    except RedisError:
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}
