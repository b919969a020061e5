"""
Review request checker.

Periodically checks for bookings whose appointment time was 2–3 hours ago
and emits review_request events, once per booking.

Runs as an asyncio task in backend lifespan.
Uses synchronous DB (via asyncio.to_thread).
"""

import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..models.generated import Bookings
from .events import emit_event
from .slots.types import BookingStatus

logger = logging.getLogger(__name__)

CHECK_INTERVAL = 300  # seconds between checks
WINDOW_START = timedelta(hours=3)
WINDOW_END = timedelta(hours=2)


async def review_checker_loop() -> None:
    """Periodic loop that checks for finished bookings needing a review request."""
    logger.info("review_checker_loop started")

    try:
        while True:
            try:
                await asyncio.to_thread(_check_finished_bookings)
            except asyncio.CancelledError:
                logger.info("review_checker_loop cancelled")
                raise
            except Exception:
                logger.exception("review_checker_loop error")

            await asyncio.sleep(CHECK_INTERVAL)
    except asyncio.CancelledError:
        pass


def _check_finished_bookings() -> None:
    db = SessionLocal()
    try:
        send_review_requests(db, datetime.utcnow())
    finally:
        db.close()


def send_review_requests(db: Session, now: datetime) -> list[int]:
    """Emit review requests due at `now` and flag them. Returns booking ids."""
    bookings = (
        db.query(Bookings)
        .filter(
            Bookings.status.in_([
                BookingStatus.CONFIRMED.value,
                BookingStatus.COMPLETED.value,
            ]),
            Bookings.review_sent.is_(False),
            Bookings.appointment_time >= now - WINDOW_START,
            Bookings.appointment_time <= now - WINDOW_END,
        )
        .all()
    )

    requested = []
    for booking in bookings:
        try:
            if not emit_event("review_request", {"booking_id": booking.id}):
                logger.warning(f"review_request for booking={booking.id} not queued, retrying next check")
                continue
            booking.review_sent = True
            db.commit()
            requested.append(booking.id)
        except Exception:
            db.rollback()
            logger.exception(f"Error processing booking {booking.id} for review request")
            continue

        logger.info(f"review_request emitted for booking={booking.id}")

    return requested
