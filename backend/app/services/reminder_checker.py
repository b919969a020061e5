"""
Booking reminder checker.

Periodically checks for upcoming bookings and emits booking_reminder events
to notify customers the day before their appointment.

Window: appointment_time in [now + 23h, now + 24h], status confirmed,
reminder not yet sent. The reminder_sent flag is reset on reschedule.

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

CHECK_INTERVAL = 60  # seconds between checks
WINDOW_START = timedelta(hours=23)
WINDOW_END = timedelta(hours=24)


async def reminder_checker_loop() -> None:
    """Periodic loop that checks for bookings needing a reminder."""
    logger.info("reminder_checker_loop started")

    try:
        while True:
            try:
                await asyncio.to_thread(_check_upcoming_bookings)
            except asyncio.CancelledError:
                logger.info("reminder_checker_loop cancelled")
                raise
            except Exception:
                logger.exception("reminder_checker_loop error")

            await asyncio.sleep(CHECK_INTERVAL)
    except asyncio.CancelledError:
        pass


def _check_upcoming_bookings() -> None:
    """Check for bookings that need a reminder (synchronous)."""
    db = SessionLocal()
    try:
        send_due_reminders(db, datetime.utcnow())
    finally:
        db.close()


def send_due_reminders(db: Session, now: datetime) -> list[int]:
    """Emit reminders due at `now` and flag them. Returns booking ids."""
    bookings = (
        db.query(Bookings)
        .filter(
            Bookings.status == BookingStatus.CONFIRMED.value,
            Bookings.reminder_sent.is_(False),
            Bookings.appointment_time >= now + WINDOW_START,
            Bookings.appointment_time <= now + WINDOW_END,
        )
        .all()
    )

    reminded = []
    for booking in bookings:
        try:
            if not emit_event("booking_reminder", {"booking_id": booking.id}):
                logger.warning(f"booking_reminder for booking={booking.id} not queued, retrying next check")
                continue
            booking.reminder_sent = True
            db.commit()
            reminded.append(booking.id)
        except Exception:
            db.rollback()
            logger.exception(f"Error processing booking {booking.id} for reminder")
            continue

        logger.info(
            f"booking_reminder emitted for booking={booking.id} "
            f"(starts at {booking.appointment_time.strftime('%Y-%m-%d %H:%M')} UTC)"
        )

    if bookings:
        logger.info(f"Found {len(bookings)} bookings needing reminders")
    return reminded
