"""
Notification consumer: turns booking events into SMS.

Consumes events:p2p (see events.py). Each event carries a booking id; the
booking is re-read from the store so the message reflects its current state.

Started as an asyncio task in the backend lifespan.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime

import redis.asyncio as aioredis

from ..config import settings
from ..database import SessionLocal
from ..models.generated import Bookings
from .events import P2P_QUEUE
from .slots.types import LocalFrame
from .sms import SmsDeliveryError, send_sms

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_QUEUE = "events:p2p:retry"
DEAD_QUEUE = "events:p2p:dead"


@dataclass(frozen=True)
class BookingContext:
    booking_id: int
    customer_name: str
    customer_phone: str
    shop_name: str
    shop_phone: str | None
    shop_slug: str
    service_name: str
    staff_name: str | None
    start: datetime  # naive UTC
    manage_token: str
    offset_minutes: int | None = None


# ── Formatting ───────────────────────────────────────────────────────────


def format_when(instant: datetime, offset_minutes: int | None = None) -> tuple[str, str]:
    """("Friday, March 6", "2:30 PM") on the clock the customer booked with."""
    if offset_minutes is None:
        offset_minutes = settings.default_offset_minutes
    local = LocalFrame(offset_minutes).to_local(instant)
    date_str = f"{local.strftime('%A, %B')} {local.day}"
    hour = local.hour % 12 or 12
    time_str = f"{hour}:{local.minute:02d} {'PM' if local.hour >= 12 else 'AM'}"
    return date_str, time_str


def build_messages(event: dict, ctx: BookingContext) -> list[tuple[str, str]]:
    """
    Messages for one event as (phone, body) pairs.

    Unknown event types produce no messages.
    """
    event_type = event.get("type")
    day, time_ = format_when(ctx.start, ctx.offset_minutes)
    with_staff = f" with {ctx.staff_name}" if ctx.staff_name else ""
    manage_url = f"{settings.public_base_url}/manage/{ctx.manage_token}"
    messages: list[tuple[str, str]] = []

    if event_type == "booking_created":
        series = event.get("series_count") or 1
        repeat = f"\nRepeats {event.get('cadence')} × {series}" if series > 1 else ""
        messages.append((
            ctx.customer_phone,
            f"Booking confirmed!\n\n{ctx.service_name}{with_staff} at {ctx.shop_name}\n"
            f"{day}\n{time_}{repeat}\n\nManage your booking: {manage_url}",
        ))
        if ctx.shop_phone:
            messages.append((
                ctx.shop_phone,
                f"New booking!\n\n{ctx.customer_name} booked a {ctx.service_name}{with_staff}\n"
                f"{day}\n{time_}\n{ctx.customer_phone}",
            ))

    elif event_type == "booking_cancelled":
        messages.append((
            ctx.customer_phone,
            f"Your {ctx.service_name} appointment at {ctx.shop_name} on {day} at {time_} "
            f"has been cancelled.\n\nBook again anytime at: "
            f"{settings.public_base_url}/demo/{ctx.shop_slug}",
        ))
        if ctx.shop_phone and event.get("by") == "customer":
            messages.append((
                ctx.shop_phone,
                f"Booking cancelled\n\n{ctx.customer_name} cancelled their {ctx.service_name} "
                f"appointment{with_staff}\n{day}\n{time_}\n{ctx.customer_phone}",
            ))

    elif event_type == "booking_rescheduled":
        old = event.get("old_time")
        if old:
            old_day, old_time = format_when(datetime.fromisoformat(old), ctx.offset_minutes)
        else:
            old_day, old_time = "?", "?"
        messages.append((
            ctx.customer_phone,
            f"Your {ctx.service_name} at {ctx.shop_name} has been rescheduled.\n\n"
            f"Old: {old_day} at {old_time}\nNew: {day} at {time_}",
        ))
        if ctx.shop_phone and event.get("by") == "customer":
            messages.append((
                ctx.shop_phone,
                f"RESCHEDULED: {ctx.customer_name} moved their {ctx.service_name} from "
                f"{old_day} at {old_time} to {day} at {time_}.",
            ))

    elif event_type == "booking_reminder":
        messages.append((
            ctx.customer_phone,
            f"Reminder: Your {ctx.service_name} at {ctx.shop_name} is tomorrow!\n\n"
            f"{day}\n{time_}\n\nSee you then!",
        ))

    elif event_type == "review_request":
        messages.append((
            ctx.customer_phone,
            f"Thanks for visiting {ctx.shop_name} today!\n\n"
            "We'd love to hear about your experience. If you have a moment, "
            "please leave us a review. It really helps our business!",
        ))

    return messages


# ── Processing ───────────────────────────────────────────────────────────


def load_context(booking_id: int) -> BookingContext | None:
    """Read the booking with shop/service/staff (synchronous)."""
    db = SessionLocal()
    try:
        booking = db.get(Bookings, booking_id)
        if booking is None:
            return None
        return BookingContext(
            booking_id=booking.id,
            customer_name=booking.customer_name,
            customer_phone=booking.customer_phone,
            shop_name=booking.shop.name,
            shop_phone=booking.shop.phone,
            shop_slug=booking.shop.slug,
            service_name=booking.service.name,
            staff_name=booking.staff.name if booking.staff else None,
            start=booking.appointment_time,
            manage_token=booking.manage_token,
            offset_minutes=booking.offset_minutes,
        )
    finally:
        db.close()


async def process_event(event: dict) -> int:
    """
    Send the SMS for one event. Returns the number of messages sent.

    Indexes of messages already delivered are kept in event["_sent"], so a
    retried event does not text the same person twice.

    Raises:
        SmsDeliveryError: a message was refused (the others are still tried)
    """
    booking_id = event.get("booking_id")
    if booking_id is None:
        logger.warning(f"Event without booking_id skipped: {event.get('type')}")
        return 0

    ctx = await asyncio.to_thread(load_context, booking_id)
    if ctx is None:
        logger.warning(f"Event {event.get('type')} for missing booking={booking_id} skipped")
        return 0

    delivered = set(event.get("_sent", []))
    sent = 0
    error = None
    for i, (phone, body) in enumerate(build_messages(event, ctx)):
        if i in delivered:
            continue
        try:
            if await send_sms(phone, body):
                delivered.add(i)
                sent += 1
        except SmsDeliveryError as e:
            error = e

    if error is not None:
        event["_sent"] = sorted(delivered)
        raise error
    return sent


async def notification_consumer_loop(redis_url: str) -> None:
    """
    Consume events from events:p2p.

    Uses BRPOP with 5s timeout to avoid busy-waiting.
    On failure, retries up to MAX_RETRIES, then moves to dead-letter queue.
    """
    r = aioredis.from_url(redis_url, decode_responses=True)
    logger.info("notification_consumer_loop started")

    try:
        while True:
            try:
                result = await r.brpop([P2P_QUEUE, RETRY_QUEUE], timeout=5)
                if result is None:
                    continue

                _, raw = result
                await _process_event_safe(r, raw)

            except asyncio.CancelledError:
                logger.info("notification_consumer_loop cancelled")
                raise
            except Exception:
                logger.exception("notification_consumer_loop error, retrying in 2s")
                await asyncio.sleep(2)
    finally:
        await r.aclose()


async def _process_event_safe(r: aioredis.Redis, raw: str) -> None:
    """
    Parse and process a single event with retry logic.

    On failure:
    - If attempts < MAX_RETRIES → push to retry queue
    - Otherwise → push to dead-letter queue
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.error(f"Invalid JSON in event queue: {raw[:200]}")
        await r.rpush(DEAD_QUEUE, raw)
        return

    attempt = data.get("_attempt", 1)

    try:
        await process_event(data)
    except Exception:
        logger.exception(
            f"Failed to process event type={data.get('type')} "
            f"(attempt {attempt}/{MAX_RETRIES})"
        )
        if attempt < MAX_RETRIES:
            data["_attempt"] = attempt + 1
            await r.rpush(RETRY_QUEUE, json.dumps(data))
        else:
            await r.rpush(DEAD_QUEUE, json.dumps(data))
