# backend/app/routers/bookings.py
# Admin: GET, PATCH (lifecycle actions). Customers: POST, manage/{token}.

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..schemas.bookings import (
    BookingCreate,
    BookingCreateResponse,
    BookingRead,
    BookingUpdate,
    RescheduleRequest,
    SeriesFailureRead,
)
from ..services import bookings as booking_service
from ..services.events import emit_event
from ..services.ics import generate_ics
from ..services.slots.errors import (
    BookingNotFound,
    ConflictError,
    InvalidBookingAction,
    ServiceNotFound,
    ShopNotFound,
    StaffNotFound,
)
from ..services.slots.recurring import Cadence
from ..services.slots.types import BookingStatus

router = APIRouter(prefix="/bookings", tags=["bookings"])

NOT_FOUND = (ShopNotFound, ServiceNotFound, StaffNotFound, BookingNotFound)


@router.post(
    "/", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED
)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
):
    offset = settings.default_offset_minutes if data.offset_minutes is None else data.offset_minutes
    fields = dict(
        shop_id=data.shop_id,
        service_id=data.service_id,
        start=data.appointment_time,
        customer_name=data.customer_name,
        customer_phone=data.customer_phone,
        customer_email=data.customer_email,
        staff_id=data.staff_id,
        offset_minutes=offset,
    )

    try:
        if data.recurring == Cadence.NONE or data.recurring_count == 1:
            booking = booking_service.create_booking(db, **fields)
            result = booking_service.SeriesResult(group_id=None, bookings=[booking])
        else:
            result = booking_service.create_series(
                db, cadence=data.recurring, count=data.recurring_count, **fields
            )
    except NOT_FOUND:
        raise HTTPException(status_code=404, detail="Not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (InvalidBookingAction, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result.bookings:
        emit_event("booking_created", {
            "booking_id": result.bookings[0].id,
            "series_count": len(result.bookings),
            "cadence": data.recurring.value,
        })

    return BookingCreateResponse(
        success=bool(result.bookings),
        booking_ids=[b.id for b in result.bookings],
        group_id=result.group_id,
        bookings=[BookingRead.model_validate(b) for b in result.bookings],
        failures=[SeriesFailureRead.model_validate(f) for f in result.failures],
    )


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, db: Session = Depends(get_db)):
    try:
        return booking_service.get_booking(db, id)
    except BookingNotFound:
        raise HTTPException(status_code=404, detail="Not found")


@router.patch("/{id}", response_model=BookingRead)
def update_booking(
    id: int,
    data: BookingUpdate,
    db: Session = Depends(get_db),
):
    try:
        if data.action == "cancel":
            booking = booking_service.cancel_booking(db, id)
            emit_event("booking_cancelled", {"booking_id": id, "by": "shop"})

        elif data.action == "reschedule":
            if data.new_time is None:
                raise HTTPException(status_code=400, detail="new_time required")
            old_time = booking_service.get_booking(db, id).appointment_time
            booking = booking_service.reschedule_booking(
                db, id, data.new_time, now=datetime.utcnow()
            )
            emit_event("booking_rescheduled", {
                "booking_id": id,
                "old_time": old_time.isoformat(),
                "by": "shop",
            })

        elif data.action == "complete":
            booking = booking_service.complete_booking(db, id)

        elif data.action == "noshow":
            booking = booking_service.mark_noshow(db, id)

        elif "staff_id" in data.model_fields_set:
            booking = booking_service.reassign_staff(
                db, id, data.staff_id, was_auto_assigned=data.was_auto_assigned
            )

        else:
            raise HTTPException(status_code=400, detail="Invalid action")

    except NOT_FOUND:
        raise HTTPException(status_code=404, detail="Not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidBookingAction as e:
        raise HTTPException(status_code=400, detail=str(e))

    return booking


# ── Customer self-service ────────────────────────────────────────────────


def _get_manageable(db: Session, token: str, action: str):
    """Booking behind a manage link; only confirmed, upcoming ones can change."""
    try:
        booking = booking_service.get_booking_by_token(db, token)
    except BookingNotFound:
        raise HTTPException(status_code=404, detail="Not found")

    if booking.status != BookingStatus.CONFIRMED.value:
        raise HTTPException(status_code=400, detail=f"Booking is already {booking.status}")
    if booking.appointment_time <= datetime.utcnow():
        raise HTTPException(status_code=400, detail=f"Cannot {action} a past appointment")
    return booking


@router.post("/manage/{token}/cancel", response_model=BookingRead)
def cancel_by_token(token: str, db: Session = Depends(get_db)):
    booking = _get_manageable(db, token, "cancel")
    try:
        booking = booking_service.cancel_booking(db, booking.id)
    except InvalidBookingAction as e:
        raise HTTPException(status_code=400, detail=str(e))

    emit_event("booking_cancelled", {"booking_id": booking.id, "by": "customer"})
    return booking


@router.post("/manage/{token}/reschedule", response_model=BookingRead)
def reschedule_by_token(
    token: str,
    data: RescheduleRequest,
    db: Session = Depends(get_db),
):
    booking = _get_manageable(db, token, "reschedule")
    old_time = booking.appointment_time
    try:
        booking = booking_service.reschedule_booking(
            db, booking.id, data.new_appointment_time, now=datetime.utcnow()
        )
    except ConflictError:
        raise HTTPException(
            status_code=409,
            detail="This time slot is no longer available. Please choose another time.",
        )
    except InvalidBookingAction as e:
        raise HTTPException(status_code=400, detail=str(e))

    emit_event("booking_rescheduled", {
        "booking_id": booking.id,
        "old_time": old_time.isoformat(),
        "by": "customer",
    })
    return booking


@router.get("/{id}/ics")
def download_ics(id: int, db: Session = Depends(get_db)):
    try:
        booking = booking_service.get_booking(db, id)
    except BookingNotFound:
        raise HTTPException(status_code=404, detail="Not found")

    with_staff = f" with {booking.staff.name}" if booking.staff else ""
    body = generate_ics(
        title=f"{booking.service.name} at {booking.shop.name}",
        description=f"{booking.service.name}{with_staff}",
        location=booking.shop.name,
        start=booking.appointment_time,
        duration_minutes=booking.duration_minutes,
        uid=f"booking-{booking.id}@{booking.shop.slug}",
    )
    return Response(
        content=body,
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="booking-{booking.id}.ics"'},
    )
