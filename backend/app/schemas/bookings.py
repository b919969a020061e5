# backend/app/schemas/bookings.py

import re
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

from ..services.slots.recurring import Cadence


class BookingCreate(BaseModel):
    shop_id: int
    service_id: int
    staff_id: Optional[int] = None  # None → "Any Available"

    customer_name: str = Field(min_length=1)
    customer_phone: str
    customer_email: Optional[str] = None

    appointment_time: datetime
    offset_minutes: Optional[int] = None

    recurring: Cadence = Cadence.NONE
    recurring_count: int = Field(default=1, ge=1)

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        digits = re.sub(r"\D", "", v)
        if len(digits) < 7:
            raise ValueError("Invalid phone number")
        return v.strip()


class BookingRead(BaseModel):
    id: int

    shop_id: int
    service_id: int
    staff_id: Optional[int] = None

    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None

    appointment_time: datetime
    duration_minutes: int

    status: str
    was_auto_assigned: bool
    recurring_group_id: Optional[str] = None
    offset_minutes: Optional[int] = None
    manage_token: str

    model_config = {"from_attributes": True}


class SeriesFailureRead(BaseModel):
    index: int
    start: datetime
    reason: str

    model_config = {"from_attributes": True}


class BookingCreateResponse(BaseModel):
    success: bool
    booking_ids: list[int]
    group_id: Optional[str] = None
    bookings: list[BookingRead]
    failures: list[SeriesFailureRead] = []


class BookingUpdate(BaseModel):
    """
    Admin update.

    Either an action, or staff_id alone for a reassignment
    (staff_id = null unassigns).
    """
    action: Optional[Literal["cancel", "reschedule", "complete", "noshow"]] = None
    new_time: Optional[datetime] = None
    staff_id: Optional[int] = None
    was_auto_assigned: bool = False


class RescheduleRequest(BaseModel):
    new_appointment_time: datetime
