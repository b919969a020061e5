# backend/app/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from pydantic import BaseModel, Field


class SlotAvailability(BaseModel):
    """A bookable start time and the staff who can take it."""
    time: str  # "9:15 AM"
    staff_ids: list[int]


class SlotsDayResponse(BaseModel):
    """Response with slots for a day (Level 2)."""
    shop_id: int
    service_id: int
    staff_id: int | None = None
    date: date
    offset_minutes: int

    service_duration_min: int
    slots_needed: int
    pool_size: int
    pool_degraded: bool = Field(
        default=False,
        description="True when no staff is qualified and every active staff member was used",
    )

    slots: list[str] = Field(description="Every slot of the open window")
    unavailable: list[str] = Field(description="Slots to disable in the picker")
    available_times: list[SlotAvailability] = Field(
        description="Starts where the whole appointment fits with at least one staff member"
    )

    model_config = {"from_attributes": True}


class SlotsDayStatus(BaseModel):
    """Status of a single day in calendar."""
    date: date
    is_open: bool
    is_blocked: bool = False
    reason: str | None = None
    open_slots_count: int = 0

    model_config = {"from_attributes": True}


class SlotsCalendarResponse(BaseModel):
    """Response with calendar of days inside the booking window."""
    shop_id: int
    staff_id: int | None = None
    start_date: date
    end_date: date
    days: list[SlotsDayStatus]

    # Metadata
    booking_window_days: int
    slot_step_minutes: int = Field(description="Grid step in minutes")

    model_config = {"from_attributes": True}


class CalendarResolveResponse(BaseModel):
    """Effective open window for the shop or one staff member."""
    shop_id: int
    staff_id: int | None = None
    date: date
    is_open: bool
    open_time: str | None = None   # "HH:MM"
    close_time: str | None = None
    source: str | None = Field(default=None, description="'shop' or 'staff'")
    reason: str | None = None


class WalkInResponse(BaseModel):
    is_open: bool
    available_count: int
    total_working_count: int
    names: list[str]
    message: str
