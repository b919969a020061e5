# backend/app/schemas/hours.py

from pydantic import BaseModel, Field


class DayHoursWrite(BaseModel):
    day: int = Field(ge=0, le=6, description="0 = Monday … 6 = Sunday")
    is_open: bool = True
    open_time: str = "09:00"
    close_time: str = "18:00"


class HoursUpdate(BaseModel):
    hours: list[DayHoursWrite]


class DayHoursRead(BaseModel):
    day: int
    is_open: bool
    open_time: str
    close_time: str

    model_config = {"from_attributes": True}
