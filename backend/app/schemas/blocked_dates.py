# backend/app/schemas/blocked_dates.py

from datetime import date
from typing import Optional
from pydantic import BaseModel


class BlockedDateCreate(BaseModel):
    shop_id: int
    date: date
    staff_id: Optional[int] = None  # None = whole shop
    reason: Optional[str] = None

    model_config = {"from_attributes": True}


class BlockedDateRead(BaseModel):
    id: int

    shop_id: int
    date: date
    staff_id: Optional[int] = None
    reason: Optional[str] = None

    model_config = {"from_attributes": True}
