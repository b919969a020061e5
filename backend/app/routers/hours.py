# backend/app/routers/hours.py
# PUT replaces the given weekdays; other weekdays are left as they are.

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import redis_client
from ..schemas.hours import DayHoursRead, HoursUpdate
from ..services.hours import replace_shop_hours, replace_staff_hours
from ..services.slots.errors import ConfigurationError, ShopNotFound, StaffNotFound

router = APIRouter(prefix="/hours", tags=["hours"])


@router.put("/shop/{shop_id}", response_model=list[DayHoursRead])
def put_shop_hours(
    shop_id: int,
    data: HoursUpdate,
    db: Session = Depends(get_db),
):
    try:
        return replace_shop_hours(
            db, shop_id, [h.model_dump() for h in data.hours], redis=redis_client
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ShopNotFound:
        raise HTTPException(status_code=404, detail="Not found")


@router.put("/staff/{staff_id}", response_model=list[DayHoursRead])
def put_staff_hours(
    staff_id: int,
    data: HoursUpdate,
    db: Session = Depends(get_db),
):
    try:
        return replace_staff_hours(db, staff_id, [h.model_dump() for h in data.hours])
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StaffNotFound:
        raise HTTPException(status_code=404, detail="Not found")
