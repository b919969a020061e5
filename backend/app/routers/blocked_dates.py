# backend/app/routers/blocked_dates.py
# PATCH = not exposed, DELETE = ALLOWED (hard)

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import BlockedDates as DBBlockedDates
from ..models.generated import Shops, Staff
from ..redis_client import redis_client
from ..schemas.blocked_dates import BlockedDateCreate, BlockedDateRead
from ..services.slots import invalidate_shop_cache

router = APIRouter(prefix="/blocked_dates", tags=["blocked_dates"])


@router.get("/", response_model=list[BlockedDateRead])
def list_blocked_dates(
    shop_id: int,
    staff_id: int | None = None,
    from_date: date | None = None,
    db: Session = Depends(get_db),
):
    query = db.query(DBBlockedDates).filter(DBBlockedDates.shop_id == shop_id)
    if staff_id is not None:
        query = query.filter(DBBlockedDates.staff_id == staff_id)
    if from_date is not None:
        query = query.filter(DBBlockedDates.date >= from_date)
    return query.order_by(DBBlockedDates.date).all()


@router.post(
    "/", response_model=BlockedDateRead, status_code=status.HTTP_201_CREATED
)
def create_blocked_date(
    data: BlockedDateCreate,
    db: Session = Depends(get_db),
):
    if db.get(Shops, data.shop_id) is None:
        raise HTTPException(status_code=404, detail="Not found")
    if data.staff_id is not None:
        staff = db.get(Staff, data.staff_id)
        if staff is None or staff.shop_id != data.shop_id:
            raise HTTPException(status_code=404, detail="Not found")

    obj = DBBlockedDates(**data.model_dump())
    db.add(obj)
    db.commit()
    db.refresh(obj)

    # Staff blocks are not part of the cached shop grid
    if obj.staff_id is None:
        invalidate_shop_cache(redis_client, obj.shop_id, [obj.date])
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_blocked_date(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBBlockedDates, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")

    shop_id, blocked_date, staff_id = obj.shop_id, obj.date, obj.staff_id
    db.delete(obj)
    db.commit()

    if staff_id is None:
        invalidate_shop_cache(redis_client, shop_id, [blocked_date])
