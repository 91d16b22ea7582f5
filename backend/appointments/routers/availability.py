# backend/appointments/routers/availability.py
# Admin authoring of weekly windows and date exceptions.
# Every write invalidates the cached day windows it affects.

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import (
    Availability as DBAvailability,
    AvailabilityExceptions as DBAvailabilityExceptions,
)
from ..redis_client import get_redis
from ..schemas.availability import (
    ExceptionCreate,
    ExceptionRead,
    WeeklyWindowCreate,
    WeeklyWindowRead,
)
from ..services.slots import invalidate_business_cache
from ..services.slots.invalidator import get_affected_dates
from ..services.slots.timeutils import normalize_window, parse_date

router = APIRouter(prefix="/availability", tags=["availability"])


# ── Weekly windows ───────────────────────────────────────────────────────


@router.get("/weekly", response_model=list[WeeklyWindowRead])
def list_weekly_windows(business_id: int, db: Session = Depends(get_db)):
    return (
        db.query(DBAvailability)
        .filter(DBAvailability.business_id == business_id)
        .order_by(DBAvailability.weekday, DBAvailability.start_time)
        .all()
    )


@router.post("/weekly", response_model=WeeklyWindowRead, status_code=status.HTTP_201_CREATED)
def create_weekly_window(data: WeeklyWindowCreate, db: Session = Depends(get_db)):
    start_time, end_time = normalize_window(data.start_time, data.end_time)
    obj = DBAvailability(
        business_id=data.business_id,
        weekday=data.weekday,
        start_time=start_time,
        end_time=end_time,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)

    invalidate_business_cache(get_redis(), data.business_id)
    return obj


@router.delete("/weekly/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_weekly_window(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBAvailability, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    business_id = obj.business_id
    db.delete(obj)
    db.commit()

    invalidate_business_cache(get_redis(), business_id)


# ── Date exceptions ──────────────────────────────────────────────────────


@router.get("/exceptions", response_model=list[ExceptionRead])
def list_exceptions(business_id: int, db: Session = Depends(get_db)):
    return (
        db.query(DBAvailabilityExceptions)
        .filter(DBAvailabilityExceptions.business_id == business_id)
        .order_by(DBAvailabilityExceptions.date, DBAvailabilityExceptions.id)
        .all()
    )


@router.post(
    "/exceptions", response_model=list[ExceptionRead], status_code=status.HTTP_201_CREATED
)
def create_exceptions(data: ExceptionCreate, db: Session = Depends(get_db)):
    start_time = end_time = None
    if data.start_time and data.end_time:
        start_time, end_time = normalize_window(data.start_time, data.end_time)

    dates = get_affected_dates(data.date_start, data.date_end or data.date_start)
    objs = [
        DBAvailabilityExceptions(
            business_id=data.business_id,
            date=dt.isoformat(),
            is_available=1 if data.is_available else 0,
            start_time=start_time,
            end_time=end_time,
            reason=data.reason,
        )
        for dt in dates
    ]
    db.add_all(objs)
    db.commit()
    for obj in objs:
        db.refresh(obj)

    invalidate_business_cache(get_redis(), data.business_id, dates)
    return objs


@router.delete("/exceptions/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_exception(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBAvailabilityExceptions, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    business_id = obj.business_id
    affected = [parse_date(obj.date)]
    db.delete(obj)
    db.commit()

    invalidate_business_cache(get_redis(), business_id, affected)

