# backend/appointments/routers/services.py
# PATCH = ALLOWED, DELETE = archive (is_active = 0).
# Service fields are read live by the slot engine: nothing here touches the
# cached day windows.

import json

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import Conflict, InvalidRequest, NotFound
from ..models.generated import Services as DBServices
from ..schemas.services import (
    BlackoutPeriod,
    ServiceCreate,
    ServiceRead,
    ServiceUpdate,
)
from ..services.slots.timeutils import normalize_window

router = APIRouter(prefix="/services", tags=["services"])

NOT_NULL_FIELDS = ("name", "duration_minutes", "buffer_minutes", "is_active")


def _get_service(db: Session, business_id: int, id: int) -> DBServices:
    obj = (
        db.query(DBServices)
        .filter(DBServices.id == id, DBServices.business_id == business_id)
        .first()
    )
    if not obj:
        raise NotFound("Service not found")
    return obj


def _check_name_free(db: Session, business_id: int, name: str, exclude_id: int | None = None):
    query = db.query(DBServices).filter(
        DBServices.business_id == business_id,
        DBServices.is_active == 1,
        func.lower(DBServices.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(DBServices.id != exclude_id)
    if query.first():
        raise Conflict("Service name already exists")


def _blackouts_json(periods: list[BlackoutPeriod] | None) -> str:
    stored = []
    for period in periods or []:
        start, end = normalize_window(period.start_time, period.end_time)
        stored.append({"startTime": start, "endTime": end})
    return json.dumps(stored)


@router.get("/", response_model=list[ServiceRead])
def list_services(
    business_id: int,
    include_archived: bool = False,
    db: Session = Depends(get_db),
):
    query = db.query(DBServices).filter(DBServices.business_id == business_id)
    if not include_archived:
        query = query.filter(DBServices.is_active == 1)
    return query.order_by(DBServices.name, DBServices.id).all()


@router.get("/{id}", response_model=ServiceRead)
def get_service(id: int, business_id: int, db: Session = Depends(get_db)):
    return _get_service(db, business_id, id)


@router.post("/", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceCreate,
    db: Session = Depends(get_db),
):
    _check_name_free(db, data.business_id, data.name)

    fields = data.model_dump(exclude={"blackout_periods", "is_active"})
    obj = DBServices(
        **fields,
        blackout_periods=_blackouts_json(data.blackout_periods),
        is_active=1 if data.is_active else 0,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@router.patch("/{id}", response_model=ServiceRead)
def update_service(
    id: int,
    business_id: int,
    data: ServiceUpdate,
    db: Session = Depends(get_db),
):
    obj = _get_service(db, business_id, id)
    changes = data.model_dump(exclude_unset=True, exclude={"blackout_periods"})

    for field in NOT_NULL_FIELDS:
        if field in changes and changes[field] is None:
            raise InvalidRequest(f"{field} cannot be null")

    name = changes.get("name", obj.name)
    renamed = name.lower() != obj.name.lower()
    unarchived = changes.get("is_active") and not obj.is_active
    if renamed or unarchived:
        _check_name_free(db, business_id, name, exclude_id=id)
    if "is_active" in changes:
        changes["is_active"] = 1 if changes["is_active"] else 0
    if "blackout_periods" in data.model_fields_set:
        changes["blackout_periods"] = _blackouts_json(data.blackout_periods)

    for field, value in changes.items():
        setattr(obj, field, value)

    db.commit()
    db.refresh(obj)
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_service(id: int, business_id: int, db: Session = Depends(get_db)):
    obj = _get_service(db, business_id, id)

    obj.is_active = 0
    db.commit()
