# backend/appointments/routers/slots.py
"""
Slots API endpoints.

GET /slots/day - Bookable slots of a service on a day, with eligibility reasons
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import InvalidRequest
from ..redis_client import get_redis
from ..schemas.slots import AllDayEventInfo, SlotInfo, SlotsDayResponse
from ..services.slots import (
    AvailabilityRepository,
    calculate_service_availability,
    get_booking_config,
)
from ..services.slots.timeutils import parse_date


router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/day", response_model=SlotsDayResponse)
def get_slots_day(
    business_id: int,
    service_id: int | None = None,
    target_date: str | None = Query(None, alias="date"),
    timezone: str | None = None,
    slot_minutes: int | None = None,
    user_id: int | None = None,
    min_advance_minutes: int | None = None,
    max_days_in_future: int | None = None,
    db: Session = Depends(get_db),
):
    """Get time slots for a service on a specific day (Level 2)."""
    try:
        config = get_booking_config().with_overrides(
            slot_step_minutes=slot_minutes,
            min_advance_minutes=min_advance_minutes,
            max_days_in_future=max_days_in_future,
        )
    except ValueError as exc:
        raise InvalidRequest(str(exc)) from exc

    result = calculate_service_availability(
        AvailabilityRepository(db),
        business_id=business_id,
        service_id=service_id,
        target_date=target_date,
        timezone=timezone,
        config=config,
        user_id=user_id,
        redis=get_redis(),
    )

    return SlotsDayResponse(
        business_id=business_id,
        service_id=service_id,
        date=parse_date(target_date),
        timezone=result.timezone,
        slot_duration=result.slot_duration,
        buffer=result.buffer,
        slots=[SlotInfo.model_validate(s, from_attributes=True) for s in result.slots],
        all_day_events=[
            AllDayEventInfo.model_validate(e, from_attributes=True) for e in result.all_day_events
        ],
        slot_labels=result.slot_labels,
        next_available_slot=(
            SlotInfo.model_validate(result.next_available_slot, from_attributes=True)
            if result.next_available_slot
            else None
        ),
    )
