# backend/appointments/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class SlotInfo(BaseModel):
    """Information about a single slot."""
    start_local: datetime
    end_local: datetime
    start_utc: datetime
    end_utc: datetime
    is_bookable: bool
    reason: str = ""
    booked_count: int = 0
    label: str

    model_config = {"from_attributes": True}


class AllDayEventInfo(BaseModel):
    """A whole-day closure of the business."""
    type: str = "all-day"
    date: date
    is_bookable: bool = False
    reason: str

    model_config = {"from_attributes": True}


class SlotsDayResponse(BaseModel):
    """Response with detailed slots for a day (Level 2)."""
    business_id: int
    service_id: int
    date: date
    timezone: str
    slot_duration: int = Field(description="Service duration in minutes")
    buffer: int = Field(description="Buffer after each booking in minutes")
    slots: list[SlotInfo]
    all_day_events: list[AllDayEventInfo] = []
    slot_labels: list[str] = []
    next_available_slot: Optional[SlotInfo] = None

    model_config = {"from_attributes": True}
