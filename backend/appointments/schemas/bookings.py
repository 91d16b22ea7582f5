# backend/appointments/schemas/bookings.py

import re
from typing import Optional
from pydantic import BaseModel, Field, field_validator

_CLOCK_RE = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")


def _clock(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not _CLOCK_RE.match(v):
        raise ValueError("Time must be in HH:MM format")
    return v


class BookingCreate(BaseModel):
    business_id: int
    service_id: Optional[int] = None
    user_id: Optional[int] = None

    date: Optional[str] = Field(None, description="YYYY-MM-DD")
    start_time: Optional[str] = Field(None, description="HH:MM, local to the business")
    end_time: Optional[str] = Field(None, description="HH:MM, local to the business")

    group_count: int = 1
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock(cls, v: Optional[str]) -> Optional[str]:
        return _clock(v)

    model_config = {"from_attributes": True}


class BookingRead(BaseModel):
    id: int

    business_id: int
    service_id: Optional[int] = None
    user_id: int

    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    group_count: int
    status: str
    notes: Optional[str] = None

    created_at: Optional[str] = None
    deleted_at: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingUpdate(BaseModel):
    """Reschedule or edit. Omitted fields stay as stored."""
    date: Optional[str] = Field(None, description="YYYY-MM-DD")
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    group_count: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock(cls, v: Optional[str]) -> Optional[str]:
        return _clock(v)

    model_config = {"from_attributes": True}


class BookingPage(BaseModel):
    data: list[BookingRead]
    page: int
    page_size: int
    total: int
