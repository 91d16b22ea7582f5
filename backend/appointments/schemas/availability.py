# backend/appointments/schemas/availability.py

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class WeeklyWindowCreate(BaseModel):
    business_id: int
    weekday: int = Field(ge=1, le=7, description="1 = Monday ... 7 = Sunday")
    start_time: str
    end_time: str

    model_config = {"from_attributes": True}


class WeeklyWindowRead(BaseModel):
    id: int
    business_id: int
    weekday: int
    start_time: str
    end_time: str

    model_config = {"from_attributes": True}


class ExceptionCreate(BaseModel):
    """
    Date override. A range creates one row per date.

    No hours + is_available=False closes the whole day.
    """
    business_id: int
    date_start: date
    date_end: Optional[date] = None
    is_available: bool = False
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def validate_hours(self):
        if bool(self.start_time) != bool(self.end_time):
            raise ValueError("start_time and end_time must be given together")
        return self

    model_config = {"from_attributes": True}


class ExceptionRead(BaseModel):
    id: int
    business_id: int
    date: str
    is_available: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None

    model_config = {"from_attributes": True}
