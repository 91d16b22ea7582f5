# backend/appointments/schemas/services.py

import json
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class BlackoutPeriod(BaseModel):
    """Daily sub-window in which the service cannot start or run."""
    start_time: str
    end_time: str


def _stored_blackouts(v):
    # services.blackout_periods is JSON text: [{"startTime": .., "endTime": ..}]
    if v is None:
        return []
    if isinstance(v, str):
        try:
            v = json.loads(v or "[]")
        except json.JSONDecodeError:
            return []
    periods = []
    for item in v if isinstance(v, list) else []:
        if isinstance(item, BlackoutPeriod):
            periods.append(item)
            continue
        if isinstance(item, dict):
            start = item.get("start_time") or item.get("startTime")
            end = item.get("end_time") or item.get("endTime")
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            start, end = item
        else:
            continue
        if isinstance(start, str) and isinstance(end, str):
            periods.append({"start_time": start, "end_time": end})
    return periods


class ServiceCreate(BaseModel):
    business_id: int
    name: str
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0)
    buffer_minutes: int = Field(0, ge=0)
    group_size: Optional[int] = Field(None, ge=1)
    max_bookings_per_user_per_day: Optional[int] = Field(None, ge=1)
    blackout_periods: list[BlackoutPeriod] = []
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Service name must be at least 2 characters")
        return v

    model_config = {"from_attributes": True}


class ServiceUpdate(BaseModel):
    is_active: Optional[bool] = None
    name: Optional[str] = None
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    buffer_minutes: Optional[int] = Field(None, ge=0)
    group_size: Optional[int] = Field(None, ge=1)
    max_bookings_per_user_per_day: Optional[int] = Field(None, ge=1)
    blackout_periods: Optional[list[BlackoutPeriod]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Service name must be at least 2 characters")
        return v

    model_config = {"from_attributes": True}


class ServiceRead(BaseModel):
    id: int
    business_id: int
    name: str
    description: Optional[str] = None
    duration_minutes: int
    buffer_minutes: int
    group_size: Optional[int] = None
    max_bookings_per_user_per_day: Optional[int] = None
    blackout_periods: list[BlackoutPeriod] = []
    is_active: bool

    @field_validator("blackout_periods", mode="before")
    @classmethod
    def parse_blackouts(cls, v):
        return _stored_blackouts(v)

    model_config = {"from_attributes": True}
