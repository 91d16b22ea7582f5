# backend/appointments/services/slots/records.py
"""
Plain value records passed between the repository, the engine and admission.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .timeutils import time_str_to_minutes

MORNING = "Morning"
AFTERNOON = "Afternoon"
EVENING = "Evening"

FULLY_BOOKED = "Fully booked"
USER_LIMIT_REACHED = "User booking limit reached for this day"
BUSINESS_CLOSED = "Business closed"


@dataclass(frozen=True)
class Window:
    """Local-clock window, "HH:MM" strings."""
    start_time: str
    end_time: str

    @property
    def start_minutes(self) -> int:
        return time_str_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_str_to_minutes(self.end_time)


@dataclass(frozen=True)
class ExceptionWindow:
    date: date
    is_available: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None

    @property
    def is_all_day_closure(self) -> bool:
        return not self.start_time and not self.end_time and not self.is_available


@dataclass(frozen=True)
class ServiceRecord:
    id: int
    business_id: int
    duration_minutes: int
    buffer_minutes: int = 0
    group_size: Optional[int] = None
    max_bookings_per_user_per_day: Optional[int] = None
    blackout_periods: tuple[Window, ...] = ()

    @property
    def capacity(self) -> Optional[int]:
        """Seats per slot, None when the service is exclusive."""
        if self.group_size and self.group_size > 1:
            return self.group_size
        return None


@dataclass(frozen=True)
class BookedInterval:
    start_time: str
    end_time: str
    group_count: int = 1


@dataclass(frozen=True)
class BookingCandidate:
    """Booking request as handed to admission."""
    user_id: Optional[int]
    date: Optional[str]
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    service_id: Optional[int] = None
    group_count: int = 1
    notes: Optional[str] = None


@dataclass(frozen=True)
class AllDayEvent:
    date: date
    reason: str = BUSINESS_CLOSED
    type: str = "all-day"
    is_bookable: bool = False


@dataclass(frozen=True)
class DayWindows:
    """Level 1 result: effective open windows of a business for one date."""
    windows: tuple[Window, ...] = ()
    all_day_events: tuple[AllDayEvent, ...] = ()

    def to_dict(self) -> dict:
        return {
            "windows": [[w.start_time, w.end_time] for w in self.windows],
            "all_day_events": [
                {"date": e.date.isoformat(), "reason": e.reason}
                for e in self.all_day_events
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DayWindows":
        return cls(
            windows=tuple(Window(start, end) for start, end in data.get("windows", [])),
            all_day_events=tuple(
                AllDayEvent(date=date.fromisoformat(e["date"]), reason=e["reason"])
                for e in data.get("all_day_events", [])
            ),
        )


@dataclass(frozen=True)
class Slot:
    start_local: datetime
    end_local: datetime
    start_utc: datetime
    end_utc: datetime
    is_bookable: bool
    reason: str
    booked_count: int
    label: str


@dataclass
class SlotResult:
    timezone: str
    slot_duration: int
    buffer: int
    slots: list[Slot] = field(default_factory=list)
    all_day_events: list[AllDayEvent] = field(default_factory=list)
    slot_labels: list[str] = field(default_factory=list)
    next_available_slot: Optional[Slot] = None
