# backend/appointments/services/slots/timeutils.py
"""
Zone-aware date/time helpers used by the slots engine and booking admission.

Local clock times are handled as integer minutes from local midnight, so slot
walking steps through wall-clock time. Absolute comparisons go through UTC.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...errors import InvalidRequest

UTC = timezone.utc
MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
        raise InvalidRequest(f"Unknown timezone: {name}") from exc


def parse_date(value: date | str) -> date:
    """Accept a date or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise InvalidRequest(f"Invalid date: {value!r}, expected YYYY-MM-DD") from exc


def time_str_to_minutes(value: str) -> int:
    """
    "HH:MM" or "HH:MM:SS" → minutes from midnight.

    "24:00" is accepted as end of day.
    """
    match = _CLOCK_RE.match(str(value).strip())
    if not match:
        raise InvalidRequest(f"Invalid time: {value!r}, expected HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if minutes > 59 or seconds > 59 or hours > 24 or (hours == 24 and (minutes or seconds)):
        raise InvalidRequest(f"Invalid time: {value!r}")

    return hours * 60 + minutes


def minutes_to_time_str(minutes: int) -> str:
    """Minutes from midnight → "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time_str(value: str) -> str:
    """Canonical "HH:MM" form of a clock string."""
    return minutes_to_time_str(time_str_to_minutes(value))


def normalize_window(start_time: str, end_time: str) -> tuple[str, str]:
    """Canonical (start, end) pair; end must be strictly after start."""
    if time_str_to_minutes(end_time) <= time_str_to_minutes(start_time):
        raise InvalidRequest("end_time must be after start_time")
    return normalize_time_str(start_time), normalize_time_str(end_time)


def local_datetime(target_date: date, minutes: int, tz: ZoneInfo) -> datetime:
    """
    Wall-clock `minutes` after local midnight of `target_date`, in `tz`.

    Minutes past 24:00 roll into the next day. Ambiguous times resolve to the
    first occurrence (fold=0).
    """
    naive = datetime.combine(target_date, time()) + timedelta(minutes=minutes)
    return naive.replace(tzinfo=tz)


def parse_local(date_value: date | str, time_value: str, tz: ZoneInfo) -> datetime:
    """Local date + clock string in `tz` → aware datetime."""
    return local_datetime(parse_date(date_value), time_str_to_minutes(time_value), tz)


def is_nonexistent(dt: datetime) -> bool:
    """True when the wall-clock time falls in a DST gap of its zone."""
    roundtrip = dt.astimezone(UTC).astimezone(dt.tzinfo)
    return roundtrip.replace(tzinfo=None) != dt.replace(tzinfo=None)


def to_utc(dt: datetime) -> datetime:
    return dt.astimezone(UTC)


def format_instant(dt: datetime, tz: ZoneInfo | None = None) -> str:
    """ISO-8601 without microseconds, optionally converted to `tz` first."""
    if tz is not None:
        dt = dt.astimezone(tz)
    return dt.replace(microsecond=0).isoformat()


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Half-open overlap test. Works for datetimes and plain minute offsets."""
    return a_start < b_end and a_end > b_start


def add_minutes(dt: datetime, minutes: int) -> datetime:
    """Absolute-time addition, result kept in the original zone."""
    return (dt.astimezone(UTC) + timedelta(minutes=minutes)).astimezone(dt.tzinfo)


def diff_in_minutes(a: datetime, b: datetime) -> int:
    """Whole minutes elapsed from `b` to `a` (absolute time)."""
    delta = to_utc(a) - to_utc(b)
    return round(delta.total_seconds() / 60)


def start_of_day(dt: datetime, tz: ZoneInfo) -> datetime:
    """Local midnight of the day containing `dt` in `tz`."""
    return local_datetime(dt.astimezone(tz).date(), 0, tz)
