# backend/appointments/services/slots/calculator.py
"""
Level 1: effective open windows of a business on a date.

Contains:
✓ weekly availability (by ISO weekday)
✓ availability exceptions for the date (override the weekly windows)
✓ all-day closures

Does NOT contain:
✗ Bookings (checked at Level 2, always live)
✗ Service duration, buffer, blackouts (Level 2)
✗ Advance / horizon limits (Level 2)
"""

import logging
from datetime import date

from redis import Redis, RedisError

from .config import BookingConfig, get_booking_config
from .records import AllDayEvent, BUSINESS_CLOSED, DayWindows, ExceptionWindow, Window
from .redis_store import WindowsRedisStore
from .repository import AvailabilityRepository
from .timeutils import normalize_time_str

logger = logging.getLogger(__name__)

FULL_DAY = Window("00:00", "24:00")


def calculate_day_windows(
    repo: AvailabilityRepository,
    business_id: int,
    target_date: date,
    config: BookingConfig | None = None,
    redis: Redis | None = None,
) -> DayWindows:
    """
    Effective windows for `target_date`, using the Redis cache when available.

    A cache failure never fails the request: the windows are recomputed.
    """
    config = config or get_booking_config()

    if redis is None:
        return resolve_day_windows(repo, business_id, target_date)

    store = WindowsRedisStore(redis, config)
    try:
        cached = store.get_day_windows(business_id, target_date)
    except (RedisError, ValueError, KeyError):
        logger.exception(f"Windows cache read failed for business={business_id} date={target_date}")
        cached = None

    if cached is not None:
        return cached

    # Cache miss: calculate and store
    logger.debug(f"Windows cache miss for business={business_id} date={target_date}")
    day_windows = resolve_day_windows(repo, business_id, target_date)
    try:
        store.store_day_windows(business_id, target_date, day_windows)
    except RedisError:
        logger.exception(f"Windows cache write failed for business={business_id} date={target_date}")
    return day_windows


def resolve_day_windows(
    repo: AvailabilityRepository,
    business_id: int,
    target_date: date,
) -> DayWindows:
    """
    Merge weekly availability with exceptions for one date.

    Any exception for the date replaces the weekly windows entirely: only the
    available exceptions open the day; with none available the day is closed.
    """
    exceptions = repo.get_exceptions(business_id, target_date)
    all_day_events = tuple(
        AllDayEvent(date=target_date, reason=exc.reason or BUSINESS_CLOSED)
        for exc in exceptions
        if exc.is_all_day_closure
    )

    if exceptions:
        windows = tuple(
            _exception_window(exc) for exc in exceptions if exc.is_available
        )
        return DayWindows(windows=windows, all_day_events=all_day_events)

    weekly = repo.get_recurring_availability(business_id, target_date.isoweekday())
    windows = tuple(
        Window(normalize_time_str(w.start_time), normalize_time_str(w.end_time))
        for w in weekly
    )
    return DayWindows(windows=windows, all_day_events=all_day_events)


def _exception_window(exc: ExceptionWindow) -> Window:
    """An available exception without hours opens the whole day."""
    if not exc.start_time and not exc.end_time:
        return FULL_DAY
    start = normalize_time_str(exc.start_time or FULL_DAY.start_time)
    end = normalize_time_str(exc.end_time or FULL_DAY.end_time)
    return Window(start, end)
