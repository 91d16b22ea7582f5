# backend/appointments/services/slots/availability.py
"""
Level 2: Service availability calculation.

Walks the day's open windows (Level 1) in steps of the slot granularity and
labels every candidate start of the service's duration.

Takes into account:
- Effective day windows (weekly availability or date exceptions)
- Service blackout periods
- Minimum advance notice / maximum days ahead
- Existing bookings (+ buffer on both sides) and group capacity
- Per-user daily booking limit
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from redis import Redis

from ...errors import InvalidRequest, OutOfWindow
from .calculator import calculate_day_windows
from .config import BookingConfig, get_booking_config
from .records import (
    AFTERNOON,
    EVENING,
    FULLY_BOOKED,
    MORNING,
    USER_LIMIT_REACHED,
    BookedInterval,
    ServiceRecord,
    Slot,
    SlotResult,
)
from .repository import AvailabilityRepository
from .timeutils import (
    UTC,
    get_zone,
    intervals_overlap,
    is_nonexistent,
    local_datetime,
    parse_date,
    time_str_to_minutes,
    to_utc,
)

logger = logging.getLogger(__name__)

TOO_SOON = "Cannot book with insufficient advance notice"
TOO_FAR = "Cannot book this far in advance"


def calculate_service_availability(
    repo: AvailabilityRepository,
    business_id: int,
    service_id: int | None,
    target_date: date | str | None,
    timezone: str | None = None,
    *,
    config: BookingConfig | None = None,
    user_id: int | None = None,
    redis: Redis | None = None,
    now: datetime | None = None,
) -> SlotResult:
    """
    Calculate bookable time slots for a service on a date.

    Slots come out in window order, then chronologically within a window.
    Overlapping windows are not merged, so their slots may repeat.
    Without an explicit timezone the business's own zone is used, then the
    configured default.

    Raises:
        InvalidRequest: missing/malformed date, service or timezone
        OutOfWindow: date too soon or too far ahead
        NotFound: service absent, inactive or owned by another business
        StorageError: repository failure (no partial result)
    """
    config = config or get_booking_config()
    if not target_date or not service_id:
        raise InvalidRequest("date and service_id are required")

    target_date = parse_date(target_date)
    tz_name = timezone or repo.get_business_timezone(business_id) or config.default_timezone
    tz = get_zone(tz_name)
    now_utc = to_utc(now) if now else datetime.now(UTC)

    check_booking_window(target_date, tz, now_utc, config)

    # Step 1: service + effective windows
    service = repo.get_service(business_id, service_id)
    day_windows = calculate_day_windows(repo, business_id, target_date, config, redis)

    result = SlotResult(
        timezone=tz_name,
        slot_duration=service.duration_minutes,
        buffer=service.buffer_minutes,
        all_day_events=list(day_windows.all_day_events),
    )
    if not day_windows.windows:
        logger.info(
            f"No open windows: business={business_id} service={service_id} date={target_date}"
        )
        return result

    # Step 2: blackouts, anchored to the requested date
    blackouts = [(w.start_minutes, w.end_minutes) for w in service.blackout_periods]

    # Step 3: live bookings and the user's daily count, one snapshot per request
    booked = booked_spans(repo.get_bookings(business_id, service.id, target_date), service)
    user_limit_reached = _user_limit_reached(repo, service, business_id, user_id, target_date)

    # Step 4: walk every window
    earliest_end = now_utc + timedelta(minutes=config.min_advance_minutes)
    duration = service.duration_minutes
    buffer = service.buffer_minutes
    labels: list[str] = []

    for window in day_windows.windows:
        last_start = window.end_minutes - duration - buffer
        for cursor in range(window.start_minutes, last_start + 1, config.slot_step_minutes):
            slot_start = local_datetime(target_date, cursor, tz)
            if is_nonexistent(slot_start):
                continue

            end_minutes = cursor + duration
            if any(intervals_overlap(cursor, end_minutes, b_start, b_end) for b_start, b_end in blackouts):
                continue

            slot_end = local_datetime(target_date, end_minutes, tz)
            if to_utc(slot_end) < earliest_end:
                continue

            booked_count = overlapping_group_count(booked, cursor, end_minutes, buffer)
            is_bookable, reason = slot_eligibility(booked_count, service.capacity)

            if is_bookable and user_limit_reached:
                is_bookable, reason = False, USER_LIMIT_REACHED

            label = slot_label(slot_start.hour)
            if label not in labels:
                labels.append(label)

            slot = Slot(
                start_local=slot_start,
                end_local=slot_end,
                start_utc=to_utc(slot_start),
                end_utc=to_utc(slot_end),
                is_bookable=is_bookable,
                reason=reason,
                booked_count=booked_count,
                label=label,
            )
            if is_bookable and result.next_available_slot is None:
                result.next_available_slot = slot
            result.slots.append(slot)

    result.slot_labels = labels

    logger.info(
        f"Computed {len(result.slots)} slot(s): business={business_id} "
        f"service={service_id} date={target_date} tz={tz_name}"
    )
    return result


# ── Shared primitives (also used by admission) ───────────────────────────


def check_booking_window(
    target_date: date,
    tz: ZoneInfo,
    now_utc: datetime,
    config: BookingConfig,
) -> None:
    """
    Reject dates before the advance-notice day or beyond the horizon.

    The advance check is day-granular: the earliest bookable date is the
    local day containing now + min_advance_minutes.
    """
    earliest_day = (now_utc + timedelta(minutes=config.min_advance_minutes)).astimezone(tz).date()
    if target_date < earliest_day:
        raise OutOfWindow(TOO_SOON)

    day_start = to_utc(local_datetime(target_date, 0, tz))
    if day_start > now_utc + timedelta(days=config.max_days_in_future):
        raise OutOfWindow(TOO_FAR)


def booked_spans(bookings: list[BookedInterval], service: ServiceRecord) -> list[tuple[int, int, int]]:
    """(start_min, end_min, group_count) per booking; missing end → start + duration."""
    spans = []
    for booking in bookings:
        start = time_str_to_minutes(booking.start_time)
        end = time_str_to_minutes(booking.end_time) if booking.end_time else start
        if end <= start:
            end = start + service.duration_minutes
        spans.append((start, end, booking.group_count or 1))
    return spans


def overlapping_group_count(
    spans: list[tuple[int, int, int]],
    slot_start: int,
    slot_end: int,
    buffer: int,
) -> int:
    """
    Seats taken around a slot.

    A booking occupies [start - buffer, end + buffer); the slot needs
    [slot_start, slot_end + buffer).
    """
    return sum(
        group_count
        for b_start, b_end, group_count in spans
        if intervals_overlap(slot_start, slot_end + buffer, b_start - buffer, b_end + buffer)
    )


def slot_eligibility(booked_count: int, capacity: Optional[int]) -> tuple[bool, str]:
    """(is_bookable, reason) from seats taken and seats available."""
    if booked_count <= 0:
        return True, ""
    if capacity is None or booked_count >= capacity:
        return False, FULLY_BOOKED
    return True, f"Partially booked ({booked_count}/{capacity})"


def slot_label(hour: int) -> str:
    if hour < 12:
        return MORNING
    if hour < 17:
        return AFTERNOON
    return EVENING


def _user_limit_reached(
    repo: AvailabilityRepository,
    service: ServiceRecord,
    business_id: int,
    user_id: int | None,
    target_date: date,
) -> bool:
    limit = service.max_bookings_per_user_per_day
    if user_id is None or not limit:
        return False
    return repo.count_user_bookings(business_id, user_id, target_date) >= limit
