# backend/appointments/services/slots/admission.py
"""
Booking admission: validate a booking request right before it is written.

Rules, first failure wins:
1. user_id and date are required
2. end_time strictly after start_time (when both given)
3. no live booking with the same (user, date, start_time)
4. slot-aware path only: per-user daily limit and group capacity,
   re-read from live data at commit time

Rule 4 reads under a row lock on the service, taken in the same transaction
that inserts the booking, so concurrent admissions for one service are
serialized on databases with row locking (PostgreSQL). SQLite ignores
FOR UPDATE; there the partial unique index only stops same-user duplicates.

A reschedule runs rules 2-4 again for the new values, ignoring the booking
being changed.
"""

import logging
from dataclasses import replace
from typing import Optional

from ...errors import Conflict, InvalidRequest
from ...models.generated import Bookings
from ..events import emit_event
from .availability import booked_spans, overlapping_group_count
from .records import FULLY_BOOKED, USER_LIMIT_REACHED, BookingCandidate
from .repository import CANCELLED, DUPLICATE_BOOKING, AvailabilityRepository
from .timeutils import MINUTES_PER_DAY, minutes_to_time_str, parse_date, time_str_to_minutes

logger = logging.getLogger(__name__)

_UNSET = object()


def admit_booking(
    repo: AvailabilityRepository,
    business_id: int,
    candidate: BookingCandidate,
    *,
    slot_aware: bool = True,
) -> Bookings:
    """
    Validate and persist a booking.

    Args:
        repo: Repository bound to the request's session
        business_id: Owning business
        candidate: Requested booking
        slot_aware: Re-run the per-user limit and capacity checks

    Raises:
        InvalidRequest, Conflict, NotFound, StorageError
    """
    # Rule 1
    if candidate.user_id is None or not candidate.date:
        raise InvalidRequest("user_id and date are required")

    candidate = _check_rules(repo, business_id, candidate, slot_aware=slot_aware)

    booking = repo.create_booking(business_id, candidate)
    logger.info(
        f"Booking admitted: booking_id={booking.id} business={business_id} "
        f"user={candidate.user_id} date={candidate.date} start={candidate.start_time}"
    )

    emit_event("booking_created", {
        "booking_id": booking.id,
        "business_id": business_id,
        "user_id": candidate.user_id,
    })
    return booking


def reschedule_booking(
    repo: AvailabilityRepository,
    business_id: int,
    booking_id: int,
    *,
    date=_UNSET,
    start_time=_UNSET,
    end_time=_UNSET,
    group_count=_UNSET,
    notes=_UNSET,
    slot_aware: bool = True,
) -> Bookings:
    """
    Change the date, times, party size or notes of a live booking.

    Omitted fields keep their stored value. Moving the start without giving
    an end recomputes the end from the service duration.
    """
    booking = repo.get_booking(business_id, booking_id)
    if booking.status == CANCELLED:
        raise Conflict("Cancelled bookings cannot be changed")

    new_start = booking.start_time if start_time is _UNSET else start_time
    if end_time is not _UNSET:
        new_end = end_time
    elif new_start != booking.start_time:
        new_end = None
    else:
        new_end = booking.end_time

    candidate = BookingCandidate(
        user_id=booking.user_id,
        date=booking.date if date is _UNSET else date,
        start_time=new_start,
        end_time=new_end,
        service_id=booking.service_id,
        group_count=booking.group_count if group_count is _UNSET else group_count,
        notes=booking.notes if notes is _UNSET else notes,
    )
    if not candidate.date:
        raise InvalidRequest("user_id and date are required")

    candidate = _check_rules(
        repo, business_id, candidate, slot_aware=slot_aware, exclude_id=booking.id
    )

    booking = repo.update_booking(
        booking,
        date=candidate.date,
        start_time=candidate.start_time,
        end_time=candidate.end_time,
        group_count=candidate.group_count,
        notes=candidate.notes,
    )
    logger.info(
        f"Booking rescheduled: booking_id={booking_id} business={business_id} "
        f"date={candidate.date} start={candidate.start_time}"
    )
    emit_event("booking_updated", {
        "booking_id": booking_id,
        "business_id": business_id,
        "user_id": booking.user_id,
    })
    return booking


def _check_rules(
    repo: AvailabilityRepository,
    business_id: int,
    candidate: BookingCandidate,
    *,
    slot_aware: bool,
    exclude_id: Optional[int] = None,
) -> BookingCandidate:
    """Rules 2-4. Returns the candidate with normalized date and times."""
    if candidate.group_count is None or candidate.group_count < 1:
        raise InvalidRequest("group_count must be at least 1")

    target_date = parse_date(candidate.date)
    start = time_str_to_minutes(candidate.start_time) if candidate.start_time else None
    end = time_str_to_minutes(candidate.end_time) if candidate.end_time else None

    # Rule 2
    if start is not None and end is not None and end <= start:
        raise InvalidRequest("end_time must be after start_time")

    candidate = replace(
        candidate,
        date=target_date.isoformat(),
        start_time=minutes_to_time_str(start) if start is not None else None,
        end_time=minutes_to_time_str(end) if end is not None else None,
    )

    # Rule 3
    if repo.find_booking(business_id, candidate.user_id, target_date, candidate.start_time, exclude_id):
        _reject(business_id, candidate, DUPLICATE_BOOKING)

    # Rule 4
    if slot_aware and candidate.service_id is not None:
        candidate = _check_slot_rules(repo, business_id, candidate, start, end, exclude_id)

    return candidate


def _check_slot_rules(
    repo: AvailabilityRepository,
    business_id: int,
    candidate: BookingCandidate,
    start: int | None,
    end: int | None,
    exclude_id: Optional[int] = None,
) -> BookingCandidate:
    service = repo.get_service(business_id, candidate.service_id, lock=True)
    target_date = parse_date(candidate.date)

    limit = service.max_bookings_per_user_per_day
    if limit and repo.count_user_bookings(business_id, candidate.user_id, target_date, exclude_id) >= limit:
        _reject(business_id, candidate, USER_LIMIT_REACHED)

    if start is None:
        return candidate

    if end is None:
        end = start + service.duration_minutes
        if end > MINUTES_PER_DAY:
            raise InvalidRequest("Booking must end on the same day")
        candidate = replace(candidate, end_time=minutes_to_time_str(end))

    spans = booked_spans(repo.get_bookings(business_id, service.id, target_date, exclude_id), service)
    booked_count = overlapping_group_count(spans, start, end, service.buffer_minutes)

    capacity = service.capacity
    if capacity is None:
        if booked_count > 0:
            _reject(business_id, candidate, FULLY_BOOKED)
    elif booked_count + candidate.group_count > capacity:
        _reject(
            business_id,
            candidate,
            f"{FULLY_BOOKED} ({booked_count}/{capacity}, requested {candidate.group_count})",
        )

    return candidate


def _reject(business_id: int, candidate: BookingCandidate, detail: str) -> None:
    logger.warning(
        f"Booking rejected: business={business_id} user={candidate.user_id} "
        f"date={candidate.date} start={candidate.start_time}: {detail}"
    )
    raise Conflict(detail)
