"""
Booking lifecycle after admission: cancel, soft delete, restore, listings.

Soft-deleted rows stay in the table until purged elsewhere and are ignored
by slot computation; restoring one can collide with a newer live booking of
the same slot, which surfaces as Conflict.
"""

import logging
from datetime import date
from typing import Optional

from ..errors import InvalidRequest
from ..models.generated import Bookings
from .events import emit_event
from .slots.repository import AvailabilityRepository, CANCELLED, utc_now_str

logger = logging.getLogger(__name__)


def get_booking(repo: AvailabilityRepository, business_id: int, booking_id: int) -> Bookings:
    return repo.get_booking(business_id, booking_id)


def list_user_bookings(
    repo: AvailabilityRepository,
    business_id: int,
    user_id: int,
    upcoming_from: Optional[date] = None,
) -> list[Bookings]:
    return repo.list_user_bookings(business_id, user_id, upcoming_from)


def list_bookings(
    repo: AvailabilityRepository,
    business_id: int,
    user_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    """One page of the business's bookings, newest first: {data, page, page_size, total}."""
    if page < 1 or page_size < 1:
        raise InvalidRequest("page and page_size must be positive")

    rows, total = repo.list_bookings(
        business_id,
        user_id=user_id,
        status=status,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return {"data": rows, "page": page, "page_size": page_size, "total": total}


def cancel_booking(repo: AvailabilityRepository, business_id: int, booking_id: int) -> Bookings:
    booking = repo.get_booking(business_id, booking_id)
    if booking.status == CANCELLED:
        return booking

    booking = repo.update_booking(booking, status=CANCELLED)
    logger.info(f"Booking cancelled: booking_id={booking_id} business={business_id}")
    emit_event("booking_cancelled", {"booking_id": booking_id, "business_id": business_id})
    return booking


def soft_delete_booking(repo: AvailabilityRepository, business_id: int, booking_id: int) -> None:
    booking = repo.get_booking(business_id, booking_id)
    repo.update_booking(booking, deleted_at=utc_now_str())
    logger.info(f"Booking soft-deleted: booking_id={booking_id} business={business_id}")
    emit_event("booking_deleted", {"booking_id": booking_id, "business_id": business_id})


def restore_booking(repo: AvailabilityRepository, business_id: int, booking_id: int) -> Bookings:
    booking = repo.get_booking(business_id, booking_id, include_deleted=True)
    if booking.deleted_at is None:
        return booking

    booking = repo.update_booking(booking, deleted_at=None)
    logger.info(f"Booking restored: booking_id={booking_id} business={business_id}")
    emit_event("booking_restored", {"booking_id": booking_id, "business_id": business_id})
    return booking
