# backend/appointments/services/slots/repository.py
"""
Availability repository: the engine's only door to storage.

Reads services, weekly windows, date exceptions and live bookings; writes
new bookings. SQLAlchemy failures surface as StorageError, a uniqueness
violation on insert as Conflict.
"""

import json
import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import Conflict, InvalidRequest, NotFound, StorageError
from ...models.generated import (
    Availability,
    AvailabilityExceptions,
    Bookings,
    Businesses,
    Services,
)
from .records import (
    BookedInterval,
    BookingCandidate,
    ExceptionWindow,
    ServiceRecord,
    Window,
)
from .timeutils import normalize_time_str

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"
DUPLICATE_BOOKING = "Booking already exists for this slot"


class AvailabilityRepository:
    """SQLAlchemy-backed repository bound to one session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _storage(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(f"Storage failure while {action}")
            raise StorageError(f"Storage failure while {action}") from exc

    # ── Reads ────────────────────────────────────────────────────────────

    def get_service(self, business_id: int, service_id: int, lock: bool = False) -> ServiceRecord:
        """
        Active service of the business.

        lock=True takes a row lock (SELECT ... FOR UPDATE) held until the
        session commits, serializing admissions for the same service.
        """
        with self._storage("loading service"):
            query = self.db.query(Services).filter(
                Services.id == service_id,
                Services.business_id == business_id,
                Services.is_active == 1,
            )
            if lock:
                query = query.with_for_update()
            service = query.first()
        if not service:
            raise NotFound("Service not found")

        return ServiceRecord(
            id=service.id,
            business_id=service.business_id,
            duration_minutes=service.duration_minutes,
            buffer_minutes=service.buffer_minutes or 0,
            group_size=service.group_size,
            max_bookings_per_user_per_day=service.max_bookings_per_user_per_day,
            blackout_periods=_parse_blackout_periods(service.blackout_periods, service.id),
        )

    def get_business_timezone(self, business_id: int) -> Optional[str]:
        """IANA zone configured for the business, None if unknown."""
        with self._storage("loading business"):
            return (
                self.db.query(Businesses.timezone)
                .filter(Businesses.id == business_id)
                .scalar()
            )

    def get_recurring_availability(self, business_id: int, weekday: int) -> list[Window]:
        """Weekly windows for ISO weekday (1 = Monday)."""
        with self._storage("loading weekly availability"):
            rows = (
                self.db.query(Availability)
                .filter(
                    Availability.business_id == business_id,
                    Availability.weekday == weekday,
                )
                .order_by(Availability.id)
                .all()
            )
        return [Window(row.start_time, row.end_time) for row in rows]

    def get_exceptions(self, business_id: int, target_date: date) -> list[ExceptionWindow]:
        with self._storage("loading availability exceptions"):
            rows = (
                self.db.query(AvailabilityExceptions)
                .filter(
                    AvailabilityExceptions.business_id == business_id,
                    AvailabilityExceptions.date == target_date.isoformat(),
                )
                .order_by(AvailabilityExceptions.id)
                .all()
            )
        return [
            ExceptionWindow(
                date=target_date,
                is_available=bool(row.is_available),
                start_time=row.start_time or None,
                end_time=row.end_time or None,
                reason=row.reason,
            )
            for row in rows
        ]

    def get_bookings(
        self,
        business_id: int,
        service_id: int,
        target_date: date,
        exclude_id: Optional[int] = None,
    ) -> list[BookedInterval]:
        """Live bookings of a service on a date. Rows without a start time are skipped."""
        with self._storage("loading bookings"):
            rows = (
                self._live_bookings(business_id, exclude_id)
                .filter(
                    Bookings.service_id == service_id,
                    Bookings.date == target_date.isoformat(),
                )
                .order_by(Bookings.start_time, Bookings.id)
                .all()
            )
        return [
            BookedInterval(
                start_time=row.start_time,
                end_time=row.end_time or row.start_time,
                group_count=row.group_count or 1,
            )
            for row in rows
            if row.start_time
        ]

    def count_user_bookings(
        self,
        business_id: int,
        user_id: int,
        target_date: date,
        exclude_id: Optional[int] = None,
    ) -> int:
        with self._storage("counting user bookings"):
            return (
                self._live_bookings(business_id, exclude_id)
                .filter(
                    Bookings.user_id == user_id,
                    Bookings.date == target_date.isoformat(),
                )
                .count()
            )

    def find_booking(
        self,
        business_id: int,
        user_id: int,
        target_date: date,
        start_time: Optional[str],
        exclude_id: Optional[int] = None,
    ) -> Optional[Bookings]:
        """Exact (user, date, start) match among live bookings."""
        with self._storage("checking for duplicate booking"):
            query = self._live_bookings(business_id, exclude_id).filter(
                Bookings.user_id == user_id,
                Bookings.date == target_date.isoformat(),
            )
            if start_time is None:
                query = query.filter(Bookings.start_time.is_(None))
            else:
                query = query.filter(Bookings.start_time == start_time)
            return query.first()

    def get_booking(self, business_id: int, booking_id: int, include_deleted: bool = False) -> Bookings:
        with self._storage("loading booking"):
            booking = (
                self.db.query(Bookings)
                .filter(Bookings.id == booking_id, Bookings.business_id == business_id)
                .first()
            )
        if not booking or (booking.deleted_at and not include_deleted):
            raise NotFound("Booking not found")
        return booking

    def list_user_bookings(
        self,
        business_id: int,
        user_id: int,
        upcoming_from: Optional[date] = None,
    ) -> list[Bookings]:
        with self._storage("listing user bookings"):
            query = self.db.query(Bookings).filter(
                Bookings.business_id == business_id,
                Bookings.user_id == user_id,
                Bookings.deleted_at.is_(None),
            )
            if upcoming_from is not None:
                query = query.filter(Bookings.date >= upcoming_from.isoformat())
            return query.order_by(Bookings.date, Bookings.start_time, Bookings.id).all()

    def list_bookings(
        self,
        business_id: int,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[Bookings], int]:
        """Non-deleted bookings, newest first, with the unpaged total."""
        with self._storage("listing bookings"):
            query = self.db.query(Bookings).filter(
                Bookings.business_id == business_id,
                Bookings.deleted_at.is_(None),
            )
            if user_id is not None:
                query = query.filter(Bookings.user_id == user_id)
            if status:
                query = query.filter(Bookings.status == status)

            total = query.count()
            rows = (
                query.order_by(Bookings.created_at.desc(), Bookings.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
        return rows, total

    # ── Writes ───────────────────────────────────────────────────────────

    def create_booking(self, business_id: int, candidate: BookingCandidate) -> Bookings:
        booking = Bookings(
            business_id=business_id,
            service_id=candidate.service_id,
            user_id=candidate.user_id,
            date=candidate.date,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            group_count=candidate.group_count,
            status="pending",
            notes=candidate.notes,
        )
        with self._storage("creating booking"):
            try:
                self.db.add(booking)
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise Conflict(DUPLICATE_BOOKING) from exc
            self.db.refresh(booking)
        return booking

    def update_booking(self, booking: Bookings, **changes) -> Bookings:
        for key, value in changes.items():
            setattr(booking, key, value)
        with self._storage("updating booking"):
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise Conflict(DUPLICATE_BOOKING) from exc
            self.db.refresh(booking)
        return booking

    # ── Helpers ──────────────────────────────────────────────────────────

    def _live_bookings(self, business_id: int, exclude_id: Optional[int] = None):
        query = self.db.query(Bookings).filter(
            Bookings.business_id == business_id,
            Bookings.deleted_at.is_(None),
            func.coalesce(Bookings.status, "pending") != CANCELLED,
        )
        if exclude_id is not None:
            query = query.filter(Bookings.id != exclude_id)
        return query


def utc_now_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _parse_blackout_periods(raw: Optional[str], service_id: int) -> tuple[Window, ...]:
    """
    Parse the service's blackout JSON.

    Accepts [{"startTime": .., "endTime": ..}], [{"start_time": .., "end_time": ..}]
    or [["12:00", "13:00"]]. Unreadable entries are logged and skipped: stored
    data never fails a request.
    """
    try:
        items = json.loads(raw) if raw else []
    except json.JSONDecodeError:
        logger.warning(f"Invalid blackout_periods JSON for service {service_id}, ignoring")
        return ()
    if not isinstance(items, list):
        logger.warning(f"blackout_periods for service {service_id} is not a list, ignoring")
        return ()

    periods = []
    for item in items:
        if isinstance(item, dict):
            start = item.get("startTime") or item.get("start_time")
            end = item.get("endTime") or item.get("end_time")
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            start, end = item
        else:
            start = end = None
        if not start or not end:
            logger.warning(f"Skipping malformed blackout period {item!r} for service {service_id}")
            continue
        try:
            periods.append(Window(normalize_time_str(start), normalize_time_str(end)))
        except InvalidRequest:
            logger.warning(f"Skipping blackout period {item!r} for service {service_id}: bad clock time")
    return tuple(periods)
