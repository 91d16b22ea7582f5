# backend/appointments/routers/bookings.py
# Booking writes always go through admission; DELETE is soft.

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.bookings import (
    BookingCreate,
    BookingPage,
    BookingRead,
    BookingUpdate,
)
from ..services import bookings as booking_service
from ..services.slots import AvailabilityRepository, admit_booking, reschedule_booking
from ..services.slots.records import BookingCandidate

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=BookingPage)
def list_bookings(
    business_id: int,
    user_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Non-deleted bookings of the business, newest first."""
    return booking_service.list_bookings(
        AvailabilityRepository(db),
        business_id,
        user_id=user_id,
        status=status,
        page=page,
        page_size=page_size,
    )


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
):
    candidate = BookingCandidate(
        user_id=data.user_id,
        date=data.date,
        start_time=data.start_time,
        end_time=data.end_time,
        service_id=data.service_id,
        group_count=data.group_count,
        notes=data.notes,
    )
    return admit_booking(AvailabilityRepository(db), data.business_id, candidate)


@router.get("/user/{user_id}", response_model=list[BookingRead])
def list_user_bookings(
    user_id: int,
    business_id: int,
    upcoming: bool = False,
    db: Session = Depends(get_db),
):
    return booking_service.list_user_bookings(
        AvailabilityRepository(db),
        business_id,
        user_id,
        upcoming_from=date.today() if upcoming else None,
    )


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, business_id: int, db: Session = Depends(get_db)):
    return booking_service.get_booking(AvailabilityRepository(db), business_id, id)


@router.patch("/{id}", response_model=BookingRead)
def update_booking(
    id: int,
    business_id: int,
    data: BookingUpdate,
    db: Session = Depends(get_db),
):
    return reschedule_booking(
        AvailabilityRepository(db),
        business_id,
        id,
        **data.model_dump(exclude_unset=True),
    )


@router.post("/{id}/cancel", response_model=BookingRead)
def cancel_booking(id: int, business_id: int, db: Session = Depends(get_db)):
    return booking_service.cancel_booking(AvailabilityRepository(db), business_id, id)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(id: int, business_id: int, db: Session = Depends(get_db)):
    booking_service.soft_delete_booking(AvailabilityRepository(db), business_id, id)


@router.post("/{id}/restore", response_model=BookingRead)
def restore_booking(id: int, business_id: int, db: Session = Depends(get_db)):
    return booking_service.restore_booking(AvailabilityRepository(db), business_id, id)
