# backend/appointments/services/slots/__init__.py
"""
Slots calculation module.

Level 1: Effective day windows (weekly + exceptions, cached in Redis)
Level 2: Service slots (calculated on-the-fly against live bookings)
Admission: write-time re-validation of a booking request
"""

from .config import BookingConfig, get_booking_config
from .calculator import calculate_day_windows
from .redis_store import WindowsRedisStore
from .invalidator import invalidate_business_cache
from .availability import calculate_service_availability
from .admission import admit_booking, reschedule_booking
from .repository import AvailabilityRepository

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "calculate_day_windows",
    "WindowsRedisStore",
    "invalidate_business_cache",
    "calculate_service_availability",
    "admit_booking",
    "reschedule_booking",
    "AvailabilityRepository",
]
