# backend/appointments/services/slots/config.py
"""
Booking configuration for slots calculation.
"""

from dataclasses import dataclass, replace
from functools import lru_cache

from ...config import settings


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for booking/slots system.

    Attributes:
        slot_step_minutes: Step between candidate slot starts (granularity)
        min_advance_minutes: Minimum notice before a slot can be booked
        max_days_in_future: How many days ahead a date may be requested
        default_timezone: Zone used when a request does not name one
        cache_ttl_seconds: Redis TTL for cached day windows
    """
    slot_step_minutes: int = 15
    min_advance_minutes: int = 60
    max_days_in_future: int = 90
    default_timezone: str = "UTC"
    cache_ttl_seconds: int = 86400

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes <= 0:
            raise ValueError(f"slot_step_minutes must be positive, got {self.slot_step_minutes}")
        if self.min_advance_minutes < 0:
            raise ValueError(f"min_advance_minutes must be >= 0, got {self.min_advance_minutes}")
        if self.max_days_in_future < 0:
            raise ValueError(f"max_days_in_future must be >= 0, got {self.max_days_in_future}")

    def with_overrides(self, **overrides) -> "BookingConfig":
        """Copy with per-request overrides; None values keep the configured default."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return replace(self, **changes)


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton) built from settings."""
    return BookingConfig(
        slot_step_minutes=settings.slot_granularity_minutes,
        min_advance_minutes=settings.min_advance_minutes,
        max_days_in_future=settings.max_days_in_future,
        default_timezone=settings.default_timezone,
        cache_ttl_seconds=settings.availability_cache_ttl_seconds,
    )
