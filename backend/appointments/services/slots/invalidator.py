# backend/appointments/services/slots/invalidator.py
"""
Cache invalidation for business day windows.

Triggers:
✓ Weekly availability changed → invalidate all dates of the business
✓ Availability exception created/deleted → invalidate that date

Does NOT trigger:
✗ Booking created/cancelled (bookings are read live on every query)
✗ Service changes (duration, buffer, blackouts are read live)
"""

import logging
from datetime import date, timedelta

from redis import Redis, RedisError

from .redis_store import WindowsRedisStore

logger = logging.getLogger(__name__)


def invalidate_business_cache(
    redis: Redis | None,
    business_id: int,
    dates: list[date] | None = None,
) -> int:
    """
    Invalidate cached windows for a business.

    Args:
        redis: Redis client (None = cache disabled, nothing to do)
        business_id: Business ID
        dates: Specific dates to invalidate, or None for every cached date

    Returns:
        Number of deleted cache keys
    """
    if redis is None:
        return 0

    store = WindowsRedisStore(redis)
    try:
        deleted = store.delete_day_windows(business_id, dates)
    except RedisError:
        logger.exception(f"Failed to invalidate windows cache for business={business_id}")
        return 0

    logger.info(f"Invalidated {deleted} cached day(s) for business={business_id}")
    return deleted


def get_affected_dates(
    date_start: date,
    date_end: date,
) -> list[date]:
    """Dates in [date_start, date_end], order-insensitive."""
    if date_start > date_end:
        date_start, date_end = date_end, date_start

    dates = []
    current = date_start
    while current <= date_end:
        dates.append(current)
        current += timedelta(days=1)

    return dates
