# backend/appointments/services/slots/redis_store.py
"""
Redis storage for per-day availability windows (Level 1).

Key format: slots:windows:{business_id}:{date}
Value: JSON {"windows": [["09:00", "12:00"], ...], "all_day_events": [...]}

A stored empty payload means "calculated, closed day" and is still a hit.
Bookings are never stored here.
"""

import json
from datetime import date
from redis import Redis

from .config import BookingConfig, get_booking_config
from .records import DayWindows


class WindowsRedisStore:
    """Redis storage wrapper for resolved day windows."""

    KEY_PREFIX = "slots:windows"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, business_id: int, dt: date) -> str:
        return f"{self.KEY_PREFIX}:{business_id}:{dt.isoformat()}"

    # ── Write ────────────────────────────────────────────────────────────

    def store_day_windows(
        self,
        business_id: int,
        dt: date,
        day_windows: DayWindows,
    ) -> None:
        key = self._key(business_id, dt)
        self.redis.set(
            key,
            json.dumps(day_windows.to_dict()),
            ex=self.config.cache_ttl_seconds,
        )

    # ── Read ─────────────────────────────────────────────────────────────

    def get_day_windows(self, business_id: int, dt: date) -> DayWindows | None:
        """Cached windows, or None on cache miss."""
        raw = self.redis.get(self._key(business_id, dt))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return DayWindows.from_dict(json.loads(raw))

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_day_windows(
        self,
        business_id: int,
        dates: list[date] | None = None,
    ) -> int:
        """
        Delete cached windows.

        Args:
            business_id: Business ID
            dates: Specific dates, or None to delete all for the business.

        Returns:
            Number of deleted keys.
        """
        if dates:
            keys = [self._key(business_id, dt) for dt in dates]
        else:
            pattern = f"{self.KEY_PREFIX}:{business_id}:*"
            keys = list(self.redis.scan_iter(match=pattern))

        if not keys:
            return 0

        return self.redis.delete(*keys)
