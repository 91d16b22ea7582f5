# backend/appointments/redis_client.py

from redis import Redis

from .config import settings

# Lazy connection: nothing is opened until the first command.
redis_client = Redis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=2.0,
)


def get_redis() -> Redis | None:
    """Redis client for the availability window cache, or None when disabled."""
    if not settings.availability_cache_enabled:
        return None
    return redis_client
