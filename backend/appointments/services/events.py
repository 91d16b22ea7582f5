"""
backend/appointments/services/events.py

Event emitter: pushes booking events to a Redis list for the delivery
workers (email/SMS reminders live outside this service).

Queue:
- events:bookings: booking_created / booking_cancelled / booking_deleted / booking_restored
"""

import json
import time
import logging

from redis import RedisError

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

BOOKING_EVENTS_QUEUE = "events:bookings"


def emit_event(event_type: str, payload: dict) -> None:
    """
    Emit a booking event.

    Delivery is best effort: the booking is already committed, so a Redis
    failure is logged and not raised.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(BOOKING_EVENTS_QUEUE, json.dumps(event))
        logger.info(f"Event emitted: {event_type} → {BOOKING_EVENTS_QUEUE}")
    except RedisError as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
