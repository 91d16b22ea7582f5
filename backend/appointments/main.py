import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis import RedisError

from .config import settings
from .database import engine
from .errors import BookingError
from .models.generated import Base
from .redis_client import redis_client
from .routers import availability, bookings, services, slots

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Appointment Booking API", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except RedisError:
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}


app.include_router(slots.router)
app.include_router(bookings.router)
app.include_router(availability.router)
app.include_router(services.router)
