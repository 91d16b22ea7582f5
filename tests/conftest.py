import fnmatch
import json
import os

import pytest
from redis import RedisError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('AVAILABILITY_CACHE_ENABLED', 'false')

from appointments.models.generated import (  # noqa: E402
    Availability,
    AvailabilityExceptions,
    Base,
    Bookings,
    Businesses,
    Services,
)
from appointments.services import events  # noqa: E402
from appointments.services.slots import AvailabilityRepository  # noqa: E402


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the app uses."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttl: dict[str, int] = {}
        self.lists: dict[str, list[str]] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.ttl[key] = ex
        return True

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttl.pop(key, None)
                deleted += 1
        return deleted

    def scan_iter(self, match='*'):
        return iter([key for key in list(self.data) if fnmatch.fnmatch(key, match)])

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def ping(self):
        return True


class BrokenRedis(FakeRedis):
    def get(self, key):
        raise RedisError('connection refused')

    def set(self, key, value, ex=None):
        raise RedisError('connection refused')


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def broken_redis():
    return BrokenRedis()


@pytest.fixture(autouse=True)
def event_queue(monkeypatch: pytest.MonkeyPatch):
    queue = FakeRedis()
    monkeypatch.setattr(events, 'redis_client', queue)
    return queue


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(db):
    return AvailabilityRepository(db)


@pytest.fixture
def business(db):
    obj = Businesses(name='Studio')
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@pytest.fixture
def make_service(db, business):
    def _make(**fields):
        fields.setdefault('name', 'Consultation')
        fields.setdefault('duration_minutes', 30)
        fields.setdefault('buffer_minutes', 0)
        if 'blackout_periods' in fields and not isinstance(fields['blackout_periods'], str):
            fields['blackout_periods'] = json.dumps(fields['blackout_periods'])
        obj = Services(business_id=fields.pop('business_id', business.id), **fields)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    return _make


@pytest.fixture
def add_weekly(db, business):
    def _add(weekday: int, start_time: str, end_time: str, business_id: int | None = None):
        obj = Availability(
            business_id=business_id or business.id,
            weekday=weekday,
            start_time=start_time,
            end_time=end_time,
        )
        db.add(obj)
        db.commit()
        return obj

    return _add


@pytest.fixture
def add_exception(db, business):
    def _add(date: str, is_available: bool, start_time=None, end_time=None, reason=None):
        obj = AvailabilityExceptions(
            business_id=business.id,
            date=date,
            is_available=1 if is_available else 0,
            start_time=start_time,
            end_time=end_time,
            reason=reason,
        )
        db.add(obj)
        db.commit()
        return obj

    return _add


@pytest.fixture
def add_booking(db, business):
    def _add(service_id, user_id, date, start_time, end_time=None, **fields):
        obj = Bookings(
            business_id=fields.pop('business_id', business.id),
            service_id=service_id,
            user_id=user_id,
            date=date,
            start_time=start_time,
            end_time=end_time,
            **fields,
        )
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    return _add
