from sqlalchemy import Column, ForeignKey, Index, Integer, Text, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Businesses(Base):
    __tablename__ = 'businesses'

    name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    timezone = Column(Text, nullable=False, server_default=text("'UTC'"))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    services = relationship('Services', back_populates='business')
    availability = relationship('Availability', back_populates='business')
    availability_exceptions = relationship('AvailabilityExceptions', back_populates='business')
    bookings = relationship('Bookings', back_populates='business')


class Services(Base):
    __tablename__ = 'services'

    business_id = Column(ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    buffer_minutes = Column(Integer, nullable=False, server_default=text('0'))
    group_size = Column(Integer)
    max_bookings_per_user_per_day = Column(Integer)
    # JSON list: [{"startTime": "12:00", "endTime": "13:00"}, ...]
    blackout_periods = Column(Text, nullable=False, server_default=text("'[]'"))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    business = relationship('Businesses', back_populates='services')
    bookings = relationship('Bookings', back_populates='service')


class Availability(Base):
    """Recurring weekly window. weekday: 1 = Monday ... 7 = Sunday."""
    __tablename__ = 'availability'

    business_id = Column(ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    weekday = Column(Integer, nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)

    business = relationship('Businesses', back_populates='availability')


class AvailabilityExceptions(Base):
    """Date-exact override. No start/end with is_available=0 closes the whole day."""
    __tablename__ = 'availability_exceptions'

    business_id = Column(ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)
    is_available = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    start_time = Column(Text)
    end_time = Column(Text)
    reason = Column(Text)

    business = relationship('Businesses', back_populates='availability_exceptions')


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        # one live booking per user per slot; soft-deleted / cancelled rows don't count
        Index(
            'uq_bookings_live_slot',
            'business_id', 'service_id', 'date', 'start_time', 'user_id',
            unique=True,
            sqlite_where=text("deleted_at IS NULL AND status != 'cancelled'"),
            postgresql_where=text("deleted_at IS NULL AND status != 'cancelled'"),
        ),
    )

    business_id = Column(ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'))
    user_id = Column(Integer, nullable=False)
    date = Column(Text, nullable=False)
    group_count = Column(Integer, nullable=False, server_default=text('1'))
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    start_time = Column(Text)
    end_time = Column(Text)
    deleted_at = Column(Text)
    notes = Column(Text)

    business = relationship('Businesses', back_populates='bookings')
    service = relationship('Services', back_populates='bookings')
