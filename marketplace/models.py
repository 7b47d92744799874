import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from .database import Base

# Booking lifecycle values
BOOKING_PENDING = "pending"
BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"
BOOKING_COMPLETED = "completed"

PROVIDER_PENDING = "pending"
PROVIDER_CONFIRMED = "confirmed"
PROVIDER_REJECTED = "rejected"

# Statuses that occupy the provider's calendar
ACTIVE_BOOKING_STATUSES = (BOOKING_PENDING, BOOKING_CONFIRMED)


def generate_public_id():
    """Generate a unique identifier for new records"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, always hands back timezone-aware UTC datetimes.

    SQLite drops tzinfo on the way in, which would make comparisons against
    aware instants fail after a round trip.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to a UTC column")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Service(Base):
    __tablename__ = "provider_services"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    provider_id = Column(String(36), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)  # Per hour
    duration = Column(Float, nullable=False, default=1)  # Hours per booking
    # {"days": ["Monday", ...], "start_time": "09:00", "end_time": "19:00",
    #  "timezone": "Asia/Kolkata", "tags": [...], "location": "..."}
    availability = Column(JSON, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    bookings = relationship("Booking", back_populates="service")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # Two active bookings of one provider can never start at the same instant,
        # even if a writer bypasses the scheduler's critical section
        Index(
            "uq_bookings_provider_active_start",
            "provider_id",
            "booking_date",
            unique=True,
            sqlite_where=text("status IN ('pending', 'confirmed')"),
            postgresql_where=text("status IN ('pending', 'confirmed')"),
        ),
        Index("ix_bookings_provider_window", "provider_id", "booking_date", "ends_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_public_id)
    service_id = Column(String(36), ForeignKey("provider_services.id"), nullable=True)
    provider_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    booking_date = Column(UTCDateTime, nullable=False)  # Start instant
    ends_at = Column(UTCDateTime, nullable=False)  # booking_date + duration, kept for range queries
    duration = Column(Float, nullable=False)  # Hours
    total_amount = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=BOOKING_PENDING)
    provider_status = Column(String(20), nullable=False, default=PROVIDER_PENDING)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    service = relationship("Service", back_populates="bookings")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES
