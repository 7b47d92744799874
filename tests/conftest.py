"""Shared test fixtures and helpers."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy.pool import NullPool

from marketplace.database import Base, build_engine, build_session_factory
from marketplace.domain.scheduling.scheduler import BookingScheduler, ProviderLockRegistry
from marketplace.domain.scheduling.schemas import DailyWindow, ServiceAvailability
from marketplace.models import Booking, Service

# Wednesday; the following Monday is 2026-03-09
NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)
NEXT_MONDAY = datetime(2026, 3, 9, tzinfo=timezone.utc)

PROVIDER_ID = "7d4c3a1e-1111-4f6a-9c55-0a1b2c3d4e5f"
USER_ID = "2b9e8f70-2222-4c1d-8e3a-5f6a7b8c9d0e"
OTHER_USER_ID = "c0ffee00-3333-4aaa-bbbb-cccccccccccc"


def fixed_clock():
    return NOW


def at(day: datetime, hour: int, minute: int = 0) -> datetime:
    return day.replace(hour=hour, minute=minute)


def make_availability(
    days=("Monday",),
    start: str = "09:00",
    end: str = "11:00",
    duration_hours: float = 1,
    tz: str = "UTC",
    provider_id: str = PROVIDER_ID,
    service_id: str = "svc-1",
) -> ServiceAvailability:
    return ServiceAvailability(
        service_id=service_id,
        provider_id=provider_id,
        duration_hours=duration_hours,
        recurring_days=days,
        daily_window=DailyWindow(start=start, end=end),
        timezone=tz,
        price=500,
    )


def make_booking(
    start: datetime,
    hours: float = 1,
    status: str = "confirmed",
    provider_id: str = PROVIDER_ID,
    user_id: str = USER_ID,
    service_id: Optional[str] = None,
    provider_status: Optional[str] = None,
) -> Booking:
    """Helper to build an unsaved Booking."""
    return Booking(
        id=str(uuid.uuid4()),
        service_id=service_id,
        provider_id=provider_id,
        user_id=user_id,
        booking_date=start,
        ends_at=start + timedelta(hours=hours),
        duration=hours,
        total_amount=500 * hours,
        status=status,
        provider_status=provider_status or ("confirmed" if status == "confirmed" else "pending"),
    )


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return ProviderLockRegistry()


@pytest.fixture
def scheduler(db, locks):
    return BookingScheduler(db, clock=fixed_clock, locks=locks)


@pytest.fixture
async def service(db):
    """One-hour service offered Mondays 09:00-11:00 UTC at 500/hour."""
    service = Service(
        id=str(uuid.uuid4()),
        provider_id=PROVIDER_ID,
        title="Deep home cleaning",
        category="Cleaning",
        price=500,
        duration=1,
        availability={
            "days": ["Monday"],
            "start_time": "09:00",
            "end_time": "11:00",
            "tags": ["eco"],
            "location": "Pune",
        },
    )
    db.add(service)
    await db.commit()
    return service


@pytest.fixture
async def two_hour_service(db):
    """Same provider, two-hour sessions Mondays 09:00-11:00 UTC."""
    service = Service(
        id=str(uuid.uuid4()),
        provider_id=PROVIDER_ID,
        title="Carpet shampoo",
        category="Cleaning",
        price=400,
        duration=2,
        availability={"days": ["Monday"], "start_time": "09:00", "end_time": "11:00"},
    )
    db.add(service)
    await db.commit()
    return service
