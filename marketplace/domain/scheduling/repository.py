"""Scheduling repository - Database operations for services and bookings"""

import hashlib
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import ACTIVE_BOOKING_STATUSES, Booking, Service, utcnow
from .schemas import DailyWindow, ServiceAvailability, parse_weekday

logger = logging.getLogger(__name__)


def availability_from_service(service: Service) -> ServiceAvailability:
    """Build the scheduling snapshot from a stored service row.

    Unrecognised weekday labels are dropped rather than failing the whole
    service; a malformed window falls back to the default one.
    """
    config = service.availability or {}

    days = []
    for label in config.get("days") or []:
        try:
            days.append(parse_weekday(label))
        except ValueError:
            logger.warning(f"⚠️ Ignoring unknown weekday {label!r} on service {service.id}")

    window = None
    if config.get("start_time") and config.get("end_time"):
        try:
            window = DailyWindow(start=config["start_time"], end=config["end_time"])
        except ValueError as e:
            logger.warning(f"⚠️ Invalid daily window on service {service.id}: {e}")

    fields = {
        "service_id": service.id,
        "provider_id": service.provider_id,
        "duration_hours": service.duration or 0,
        "recurring_days": days,
        "daily_window": window,
        "price": service.price or 0,
    }
    if config.get("timezone"):
        try:
            return ServiceAvailability(**fields, timezone=config["timezone"])
        except ValueError as e:
            logger.warning(f"⚠️ Invalid timezone on service {service.id}: {e}")
    return ServiceAvailability(**fields)


def advisory_lock_key(provider_id: str) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock"""
    digest = hashlib.sha256(provider_id.encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class ServiceRepository:
    """Repository for service lookups"""

    @staticmethod
    async def get_service(db: AsyncSession, service_id: str) -> Optional[Service]:
        result = await db.execute(select(Service).where(Service.id == service_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_service_availability(
        db: AsyncSession, service_id: str
    ) -> Optional[ServiceAvailability]:
        service = await ServiceRepository.get_service(db, service_id)
        if not service:
            return None
        return availability_from_service(service)


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    async def query_bookings(
        db: AsyncSession,
        provider_id: str,
        range_start: datetime,
        range_end: datetime,
        statuses: tuple[str, ...] = ACTIVE_BOOKING_STATUSES,
    ) -> list[Booking]:
        """Bookings of a provider whose interval overlaps [range_start, range_end)"""
        result = await db.execute(
            select(Booking)
            .where(
                Booking.provider_id == provider_id,
                Booking.status.in_(statuses),
                Booking.booking_date < range_end,
                Booking.ends_at > range_start,
            )
            .order_by(Booking.booking_date)
        )
        return list(result.scalars().all())

    @staticmethod
    async def insert_booking(db: AsyncSession, booking: Booking) -> Booking:
        """Stage a new booking; the caller owns the commit"""
        db.add(booking)
        await db.flush()
        return booking

    @staticmethod
    async def get_booking(db: AsyncSession, booking_id: str) -> Optional[Booking]:
        result = await db.execute(select(Booking).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_bookings(
        db: AsyncSession,
        provider_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Booking]:
        """Bookings for a provider or a user, newest appointment first"""
        query = select(Booking)
        if provider_id:
            query = query.where(Booking.provider_id == provider_id)
        if user_id:
            query = query.where(Booking.user_id == user_id)
        if status:
            query = query.where(Booking.status == status)

        result = await db.execute(query.order_by(Booking.booking_date.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def update_booking_status(
        db: AsyncSession, booking: Booking, status: str, provider_status: Optional[str] = None
    ) -> Optional[Booking]:
        """Compare-and-swap the booking's statuses.

        Only applies if the row still holds the statuses ``booking`` was read
        with; returns None when another writer got there first.
        """
        values = {"status": status, "updated_at": utcnow()}
        if provider_status is not None:
            values["provider_status"] = provider_status

        result = await db.execute(
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.status == booking.status,
                Booking.provider_status == booking.provider_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        await db.refresh(booking)
        return booking

    @staticmethod
    async def lock_provider(db: AsyncSession, provider_id: str) -> None:
        """Serialise reservations for a provider across processes (PostgreSQL only).

        The lock is transaction scoped and released on commit or rollback.
        """
        if db.bind is None or db.bind.dialect.name != "postgresql":
            return
        await db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_lock_key(provider_id)}
        )
