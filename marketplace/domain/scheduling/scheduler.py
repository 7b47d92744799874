"""Booking scheduler - open-slot listing, atomic reservation and status transitions"""

import asyncio
import logging
import weakref
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import RESERVATION_TIMEOUT_SECONDS
from ...models import (
    BOOKING_CANCELLED,
    BOOKING_COMPLETED,
    BOOKING_CONFIRMED,
    BOOKING_PENDING,
    PROVIDER_CONFIRMED,
    PROVIDER_PENDING,
    PROVIDER_REJECTED,
    Booking,
    utcnow,
)
from .availability import CandidateSlot, list_candidate_slots, validate_slot_start
from .conflicts import find_conflicts, is_slot_free
from .exceptions import (
    ForbiddenError,
    InvalidSlotError,
    InvalidTransitionError,
    NotFoundError,
    ReservationTimeoutError,
    SlotConflictError,
    StoreError,
)
from .repository import BookingRepository, ServiceRepository, availability_from_service
from .schemas import Actor

logger = logging.getLogger(__name__)

ACTIVE_SLOT_INDEX = "uq_bookings_provider_active_start"


class ProviderLockRegistry:
    """One asyncio.Lock per provider, shared by every scheduler in the process.

    Entries are weak: a provider's lock is dropped once no reservation holds
    or waits on it.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, provider_id: str) -> asyncio.Lock:
        lock = self._locks.get(provider_id)
        if lock is None:
            lock = self._locks[provider_id] = asyncio.Lock()
        return lock


provider_locks = ProviderLockRegistry()


def _is_slot_collision(error: IntegrityError) -> bool:
    message = str(error.orig)
    return ACTIVE_SLOT_INDEX in message or "bookings.provider_id" in message


class BookingScheduler:
    """Service layer for booking slots.

    Actor identity is always passed in explicitly; nothing here looks up a
    session or current user.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Callable[[], datetime]] = None,
        locks: Optional[ProviderLockRegistry] = None,
        reservation_timeout: float = RESERVATION_TIMEOUT_SECONDS,
    ):
        self.db = db
        self.service_repo = ServiceRepository()
        self.booking_repo = BookingRepository()
        self.clock = clock or utcnow
        self.locks = locks if locks is not None else provider_locks
        self.reservation_timeout = reservation_timeout

    async def _read(self, operation, *args, **kwargs):
        """Run an idempotent read, retrying once on a store failure"""
        try:
            return await operation(self.db, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Store read failed, retrying once: {e}")
            await self.db.rollback()
        try:
            return await operation(self.db, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"❌ Store read failed twice: {e}")
            raise StoreError("Record store unavailable") from e

    # ------------------------------------------------------------------
    # Open slots
    # ------------------------------------------------------------------

    async def get_open_slots(
        self, service_id: str, range_start: datetime, range_end: datetime
    ) -> list[CandidateSlot]:
        """Slots of the service inside the range that no active booking overlaps"""
        availability = await self._read(self.service_repo.get_service_availability, service_id)
        if availability is None:
            raise NotFoundError("Service not found")

        candidates = list(
            list_candidate_slots(availability, range_start, range_end, now=self.clock())
        )
        if not candidates:
            return []

        bookings = await self._read(
            self.booking_repo.query_bookings,
            availability.provider_id,
            candidates[0].start_at,
            candidates[-1].end_at,
        )
        open_slots = [slot for slot in candidates if is_slot_free(slot, bookings)]
        logger.debug(
            f"📅 Service {service_id}: {len(open_slots)}/{len(candidates)} slots open "
            f"({len(bookings)} active bookings)"
        )
        return open_slots

    # ------------------------------------------------------------------
    # Reservation
    # ------------------------------------------------------------------

    async def reserve_at(
        self, service_id: str, user_id: str, start_at: datetime, notes: Optional[str] = None
    ) -> Booking:
        """Reserve the slot of ``service_id`` starting at ``start_at``"""
        availability = await self._read(self.service_repo.get_service_availability, service_id)
        if availability is None:
            raise NotFoundError("Service not found")
        if availability.duration_hours <= 0:
            raise InvalidSlotError("Service duration must be positive")
        # Close the read so the reservation runs in a transaction of its own
        await self.db.commit()

        candidate = CandidateSlot(
            start_at=start_at,
            end_at=start_at + timedelta(hours=availability.duration_hours),
            provider_id=availability.provider_id,
            service_id=service_id,
        )
        return await self.reserve_slot(service_id, user_id, candidate, notes)

    async def reserve_slot(
        self, service_id: str, user_id: str, candidate: CandidateSlot, notes: Optional[str] = None
    ) -> Booking:
        """Atomically re-validate the candidate and insert a pending booking.

        At most one of several concurrent reservations of overlapping
        intervals for a provider succeeds; the others raise SlotConflictError
        and leave nothing behind.
        """
        try:
            return await asyncio.wait_for(
                self._reserve(service_id, user_id, candidate, notes),
                timeout=self.reservation_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"⏱️ Reservation timed out for provider {candidate.provider_id} "
                f"at {candidate.start_at.isoformat()}"
            )
            raise ReservationTimeoutError(
                "Timed out waiting to reserve the slot; re-check open slots and retry"
            ) from None

    async def _reserve(
        self, service_id: str, user_id: str, candidate: CandidateSlot, notes: Optional[str]
    ) -> Booking:
        async with self.locks.lock_for(candidate.provider_id):
            try:
                await self.booking_repo.lock_provider(self.db, candidate.provider_id)

                service = await self.service_repo.get_service(self.db, service_id)
                if not service:
                    raise NotFoundError("Service not found")
                availability = availability_from_service(service)
                self._validate_candidate(availability, service_id, candidate)

                existing = await self.booking_repo.query_bookings(
                    self.db, candidate.provider_id, candidate.start_at, candidate.end_at
                )
                conflicts = find_conflicts(candidate, existing)
                if conflicts:
                    logger.info(
                        f"🚫 Slot {candidate.start_at.isoformat()} for provider "
                        f"{candidate.provider_id} conflicts with booking {conflicts[0].id}"
                    )
                    raise SlotConflictError("This time slot is no longer available")

                booking = Booking(
                    service_id=service_id,
                    provider_id=candidate.provider_id,
                    user_id=user_id,
                    booking_date=candidate.start_at,
                    ends_at=candidate.end_at,
                    duration=service.duration,
                    # Never taken from the client
                    total_amount=service.price * service.duration,
                    notes=notes,
                    status=BOOKING_PENDING,
                    provider_status=PROVIDER_PENDING,
                )
                await self.booking_repo.insert_booking(self.db, booking)
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                if _is_slot_collision(e):
                    raise SlotConflictError("This time slot is no longer available") from e
                logger.error(f"❌ Booking insert violated a constraint: {e}")
                raise StoreError("Failed to save booking") from e
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"❌ Booking reservation failed: {e}")
                raise StoreError("Failed to save booking") from e
            except BaseException:
                await self.db.rollback()
                raise

        logger.info(
            f"✅ Booking {booking.id} reserved: provider {booking.provider_id}, "
            f"{booking.booking_date.isoformat()} for user {user_id}"
        )
        return booking

    def _validate_candidate(self, availability, service_id: str, candidate: CandidateSlot) -> None:
        if candidate.service_id != service_id:
            raise InvalidSlotError("Slot belongs to a different service")
        if candidate.provider_id != availability.provider_id:
            raise InvalidSlotError("Slot belongs to a different provider")

        expected = validate_slot_start(availability, candidate.start_at, now=self.clock())
        if expected.end_at != candidate.end_at:
            raise InvalidSlotError("Slot length does not match the service duration")

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def _plan_transition(
        self, booking: Booking, actor: Actor, new_status: str
    ) -> tuple[str, Optional[str]]:
        """Return the (status, provider_status) pair the transition leads to"""
        if actor.role == "provider":
            if actor.id != booking.provider_id:
                raise ForbiddenError("Only the booking's provider can update it")

            if new_status in (PROVIDER_CONFIRMED, PROVIDER_REJECTED):
                if booking.provider_status != PROVIDER_PENDING or booking.status != BOOKING_PENDING:
                    raise InvalidTransitionError(
                        f"Booking is already {booking.status}/{booking.provider_status}"
                    )
                if new_status == PROVIDER_CONFIRMED:
                    return BOOKING_CONFIRMED, PROVIDER_CONFIRMED
                return BOOKING_CANCELLED, PROVIDER_REJECTED

            if new_status == BOOKING_COMPLETED:
                if booking.status != BOOKING_CONFIRMED:
                    raise InvalidTransitionError("Only confirmed bookings can be completed")
                if booking.ends_at > self.clock():
                    raise InvalidTransitionError("Booking has not ended yet")
                return BOOKING_COMPLETED, None

            raise ForbiddenError(f"Providers cannot set status '{new_status}'")

        if actor.id != booking.user_id:
            raise ForbiddenError("Only the booking's user can update it")
        if new_status != BOOKING_CANCELLED:
            raise ForbiddenError("Users can only cancel their bookings")
        if booking.status != BOOKING_PENDING:
            raise InvalidTransitionError("Only pending bookings can be cancelled")
        return BOOKING_CANCELLED, None

    async def update_booking_status(self, booking_id: str, actor: Actor, new_status: str) -> Booking:
        """Apply a role-checked status transition to a single booking"""
        try:
            booking = await self.booking_repo.get_booking(self.db, booking_id)
            if not booking:
                raise NotFoundError("Booking not found")

            status, provider_status = self._plan_transition(booking, actor, new_status)
            updated = await self.booking_repo.update_booking_status(
                self.db, booking, status, provider_status
            )
            if updated is None:
                raise InvalidTransitionError("Booking changed concurrently; reload and retry")
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to update booking {booking_id}: {e}")
            raise StoreError("Failed to update booking") from e
        except BaseException:
            await self.db.rollback()
            raise

        logger.info(
            f"🔄 Booking {booking_id} -> {updated.status}/{updated.provider_status} "
            f"by {actor.role} {actor.id}"
        )
        return updated

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def _is_party(booking: Booking, actor: Actor) -> bool:
        if actor.role == "provider":
            return booking.provider_id == actor.id
        return booking.user_id == actor.id

    async def get_booking(self, booking_id: str, actor: Actor) -> Booking:
        booking = await self._read(self.booking_repo.get_booking, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if not self._is_party(booking, actor):
            raise ForbiddenError("Not allowed to view this booking")
        return booking

    async def list_bookings(self, actor: Actor, status: Optional[str] = None) -> list[Booking]:
        if actor.role == "provider":
            return await self._read(
                self.booking_repo.list_bookings, provider_id=actor.id, status=status
            )
        return await self._read(self.booking_repo.list_bookings, user_id=actor.id, status=status)
