"""Booking router - FastAPI endpoints for open slots, reservations and status changes"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import BOOKING_RATE_LIMIT, BOOKING_RATE_WINDOW_SECONDS, MAX_SLOT_RANGE_DAYS
from ...database import get_db
from ...models import Booking
from ...rate_limiter import create_rate_limiter
from ...shared.validators import validate_range, validate_uuid
from .exceptions import NotFoundError
from .scheduler import BookingScheduler
from .schemas import (
    Actor,
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    OpenSlotResponse,
    OpenSlotsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

booking_rate_limit = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT, window_seconds=BOOKING_RATE_WINDOW_SECONDS, key_prefix="bookings"
)


def get_booking_scheduler(db: AsyncSession = Depends(get_db)) -> BookingScheduler:
    """Dependency injection for BookingScheduler"""
    return BookingScheduler(db)


async def get_current_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    """Caller identity as forwarded by the auth gateway"""
    if not x_actor_id or x_actor_role not in ("user", "provider"):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return Actor(id=x_actor_id, role=x_actor_role)


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        serviceId=booking.service_id,
        providerId=booking.provider_id,
        userId=booking.user_id,
        bookingDate=booking.booking_date,
        endsAt=booking.ends_at,
        duration=booking.duration,
        totalAmount=booking.total_amount,
        notes=booking.notes,
        status=booking.status,
        providerStatus=booking.provider_status,
        createdAt=booking.created_at,
        updatedAt=booking.updated_at,
    )


def _require_booking_id(booking_id: str) -> None:
    if not validate_uuid(booking_id):
        raise NotFoundError("Booking not found")


@router.get("/open-slots", response_model=OpenSlotsResponse)
async def get_open_slots(
    service_id: str = Query(..., alias="serviceId"),
    range_start: datetime = Query(..., alias="from"),
    range_end: datetime = Query(..., alias="to"),
    scheduler: BookingScheduler = Depends(get_booking_scheduler),
):
    """Bookable slots of a service between two instants"""
    try:
        validate_range(range_start, range_end, MAX_SLOT_RANGE_DAYS)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    slots = await scheduler.get_open_slots(service_id, range_start, range_end)
    return OpenSlotsResponse(
        serviceId=service_id,
        rangeStart=range_start,
        rangeEnd=range_end,
        slots=[
            OpenSlotResponse(
                startAt=s.start_at,
                endAt=s.end_at,
                providerId=s.provider_id,
                serviceId=s.service_id,
            )
            for s in slots
        ],
    )


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    scheduler: BookingScheduler = Depends(get_booking_scheduler),
    _: None = Depends(booking_rate_limit),
):
    """Reserve a slot; the amount is computed server-side"""
    logger.info(f"📥 Booking request from {actor.id} for service {data.serviceId} at {data.startAt}")
    booking = await scheduler.reserve_at(data.serviceId, actor.id, data.startAt, data.notes)
    return _booking_response(booking)


@router.get("", response_model=list[BookingResponse])
async def list_bookings(
    status: Optional[Literal["pending", "confirmed", "cancelled", "completed"]] = Query(None),
    actor: Actor = Depends(get_current_actor),
    scheduler: BookingScheduler = Depends(get_booking_scheduler),
):
    """The caller's bookings: made by a user, or received by a provider"""
    bookings = await scheduler.list_bookings(actor, status)
    return [_booking_response(b) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    scheduler: BookingScheduler = Depends(get_booking_scheduler),
):
    _require_booking_id(booking_id)
    booking = await scheduler.get_booking(booking_id, actor)
    return _booking_response(booking)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    data: BookingStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    scheduler: BookingScheduler = Depends(get_booking_scheduler),
):
    """Provider confirm/reject/complete, or user cancel"""
    _require_booking_id(booking_id)
    booking = await scheduler.update_booking_status(booking_id, actor, data.status)
    return _booking_response(booking)


__all__ = [
    "router",
    "get_booking_scheduler",
    "get_current_actor",
    "get_open_slots",
    "create_booking",
    "list_bookings",
    "get_booking",
    "update_booking_status",
]
