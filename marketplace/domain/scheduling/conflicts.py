"""Conflict detection between a candidate slot and a provider's bookings"""

from collections.abc import Iterable
from datetime import datetime, timedelta

from ...models import Booking
from .availability import CandidateSlot


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open overlap: touching endpoints do not overlap"""
    return a_start < b_end and b_start < a_end


def booking_interval(booking: Booking) -> tuple[datetime, datetime]:
    end = booking.ends_at or booking.booking_date + timedelta(hours=booking.duration)
    return booking.booking_date, end


def find_conflicts(candidate: CandidateSlot, bookings: Iterable[Booking]) -> list[Booking]:
    """Active bookings of the candidate's provider that overlap it"""
    conflicts = []
    for booking in bookings:
        if booking.provider_id != candidate.provider_id:
            continue
        if not booking.is_active:
            continue
        start, end = booking_interval(booking)
        if intervals_overlap(candidate.start_at, candidate.end_at, start, end):
            conflicts.append(booking)
    return conflicts


def is_slot_free(candidate: CandidateSlot, existing_bookings: Iterable[Booking]) -> bool:
    return not find_conflicts(candidate, existing_bookings)
