"""Expansion of a service's weekly recurrence into concrete bookable slots.

Everything here is pure: no I/O, no clock reads unless ``now`` is omitted.
Day boundaries, weekdays and the daily window are evaluated in the service's
own timezone; every instant handed out is timezone-aware UTC.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from .exceptions import InvalidSlotError
from .schemas import WEEKDAYS, ServiceAvailability


@dataclass(frozen=True)
class CandidateSlot:
    start_at: datetime
    end_at: datetime
    provider_id: str
    service_id: str

    def __post_init__(self):
        if self.end_at <= self.start_at:
            raise ValueError("Slot must end after it starts")


def _require_aware(value: datetime, name: str) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware")


def _day_slots(availability: ServiceAvailability, day: date) -> Iterator[CandidateSlot]:
    """All slots of one local day, ignoring range and clock"""
    if WEEKDAYS[day.weekday()] not in availability.recurring_days:
        return

    tz = availability.tz
    window = availability.window
    step = timedelta(hours=availability.duration_hours)
    # Step in UTC so a DST change inside the window neither repeats nor skips an instant
    window_start = datetime.combine(day, window.start, tzinfo=tz).astimezone(timezone.utc)
    window_end = datetime.combine(day, window.end, tzinfo=tz).astimezone(timezone.utc)

    start_at = window_start
    while start_at + step <= window_end:
        yield CandidateSlot(
            start_at=start_at,
            end_at=start_at + step,
            provider_id=availability.provider_id,
            service_id=availability.service_id,
        )
        start_at += step


def list_candidate_slots(
    availability: ServiceAvailability,
    range_start: datetime,
    range_end: datetime,
    now: Optional[datetime] = None,
) -> Iterator[CandidateSlot]:
    """Lazily yield the service's slots lying inside [range_start, range_end].

    Ascending by start, deterministic for fixed inputs. Slots that do not start
    strictly after ``now`` are skipped.
    """
    _require_aware(range_start, "range_start")
    _require_aware(range_end, "range_end")
    if now is None:
        now = datetime.now(timezone.utc)
    _require_aware(now, "now")

    if range_end <= range_start or not availability.is_bookable:
        return

    tz = availability.tz
    day = range_start.astimezone(tz).date()
    last_day = range_end.astimezone(tz).date()

    while day <= last_day:
        for slot in _day_slots(availability, day):
            if slot.end_at > range_end:
                break
            if slot.start_at >= range_start and slot.start_at > now:
                yield slot
        day += timedelta(days=1)


def validate_slot_start(
    availability: ServiceAvailability, start_at: datetime, now: Optional[datetime] = None
) -> CandidateSlot:
    """Return the generated slot starting at ``start_at`` or raise InvalidSlotError naming the rule"""
    _require_aware(start_at, "start_at")
    if now is None:
        now = datetime.now(timezone.utc)

    if availability.duration_hours <= 0:
        raise InvalidSlotError("Service duration must be positive")
    if start_at <= now:
        raise InvalidSlotError("Slot start is in the past")
    if not availability.recurring_days:
        raise InvalidSlotError("Service has no bookable days")

    local_day = start_at.astimezone(availability.tz).date()
    weekday = WEEKDAYS[local_day.weekday()]
    if weekday not in availability.recurring_days:
        raise InvalidSlotError(f"Service is not offered on {weekday}")

    for slot in _day_slots(availability, local_day):
        if slot.start_at == start_at:
            return slot

    window = availability.window
    raise InvalidSlotError(
        f"Slot does not start on a {availability.duration_hours:g}h boundary within "
        f"{window.start:%H:%M}-{window.end:%H:%M} ({availability.timezone})"
    )


def slot_is_offered(
    availability: ServiceAvailability, start_at: datetime, now: Optional[datetime] = None
) -> bool:
    try:
        validate_slot_start(availability, start_at, now)
    except InvalidSlotError:
        return False
    return True
