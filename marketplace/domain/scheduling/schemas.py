"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import datetime, time
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AwareDatetime, BaseModel, ConfigDict, field_validator, model_validator

from ...config import DEFAULT_TIMEZONE, DEFAULT_WINDOW_END, DEFAULT_WINDOW_START, NOTES_MAX_LENGTH
from ...utils.sanitization import validate_and_sanitize_input

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

ActorRole = Literal["user", "provider"]


def parse_weekday(label: str) -> str:
    """Normalize a weekday label ("monday", "Mon", "MONDAY") to its canonical form"""
    value = (label or "").strip().lower()
    for day in WEEKDAYS:
        if value in (day.lower(), day[:3].lower()):
            return day
    raise ValueError(f"Unknown weekday: {label!r}")


class DailyWindow(BaseModel):
    """Time-of-day bounds within which slots are offered"""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @model_validator(mode="after")
    def check_order(self):
        if self.end <= self.start:
            raise ValueError("Daily window end must be after its start")
        return self


DEFAULT_DAILY_WINDOW = DailyWindow(
    start=time.fromisoformat(DEFAULT_WINDOW_START),
    end=time.fromisoformat(DEFAULT_WINDOW_END),
)


class ServiceAvailability(BaseModel):
    """Snapshot of a service's weekly recurrence, read once per scheduling request"""

    model_config = ConfigDict(frozen=True)

    service_id: str
    provider_id: str
    duration_hours: float
    recurring_days: frozenset[str] = frozenset()
    daily_window: Optional[DailyWindow] = None
    timezone: str = DEFAULT_TIMEZONE
    price: float = 0.0

    @field_validator("recurring_days", mode="before")
    @classmethod
    def normalize_days(cls, v):
        return frozenset(parse_weekday(day) for day in (v or ()))

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v!r}") from None
        return v

    @property
    def window(self) -> DailyWindow:
        return self.daily_window or DEFAULT_DAILY_WINDOW

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def is_bookable(self) -> bool:
        return bool(self.recurring_days) and self.duration_hours > 0


class Actor(BaseModel):
    """Caller identity, resolved by the auth gateway and passed explicitly"""

    model_config = ConfigDict(frozen=True)

    id: str
    role: ActorRole


class BookingCreate(BaseModel):
    """Schema for requesting a booking"""

    serviceId: str
    startAt: AwareDatetime
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v):
        if v is None:
            return v
        return validate_and_sanitize_input(v, max_length=NOTES_MAX_LENGTH) or None


class BookingStatusUpdate(BaseModel):
    """Schema for a booking status transition"""

    status: Literal["confirmed", "rejected", "cancelled", "completed"]


class OpenSlotResponse(BaseModel):
    startAt: datetime
    endAt: datetime
    providerId: str
    serviceId: str


class OpenSlotsResponse(BaseModel):
    serviceId: str
    rangeStart: datetime
    rangeEnd: datetime
    slots: list[OpenSlotResponse]


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: str
    serviceId: Optional[str]
    providerId: str
    userId: str
    bookingDate: datetime
    endsAt: datetime
    duration: float
    totalAmount: float
    notes: Optional[str]
    status: str
    providerStatus: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    class Config:
        from_attributes = True
