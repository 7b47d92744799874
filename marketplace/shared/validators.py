"""Shared validation utilities"""

import uuid
from datetime import datetime, timedelta


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError):
        return False


def validate_range(range_start: datetime, range_end: datetime, max_days: int) -> None:
    """
    Validate a requested time range.

    Raises:
        ValueError: If a bound is naive, the range is inverted, or it spans more than max_days
    """
    if range_start.tzinfo is None or range_end.tzinfo is None:
        raise ValueError("Range bounds must include a timezone offset")
    if range_end < range_start:
        raise ValueError("Range end must not be before its start")
    if range_end - range_start > timedelta(days=max_days):
        raise ValueError(f"Range must not exceed {max_days} days")
