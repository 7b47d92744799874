import html
import re
from typing import Optional

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def validate_and_sanitize_input(value: Optional[str], max_length: int = 500) -> str:
    """
    Validate and sanitize free-text user input such as booking notes.

    Args:
        value: Input string to validate
        max_length: Maximum allowed length, checked before escaping

    Returns:
        Sanitized string (empty when nothing was supplied)

    Raises:
        ValueError: If input is too long
    """
    if not value:
        return ""

    value = str(value).strip()

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    value = html.escape(value, quote=True)

    # Strip control characters, keeping tabs and newlines
    value = _CONTROL_CHARS.sub("", value)

    return value
