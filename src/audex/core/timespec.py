"""Parsing of human time offsets such as ``1:30`` or ``01:02:03``."""

from __future__ import annotations

import re

# Each component must be a plain run of ASCII digits (no sign, no blanks).
_COMPONENT_PATTERN = re.compile(r"[0-9]+")


class TimeSpecError(ValueError):
    """Raised when a time string is not ``mm:ss`` or ``hh:mm:ss``."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Invalid time format: {value!r}. Use mm:ss or hh:mm:ss")


def parse_timespec(value: str | None) -> int | None:
    """Convert a time string into a whole number of seconds.

    Accepted shapes are ``mm:ss`` and ``hh:mm:ss``. The leading component is
    unbounded (``90:00`` is ninety minutes); every following component must
    be below 60.

    Args:
        value: Time string, or None.

    Returns:
        Offset in seconds, or None when the value is absent or blank
        ("not specified" is not an error).

    Raises:
        TimeSpecError: If the value is present but malformed.

    Example:
        >>> parse_timespec("1:30")
        90
        >>> parse_timespec("01:02:03")
        3723
        >>> parse_timespec("") is None
        True
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise TimeSpecError(str(value))

    text = value.strip()
    if not text:
        return None

    parts = text.split(":")
    if len(parts) not in (2, 3):
        raise TimeSpecError(value)
    if not all(_COMPONENT_PATTERN.fullmatch(part) for part in parts):
        raise TimeSpecError(value)

    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        # int() refuses digit strings past sys.get_int_max_str_digits()
        raise TimeSpecError(value) from None
    if any(n >= 60 for n in numbers[1:]):
        raise TimeSpecError(value)

    seconds = 0
    for n in numbers:
        seconds = seconds * 60 + n
    return seconds


def format_timespec(seconds: int) -> str:
    """Render seconds as ``hh:mm:ss`` (or ``mm:ss`` under an hour)."""
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
