"""
Conversions between ``HH:MM`` wall-clock strings and minute-of-day integers.

All times are local wall-clock times for a single operating region; nothing
in here knows about timezones.
"""

import re
from datetime import date

from .exceptions import MalformedTimeError

MINUTES_PER_DAY = 24 * 60

# Seconds are tolerated because the record store echoes ``HH:MM:SS`` for
# time fields; they are ignored.
_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def to_minutes(time_str: str) -> int:
    """
    Parse an ``HH:MM`` string into minutes since midnight.

    Args:
        time_str: 24-hour wall-clock time, e.g. ``"09:30"``

    Returns:
        ``hours * 60 + minutes``

    Raises:
        MalformedTimeError: If the string is not a valid time of day
    """
    if not isinstance(time_str, str):
        raise MalformedTimeError(f"Expected an HH:MM string, got {time_str!r}")

    match = _TIME_PATTERN.match(time_str)
    if not match:
        raise MalformedTimeError(f"Malformed time: {time_str!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise MalformedTimeError(f"Time out of range: {time_str!r}")

    return hours * 60 + minutes


def to_time_string(minutes: int) -> str:
    """Format minutes since midnight as a zero-padded ``HH:MM`` string."""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def is_valid_time(time_str: str) -> bool:
    """Return True when ``time_str`` parses as a time of day."""
    try:
        to_minutes(time_str)
    except MalformedTimeError:
        return False
    return True


def add_minutes(time_str: str, delta: int) -> str:
    """Shift an ``HH:MM`` time by ``delta`` minutes."""
    return to_time_string(to_minutes(time_str) + delta)


def round_up_to_step(minutes: int, step: int = 15) -> int:
    """Round a minute value up to the next multiple of ``step``."""
    return -(-minutes // step) * step


def format_date(value: date) -> str:
    """Format a date in the ``YYYY-MM-DD`` wire form."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def combine_date_time(value: date, time_str: str) -> str:
    """
    Combine a date and an ``HH:MM`` time into the record store's
    ``YYYY-MM-DD HH:MM:SS`` form. Seconds are always ``00``.
    """
    return f"{format_date(value)} {to_time_string(to_minutes(time_str))}:00"


def format_12h(time_str: str) -> str:
    """Render ``HH:MM`` as ``h:MM AM/PM`` for display."""
    hours, minutes = divmod(to_minutes(time_str), 60)
    period = "PM" if hours >= 12 else "AM"
    display_hour = hours % 12 or 12
    return f"{display_hour}:{minutes:02d} {period}"
