"""Conversions between epoch seconds and the seven-field calendar time."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

CalendarTime = tuple[int, int, int, int, int, int, int]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def calendar_from_epoch(time_d: float) -> CalendarTime:
    """Return ``(year, month, day, hour, minute, second, microsecond)`` in UTC.

    Microseconds are rounded to the nearest integer so that a value written
    with six decimals reads back to the same calendar fields.
    """

    whole = math.floor(time_d)
    usec = int(round((time_d - whole) * 1_000_000))
    if usec >= 1_000_000:
        whole += 1
        usec -= 1_000_000
    stamp = _EPOCH + timedelta(seconds=whole)
    return (
        stamp.year,
        stamp.month,
        stamp.day,
        stamp.hour,
        stamp.minute,
        stamp.second,
        usec,
    )


def epoch_from_calendar(time_i: CalendarTime) -> float:
    """Inverse of :func:`calendar_from_epoch`."""

    year, month, day, hour, minute, second, usec = time_i
    stamp = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    return (stamp - _EPOCH).total_seconds() + usec / 1_000_000


def format_calendar(time_i: CalendarTime) -> str:
    year, month, day, hour, minute, second, usec = time_i
    return f"{year:04d}/{month:02d}/{day:02d} {hour:02d}:{minute:02d}:{second:02d}.{usec:06d}"
