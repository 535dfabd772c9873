"""Calendar-date helpers.

All scheduling dates are plain ``datetime.date`` values: calendar-local days with
no time of day. Strings are parsed by splitting out the year, month and day
components, never through a timezone-aware date-time parser, so a stored
``2024-03-01`` can never shift to the previous day.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta

from ganttcalc.logger import get_logger

logger = get_logger()

SATURDAY = 5
SUNDAY = 6

_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def parse_local_date(value: str | date | None) -> date | None:
    """Parse a ``YYYY-MM-DD`` string (optionally followed by ``T...``) into a date.

    Returns None for empty or unparsable input instead of raising, so callers
    can fall back to a default date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    date_part = value.strip().split("T", 1)[0].split(" ", 1)[0]
    if not date_part:
        return None

    match = _DATE_RE.match(date_part)
    if not match:
        logger.warning(f"Ignoring unparsable date '{value}'")
        return None

    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        logger.warning(f"Ignoring out-of-range date '{value}'")
        return None


def format_local_date(value: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def add_days(value: date, days: int) -> date:
    """Add (or subtract, if negative) calendar days."""
    return value + timedelta(days=days)


def day_difference(start: date, end: date) -> int:
    """Signed number of days from start to end (exclusive)."""
    return (end - start).days


def days_between(start: date, end: date) -> int:
    """Number of days from start to end, counting both ends."""
    return (end - start).days + 1


def duration_from_dates(start: date | None, end: date | None) -> int:
    """Inclusive span of a task in days, never less than one."""
    if start is None or end is None:
        return 1
    return max(1, days_between(start, end))


def is_weekend(value: date) -> bool:
    """Check whether a date falls on Saturday or Sunday."""
    return value.weekday() in (SATURDAY, SUNDAY)


def add_working_days(start: date, days: int) -> date:
    """Move forward by a number of working days, skipping weekends.

    A start date on a weekend first rolls forward to Monday.
    """
    result = start
    while is_weekend(result):
        result += timedelta(days=1)

    added = 0
    while added < days:
        result += timedelta(days=1)
        if not is_weekend(result):
            added += 1
    return result


def subtract_working_days(end: date, days: int) -> date:
    """Move backward by a number of working days, skipping weekends.

    An end date on a weekend first rolls back to Friday.
    """
    result = end
    while is_weekend(result):
        result -= timedelta(days=1)

    subtracted = 0
    while subtracted < days:
        result -= timedelta(days=1)
        if not is_weekend(result):
            subtracted += 1
    return result


def end_date_from_duration(start: date, days: float, *, skip_weekends: bool = False) -> date:
    """End date (inclusive) of a task starting on ``start`` lasting ``days`` days."""
    if days <= 0:
        return start
    offset = math.ceil(days) - 1
    if skip_weekends:
        return add_working_days(start, offset)
    return add_days(start, offset)


def start_date_from_duration(end: date, days: float, *, skip_weekends: bool = False) -> date:
    """Start date of a task ending (inclusive) on ``end`` lasting ``days`` days."""
    if days <= 0:
        return end
    offset = math.ceil(days) - 1
    if skip_weekends:
        return subtract_working_days(end, offset)
    return add_days(end, -offset)
