"""Duration conversion utilities.

Durations are stored in minutes. A working day is 9 hours (540 minutes), so
calendar spans are derived by converting minutes to working days and rounding
up to whole days.
"""

from __future__ import annotations

import math
import re

MINUTES_PER_HOUR = 60
WORKING_HOURS_PER_DAY = 9
MINUTES_PER_WORKING_DAY = WORKING_HOURS_PER_DAY * MINUTES_PER_HOUR  # 540
DEFAULT_SNAP_MINUTES = 15

# Upper bound accepted for a single task (100 working days)
MAX_DURATION_MINUTES = 100 * MINUTES_PER_WORKING_DAY

_TIME_PART_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([dhm])")
_BARE_NUMBER_RE = re.compile(r"^\d+(\.\d+)?$")


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def minutes_to_days(minutes: float, minutes_per_day: int = MINUTES_PER_WORKING_DAY) -> float:
    """Convert minutes to (fractional) working days."""
    return minutes / minutes_per_day


def days_to_minutes(days: float, minutes_per_day: int = MINUTES_PER_WORKING_DAY) -> int:
    """Convert working days to whole minutes."""
    return _round_half_up(days * minutes_per_day)


def hours_to_minutes(hours: float) -> int:
    """Convert hours to whole minutes."""
    return _round_half_up(hours * MINUTES_PER_HOUR)


def minutes_to_hours(minutes: float) -> float:
    """Convert minutes to hours."""
    return minutes / MINUTES_PER_HOUR


def duration_days(
    minutes: float | None, minutes_per_day: int = MINUTES_PER_WORKING_DAY
) -> int:
    """Number of calendar days a duration occupies (never less than one)."""
    if not minutes or minutes <= 0:
        return 1
    return max(1, math.ceil(minutes_to_days(minutes, minutes_per_day)))


def snap_minutes(minutes: float, increment: int = DEFAULT_SNAP_MINUTES) -> int:
    """Round minutes to the nearest snap increment (halves round up)."""
    return _round_half_up(minutes / increment) * increment


def snap_days(
    days: float,
    increment_minutes: int = DEFAULT_SNAP_MINUTES,
    minutes_per_day: int = MINUTES_PER_WORKING_DAY,
) -> float:
    """Round a fractional day value to the snap grid used by interactive resize.

    The result is never smaller than one increment, so a resized task always
    keeps a visible duration.
    """
    increment = increment_minutes / minutes_per_day
    snapped = _round_half_up(days / increment) * increment
    return max(increment, snapped)


def parse_time_input(text: str | None) -> int | None:
    """Parse a flexible duration string into minutes.

    Supported formats:
    - "90" - bare number, minutes
    - "30m", "2h", "1.5d" - single unit (d = working day of 540 minutes)
    - "2d 3h", "1d 30m" - combined units

    Returns None if the input contains no recognisable duration.
    """
    if not text or not isinstance(text, str):
        return None

    trimmed = text.strip().lower()
    if not trimmed:
        return None

    if _BARE_NUMBER_RE.match(trimmed):
        return _round_half_up(float(trimmed))

    total = 0.0
    matched = False
    for value, unit in _TIME_PART_RE.findall(trimmed):
        matched = True
        num = float(value)
        if unit == "d":
            total += days_to_minutes(num)
        elif unit == "h":
            total += hours_to_minutes(num)
        else:
            total += num

    return _round_half_up(total) if matched else None


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def format_minutes(minutes: int, style: str = "auto") -> str:
    """Format minutes for display.

    Styles:
    - "auto": 810 -> "1.5 days", 540 -> "1 day", 120 -> "2h", 30 -> "30min"
    - "short": 810 -> "1.5d", 120 -> "2.0h", 30 -> "30m"
    - "long": 810 -> "1 day 4 hours 30 minutes"
    """
    if minutes == 0:
        return "0m" if style == "short" else "0 minutes"

    sign = "-" if minutes < 0 else ""
    abs_minutes = abs(minutes)

    if style == "short":
        if abs_minutes >= MINUTES_PER_WORKING_DAY:
            return f"{sign}{minutes_to_days(abs_minutes):.1f}d"
        if abs_minutes >= MINUTES_PER_HOUR:
            return f"{sign}{minutes_to_hours(abs_minutes):.1f}h"
        return f"{sign}{abs_minutes}m"

    if style == "long":
        days, remainder = divmod(abs_minutes, MINUTES_PER_WORKING_DAY)
        hours, mins = divmod(remainder, MINUTES_PER_HOUR)
        parts: list[str] = []
        if days:
            parts.append(_plural(days, "day"))
        if hours:
            parts.append(_plural(hours, "hour"))
        if mins:
            parts.append(_plural(mins, "minute"))
        return sign + " ".join(parts)

    if style != "auto":
        raise ValueError(f"Unknown format style: {style}")

    if abs_minutes >= MINUTES_PER_WORKING_DAY:
        if abs_minutes % MINUTES_PER_WORKING_DAY == 0:
            return sign + _plural(abs_minutes // MINUTES_PER_WORKING_DAY, "day")
        return f"{sign}{minutes_to_days(abs_minutes):.1f} days"

    if abs_minutes >= MINUTES_PER_HOUR:
        if abs_minutes % MINUTES_PER_HOUR == 0:
            return f"{sign}{abs_minutes // MINUTES_PER_HOUR}h"
        return f"{sign}{minutes_to_hours(abs_minutes):.1f}h"

    return f"{sign}{abs_minutes}min"


def validate_duration(minutes: float, work_type: str = "work") -> str | None:
    """Check a task duration for the given work type.

    Returns:
        None if the duration is acceptable, otherwise a human-readable error
    """
    if work_type == "milestone":
        if minutes != 0:
            return "Milestones must have zero duration"
        return None

    if minutes <= 0:
        return "Duration must be greater than zero"

    if minutes > MAX_DURATION_MINUTES:
        return f"Maximum duration is {format_minutes(MAX_DURATION_MINUTES)}"

    return None
