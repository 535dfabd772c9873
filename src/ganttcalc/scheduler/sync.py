"""Keep a task's start date, end date and duration consistent after an edit.

Durations here are in (possibly fractional) days; the end date of a task
lasting ``d`` days is ``start + ceil(d) - 1``. Any date change clears the
task's lag.
"""

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum

from ganttcalc.dates import duration_from_dates, end_date_from_duration, start_date_from_duration
from ganttcalc.exceptions import ValidationError

from .config import SchedulingConfig


class SyncField(str, Enum):
    """Field edited by the user."""

    START_DATE = "start_date"
    END_DATE = "end_date"
    DURATION = "duration"


class DurationAdjustment(str, Enum):
    """What to move when a duration changes."""

    EXTEND_END = "extend_end"  # Keep the start, move the end
    PULL_START = "pull_start"  # Keep the end, move the start
    ADD_LAG = "add_lag"  # Keep both dates, absorb the difference as lag


@dataclass
class TaskFields:
    """The date-related fields of one task."""

    start_date: date | None = None
    end_date: date | None = None
    duration: float = 0.0  # Days
    lag_days: float = 0.0


@dataclass
class FieldUpdates:
    """Fields to write back after a sync; None means unchanged."""

    start_date: date | None = None
    end_date: date | None = None
    duration: float | None = None
    lag_days: float | None = None

    def apply_to(self, current: TaskFields) -> TaskFields:
        """Return ``current`` with these updates applied."""
        return TaskFields(
            start_date=self.start_date if self.start_date is not None else current.start_date,
            end_date=self.end_date if self.end_date is not None else current.end_date,
            duration=self.duration if self.duration is not None else current.duration,
            lag_days=self.lag_days if self.lag_days is not None else current.lag_days,
        )


def _skip_weekends(config: SchedulingConfig | None) -> bool:
    return config.skip_weekends if config is not None else False


def sync_task_fields(
    changed_field: SyncField | str,
    new_value: date | float,
    current: TaskFields,
    config: SchedulingConfig | None = None,
) -> FieldUpdates:
    """Recompute the dependent fields after one field changes.

    - start_date: recompute the duration if an end exists, otherwise the end
      from the duration
    - end_date: recompute the duration if a start exists, otherwise the start
      from the duration
    - duration: move the end if a start exists, otherwise pull the start back
      from the end

    Raises:
        ValidationError: If the field name or value type is not valid
    """
    try:
        changed = SyncField(changed_field)
    except ValueError as e:
        raise ValidationError(f"Cannot sync unknown field '{changed_field}'") from e
    skip = _skip_weekends(config)
    updates = FieldUpdates()

    if changed == SyncField.DURATION:
        if not isinstance(new_value, (int, float)):
            raise ValidationError(f"Duration must be a number, got {new_value!r}")
        updates.duration = new_value
        if current.start_date is not None:
            updates.end_date = end_date_from_duration(
                current.start_date, new_value, skip_weekends=skip
            )
            updates.lag_days = 0
        elif current.end_date is not None:
            updates.start_date = start_date_from_duration(
                current.end_date, new_value, skip_weekends=skip
            )
            updates.lag_days = 0
        return updates

    if not isinstance(new_value, date):
        raise ValidationError(f"{changed.value} must be a date, got {new_value!r}")

    if changed == SyncField.START_DATE:
        updates.start_date = new_value
        if current.end_date is not None:
            updates.duration = duration_from_dates(new_value, current.end_date)
            updates.lag_days = 0
        elif current.duration:
            updates.end_date = end_date_from_duration(
                new_value, current.duration, skip_weekends=skip
            )
            updates.lag_days = 0
    else:
        updates.end_date = new_value
        if current.start_date is not None:
            updates.duration = duration_from_dates(current.start_date, new_value)
            updates.lag_days = 0
        elif current.duration:
            updates.start_date = start_date_from_duration(
                new_value, current.duration, skip_weekends=skip
            )
            updates.lag_days = 0
    return updates


def apply_duration_adjustment(
    new_duration: float,
    strategy: DurationAdjustment | str,
    current: TaskFields,
    config: SchedulingConfig | None = None,
) -> FieldUpdates:
    """Apply a duration change with an explicit strategy.

    Raises:
        ValidationError: If the strategy is unknown or the task lacks the date
            the strategy keeps
    """
    try:
        adjustment = DurationAdjustment(strategy)
    except ValueError as e:
        raise ValidationError(f"Unknown duration adjustment '{strategy}'") from e
    skip = _skip_weekends(config)

    if adjustment == DurationAdjustment.EXTEND_END:
        if current.start_date is None:
            raise ValidationError("extend_end needs a start date")
        return FieldUpdates(
            start_date=current.start_date,
            end_date=end_date_from_duration(current.start_date, new_duration, skip_weekends=skip),
            duration=new_duration,
            lag_days=0,
        )

    if adjustment == DurationAdjustment.PULL_START:
        if current.end_date is None:
            raise ValidationError("pull_start needs an end date")
        return FieldUpdates(
            start_date=start_date_from_duration(current.end_date, new_duration, skip_weekends=skip),
            end_date=current.end_date,
            duration=new_duration,
            lag_days=0,
        )

    return FieldUpdates(
        start_date=current.start_date,
        end_date=current.end_date,
        duration=new_duration,
        lag_days=current.lag_days + (new_duration - current.duration),
    )


def validate_task_dates(current: TaskFields) -> str | None:
    """Check that the duration matches the date span.

    Returns:
        A message describing the mismatch, or None if consistent (or if any
        field is missing)
    """
    if current.start_date is None or current.end_date is None or not current.duration:
        return None

    span_days = duration_from_dates(current.start_date, current.end_date)
    expected = math.ceil(current.duration)
    if span_days != expected:
        return (
            f"Inconsistent duration: dates span {span_days} day(s) "
            f"but the duration is {expected} day(s)"
        )
    return None
