"""Configuration classes for the scheduling core."""

from datetime import date

from pydantic import BaseModel, Field

from ganttcalc.durations import DEFAULT_SNAP_MINUTES, MINUTES_PER_WORKING_DAY


class SchedulingConfig(BaseModel):
    """Settings for date calculation and constraint checking."""

    # Length of a working day; durations are converted to days with this ratio
    minutes_per_working_day: int = Field(default=MINUTES_PER_WORKING_DAY, gt=0)

    # Granularity for interactive resize rounding
    snap_minutes: int = Field(default=DEFAULT_SNAP_MINUTES, gt=0)

    # Start date for tasks with no stored start when the project has none either.
    # None means "today", which makes results depend on when they are computed.
    fallback_start_date: date | None = None

    # Let a finish-to-start successor start on the day its predecessor ends
    # when the predecessor only occupies part of that day
    allow_same_day_chaining: bool = False

    # Skip Saturdays and Sundays when syncing end/start dates from durations
    skip_weekends: bool = False

    # Padding around the task span for the timeline date range
    date_range_lead_days: int = Field(default=2, ge=0)
    date_range_trail_days: int = Field(default=7, ge=0)
