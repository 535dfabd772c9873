"""Project buffer analysis.

The projected finish of a project is the latest end date of its tasks. A
project may reserve contingency days after that finish (the buffer) and may
have a target end date it is measured against.
"""

from collections.abc import Sequence
from datetime import date

from ganttcalc.dates import add_days, day_difference
from ganttcalc.logger import get_logger

from .core import BufferStatus, DatedTask, ProjectBuffer, TargetStatus

logger = get_logger()

# Finishing this close to the target counts as tight
TIGHT_TARGET_DAYS = 2


def projected_end_date(
    dated_tasks: Sequence[DatedTask],
    project_start: date | None = None,
    today: date | None = None,
) -> date:
    """Latest task end, never before the project start.

    Without tasks this is the project start, or today when there is none.
    """
    if not dated_tasks:
        return project_start or today or date.today()  # noqa: DTZ011
    latest = max(dated.end_date for dated in dated_tasks)
    if project_start is not None and project_start > latest:
        return project_start
    return latest


def calculate_project_buffer(
    dated_tasks: Sequence[DatedTask],
    project_start: date | None = None,
    buffer_days: int = 0,
    target_end_date: date | None = None,
    today: date | None = None,
) -> ProjectBuffer:
    """Compare the projected finish with the buffer and the target date.

    Args:
        dated_tasks: Effective dates of all tasks
        project_start: Project start date
        buffer_days: Contingency days reserved after the projected finish
        target_end_date: Date the project should finish by, if any
        today: Fallback finish for a project without tasks or start

    Returns:
        ProjectBuffer with buffer and target status
    """
    real_end = projected_end_date(dated_tasks, project_start, today)
    buffer_end = add_days(real_end, buffer_days)
    overrun = day_difference(buffer_end, real_end)

    if overrun > 0:
        buffer_status = BufferStatus.EXCEEDED
        days_used = buffer_days + overrun
        days_remaining = -overrun
    elif overrun == 0:
        buffer_status = BufferStatus.CONSUMED
        days_used = buffer_days
        days_remaining = 0
    else:
        buffer_status = BufferStatus.SAFE
        days_used = max(0, buffer_days + overrun)
        days_remaining = -overrun

    target_status = TargetStatus.NO_TARGET
    target_days = 0
    if target_end_date is not None:
        target_days = day_difference(real_end, target_end_date)
        if target_days < 0:
            target_status = TargetStatus.DELAYED
        elif target_days <= TIGHT_TARGET_DAYS:
            target_status = TargetStatus.TIGHT
        else:
            target_status = TargetStatus.ON_TRACK

    logger.debug(
        f"Projected finish {real_end}, buffer until {buffer_end} ({buffer_status.value}), "
        f"target {target_status.value}"
    )
    return ProjectBuffer(
        real_end_date=real_end,
        buffer_end_date=buffer_end,
        target_end_date=target_end_date,
        buffer_status=buffer_status,
        buffer_days_used=days_used,
        buffer_days_remaining=days_remaining,
        target_status=target_status,
        target_days_remaining=target_days,
    )


def describe_buffer(buffer: ProjectBuffer) -> str:
    """One-line summary, led by the target status when there is a target."""
    if buffer.target_status == TargetStatus.DELAYED:
        return f"Delayed: {-buffer.target_days_remaining} day(s) past the target date"
    if buffer.target_status == TargetStatus.TIGHT:
        return f"Tight: {buffer.target_days_remaining} day(s) until the target date"
    if buffer.target_status == TargetStatus.ON_TRACK:
        return f"On track: {buffer.target_days_remaining} day(s) to spare before the target date"

    if buffer.buffer_status == BufferStatus.EXCEEDED:
        return f"Buffer exceeded by {-buffer.buffer_days_remaining} day(s)"
    if buffer.buffer_status == BufferStatus.CONSUMED:
        return "Buffer fully consumed"
    return f"Buffer safe: {buffer.buffer_days_remaining} day(s) remaining"
