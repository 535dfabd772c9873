"""Predecessor constraint checking.

Dates are whole calendar days and end dates are inclusive. For a link with lag
``L`` days (fractional lag rounds up to the next whole day):

- finish-to-start: start >= predecessor end + 1 + L
- start-to-start: start >= predecessor start + L
- finish-to-finish: end >= predecessor end + L
- start-to-finish: end >= predecessor start + L

Finish constraints are turned into a minimum start by keeping the task's own
span. A task must satisfy all of its links at once, so the binding constraint
is the one producing the latest minimum start.
"""

import math
from collections.abc import Mapping, Sequence
from datetime import date

from ganttcalc.dates import add_days
from ganttcalc.durations import minutes_to_days
from ganttcalc.logger import get_logger
from ganttcalc.models import LinkType, PredecessorLink

from .config import SchedulingConfig
from .core import CascadeUpdate, ConstraintCheck, ConstraintViolation, DateSpan

logger = get_logger()


def lag_as_days(lag_days: float) -> int:
    """Whole-day lag; partial days round up."""
    return math.ceil(lag_days)


def _describe_lag(lag_days: float) -> str:
    if not lag_days:
        return ""
    if lag_days == int(lag_days):
        return f", lag {int(lag_days):+d}d"
    return f", lag {lag_days:+g}d"


def index_links_by_task(links: Sequence[PredecessorLink]) -> dict[str, list[PredecessorLink]]:
    """Map each dependent task ID to its predecessor links, in input order."""
    index: dict[str, list[PredecessorLink]] = {}
    for link in links:
        index.setdefault(link.task_id, []).append(link)
    return index


def index_links_by_predecessor(
    links: Sequence[PredecessorLink],
) -> dict[str, list[PredecessorLink]]:
    """Map each predecessor task ID to the links of its successors, in input order."""
    index: dict[str, list[PredecessorLink]] = {}
    for link in links:
        index.setdefault(link.predecessor_id, []).append(link)
    return index


class ConstraintEngine:
    """Evaluates predecessor constraints against a set of task dates.

    The engine is built once per set of links and can be queried with different
    date snapshots, so batch edits and cascade proposals can be checked against
    not-yet-saved dates.
    """

    def __init__(
        self,
        links: Sequence[PredecessorLink],
        names: Mapping[str, str] | None = None,
        durations: Mapping[str, int] | None = None,
        config: SchedulingConfig | None = None,
    ):
        """Initialize the engine.

        Args:
            links: All predecessor links of the project
            names: Task display names for messages (defaults to IDs)
            durations: Task durations in minutes, used for same-day chaining
            config: Scheduling configuration
        """
        self.links = list(links)
        self.names = dict(names or {})
        self.durations = dict(durations or {})
        self.config = config or SchedulingConfig()
        self.links_by_task = index_links_by_task(self.links)
        self.links_by_predecessor = index_links_by_predecessor(self.links)

    def name_of(self, task_id: str) -> str:
        return self.names.get(task_id, task_id)

    def predecessor_links(self, task_id: str) -> list[PredecessorLink]:
        """Links in which the task is the dependent."""
        return self.links_by_task.get(task_id, [])

    def successor_links(self, task_id: str) -> list[PredecessorLink]:
        """Links in which the task is the predecessor."""
        return self.links_by_predecessor.get(task_id, [])

    def live_predecessor_links(
        self, task_id: str, dates: Mapping[str, DateSpan]
    ) -> list[PredecessorLink]:
        """Predecessor links whose predecessor exists and is not the task itself."""
        return [
            link
            for link in self.predecessor_links(task_id)
            if link.predecessor_id in dates and link.predecessor_id != task_id
        ]

    def min_start_for_link(
        self,
        link: PredecessorLink,
        predecessor: DateSpan,
        span_days: int,
        current_start: date | None = None,
        dates: Mapping[str, DateSpan] | None = None,
    ) -> date:
        """Earliest start of the dependent allowed by a single link."""
        lag = lag_as_days(link.lag_days)

        if link.type == LinkType.FINISH_TO_START:
            if (
                self.config.allow_same_day_chaining
                and lag == 0
                and current_start == predecessor.end
                and dates is not None
                and self._fits_same_day(link.predecessor_id, dates)
            ):
                return predecessor.end
            return add_days(predecessor.end, 1 + lag)
        if link.type == LinkType.START_TO_START:
            return add_days(predecessor.start, lag)
        if link.type == LinkType.FINISH_TO_FINISH:
            return add_days(predecessor.end, lag - (span_days - 1))
        return add_days(predecessor.start, lag - (span_days - 1))

    def check(
        self,
        task_id: str,
        dates: Mapping[str, DateSpan],
        proposed_start: date | None = None,
    ) -> ConstraintCheck:
        """Check a task's start against all of its predecessors.

        Args:
            task_id: Task to check
            dates: Effective dates of every task
            proposed_start: Start date to check instead of the current one
                (the task keeps its span length)

        Returns:
            ConstraintCheck; ``min_start`` is set whenever the task has at
            least one live predecessor
        """
        span = dates.get(task_id)
        if span is None:
            return ConstraintCheck(valid=True)
        if proposed_start is not None:
            span = DateSpan(proposed_start, add_days(proposed_start, span.days - 1))

        links = self.live_predecessor_links(task_id, dates)
        if not links:
            return ConstraintCheck(valid=True)

        logger.checks(
            f"Checking '{task_id}' starting {span.start} against {len(links)} predecessor(s)"
        )

        binding: PredecessorLink | None = None
        binding_start: date | None = None
        violations: list[ConstraintViolation] = []
        for link in links:
            predecessor = dates[link.predecessor_id]
            min_start = self.min_start_for_link(link, predecessor, span.days, span.start, dates)
            logger.checks(f"  {link}: earliest start {min_start}")

            if binding_start is None or min_start > binding_start:
                binding, binding_start = link, min_start

            if span.start < min_start:
                violations.append(
                    ConstraintViolation(
                        predecessor_id=link.predecessor_id,
                        predecessor_name=self.name_of(link.predecessor_id),
                        link_type=link.type,
                        lag_days=link.lag_days,
                        min_start=min_start,
                        days_late=(min_start - span.start).days,
                    )
                )

        assert binding is not None and binding_start is not None
        min_end = add_days(binding_start, span.days - 1)

        if not violations:
            return ConstraintCheck(
                valid=True,
                min_start=binding_start,
                min_end=min_end,
                binding_predecessor_id=binding.predecessor_id,
            )

        days_late = (binding_start - span.start).days
        message = (
            f'Conflicts with predecessor "{self.name_of(binding.predecessor_id)}" '
            f"({binding.type.label}{_describe_lag(binding.lag_days)}): "
            f'"{self.name_of(task_id)}" must start {days_late} day(s) later, '
            f"on or after {binding_start.isoformat()}"
        )
        logger.checks(f"  -> {message}")
        return ConstraintCheck(
            valid=False,
            min_start=binding_start,
            min_end=min_end,
            message=message,
            binding_predecessor_id=binding.predecessor_id,
            violations=violations,
        )

    def intra_day_offset(
        self,
        task_id: str,
        dates: Mapping[str, DateSpan],
        _path: frozenset[str] = frozenset(),
    ) -> float:
        """Fraction of the start day already used by same-day finish-to-start predecessors.

        A predecessor counts when it ends on the day this task starts. Its
        contribution is its own offset plus the fractional part of its duration
        in working days. Cycles contribute nothing.
        """
        if task_id in _path:
            return 0.0
        span = dates.get(task_id)
        if span is None:
            return 0.0
        path = _path | {task_id}

        offset = 0.0
        for link in self.predecessor_links(task_id):
            if link.type != LinkType.FINISH_TO_START:
                continue
            predecessor = dates.get(link.predecessor_id)
            if predecessor is None or predecessor.end != span.start:
                continue
            total = self.intra_day_offset(
                link.predecessor_id, dates, path
            ) + self._last_day_occupancy(link.predecessor_id)
            offset = max(offset, total)
        return offset

    def _last_day_occupancy(self, task_id: str) -> float:
        days = minutes_to_days(
            self.durations.get(task_id, self.config.minutes_per_working_day),
            self.config.minutes_per_working_day,
        )
        return days - math.floor(days)

    def _fits_same_day(self, predecessor_id: str, dates: Mapping[str, DateSpan]) -> bool:
        occupancy = self._last_day_occupancy(predecessor_id)
        if occupancy <= 0:
            return False
        return self.intra_day_offset(predecessor_id, dates) + occupancy < 1

    def audit(self, dates: Mapping[str, DateSpan]) -> list[CascadeUpdate]:
        """Find every task that starts before its predecessors allow.

        Returns:
            One update per conflicted task, moving it to its binding minimum
            start and keeping its span
        """
        updates: list[CascadeUpdate] = []
        for task_id in dates:
            if not self.predecessor_links(task_id):
                continue
            check = self.check(task_id, dates)
            if check.valid or check.min_start is None or check.min_end is None:
                continue
            updates.append(
                CascadeUpdate(
                    task_id=task_id,
                    new_start=check.min_start,
                    new_end=check.min_end,
                    reason=check.message or "",
                )
            )
        return updates


def check_task_constraints(
    task_id: str,
    dates: Mapping[str, DateSpan],
    links: Sequence[PredecessorLink],
    names: Mapping[str, str] | None = None,
    proposed_start: date | None = None,
    config: SchedulingConfig | None = None,
    durations: Mapping[str, int] | None = None,
) -> ConstraintCheck:
    """Check a task against all of its predecessors (see ConstraintEngine.check).

    ``durations`` (minutes per task) is needed for same-day chaining.
    """
    return ConstraintEngine(links, names, durations, config).check(task_id, dates, proposed_start)


def audit_conflicts(
    dates: Mapping[str, DateSpan],
    links: Sequence[PredecessorLink],
    names: Mapping[str, str] | None = None,
    config: SchedulingConfig | None = None,
    durations: Mapping[str, int] | None = None,
) -> list[CascadeUpdate]:
    """Find every conflicted task (see ConstraintEngine.audit)."""
    return ConstraintEngine(links, names, durations, config).audit(dates)
