"""Task date calculation.

Resolves the effective start/end dates of every task:

- Tasks with children span their children: the earliest child start minus the
  start margin to the latest child end plus the end margin.
- Leaf tasks use their stored dates. A missing start falls back to the
  project start date; a missing end is computed from the duration.
- Fragmented leaf tasks (more than one allocation) end with their latest
  allocation.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import date

from ganttcalc.dates import add_days, duration_from_dates
from ganttcalc.durations import duration_days
from ganttcalc.logger import get_logger
from ganttcalc.models import Allocation, PredecessorLink, Task

from .config import SchedulingConfig
from .core import DatedTask, DateSpan

logger = get_logger()


def build_children_index(tasks: Sequence[Task]) -> dict[str, list[Task]]:
    """Map parent ID to its direct children, in input order.

    Tasks whose parent does not exist are treated as roots and do not appear
    in the index.
    """
    known_ids = {task.id for task in tasks}
    children: dict[str, list[Task]] = {}
    for task in tasks:
        parent_id = task.parent_id
        if not parent_id:
            continue
        if parent_id not in known_ids:
            logger.debug(
                f"Task '{task.id}' references missing parent '{parent_id}'; treating as root"
            )
            continue
        if parent_id == task.id:
            logger.warning(f"Task '{task.id}' is its own parent; treating as root")
            continue
        children.setdefault(parent_id, []).append(task)
    return children


def latest_allocation_ends(allocations: Iterable[Allocation]) -> dict[str, tuple[int, date | None]]:
    """Per task: number of allocations and the latest allocation end date."""
    result: dict[str, tuple[int, date | None]] = {}
    for allocation in allocations:
        count, latest = result.get(allocation.task_id, (0, None))
        end = allocation.end_date
        if end is not None and (latest is None or end > latest):
            latest = end
        result[allocation.task_id] = (count + 1, latest)
    return result


class TaskDateCalculator:
    """Computes effective dates for a flat list of tasks."""

    def __init__(
        self,
        project_start: date | None = None,
        config: SchedulingConfig | None = None,
        today: date | None = None,
    ):
        """Initialize the calculator.

        Args:
            project_start: Default start date for tasks without a stored start
            config: Scheduling configuration
            today: Date used as a last-resort default (defaults to date.today())
        """
        self.project_start = project_start
        self.config = config or SchedulingConfig()
        self._today = today
        self._warned_today = False

    def default_start(self) -> date:
        """Start date for leaf tasks that have none stored."""
        if self.project_start is not None:
            return self.project_start
        if self.config.fallback_start_date is not None:
            return self.config.fallback_start_date
        today = self._today or date.today()  # noqa: DTZ011
        if not self._warned_today:
            logger.warning(
                f"No project start date or fallback_start_date configured; "
                f"using today ({today}) for tasks without a start date"
            )
            self._warned_today = True
        return today

    def calculate(
        self,
        tasks: Sequence[Task],
        allocations: Iterable[Allocation] | None = None,
    ) -> dict[str, DatedTask]:
        """Resolve the dates of every task.

        Returns:
            Dict of task ID to DatedTask, in the same order as ``tasks``
        """
        children = build_children_index(tasks)
        allocation_ends = latest_allocation_ends(allocations or [])
        resolved: dict[str, DatedTask] = {}

        for root in tasks:
            if root.id in resolved:
                continue
            visiting: set[str] = set()
            stack: list[tuple[Task, bool]] = [(root, False)]
            while stack:
                task, children_done = stack.pop()
                if task.id in resolved:
                    continue
                if children_done:
                    visiting.discard(task.id)
                    kids = [resolved[c.id] for c in children.get(task.id, []) if c.id in resolved]
                    resolved[task.id] = self._resolve(task, kids, allocation_ends.get(task.id))
                    continue

                visiting.add(task.id)
                stack.append((task, True))
                for child in reversed(children.get(task.id, [])):
                    if child.id in resolved:
                        continue
                    if child.id in visiting:
                        logger.warning(
                            f"Parent loop between '{task.id}' and '{child.id}'; "
                            f"ignoring '{child.id}' as a child of '{task.id}'"
                        )
                        continue
                    stack.append((child, False))

        return {task.id: resolved[task.id] for task in tasks}

    def _resolve(
        self,
        task: Task,
        children: list[DatedTask],
        allocation_info: tuple[int, date | None] | None,
    ) -> DatedTask:
        if children:
            return self._resolve_parent(task, children)
        return self._resolve_leaf(task, allocation_info)

    def _resolve_parent(self, task: Task, children: list[DatedTask]) -> DatedTask:
        earliest = min(child.start_date for child in children)
        latest = max(child.end_date for child in children)
        start = add_days(earliest, -math.ceil(task.margin_start))
        end = add_days(latest, math.ceil(task.margin_end))
        logger.debug(
            f"  {task.id}: derived from {len(children)} children -> {start} .. {end}"
        )
        return DatedTask(
            task=task,
            start_date=start,
            end_date=end,
            duration_days=duration_from_dates(start, end),
            derived=True,
        )

    def _resolve_leaf(
        self, task: Task, allocation_info: tuple[int, date | None] | None
    ) -> DatedTask:
        start = task.start_date or self.default_start()
        computed_end = add_days(
            start,
            duration_days(task.duration_minutes, self.config.minutes_per_working_day) - 1,
        )

        end = computed_end
        if allocation_info is not None and allocation_info[0] > 1 and allocation_info[1]:
            # Fragmented: the task finishes with its last allocation
            end = allocation_info[1]
            if end < start:
                logger.warning(
                    f"Task '{task.id}' has allocations ending before its start; ignoring them"
                )
                end = task.end_date if task.end_date and task.end_date >= start else computed_end
        elif task.end_date is not None:
            if task.end_date < start:
                logger.warning(
                    f"Task '{task.id}' ends ({task.end_date}) before it starts ({start}); "
                    "using its duration instead"
                )
            else:
                end = task.end_date

        logger.debug(f"  {task.id}: {start} .. {end}")
        return DatedTask(
            task=task,
            start_date=start,
            end_date=end,
            duration_days=duration_from_dates(start, end),
        )


def calculate_task_dates(
    tasks: Sequence[Task],
    project_start: date | None = None,
    allocations: Iterable[Allocation] | None = None,
    config: SchedulingConfig | None = None,
) -> list[DatedTask]:
    """Resolve the dates of every task, returned in input order."""
    calculator = TaskDateCalculator(project_start, config)
    return list(calculator.calculate(tasks, allocations).values())


class ParentSpans:
    """Recomputes derived parent spans when children move.

    Used while a cascade works on a date snapshot: moving a child can widen
    or shift its parent, which then has to be checked like any other task.
    """

    def __init__(self, tasks: Sequence[Task]):
        children = build_children_index(tasks)
        self.tasks = {task.id: task for task in tasks}
        self.children = {parent_id: [c.id for c in kids] for parent_id, kids in children.items()}
        self.parent_of = {
            child_id: parent_id
            for parent_id, kids in self.children.items()
            for child_id in kids
        }

    def hierarchy_links(self) -> list[PredecessorLink]:
        """Child-to-parent edges for dependency graphs that include the tree."""
        return [
            PredecessorLink(task_id=parent_id, predecessor_id=child_id)
            for child_id, parent_id in self.parent_of.items()
        ]

    def ancestors(self, task_id: str) -> list[str]:
        """Parent, grandparent and so on, stopping at a parent loop."""
        result: list[str] = []
        seen = {task_id}
        current = self.parent_of.get(task_id)
        while current is not None and current not in seen:
            result.append(current)
            seen.add(current)
            current = self.parent_of.get(current)
        return result

    def span_of(self, parent_id: str, dates: Mapping[str, DateSpan]) -> DateSpan | None:
        """Span of a parent from its children's dates in the snapshot."""
        kids = [
            dates[child_id] for child_id in self.children.get(parent_id, []) if child_id in dates
        ]
        if not kids:
            return None
        task = self.tasks[parent_id]
        return DateSpan(
            add_days(min(kid.start for kid in kids), -math.ceil(task.margin_start)),
            add_days(max(kid.end for kid in kids), math.ceil(task.margin_end)),
        )

    def refresh_ancestors(self, task_id: str, dates: dict[str, DateSpan]) -> list[str]:
        """Update the ancestors of a moved task in place.

        Returns:
            IDs of the ancestors whose span changed, nearest first
        """
        changed: list[str] = []
        for ancestor_id in self.ancestors(task_id):
            span = self.span_of(ancestor_id, dates)
            if span is None or span == dates.get(ancestor_id):
                break
            dates[ancestor_id] = span
            changed.append(ancestor_id)
        return changed
