"""High-level scheduling service."""

from datetime import date

from ganttcalc.dates import add_days
from ganttcalc.durations import days_to_minutes, snap_days
from ganttcalc.exceptions import CircularDependencyError, MissingReferenceError, ValidationError
from ganttcalc.logger import get_logger
from ganttcalc.models import ProjectData, Task

from .calculator import ParentSpans, TaskDateCalculator
from .cascade import cascade_from
from .config import SchedulingConfig
from .constraints import ConstraintEngine
from .buffer import calculate_project_buffer
from .core import (
    CascadeResult,
    CascadeUpdate,
    ConstraintCheck,
    CriticalPathResult,
    CycleReport,
    DatedTask,
    DateSpan,
    ProjectBuffer,
    ScheduleStatus,
    TaskNode,
)
from .critical_path import calculate_critical_path
from .cycles import cycle_components, detect_cycles
from .hierarchy import calculate_date_range, organize_hierarchy, recalculate_wbs_codes
from .pending import PendingChanges
from .sync import (
    DurationAdjustment,
    SyncField,
    TaskFields,
    apply_duration_adjustment,
    sync_task_fields,
)

logger = get_logger()


class SchedulingService:
    """High-level service for the date logic of one project.

    This service coordinates:
    - TaskDateCalculator (effective dates, parents spanning their children)
    - ConstraintEngine (predecessor checks and conflict audit)
    - Cascade recalculation, cycle detection and critical path analysis

    Every calculation runs against the project's tasks with the pending
    (not yet saved) edits overlaid, so chained edits within one batch see each
    other.
    """

    def __init__(
        self,
        project: ProjectData,
        config: SchedulingConfig | None = None,
        pending: PendingChanges | None = None,
        today: date | None = None,
    ):
        """Initialize scheduling service.

        Args:
            project: Tasks, links, allocations and resources of the project
            config: Optional scheduling configuration
            pending: Pending edits to honour (a new empty set by default)
            today: Date used when neither the task, the project nor the
                config provides a start (defaults to today)
        """
        self.project = project
        self.config = config or SchedulingConfig()
        self.pending = pending if pending is not None else PendingChanges()
        self.today = today
        self.names = project.task_names()

    def _require_task(self, task_id: str) -> Task:
        task = self.project.get_task(task_id)
        if task is None:
            raise MissingReferenceError(task_id)
        return task

    def effective_tasks(self) -> list[Task]:
        """Project tasks with pending edits applied."""
        return self.pending.apply(self.project.tasks)

    def dated_tasks(self) -> dict[str, DatedTask]:
        """Effective dates of every task, keyed by ID in project order."""
        calculator = TaskDateCalculator(self.project.start_date, self.config, self.today)
        return calculator.calculate(self.effective_tasks(), self.project.allocations)

    def date_spans(self) -> dict[str, DateSpan]:
        return {task_id: dated.span for task_id, dated in self.dated_tasks().items()}

    def engine(self) -> ConstraintEngine:
        """Constraint engine over the project's links and current durations."""
        durations = {task.id: task.duration_minutes for task in self.effective_tasks()}
        return ConstraintEngine(self.project.links, self.names, durations, self.config)

    def tree(self) -> list[TaskNode]:
        """Root nodes of the task tree with allocations attached."""
        return organize_hierarchy(
            list(self.dated_tasks().values()), self.project.allocations, self.project.resources
        )

    def date_range(self) -> tuple[date, date]:
        """Padded timeline range covering all tasks."""
        return calculate_date_range(
            list(self.dated_tasks().values()),
            self.config.date_range_lead_days,
            self.config.date_range_trail_days,
            self.today,
        )

    def check(self, task_id: str, proposed_start: date | None = None) -> ConstraintCheck:
        """Check a task (optionally at a proposed start) against its predecessors.

        Raises:
            MissingReferenceError: If the task does not exist
        """
        self._require_task(task_id)
        return self.engine().check(task_id, self.date_spans(), proposed_start)

    def audit(self) -> list[CascadeUpdate]:
        """Every task currently starting before its predecessors allow."""
        return self.engine().audit(self.date_spans())

    def cycles(self) -> CycleReport:
        return detect_cycles(self.project.get_all_ids(), self.project.links)

    def require_acyclic(self) -> None:
        """Raise if the predecessor links contain a cycle.

        Raises:
            CircularDependencyError: If any cycle exists
        """
        report = self.cycles()
        if report.has_cycle:
            raise CircularDependencyError(report.cycle_path)

    def statuses(self) -> dict[str, ScheduleStatus]:
        """Schedule status of every task."""
        in_cycle = {
            task_id
            for component in cycle_components(self.project.get_all_ids(), self.project.links)
            for task_id in component
        }
        engine = self.engine()
        dates = self.date_spans()

        result: dict[str, ScheduleStatus] = {}
        for task_id in dates:
            if task_id in in_cycle:
                result[task_id] = ScheduleStatus.CYCLE
            elif not engine.live_predecessor_links(task_id, dates):
                result[task_id] = ScheduleStatus.UNCONSTRAINED
            elif engine.check(task_id, dates).valid:
                result[task_id] = ScheduleStatus.VALID
            else:
                result[task_id] = ScheduleStatus.CONFLICTED
        return result

    def status(self, task_id: str) -> ScheduleStatus:
        """Schedule status of one task.

        Raises:
            MissingReferenceError: If the task does not exist
        """
        self._require_task(task_id)
        return self.statuses()[task_id]

    def critical_path(self) -> CriticalPathResult:
        return calculate_critical_path(
            self.date_spans(), self.project.links, self.project.start_date
        )

    def buffer(self) -> ProjectBuffer:
        """Projected finish against the project buffer and target date."""
        return calculate_project_buffer(
            list(self.dated_tasks().values()),
            self.project.start_date,
            self.project.buffer_days,
            self.project.target_end_date,
            self.today,
        )

    def wbs_codes(self) -> dict[str, str]:
        """Fresh WBS numbering of the task tree, including pending edits."""
        return recalculate_wbs_codes(self.effective_tasks())

    def missing_references(self) -> list[str]:
        """Describe links, parents and allocations pointing at unknown records."""
        task_ids = self.project.get_all_ids()
        resource_ids = {resource.id for resource in self.project.resources}
        problems: list[str] = []
        for task in self.project.tasks:
            if task.parent_id and task.parent_id not in task_ids:
                problems.append(f"Task '{task.id}' has unknown parent '{task.parent_id}'")
        for link in self.project.links:
            for task_id in (link.task_id, link.predecessor_id):
                if task_id not in task_ids:
                    problems.append(f"Link {link} references unknown task '{task_id}'")
        for allocation in self.project.allocations:
            if allocation.task_id not in task_ids:
                problems.append(f"Allocation references unknown task '{allocation.task_id}'")
            if allocation.resource_id not in resource_ids:
                problems.append(
                    f"Allocation of '{allocation.task_id}' references unknown resource "
                    f"'{allocation.resource_id}'"
                )
        return problems

    def propose_cascade(
        self,
        task_id: str,
        start: date | None = None,
        end: date | None = None,
        duration_days: float | None = None,
        adjustment: DurationAdjustment = DurationAdjustment.EXTEND_END,
    ) -> CascadeResult:
        """Edit a task's dates and propose updates for everything downstream.

        A start alone moves the task (keeping its span); an end resizes it; a
        duration change is snapped to the ``snap_minutes`` grid and follows
        ``adjustment``. The edit is recorded in the pending changes (for leaf
        tasks; parent dates are always derived from their children). Parents
        whose span changes with the edit are cascaded from as well. The
        returned updates are only a proposal; pass them to ``accept_cascade``
        to record them.

        Args:
            task_id: Task being edited
            start: New start date
            end: New end date
            duration_days: New duration in days
            adjustment: How a duration change moves the dates

        Raises:
            MissingReferenceError: If the task does not exist
            ValidationError: If nothing changes or the result ends before it starts
        """
        task = self._require_task(task_id)
        if start is None and end is None and duration_days is None:
            raise ValidationError("Nothing to change: give a start, end or duration")
        if duration_days is not None:
            duration_days = snap_days(
                duration_days, self.config.snap_minutes, self.config.minutes_per_working_day
            )

        spans = self.dated_tasks()
        dated = spans[task_id]
        fields = TaskFields(dated.start_date, dated.end_date, float(dated.duration_days))
        if start is not None and end is None:
            # Moving the start alone drags the task, keeping its span
            fields.start_date = start
            fields.end_date = add_days(start, dated.duration_days - 1)
        elif start is not None:
            updates = sync_task_fields(SyncField.START_DATE, start, fields, self.config)
            fields = updates.apply_to(fields)
        if end is not None:
            fields = sync_task_fields(SyncField.END_DATE, end, fields, self.config).apply_to(fields)
        if duration_days is not None:
            updates = apply_duration_adjustment(duration_days, adjustment, fields, self.config)
            fields = updates.apply_to(fields)

        assert fields.start_date is not None and fields.end_date is not None
        if fields.end_date < fields.start_date:
            raise ValidationError(
                f"Task '{task_id}' would end ({fields.end_date}) "
                f"before it starts ({fields.start_date})"
            )

        if dated.derived:
            logger.debug(f"'{task_id}' has children; its stored dates are not edited")
        else:
            self.pending.add(task_id, "start_date", fields.start_date, task.start_date)
            self.pending.add(task_id, "end_date", fields.end_date, task.end_date)
            if duration_days is not None:
                minutes = days_to_minutes(duration_days, self.config.minutes_per_working_day)
                self.pending.add(task_id, "duration_minutes", minutes, task.duration_minutes)

        before = {tid: d.span for tid, d in spans.items()}
        dates = self.date_spans()
        dates[task_id] = DateSpan(fields.start_date, fields.end_date)
        logger.changes(f"'{task_id}' now {fields.start_date} .. {fields.end_date}")

        # Parents spanning the edited task may have grown or shifted with it
        parents = ParentSpans(self.effective_tasks())
        parents.refresh_ancestors(task_id, dates)
        changed_ancestors = [
            ancestor_id
            for ancestor_id in parents.ancestors(task_id)
            if dates.get(ancestor_id) != before.get(ancestor_id)
        ]
        return cascade_from([task_id, *changed_ancestors], dates, self.engine(), parents)

    def accept_cascade(self, result: CascadeResult) -> None:
        """Record proposed updates as pending edits of the affected leaf tasks."""
        dated = self.dated_tasks()
        for update in result.updates:
            task = self.project.get_task(update.task_id)
            if task is None or dated[update.task_id].derived:
                continue
            self.pending.add(update.task_id, "start_date", update.new_start, task.start_date)
            self.pending.add(update.task_id, "end_date", update.new_end, task.end_date)
