"""Core dataclasses for the scheduling system."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from ganttcalc.models import Allocation, LinkType, Resource, Task


def _default_str_list() -> list[str]:
    return []


def _default_str_set() -> set[str]:
    return set()


@dataclass
class DatedTask:
    """A task with its effective dates resolved."""

    task: Task
    start_date: date
    end_date: date
    duration_days: int
    derived: bool = False  # True if dates come from children rather than the task itself

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def parent_id(self) -> str | None:
        return self.task.parent_id

    @property
    def name(self) -> str:
        return self.task.display_name

    @property
    def span(self) -> "DateSpan":
        return DateSpan(self.start_date, self.end_date)


@dataclass(frozen=True)
class DateSpan:
    """Inclusive start/end dates of a task."""

    start: date
    end: date

    @property
    def days(self) -> int:
        """Inclusive length in days (never less than one)."""
        return max(1, (self.end - self.start).days + 1)


@dataclass
class AssignedAllocation:
    """An allocation joined with its resource."""

    allocation: Allocation
    resource: Resource


def _default_allocations() -> "list[AssignedAllocation]":
    return []


def _default_nodes() -> "list[TaskNode]":
    return []


@dataclass
class TaskNode:
    """A dated task in the task tree."""

    dated: DatedTask
    allocations: list[AssignedAllocation] = field(default_factory=_default_allocations)
    subtasks: "list[TaskNode]" = field(default_factory=_default_nodes)

    @property
    def id(self) -> str:
        return self.dated.id

    @property
    def is_fragmented(self) -> bool:
        """A leaf task split across more than one allocation."""
        return not self.subtasks and len(self.allocations) > 1

    def walk(self) -> "list[TaskNode]":
        """This node and all its descendants, depth-first."""
        nodes: list[TaskNode] = []
        stack = [self]
        while stack:
            node = stack.pop()
            nodes.append(node)
            stack.extend(reversed(node.subtasks))
        return nodes


@dataclass(frozen=True)
class ConstraintViolation:
    """One predecessor link that the task's current dates violate."""

    predecessor_id: str
    predecessor_name: str
    link_type: LinkType
    lag_days: float
    min_start: date
    days_late: int  # How many days later the task must start


def _default_violations() -> list[ConstraintViolation]:
    return []


@dataclass
class ConstraintCheck:
    """Result of checking a task against all of its predecessors."""

    valid: bool
    min_start: date | None = None  # Earliest start satisfying every predecessor
    min_end: date | None = None  # End date when starting at min_start
    message: str | None = None
    binding_predecessor_id: str | None = None  # Predecessor producing min_start
    violations: list[ConstraintViolation] = field(default_factory=_default_violations)

    @property
    def min_date(self) -> date | None:
        """Earliest legal start date (alias of min_start)."""
        return self.min_start


@dataclass(frozen=True)
class CascadeUpdate:
    """A proposed date change for one task."""

    task_id: str
    new_start: date
    new_end: date
    reason: str = ""


def _default_updates() -> list[CascadeUpdate]:
    return []


@dataclass
class CascadeResult:
    """Proposed updates produced by cascade recalculation.

    Updates are a proposal: nothing is written until the caller confirms them.
    """

    updates: list[CascadeUpdate] = field(default_factory=_default_updates)
    tasks_in_cycle: set[str] = field(default_factory=_default_str_set)

    @property
    def has_cycle(self) -> bool:
        return bool(self.tasks_in_cycle)

    def update_for(self, task_id: str) -> CascadeUpdate | None:
        """Get the proposed update for a task, if any."""
        return next((u for u in self.updates if u.task_id == task_id), None)


@dataclass
class CycleReport:
    """Cycles found among predecessor links."""

    has_cycle: bool
    cycle_nodes: set[str] = field(default_factory=_default_str_set)
    cycle_path: list[str] = field(default_factory=_default_str_list)  # First cycle, closed


class ScheduleStatus(str, Enum):
    """Schedule state of a single task."""

    UNCONSTRAINED = "unconstrained"  # No predecessors
    VALID = "valid"  # All predecessor constraints satisfied
    CONFLICTED = "conflicted"  # At least one constraint violated
    CYCLE = "cycle"  # Part of a dependency cycle


@dataclass
class CriticalPathTask:
    """CPM figures for one task."""

    task_id: str
    early_start: date
    early_finish: date
    late_start: date
    late_finish: date
    total_slack: int = 0
    free_slack: int = 0
    is_critical: bool = False


def _default_cpm_tasks() -> dict[str, CriticalPathTask]:
    return {}


@dataclass
class CriticalPathResult:
    """Complete critical path analysis."""

    tasks: dict[str, CriticalPathTask] = field(default_factory=_default_cpm_tasks)
    critical_path: list[str] = field(default_factory=_default_str_list)
    project_duration: int = 0
    project_early_finish: date | None = None
    skipped: set[str] = field(default_factory=_default_str_set)  # Tasks in cycles


class BufferStatus(str, Enum):
    """How much of the project buffer the schedule uses."""

    SAFE = "safe"  # Buffer days still available
    CONSUMED = "consumed"  # Buffer used up exactly
    EXCEEDED = "exceeded"  # Finishing after the buffer


class TargetStatus(str, Enum):
    """Projected finish compared with the target end date."""

    ON_TRACK = "on_track"
    TIGHT = "tight"  # At most a couple of days to spare
    DELAYED = "delayed"  # Finishing after the target
    NO_TARGET = "no_target"


@dataclass
class ProjectBuffer:
    """Projected finish of a project against its buffer and target date."""

    real_end_date: date
    buffer_end_date: date
    target_end_date: date | None
    buffer_status: BufferStatus
    buffer_days_used: int
    buffer_days_remaining: int
    target_status: TargetStatus
    target_days_remaining: int = 0  # Negative when late
