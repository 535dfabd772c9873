"""Data models for ganttcalc."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from .durations import MINUTES_PER_WORKING_DAY


class LinkType(str, Enum):
    """Relation type of a predecessor link."""

    FINISH_TO_START = "FS"
    START_TO_START = "SS"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "SF"

    @classmethod
    def parse(cls, value: str | LinkType | None) -> LinkType | None:
        """Parse a relation type, accepting the common spellings.

        Supported formats:
        - "FS", "SS", "FF", "SF" (any case)
        - "finish_to_start", "finish-to-start", ... (any case)
        - "fim_inicio", "inicio_inicio", "fim_fim", "inicio_fim"

        Returns None if the value is not recognised.
        """
        if value is None:
            return None
        if isinstance(value, LinkType):
            return value
        key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        return _LINK_TYPE_ALIASES.get(key)

    @property
    def label(self) -> str:
        """Human-readable relation name."""
        return _LINK_TYPE_LABELS[self]


_LINK_TYPE_ALIASES: dict[str, LinkType] = {
    "fs": LinkType.FINISH_TO_START,
    "finish_to_start": LinkType.FINISH_TO_START,
    "fim_inicio": LinkType.FINISH_TO_START,
    "ss": LinkType.START_TO_START,
    "start_to_start": LinkType.START_TO_START,
    "inicio_inicio": LinkType.START_TO_START,
    "ff": LinkType.FINISH_TO_FINISH,
    "finish_to_finish": LinkType.FINISH_TO_FINISH,
    "fim_fim": LinkType.FINISH_TO_FINISH,
    "sf": LinkType.START_TO_FINISH,
    "start_to_finish": LinkType.START_TO_FINISH,
    "inicio_fim": LinkType.START_TO_FINISH,
}

_LINK_TYPE_LABELS: dict[LinkType, str] = {
    LinkType.FINISH_TO_START: "finish-to-start",
    LinkType.START_TO_START: "start-to-start",
    LinkType.FINISH_TO_FINISH: "finish-to-finish",
    LinkType.START_TO_FINISH: "start-to-finish",
}


class ResourceRole(str, Enum):
    """Hierarchy role of a resource."""

    MANAGER = "manager"
    LEADER = "leader"
    OPERATOR = "operator"


@dataclass
class Task:
    """A schedulable task.

    ``duration_minutes`` is the canonical duration. ``start_date`` and
    ``end_date`` are optional stored dates; tasks with children have their span
    derived from the children (plus margins) instead.
    """

    id: str
    name: str = ""
    parent_id: str | None = None
    duration_minutes: int = 0
    start_date: date | None = None
    end_date: date | None = None
    progress: int = 0
    sort_order: int = 0
    margin_start: float = 0.0  # Days of slack before the earliest child
    margin_end: float = 0.0  # Days of slack after the latest child
    wbs_code: str = ""  # Work breakdown code such as "1.2.3"

    @property
    def display_name(self) -> str:
        """Name for messages, falling back to the ID."""
        return self.name or self.id

    @property
    def duration_working_days(self) -> float:
        """Duration in (fractional) working days."""
        return self.duration_minutes / MINUTES_PER_WORKING_DAY


@dataclass(frozen=True)
class PredecessorLink:
    """A dependency of ``task_id`` on ``predecessor_id``.

    The lag is the number of days added to the predecessor's reference date
    (its start or end, depending on the link type). Negative lag is a lead.
    """

    task_id: str
    predecessor_id: str
    type: LinkType = LinkType.FINISH_TO_START
    lag_days: float = 0.0

    def __str__(self) -> str:
        lag = ""
        if self.lag_days:
            sign = "+" if self.lag_days > 0 else "-"
            amount = abs(self.lag_days)
            lag = f" {sign} {int(amount) if amount == int(amount) else amount}d"
        return f"{self.predecessor_id} -{self.type.value}-> {self.task_id}{lag}"


@dataclass
class Allocation:
    """Assignment of a resource to a task over a date range."""

    task_id: str
    resource_id: str
    start_date: date | None = None
    end_date: date | None = None
    allocated_minutes: int = 0


@dataclass
class Resource:
    """A person who can be allocated to tasks."""

    id: str
    name: str = ""
    role: ResourceRole = ResourceRole.OPERATOR


def _default_tasks() -> list[Task]:
    return []


def _default_links() -> list[PredecessorLink]:
    return []


def _default_allocations() -> list[Allocation]:
    return []


def _default_resources() -> list[Resource]:
    return []


@dataclass
class ProjectData:
    """All records the scheduler needs for one project."""

    name: str = ""
    start_date: date | None = None
    target_end_date: date | None = None
    buffer_days: int = 0  # Contingency days added after the last task
    tasks: list[Task] = field(default_factory=_default_tasks)
    links: list[PredecessorLink] = field(default_factory=_default_links)
    allocations: list[Allocation] = field(default_factory=_default_allocations)
    resources: list[Resource] = field(default_factory=_default_resources)

    def get_task(self, task_id: str) -> Task | None:
        """Look up a task by ID."""
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def get_all_ids(self) -> set[str]:
        """Get the IDs of all tasks."""
        return {task.id for task in self.tasks}

    def task_names(self) -> dict[str, str]:
        """Map of task ID to display name."""
        return {task.id: task.display_name for task in self.tasks}
