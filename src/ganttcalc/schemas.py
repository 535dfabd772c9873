"""Pydantic schemas for validating raw project records.

Records are ingested once through these schemas and converted to the strict
dataclasses in ``ganttcalc.models``; the scheduler never sees raw dictionaries.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from .dates import parse_local_date
from .durations import parse_time_input
from .logger import get_logger
from .models import (
    Allocation,
    LinkType,
    PredecessorLink,
    ProjectData,
    Resource,
    ResourceRole,
    Task,
)

logger = get_logger()


def _coerce_date(v: Any) -> date | None:
    """Turn any incoming date value into a date, or None if unusable."""
    if v is None or v == "":
        return None
    if isinstance(v, (str, date)):
        return parse_local_date(v)
    logger.warning(f"Ignoring unparsable date {v!r}")
    return None


def _coerce_minutes(v: Any) -> int:
    if v is None:
        return 0
    if isinstance(v, bool):
        raise ValueError("duration must be a number or a duration string")
    if isinstance(v, (int, float)):
        return round(v)
    if isinstance(v, str):
        minutes = parse_time_input(v)
        if minutes is None:
            raise ValueError(f"invalid duration '{v}' (use e.g. 90, '2h', '1.5d', '2d 3h')")
        return minutes
    raise ValueError("duration must be a number or a duration string")


class TaskSchema(BaseModel):
    """Schema for a task record."""

    id: str
    name: str = ""
    parent_id: str | None = Field(
        default=None, validation_alias=AliasChoices("parent_id", "parent")
    )
    duration_minutes: int = Field(
        default=0, validation_alias=AliasChoices("duration_minutes", "duration")
    )
    start_date: date | None = None
    end_date: date | None = None
    progress: int = 0
    sort_order: int = 0
    margin_start: float = 0.0
    margin_end: float = 0.0
    wbs_code: str = ""

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def coerce_id_to_string(cls, v: Any) -> str | None:
        """Allow numeric IDs in YAML."""
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> date | None:
        """Parse dates without timezone shifts; unparsable values become None."""
        return _coerce_date(v)

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def parse_duration(cls, v: Any) -> int:
        """Accept minutes or a duration string like '2d 3h'."""
        return _coerce_minutes(v)

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v: Any) -> int:
        """Clamp progress to 0-100."""
        if v is None:
            return 0
        return max(0, min(100, round(float(v))))

    @field_validator("margin_start", "margin_end", mode="before")
    @classmethod
    def non_negative_margin(cls, v: Any) -> float:
        """Margins are slack and never negative."""
        if v is None:
            return 0.0
        return max(0.0, float(v))

    @field_validator("wbs_code", mode="before")
    @classmethod
    def coerce_wbs_code(cls, v: Any) -> str:
        """YAML reads a code like 1.2 as a number."""
        if v is None:
            return ""
        return str(v).strip()

    def to_model(self) -> Task:
        """Convert to the internal Task dataclass."""
        return Task(
            id=self.id,
            name=self.name,
            parent_id=self.parent_id,
            duration_minutes=max(0, self.duration_minutes),
            start_date=self.start_date,
            end_date=self.end_date,
            progress=self.progress,
            sort_order=self.sort_order,
            margin_start=self.margin_start,
            margin_end=self.margin_end,
            wbs_code=self.wbs_code,
        )


class PredecessorSchema(BaseModel):
    """Schema for a predecessor link record."""

    task_id: str = Field(validation_alias=AliasChoices("task_id", "task"))
    predecessor_id: str = Field(validation_alias=AliasChoices("predecessor_id", "predecessor"))
    type: str = "FS"
    lag_days: float = Field(
        default=0.0, validation_alias=AliasChoices("lag_days", "lag", "lag_time")
    )

    @field_validator("task_id", "predecessor_id", mode="before")
    @classmethod
    def coerce_id_to_string(cls, v: Any) -> str:
        """Allow numeric IDs in YAML."""
        return str(v)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type_to_string(cls, v: Any) -> str:
        """Missing type means finish-to-start."""
        if v is None:
            return "FS"
        return str(v)

    @field_validator("lag_days", mode="before")
    @classmethod
    def default_lag(cls, v: Any) -> float:
        """Missing lag means no lag."""
        if v is None:
            return 0.0
        return float(v)

    def to_model(self) -> PredecessorLink:
        """Convert to the internal PredecessorLink dataclass."""
        link_type = LinkType.parse(self.type)
        if link_type is None:
            logger.warning(
                f"Unknown link type '{self.type}' for {self.predecessor_id} -> {self.task_id}; "
                "treating as finish-to-start"
            )
            link_type = LinkType.FINISH_TO_START
        return PredecessorLink(
            task_id=self.task_id,
            predecessor_id=self.predecessor_id,
            type=link_type,
            lag_days=self.lag_days,
        )


class AllocationSchema(BaseModel):
    """Schema for an allocation record."""

    task_id: str = Field(validation_alias=AliasChoices("task_id", "task"))
    resource_id: str = Field(validation_alias=AliasChoices("resource_id", "resource"))
    start_date: date | None = None
    end_date: date | None = None
    allocated_minutes: int = Field(
        default=0, validation_alias=AliasChoices("allocated_minutes", "minutes")
    )

    @field_validator("task_id", "resource_id", mode="before")
    @classmethod
    def coerce_id_to_string(cls, v: Any) -> str:
        """Allow numeric IDs in YAML."""
        return str(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> date | None:
        """Parse dates without timezone shifts; unparsable values become None."""
        return _coerce_date(v)

    @field_validator("allocated_minutes", mode="before")
    @classmethod
    def parse_minutes(cls, v: Any) -> int:
        """Accept minutes or a duration string."""
        return _coerce_minutes(v)

    def to_model(self) -> Allocation:
        """Convert to the internal Allocation dataclass."""
        return Allocation(
            task_id=self.task_id,
            resource_id=self.resource_id,
            start_date=self.start_date,
            end_date=self.end_date,
            allocated_minutes=self.allocated_minutes,
        )


class ResourceSchema(BaseModel):
    """Schema for a resource record."""

    id: str
    name: str = ""
    role: ResourceRole = ResourceRole.OPERATOR

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id_to_string(cls, v: Any) -> str:
        """Allow numeric IDs in YAML."""
        return str(v)

    @field_validator("role", mode="before")
    @classmethod
    def normalise_role(cls, v: Any) -> Any:
        """Roles are case-insensitive; missing role means operator."""
        if v is None:
            return ResourceRole.OPERATOR
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def to_model(self) -> Resource:
        """Convert to the internal Resource dataclass."""
        return Resource(id=self.id, name=self.name, role=self.role)


class ProjectInfoSchema(BaseModel):
    """Schema for the project header."""

    name: str = ""
    start_date: date | None = None
    target_end_date: date | None = None
    buffer_days: int = 0

    @field_validator("start_date", "target_end_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> date | None:
        """Parse dates without timezone shifts; unparsable values become None."""
        return _coerce_date(v)

    @field_validator("buffer_days", mode="before")
    @classmethod
    def non_negative_buffer(cls, v: Any) -> int:
        """Missing buffer means none; partial days round up."""
        if v is None:
            return 0
        return max(0, math.ceil(float(v)))


class ProjectSchema(BaseModel):
    """Schema for an entire project file."""

    project: ProjectInfoSchema = Field(default_factory=ProjectInfoSchema)
    tasks: list[TaskSchema] = Field(default_factory=list[TaskSchema])
    predecessors: list[PredecessorSchema] = Field(
        default_factory=list[PredecessorSchema],
        validation_alias=AliasChoices("predecessors", "links"),
    )
    allocations: list[AllocationSchema] = Field(default_factory=list[AllocationSchema])
    resources: list[ResourceSchema] = Field(default_factory=list[ResourceSchema])

    @field_validator("tasks", "predecessors", "allocations", "resources", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> Any:
        """An empty YAML section is an empty list."""
        if v is None:
            return []
        return v

    def to_project_data(self) -> ProjectData:
        """Convert to the internal ProjectData dataclass."""
        return ProjectData(
            name=self.project.name,
            start_date=self.project.start_date,
            target_end_date=self.project.target_end_date,
            buffer_days=self.project.buffer_days,
            tasks=[task.to_model() for task in self.tasks],
            links=[link.to_model() for link in self.predecessors],
            allocations=[allocation.to_model() for allocation in self.allocations],
            resources=[resource.to_model() for resource in self.resources],
        )
