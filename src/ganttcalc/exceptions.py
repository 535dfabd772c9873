"""Exceptions raised by ganttcalc.

Scheduling itself reports conflicts and cycles in its results. These are only
raised at the edges: loading files, strict checks and lookups by task ID.
"""

from __future__ import annotations

from pathlib import Path


class GanttCalcError(Exception):
    """Base exception for all ganttcalc errors."""


class ValidationError(GanttCalcError):
    """Raised when project data or an edit fails validation."""


class CircularDependencyError(ValidationError):
    """Raised when predecessor links form a cycle and a strict caller asked for none."""

    def __init__(self, cycle_path: list[str]):
        self.cycle_path = cycle_path
        super().__init__(f"Circular dependency detected: {' -> '.join(cycle_path)}")


class MissingReferenceError(ValidationError):
    """Raised when a task ID is not part of the project."""

    def __init__(self, task_id: str, kind: str = "task"):
        self.task_id = task_id
        super().__init__(f"Unknown {kind} '{task_id}'")


class ParseError(GanttCalcError):
    """Raised when a project file cannot be read or parsed."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class ConfigError(GanttCalcError):
    """Raised when a configuration file is missing or invalid."""
