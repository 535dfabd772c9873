"""Unsaved per-task field edits for batch editing."""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from ganttcalc.exceptions import ValidationError
from ganttcalc.logger import get_logger
from ganttcalc.models import Task

logger = get_logger()

EDITABLE_FIELDS = frozenset(
    {"start_date", "end_date", "duration_minutes", "progress", "margin_start", "margin_end"}
)


def _normalise(value: Any) -> Any:
    """Treat None and blank strings alike; strip other strings."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def values_equal(first: Any, second: Any) -> bool:
    return _normalise(first) == _normalise(second)


@dataclass
class PendingChange:
    """One unsaved field edit."""

    task_id: str
    field: str
    value: Any
    original_value: Any


def _default_updates() -> dict[str, Any]:
    return {}


@dataclass
class TaskPatch:
    """All pending edits of one task, ready to be written back."""

    task_id: str
    updates: dict[str, Any] = field(default_factory=_default_updates)


class PendingChanges:
    """Accumulates field edits until they are flushed.

    An edit that restores a field's original value removes the pending change
    for that field.
    """

    def __init__(self) -> None:
        self._changes: dict[tuple[str, str], PendingChange] = {}

    def __len__(self) -> int:
        return len(self._changes)

    def __bool__(self) -> bool:
        return bool(self._changes)

    def add(self, task_id: str, field_name: str, value: Any, original_value: Any) -> None:
        """Record an edit.

        Raises:
            ValidationError: If the field is not editable
        """
        if field_name not in EDITABLE_FIELDS:
            raise ValidationError(
                f"Field '{field_name}' cannot be edited "
                f"(editable: {', '.join(sorted(EDITABLE_FIELDS))})"
            )
        key = (task_id, field_name)
        if values_equal(value, original_value):
            if self._changes.pop(key, None) is not None:
                logger.debug(f"Edit of {task_id}.{field_name} reverted; dropping it")
            return
        self._changes[key] = PendingChange(task_id, field_name, value, original_value)
        logger.debug(f"Pending: {task_id}.{field_name} = {value!r} (was {original_value!r})")

    def has_change(self, task_id: str, field_name: str) -> bool:
        return (task_id, field_name) in self._changes

    def get_change(self, task_id: str, field_name: str) -> PendingChange | None:
        return self._changes.get((task_id, field_name))

    def current_value(self, task_id: str, field_name: str, original_value: Any) -> Any:
        """The pending value of a field if there is one, else the original."""
        change = self._changes.get((task_id, field_name))
        return change.value if change else original_value

    def changed_task_ids(self) -> list[str]:
        """IDs of tasks with pending edits, in edit order."""
        return list(dict.fromkeys(task_id for task_id, _ in self._changes))

    def patches(self) -> list[TaskPatch]:
        """Pending edits grouped by task, in edit order."""
        grouped: dict[str, TaskPatch] = {}
        for change in self._changes.values():
            patch = grouped.setdefault(change.task_id, TaskPatch(change.task_id))
            patch.updates[change.field] = change.value
        return list(grouped.values())

    def apply(self, tasks: Sequence[Task]) -> list[Task]:
        """Tasks with their pending values overlaid (the inputs are not modified)."""
        by_task = {patch.task_id: patch.updates for patch in self.patches()}
        return [replace(task, **by_task[task.id]) if task.id in by_task else task for task in tasks]

    def clear(self) -> None:
        self._changes.clear()

    def flush(self) -> list[TaskPatch]:
        """Return all pending edits and forget them."""
        patches = self.patches()
        self.clear()
        return patches
