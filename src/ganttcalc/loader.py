"""Project file loading.

A project file is YAML with optional ``project``, ``tasks``,
``predecessors`` (or ``links``), ``allocations`` and ``resources`` sections.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ParseError, ValidationError
from .logger import get_logger
from .models import ProjectData
from .schemas import ProjectSchema

logger = get_logger()


def parse_project_data(data: dict[str, Any]) -> ProjectData:
    """Validate raw records and convert them to ProjectData.

    Raises:
        ValidationError: If the structure is invalid or task IDs repeat
    """
    try:
        schema = ProjectSchema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid project structure: {e}") from e

    seen: set[str] = set()
    for task in schema.tasks:
        if task.id in seen:
            raise ValidationError(f"Duplicate task ID: {task.id}")
        seen.add(task.id)

    project = schema.to_project_data()
    logger.debug(
        f"Loaded {len(project.tasks)} tasks, {len(project.links)} links, "
        f"{len(project.allocations)} allocations, {len(project.resources)} resources"
    )
    return project


def load_project(path: Path | str) -> ProjectData:
    """Load a project YAML file.

    Raises:
        ParseError: If the file is missing, unreadable or is not a YAML mapping
        ValidationError: If the records are invalid
    """
    path = Path(path)
    if not path.exists():
        raise ParseError(f"File not found: {path}", path)

    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse YAML: {e}", path) from e
    except UnicodeDecodeError as e:
        raise ParseError(f"File is not valid UTF-8: {path}", path) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("YAML must contain a dictionary at the root level", path)

    return parse_project_data(data)
