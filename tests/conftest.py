"""Pytest configuration and fixtures for ganttcalc tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from ganttcalc import context
from ganttcalc.logger import reset_logger
from ganttcalc.models import Allocation, LinkType, PredecessorLink, ProjectData, Resource, Task
from ganttcalc.scheduler import DateSpan


@pytest.fixture(autouse=True)
def clean_global_state() -> Iterator[None]:
    """Reset the logger and CLI context between tests."""
    reset_logger()
    context.reset()
    yield
    reset_logger()
    context.reset()


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """Factory for tasks with sensible defaults."""

    def _make(task_id: str, **kwargs: Any) -> Task:
        kwargs.setdefault("name", task_id.title())
        return Task(id=task_id, **kwargs)

    return _make


@pytest.fixture
def make_link() -> Callable[..., PredecessorLink]:
    """Factory for predecessor links; ``make_link("b", "a")`` means b depends on a."""

    def _make(
        task_id: str,
        predecessor_id: str,
        link_type: LinkType | str = LinkType.FINISH_TO_START,
        lag_days: float = 0.0,
    ) -> PredecessorLink:
        return PredecessorLink(
            task_id=task_id,
            predecessor_id=predecessor_id,
            type=LinkType(link_type),
            lag_days=lag_days,
        )

    return _make


@pytest.fixture
def span() -> Callable[[str, str], DateSpan]:
    """Build a DateSpan from ISO strings."""

    def _make(start: str, end: str) -> DateSpan:
        return DateSpan(date.fromisoformat(start), date.fromisoformat(end))

    return _make


@pytest.fixture
def example_project() -> ProjectData:
    """Small project: Design (2 days) -> Review, inside a Discovery parent."""
    return ProjectData(
        name="Example",
        start_date=date(2024, 3, 1),
        tasks=[
            Task(id="discovery", name="Discovery"),
            Task(id="design", name="Design", parent_id="discovery", duration_minutes=1080),
            Task(
                id="review",
                name="Review",
                parent_id="discovery",
                duration_minutes=240,
                start_date=date(2024, 3, 3),
            ),
            Task(id="build", name="Build", duration_minutes=540 * 3, start_date=date(2024, 3, 4)),
        ],
        links=[
            PredecessorLink("review", "design"),
            PredecessorLink("build", "review"),
        ],
        allocations=[Allocation("review", "ana", date(2024, 3, 3), date(2024, 3, 3), 240)],
        resources=[Resource("ana", "Ana")],
    )


@pytest.fixture
def write_project(tmp_path: Path) -> Callable[..., Path]:
    """Write YAML text to a project file in tmp_path and return its path."""

    def _write(content: str, name: str = "project.yaml") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
