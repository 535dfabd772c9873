"""Tests for the high-level scheduling service."""

from datetime import date

import pytest

from ganttcalc.exceptions import CircularDependencyError, MissingReferenceError, ValidationError
from ganttcalc.models import Allocation, PredecessorLink, ProjectData, Task
from ganttcalc.scheduler import (
    BufferStatus,
    DurationAdjustment,
    PendingChanges,
    SchedulingConfig,
    SchedulingService,
    ScheduleStatus,
    TargetStatus,
)


class TestDates:
    """Test date calculation through the service."""

    def test_example_dates(self, example_project: ProjectData) -> None:
        """Design (1080 min) from the project start spans 03-01..03-02."""
        dated = SchedulingService(example_project).dated_tasks()
        assert (dated["design"].start_date, dated["design"].end_date) == (
            date(2024, 3, 1),
            date(2024, 3, 2),
        )
        assert (dated["review"].start_date, dated["review"].end_date) == (
            date(2024, 3, 3),
            date(2024, 3, 3),
        )
        assert dated["discovery"].derived
        assert (dated["discovery"].start_date, dated["discovery"].end_date) == (
            date(2024, 3, 1),
            date(2024, 3, 3),
        )

    def test_tree(self, example_project: ProjectData) -> None:
        """The tree nests subtasks and attaches allocations."""
        roots = SchedulingService(example_project).tree()
        assert [r.id for r in roots] == ["discovery", "build"]
        assert [c.id for c in roots[0].subtasks] == ["design", "review"]
        assert roots[0].subtasks[1].allocations[0].resource.name == "Ana"

    def test_date_range(self, example_project: ProjectData) -> None:
        """The timeline range pads the project span."""
        assert SchedulingService(example_project).date_range() == (
            date(2024, 2, 28),
            date(2024, 3, 13),
        )

    def test_fallback_start_from_config(self) -> None:
        """Without any start date the configured fallback is used."""
        project = ProjectData(tasks=[Task(id="a")])
        config = SchedulingConfig(fallback_start_date=date(2025, 1, 6))
        dated = SchedulingService(project, config).dated_tasks()
        assert dated["a"].start_date == date(2025, 1, 6)


class TestChecks:
    """Test constraint checks and status."""

    def test_review_after_design_is_valid(self, example_project: ProjectData) -> None:
        """Review starting 03-03 after Design ending 03-02 satisfies FS."""
        result = SchedulingService(example_project).check("review")
        assert result.valid
        assert result.min_start == date(2024, 3, 3)

    def test_proposed_start_conflict(self, example_project: ProjectData) -> None:
        """Moving Review onto Design's last day conflicts."""
        result = SchedulingService(example_project).check("review", date(2024, 3, 2))
        assert not result.valid
        assert result.message is not None
        assert 'predecessor "Design"' in result.message

    def test_unknown_task(self, example_project: ProjectData) -> None:
        """Unknown task IDs are an error."""
        with pytest.raises(MissingReferenceError, match="Unknown task 'ghost'") as exc_info:
            SchedulingService(example_project).check("ghost")
        assert exc_info.value.task_id == "ghost"

    def test_statuses(self, example_project: ProjectData) -> None:
        """Every task gets a schedule status."""
        statuses = SchedulingService(example_project).statuses()
        assert statuses == {
            "discovery": ScheduleStatus.UNCONSTRAINED,
            "design": ScheduleStatus.UNCONSTRAINED,
            "review": ScheduleStatus.VALID,
            "build": ScheduleStatus.VALID,
        }

    def test_conflicted_and_cycle_status(self) -> None:
        """Conflicts and cycles are flagged."""
        project = ProjectData(
            start_date=date(2024, 3, 1),
            tasks=[Task(id="a"), Task(id="b"), Task(id="x"), Task(id="y")],
            links=[
                PredecessorLink("b", "a"),
                PredecessorLink("x", "y"),
                PredecessorLink("y", "x"),
            ],
        )
        service = SchedulingService(project)
        assert service.status("b") == ScheduleStatus.CONFLICTED
        assert service.status("x") == ScheduleStatus.CYCLE
        assert service.status("y") == ScheduleStatus.CYCLE

    def test_audit(self) -> None:
        """The audit lists conflicted tasks."""
        project = ProjectData(
            start_date=date(2024, 3, 1),
            tasks=[Task(id="a"), Task(id="b")],
            links=[PredecessorLink("b", "a")],
        )
        updates = SchedulingService(project).audit()
        assert [(u.task_id, u.new_start) for u in updates] == [("b", date(2024, 3, 2))]


class TestCycles:
    """Test cycle reporting and the strict check."""

    def test_require_acyclic_passes(self, example_project: ProjectData) -> None:
        """An acyclic project passes."""
        SchedulingService(example_project).require_acyclic()

    def test_require_acyclic_raises(self, example_project: ProjectData) -> None:
        """A cycle raises with its path."""
        example_project.links.append(PredecessorLink("design", "build"))
        with pytest.raises(
            CircularDependencyError, match="Circular dependency detected"
        ) as exc_info:
            SchedulingService(example_project).require_acyclic()
        assert set(exc_info.value.cycle_path) == {"design", "review", "build"}


class TestProposeCascade:
    """Test editing a task and proposing downstream updates."""

    def test_duration_change_pushes_successors(self, example_project: ProjectData) -> None:
        """Lengthening Design moves Review and then Build."""
        service = SchedulingService(example_project)
        result = service.propose_cascade("design", duration_days=3)

        assert [u.task_id for u in result.updates] == ["review", "build"]
        build = result.update_for("build")
        assert build is not None
        assert (build.new_start, build.new_end) == (date(2024, 3, 5), date(2024, 3, 7))

        patches = {p.task_id: p.updates for p in service.pending.patches()}
        assert patches["design"]["end_date"] == date(2024, 3, 3)
        assert patches["design"]["duration_minutes"] == 1620

    def test_pending_edits_are_honoured(self, example_project: ProjectData) -> None:
        """Later calculations see the unsaved edit."""
        service = SchedulingService(example_project)
        service.propose_cascade("design", duration_days=3)
        assert service.dated_tasks()["design"].end_date == date(2024, 3, 3)
        assert service.status("review") == ScheduleStatus.CONFLICTED

    def test_accept_cascade(self, example_project: ProjectData) -> None:
        """Accepted updates become pending edits and clear the conflicts."""
        service = SchedulingService(example_project)
        service.accept_cascade(service.propose_cascade("design", duration_days=3))
        assert service.statuses()["review"] == ScheduleStatus.VALID
        assert service.statuses()["build"] == ScheduleStatus.VALID
        assert service.dated_tasks()["build"].start_date == date(2024, 3, 5)

    def test_shared_pending_set(self, example_project: ProjectData) -> None:
        """A pending set passed in is the one that collects edits."""
        pending = PendingChanges()
        SchedulingService(example_project, pending=pending).propose_cascade(
            "review", start=date(2024, 3, 4)
        )
        assert pending.has_change("review", "start_date")
        assert SchedulingService(example_project, pending=pending).dated_tasks()[
            "review"
        ].start_date == date(2024, 3, 4)

    def test_start_alone_drags_task(self, example_project: ProjectData) -> None:
        """A new start keeps the task's length."""
        service = SchedulingService(example_project)
        result = service.propose_cascade("build", start=date(2024, 3, 6))
        assert result.updates == []
        assert service.dated_tasks()["build"].end_date == date(2024, 3, 8)

    def test_start_and_end_resize(self, example_project: ProjectData) -> None:
        """A new start and end resize the task and push its successors."""
        service = SchedulingService(example_project)
        result = service.propose_cascade("design", start=date(2024, 3, 1), end=date(2024, 3, 3))
        review = result.update_for("review")
        build = result.update_for("build")
        assert review is not None and review.new_start == date(2024, 3, 4)
        assert build is not None
        assert (build.new_start, build.new_end) == (date(2024, 3, 5), date(2024, 3, 7))

    def test_child_edit_pushes_parent_successor(self) -> None:
        """Lengthening a child widens its parent and moves the parent's successor."""
        project = ProjectData(
            start_date=date(2024, 3, 1),
            tasks=[
                Task(id="p"),
                Task(id="c", parent_id="p", duration_minutes=1080),
                Task(id="x", duration_minutes=540, start_date=date(2024, 3, 3)),
            ],
            links=[PredecessorLink("x", "p")],
        )
        service = SchedulingService(project)
        assert service.check("x").valid

        result = service.propose_cascade("c", end=date(2024, 3, 5))
        x = result.update_for("x")
        assert x is not None
        assert (x.new_start, x.new_end) == (date(2024, 3, 6), date(2024, 3, 6))

        service.accept_cascade(result)
        assert service.check("x").valid

    def test_duration_snapped_to_grid(self, example_project: ProjectData) -> None:
        """Duration edits are rounded to the configured snap increment."""
        config = SchedulingConfig(snap_minutes=60)
        service = SchedulingService(example_project, config)
        service.propose_cascade("design", duration_days=1.1)
        assert service.pending.current_value("design", "duration_minutes", None) == 600

    def test_pull_start(self, example_project: ProjectData) -> None:
        """pull_start keeps the end and moves the start."""
        service = SchedulingService(example_project)
        result = service.propose_cascade(
            "build", duration_days=5, adjustment=DurationAdjustment.PULL_START
        )
        assert result.updates == []
        assert service.pending.current_value("build", "start_date", None) == date(2024, 3, 2)

    def test_parent_edit_not_recorded(self, example_project: ProjectData) -> None:
        """Parent dates are derived, so editing them records nothing."""
        service = SchedulingService(example_project)
        service.propose_cascade("discovery", start=date(2024, 2, 28))
        assert not service.pending

    def test_nothing_to_change(self, example_project: ProjectData) -> None:
        """An edit must change something."""
        with pytest.raises(ValidationError, match="Nothing to change"):
            SchedulingService(example_project).propose_cascade("design")

    def test_end_before_start(self, example_project: ProjectData) -> None:
        """An end before the start is rejected."""
        with pytest.raises(ValidationError, match="before it starts"):
            SchedulingService(example_project).propose_cascade("design", end=date(2024, 2, 1))


class TestOtherQueries:
    """Test critical path and reference checks."""

    def test_buffer(self, example_project: ProjectData) -> None:
        """Build ends 03-06, so a 3 day buffer runs to 03-09 against a 03-07 target."""
        example_project.buffer_days = 3
        example_project.target_end_date = date(2024, 3, 7)
        result = SchedulingService(example_project).buffer()
        assert result.real_end_date == date(2024, 3, 6)
        assert result.buffer_end_date == date(2024, 3, 9)
        assert result.buffer_status == BufferStatus.SAFE
        assert result.target_status == TargetStatus.TIGHT

    def test_buffer_follows_pending_edits(self, example_project: ProjectData) -> None:
        """Accepted cascades push the projected finish."""
        service = SchedulingService(example_project)
        service.accept_cascade(service.propose_cascade("design", duration_days=3))
        assert service.buffer().real_end_date == date(2024, 3, 7)

    def test_buffer_of_empty_project_uses_today(self) -> None:
        """Without tasks or a start date the finish is today."""
        service = SchedulingService(ProjectData(buffer_days=1), today=date(2025, 5, 5))
        assert service.buffer().buffer_end_date == date(2025, 5, 6)

    def test_wbs_codes(self, example_project: ProjectData) -> None:
        """The example tree numbers Discovery 1 and Build 2."""
        assert SchedulingService(example_project).wbs_codes() == {
            "discovery": "1",
            "design": "1.1",
            "review": "1.2",
            "build": "2",
        }

    def test_critical_path(self, example_project: ProjectData) -> None:
        """The Design -> Review -> Build chain is critical."""
        result = SchedulingService(example_project).critical_path()
        assert result.critical_path == ["design", "review", "build"]
        assert result.project_duration == 6

    def test_missing_references(self) -> None:
        """Dangling parents, links and allocations are listed."""
        project = ProjectData(
            tasks=[Task(id="a", parent_id="ghost")],
            links=[PredecessorLink("a", "nope")],
            allocations=[Allocation("a", "nobody")],
        )
        problems = SchedulingService(project, today=date(2024, 3, 1)).missing_references()
        assert problems == [
            "Task 'a' has unknown parent 'ghost'",
            "Link nope -FS-> a references unknown task 'nope'",
            "Allocation of 'a' references unknown resource 'nobody'",
        ]
