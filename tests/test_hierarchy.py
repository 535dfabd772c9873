"""Tests for task tree assembly and timeline range."""

from collections.abc import Callable
from datetime import date

import pytest

from ganttcalc.exceptions import MissingReferenceError
from ganttcalc.models import Allocation, Resource, Task
from ganttcalc.scheduler import (
    DatedTask,
    calculate_date_range,
    get_all_descendants,
    is_valid_wbs_code,
    next_wbs_code,
    organize_hierarchy,
    recalculate_wbs_codes,
    wbs_level,
)

MakeTask = Callable[..., Task]


def _dated(task: Task, start: date = date(2024, 3, 1), end: date | None = None) -> DatedTask:
    return DatedTask(task=task, start_date=start, end_date=end or start, duration_days=1)


class TestOrganizeHierarchy:
    """Test building the task tree."""

    def test_builds_tree(self, make_task: MakeTask) -> None:
        """Children nest under their parents."""
        dated = [
            _dated(make_task("p")),
            _dated(make_task("a", parent_id="p")),
            _dated(make_task("b", parent_id="a")),
        ]
        roots = organize_hierarchy(dated)
        assert [r.id for r in roots] == ["p"]
        assert [c.id for c in roots[0].subtasks] == ["a"]
        assert [c.id for c in roots[0].subtasks[0].subtasks] == ["b"]
        assert [n.id for n in roots[0].walk()] == ["p", "a", "b"]

    def test_sort_order_then_input_order(self, make_task: MakeTask) -> None:
        """Siblings sort by sort_order; ties keep input order."""
        dated = [
            _dated(make_task("p")),
            _dated(make_task("x", parent_id="p", sort_order=2)),
            _dated(make_task("y", parent_id="p", sort_order=1)),
            _dated(make_task("z", parent_id="p", sort_order=1)),
        ]
        roots = organize_hierarchy(dated)
        assert [c.id for c in roots[0].subtasks] == ["y", "z", "x"]

    def test_missing_parent_becomes_root(self, make_task: MakeTask) -> None:
        """Orphans are shown at the top level."""
        roots = organize_hierarchy([_dated(make_task("a", parent_id="ghost"))])
        assert [r.id for r in roots] == ["a"]

    def test_parent_loop_becomes_roots(self, make_task: MakeTask) -> None:
        """A parent loop cannot hide tasks."""
        dated = [
            _dated(make_task("a", parent_id="b")),
            _dated(make_task("b", parent_id="a")),
        ]
        roots = organize_hierarchy(dated)
        ids = {n.id for root in roots for n in root.walk()}
        assert ids == {"a", "b"}

    def test_allocations_attached(self, make_task: MakeTask) -> None:
        """Allocations join their resources; unknown resources are dropped."""
        dated = [_dated(make_task("a"))]
        allocations = [
            Allocation("a", "ana"),
            Allocation("a", "ana"),
            Allocation("a", "ghost"),
        ]
        roots = organize_hierarchy(dated, allocations, [Resource("ana", "Ana")])
        node = roots[0]
        assert len(node.allocations) == 2
        assert node.allocations[0].resource.name == "Ana"
        assert node.is_fragmented

    def test_parent_is_never_fragmented(self, make_task: MakeTask) -> None:
        """Only leaves can be fragmented."""
        dated = [_dated(make_task("p")), _dated(make_task("a", parent_id="p"))]
        allocations = [Allocation("p", "ana"), Allocation("p", "ana")]
        roots = organize_hierarchy(dated, allocations, [Resource("ana")])
        assert not roots[0].is_fragmented


class TestDescendants:
    """Test collecting descendants."""

    def test_all_levels(self, make_task: MakeTask) -> None:
        """Descendants are collected level by level."""
        dated = [
            _dated(make_task("p")),
            _dated(make_task("a", parent_id="p")),
            _dated(make_task("b", parent_id="a")),
            _dated(make_task("other")),
        ]
        assert [d.id for d in get_all_descendants(["p"], dated)] == ["a", "b"]

    def test_loop_terminates(self, make_task: MakeTask) -> None:
        """Parent loops do not repeat tasks."""
        dated = [
            _dated(make_task("a", parent_id="b")),
            _dated(make_task("b", parent_id="a")),
        ]
        assert sorted(d.id for d in get_all_descendants(["a"], dated)) == ["a", "b"]


class TestDateRange:
    """Test the padded timeline range."""

    def test_padding(self, make_task: MakeTask) -> None:
        """The range starts two days early and ends a week late."""
        dated = [
            _dated(make_task("a"), date(2024, 3, 5), date(2024, 3, 6)),
            _dated(make_task("b"), date(2024, 3, 1), date(2024, 3, 3)),
        ]
        assert calculate_date_range(dated) == (date(2024, 2, 28), date(2024, 3, 13))

    def test_custom_padding(self, make_task: MakeTask) -> None:
        """Padding is configurable."""
        dated = [_dated(make_task("a"), date(2024, 3, 5))]
        assert calculate_date_range(dated, 0, 1) == (date(2024, 3, 5), date(2024, 3, 6))

    def test_empty_uses_today(self) -> None:
        """Without tasks the range surrounds today."""
        assert calculate_date_range([], today=date(2024, 3, 10)) == (
            date(2024, 3, 8),
            date(2024, 3, 17),
        )


class TestWbsCodes:
    """Test WBS numbering."""

    def test_recalculate(self, make_task: MakeTask) -> None:
        """Roots count 1, 2 and children extend their parent's code."""
        tasks = [
            make_task("p"),
            make_task("a", parent_id="p"),
            make_task("b", parent_id="p"),
            make_task("b1", parent_id="b"),
            make_task("q"),
        ]
        assert recalculate_wbs_codes(tasks) == {
            "p": "1",
            "a": "1.1",
            "b": "1.2",
            "b1": "1.2.1",
            "q": "2",
        }

    def test_sort_order_and_orphans(self, make_task: MakeTask) -> None:
        """Siblings follow sort_order and orphans are numbered after the roots."""
        tasks = [
            make_task("orphan", parent_id="ghost"),
            make_task("p", sort_order=2),
            make_task("first", sort_order=1),
            make_task("late", parent_id="p", sort_order=5),
            make_task("early", parent_id="p", sort_order=1),
        ]
        codes = recalculate_wbs_codes(tasks)
        assert codes["first"] == "1"
        assert codes["p"] == "2"
        assert (codes["early"], codes["late"]) == ("2.1", "2.2")
        assert codes["orphan"] == "3"

    def test_parent_loop_numbered(self, make_task: MakeTask) -> None:
        """Tasks in a parent loop still get codes."""
        tasks = [
            make_task("c", parent_id="a"),
            make_task("a", parent_id="b"),
            make_task("b", parent_id="a"),
        ]
        codes = recalculate_wbs_codes(tasks)
        assert codes == {"a": "1", "c": "1.1", "b": "1.2"}

    def test_next_code(self, make_task: MakeTask) -> None:
        """A new code follows the highest one in use."""
        tasks = [
            make_task("p", wbs_code="1"),
            make_task("a", parent_id="p", wbs_code="1.4"),
            make_task("q", wbs_code="3"),
            make_task("r"),
        ]
        assert next_wbs_code(tasks) == "4"
        assert next_wbs_code(tasks, "p") == "1.5"
        assert next_wbs_code(tasks, "q") == "3.1"

    def test_next_code_parent_without_code(self, make_task: MakeTask) -> None:
        """A parent without a code uses its computed one."""
        tasks = [make_task("p"), make_task("q")]
        assert next_wbs_code(tasks, "q") == "2.1"

    def test_next_code_unknown_parent(self, make_task: MakeTask) -> None:
        """An unknown parent is an error."""
        with pytest.raises(MissingReferenceError, match="Unknown parent task 'ghost'"):
            next_wbs_code([make_task("p")], "ghost")

    def test_validity_and_level(self) -> None:
        """Codes are dot-separated positive numbers."""
        assert is_valid_wbs_code("1.2.10")
        assert not is_valid_wbs_code("1..2")
        assert not is_valid_wbs_code("0.1")
        assert not is_valid_wbs_code("")
        assert wbs_level("1.2.3") == 3
        assert wbs_level("") == 0
