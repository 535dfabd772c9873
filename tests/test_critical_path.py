"""Tests for critical path analysis."""

from collections.abc import Callable
from datetime import date

from ganttcalc.models import LinkType, PredecessorLink
from ganttcalc.scheduler import DateSpan, calculate_critical_path

MakeLink = Callable[..., PredecessorLink]
Span = Callable[[str, str], DateSpan]


class TestCriticalPath:
    """Test CPM passes and slack."""

    def test_simple_chain_with_side_task(self, make_link: MakeLink, span: Span) -> None:
        """The dependent chain is critical; the short independent task has slack."""
        dates = {
            "a": span("2024-03-01", "2024-03-02"),
            "b": span("2024-03-03", "2024-03-03"),
            "c": span("2024-03-01", "2024-03-01"),
        }
        result = calculate_critical_path(dates, [make_link("b", "a")])

        assert result.critical_path == ["a", "b"]
        assert result.project_early_finish == date(2024, 3, 3)
        assert result.project_duration == 3
        assert result.tasks["c"].total_slack == 2
        assert result.tasks["c"].free_slack == 2
        assert not result.tasks["c"].is_critical
        assert result.tasks["a"].late_finish == date(2024, 3, 2)

    def test_forward_pass_ignores_late_current_start(self, make_link: MakeLink, span: Span) -> None:
        """Early start comes from predecessors, not from where the task sits now."""
        dates = {"a": span("2024-03-01", "2024-03-01"), "b": span("2024-03-10", "2024-03-11")}
        result = calculate_critical_path(dates, [make_link("b", "a")])
        assert result.tasks["b"].early_start == date(2024, 3, 2)
        assert result.tasks["b"].early_finish == date(2024, 3, 3)

    def test_parallel_branches(self, make_link: MakeLink, span: Span) -> None:
        """The longer branch into a join is critical; the shorter one has slack."""
        dates = {
            "a": span("2024-03-01", "2024-03-01"),
            "c": span("2024-03-01", "2024-03-03"),
            "b": span("2024-03-04", "2024-03-04"),
        }
        result = calculate_critical_path(dates, [make_link("b", "a"), make_link("b", "c")])
        assert result.tasks["b"].early_start == date(2024, 3, 4)
        assert result.tasks["a"].total_slack == 2
        assert result.tasks["a"].free_slack == 2
        assert result.critical_path == ["c", "b"]

    def test_lag_consumes_free_slack(self, make_link: MakeLink, span: Span) -> None:
        """A lagged link leaves no free slack when it drives the successor."""
        dates = {"a": span("2024-03-01", "2024-03-01"), "b": span("2024-03-04", "2024-03-04")}
        result = calculate_critical_path(dates, [make_link("b", "a", lag_days=2)])
        assert result.tasks["b"].early_start == date(2024, 3, 4)
        assert result.tasks["a"].free_slack == 0
        assert result.critical_path == ["a", "b"]

    def test_start_to_start(self, make_link: MakeLink, span: Span) -> None:
        """SS links overlap tasks."""
        dates = {"a": span("2024-03-01", "2024-03-05"), "b": span("2024-03-01", "2024-03-02")}
        result = calculate_critical_path(dates, [make_link("b", "a", LinkType.START_TO_START, 1)])
        assert result.tasks["b"].early_start == date(2024, 3, 2)
        assert result.tasks["b"].total_slack == 2
        assert result.critical_path == ["a"]

    def test_cycles_skipped(self, make_link: MakeLink, span: Span) -> None:
        """Tasks in cycles are left out of the analysis."""
        dates = {
            "a": span("2024-03-01", "2024-03-01"),
            "b": span("2024-03-02", "2024-03-02"),
            "c": span("2024-03-01", "2024-03-02"),
        }
        links = [make_link("b", "a"), make_link("a", "b")]
        result = calculate_critical_path(dates, links)
        assert result.skipped == {"a", "b"}
        assert set(result.tasks) == {"c"}
        assert result.critical_path == ["c"]

    def test_empty(self) -> None:
        """No tasks, no path."""
        result = calculate_critical_path({}, [])
        assert result.tasks == {}
        assert result.critical_path == []
        assert result.project_early_finish is None

    def test_project_start_sets_duration(self, span: Span) -> None:
        """The project duration counts from the given project start."""
        result = calculate_critical_path(
            {"a": span("2024-03-05", "2024-03-06")}, [], project_start=date(2024, 3, 1)
        )
        assert result.project_duration == 6
