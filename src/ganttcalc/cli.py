"""Command-line interface for ganttcalc."""

from __future__ import annotations

import csv
from datetime import date
from pathlib import Path
from typing import Annotated

import typer

from . import context
from .config import discover_config
from .durations import format_minutes
from .exceptions import GanttCalcError
from .loader import load_project
from .logger import setup_logger
from .scheduler import (
    CascadeUpdate,
    DatedTask,
    DurationAdjustment,
    SchedulingService,
    TaskNode,
    describe_buffer,
)

app = typer.Typer(
    name="ganttcalc",
    help="Gantt date calculation - task spans, predecessor constraints and cascade updates",
    add_completion=False,
)

FileArgument = Annotated[Path, typer.Argument(help="Path to the project YAML file")]


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to config file (default: ganttcalc.yaml)",
        ),
    ] = None,
    today: Annotated[
        str | None,
        typer.Option("--today", help="Treat this date (YYYY-MM-DD) as today"),
    ] = None,
) -> None:
    """Global options for ganttcalc commands."""
    setup_logger(verbose)
    context.set_config_path(config)
    context.set_today(_parse_date_option(today, "today"))


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _service(file: Path) -> SchedulingService:
    """Load the project and its config, exiting with an error message on failure."""
    try:
        project = load_project(file)
        config = discover_config(file)
    except GanttCalcError as e:
        raise _fail(str(e)) from None
    return SchedulingService(project, config.scheduler, today=context.get_today())


def _parse_date_option(date_str: str | None, option_name: str) -> date | None:
    """Parse a YYYY-MM-DD date given on the command line."""
    if date_str is None:
        return None
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise _fail(f"Invalid {option_name} '{date_str}'. Use YYYY-MM-DD format.") from None


def _describe_update(update: CascadeUpdate, names: dict[str, str]) -> str:
    name = names.get(update.task_id, update.task_id)
    return f"{name} ({update.task_id}): {update.new_start} .. {update.new_end}"


def _export_dates_csv(dated_tasks: list[DatedTask], output_path: Path) -> None:
    """Export effective task dates to CSV."""
    with output_path.open("w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(
            ["task_id", "task_name", "parent_id", "start_date", "end_date", "duration_days"]
        )
        for dated in dated_tasks:
            writer.writerow(
                [
                    dated.id,
                    dated.task.name,
                    dated.parent_id or "",
                    dated.start_date.isoformat(),
                    dated.end_date.isoformat(),
                    dated.duration_days,
                ]
            )


@app.command()
def dates(
    file: FileArgument,
    output_csv: Annotated[
        Path | None,
        typer.Option("--output-csv", help="Write the dates to a CSV file instead"),
    ] = None,
) -> None:
    """Show the effective start and end date of every task."""
    service = _service(file)
    dated_tasks = list(service.dated_tasks().values())

    if output_csv:
        _export_dates_csv(dated_tasks, output_csv)
        typer.echo(f"Dates exported to {output_csv}")
        return

    for dated in dated_tasks:
        derived = " (from subtasks)" if dated.derived else ""
        typer.echo(
            f"{dated.id}\t{dated.start_date} .. {dated.end_date}\t"
            f"{dated.duration_days}d\t{dated.name}{derived}"
        )


def _echo_node(node: TaskNode, depth: int) -> None:
    dated = node.dated
    line = f"{'  ' * depth}{dated.name} [{dated.start_date} .. {dated.end_date}]"
    if not node.subtasks and dated.task.duration_minutes:
        line += f" {format_minutes(dated.task.duration_minutes)}"
    if node.allocations:
        line += f" @ {', '.join(a.resource.name or a.resource.id for a in node.allocations)}"
    if node.is_fragmented:
        line += " (fragmented)"
    typer.echo(line)
    for child in node.subtasks:
        _echo_node(child, depth + 1)


@app.command()
def tree(file: FileArgument) -> None:
    """Show the task hierarchy with dates and allocations."""
    service = _service(file)
    for root in service.tree():
        _echo_node(root, 0)


@app.command()
def check(
    file: FileArgument,
    task_id: Annotated[str, typer.Argument(help="Task to check")],
    start: Annotated[
        str | None,
        typer.Option(
            "--start", help="Check this start date (YYYY-MM-DD) instead of the current one"
        ),
    ] = None,
) -> None:
    """Check a task against its predecessors."""
    proposed_start = _parse_date_option(start, "start date")
    service = _service(file)
    try:
        result = service.check(task_id, proposed_start)
    except GanttCalcError as e:
        raise _fail(str(e)) from None

    if result.valid:
        typer.echo(f"OK: {task_id} satisfies all predecessor constraints")
        if result.min_start:
            typer.echo(f"  Earliest start: {result.min_start}")
        return

    typer.echo(f"CONFLICT: {result.message}")
    for violation in result.violations:
        typer.echo(
            f"  - {violation.predecessor_name} ({violation.link_type.value}): "
            f"start on or after {violation.min_start} ({violation.days_late} day(s) late)"
        )
    raise typer.Exit(1)


@app.command()
def cascade(  # noqa: PLR0913 - CLI command needs multiple options
    file: FileArgument,
    task_id: Annotated[str, typer.Argument(help="Task being edited")],
    start: Annotated[
        str | None, typer.Option("--start", help="New start date (YYYY-MM-DD)")
    ] = None,
    end: Annotated[str | None, typer.Option("--end", help="New end date (YYYY-MM-DD)")] = None,
    duration: Annotated[
        float | None, typer.Option("--duration", help="New duration in working days")
    ] = None,
    adjust: Annotated[
        DurationAdjustment,
        typer.Option("--adjust", help="How a duration change moves the dates"),
    ] = DurationAdjustment.EXTEND_END,
) -> None:
    """Edit a task's dates and show the updates proposed for dependent tasks."""
    new_start = _parse_date_option(start, "start date")
    new_end = _parse_date_option(end, "end date")
    service = _service(file)
    try:
        result = service.propose_cascade(task_id, new_start, new_end, duration, adjust)
    except GanttCalcError as e:
        raise _fail(str(e)) from None

    if not result.updates:
        typer.echo("No dependent tasks need to move")
    else:
        typer.echo(f"Proposed updates ({len(result.updates)}):")
        for update in result.updates:
            typer.echo(f"  {_describe_update(update, service.names)}")

    if result.has_cycle:
        typer.echo(
            f"\nWarning: tasks in a dependency cycle: {', '.join(sorted(result.tasks_in_cycle))}",
            err=True,
        )


@app.command()
def cycles(file: FileArgument) -> None:
    """Report dependency cycles among predecessor links."""
    service = _service(file)
    report = service.cycles()
    if not report.has_cycle:
        typer.echo("No dependency cycles")
        return
    typer.echo(f"Cycle: {' -> '.join(report.cycle_path)}")
    typer.echo(f"Tasks in cycles: {', '.join(sorted(report.cycle_nodes))}")
    raise typer.Exit(1)


@app.command()
def audit(file: FileArgument) -> None:
    """List every task that starts before its predecessors allow."""
    service = _service(file)
    for problem in service.missing_references():
        typer.echo(f"Warning: {problem}", err=True)

    updates = service.audit()
    if not updates:
        typer.echo("No conflicts")
        return

    typer.echo(f"Conflicts ({len(updates)}):")
    for update in updates:
        typer.echo(f"  {update.reason}")
        typer.echo(f"    -> {_describe_update(update, service.names)}")
    raise typer.Exit(1)


@app.command(name="critical-path")
def critical_path(file: FileArgument) -> None:
    """Show the critical path and the slack of every task."""
    service = _service(file)
    result = service.critical_path()
    if not result.tasks:
        typer.echo("No tasks to analyse")
        return

    typer.echo(f"Critical path: {' -> '.join(result.critical_path)}")
    typer.echo(f"Project finish: {result.project_early_finish} ({result.project_duration} days)")
    typer.echo("")
    for task_id, figures in result.tasks.items():
        marker = "*" if figures.is_critical else " "
        typer.echo(
            f"{marker} {task_id}\tES {figures.early_start}  EF {figures.early_finish}  "
            f"LS {figures.late_start}  LF {figures.late_finish}  "
            f"slack {figures.total_slack}d (free {figures.free_slack}d)"
        )
    if result.skipped:
        typer.echo(f"\nSkipped (in cycles): {', '.join(sorted(result.skipped))}", err=True)


@app.command()
def buffer(file: FileArgument) -> None:
    """Show the projected finish against the project buffer and target date."""
    service = _service(file)
    result = service.buffer()
    typer.echo(f"Projected finish: {result.real_end_date}")
    typer.echo(
        f"Buffer end: {result.buffer_end_date} ({service.project.buffer_days} day(s), "
        f"{result.buffer_status.value})"
    )
    if result.target_end_date is not None:
        typer.echo(f"Target: {result.target_end_date} ({result.target_status.value})")
    typer.echo(describe_buffer(result))


@app.command()
def wbs(file: FileArgument) -> None:
    """Number the task tree with WBS codes (1, 1.1, 1.2, ...)."""
    service = _service(file)
    codes = service.wbs_codes()
    for task_id, code in sorted(codes.items(), key=lambda item: _wbs_sort_key(item[1])):
        typer.echo(f"{code}\t{task_id}\t{service.names.get(task_id, task_id)}")


def _wbs_sort_key(code: str) -> list[int]:
    return [int(part) for part in code.split(".")]


@app.command()
def status(
    file: FileArgument,
    task_id: Annotated[str | None, typer.Argument(help="Only show this task")] = None,
) -> None:
    """Show the schedule status of every task."""
    service = _service(file)
    if task_id is not None:
        try:
            typer.echo(f"{task_id}\t{service.status(task_id).value}")
        except GanttCalcError as e:
            raise _fail(str(e)) from None
        return

    for tid, task_status in service.statuses().items():
        typer.echo(f"{tid}\t{task_status.value}")


def main() -> int:
    """Main entry point."""
    # Typer handles sys.exit() internally
    app()
    return 0


if __name__ == "__main__":
    main()
