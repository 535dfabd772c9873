"""Critical path method (CPM).

Forward pass computes early start/finish from predecessor links, backward pass
computes late start/finish back from the project finish. Total slack is late
start minus early start; tasks with no slack form the critical path.
"""

from collections import deque
from collections.abc import Mapping, Sequence
from datetime import date

from ganttcalc.dates import add_days
from ganttcalc.logger import get_logger
from ganttcalc.models import LinkType, PredecessorLink

from .constraints import lag_as_days
from .core import CriticalPathResult, CriticalPathTask, DateSpan
from .cycles import cycle_components

logger = get_logger()


def _topological_order(task_ids: list[str], links: list[PredecessorLink]) -> list[str]:
    """Kahn's algorithm; ties keep input order."""
    position = {task_id: index for index, task_id in enumerate(task_ids)}
    in_degree = dict.fromkeys(task_ids, 0)
    successors: dict[str, list[str]] = {task_id: [] for task_id in task_ids}
    for link in links:
        in_degree[link.task_id] += 1
        successors[link.predecessor_id].append(link.task_id)

    ready = deque(task_id for task_id in task_ids if in_degree[task_id] == 0)
    order: list[str] = []
    while ready:
        current = ready.popleft()
        order.append(current)
        for successor in sorted(successors[current], key=position.__getitem__):
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                ready.append(successor)
    return order


def _early_start(link: PredecessorLink, pred: CriticalPathTask, duration: int) -> date:
    lag = lag_as_days(link.lag_days)
    if link.type == LinkType.FINISH_TO_START:
        return add_days(pred.early_finish, 1 + lag)
    if link.type == LinkType.START_TO_START:
        return add_days(pred.early_start, lag)
    if link.type == LinkType.FINISH_TO_FINISH:
        return add_days(pred.early_finish, lag - duration + 1)
    return add_days(pred.early_start, lag - duration + 1)


def _late_finish(link: PredecessorLink, succ: CriticalPathTask, duration: int) -> date:
    lag = lag_as_days(link.lag_days)
    if link.type == LinkType.FINISH_TO_START:
        return add_days(succ.late_start, -1 - lag)
    if link.type == LinkType.START_TO_START:
        return add_days(succ.late_start, -lag + duration - 1)
    if link.type == LinkType.FINISH_TO_FINISH:
        return add_days(succ.late_finish, -lag)
    return add_days(succ.late_finish, -lag + duration - 1)


def calculate_critical_path(
    dates: Mapping[str, DateSpan],
    links: Sequence[PredecessorLink],
    project_start: date | None = None,
) -> CriticalPathResult:
    """Run CPM over the tasks' current dates.

    Tasks without predecessors keep their current start. Tasks in dependency
    cycles are left out of the analysis and reported in ``skipped``.

    Args:
        dates: Effective dates of every task (durations come from the spans)
        links: All predecessor links
        project_start: Start used for the project duration (defaults to the
            earliest early start)
    """
    if not dates:
        return CriticalPathResult()

    skipped = {task_id for comp in cycle_components(dates.keys(), links) for task_id in comp}
    if skipped:
        logger.warning(f"Critical path ignores tasks in cycles: {', '.join(sorted(skipped))}")

    task_ids = [task_id for task_id in dates if task_id not in skipped]
    live_links = [
        link
        for link in links
        if link.task_id in dates
        and link.predecessor_id in dates
        and link.task_id not in skipped
        and link.predecessor_id not in skipped
    ]
    durations = {task_id: dates[task_id].days for task_id in task_ids}
    preds_of: dict[str, list[PredecessorLink]] = {}
    succs_of: dict[str, list[PredecessorLink]] = {}
    for link in live_links:
        preds_of.setdefault(link.task_id, []).append(link)
        succs_of.setdefault(link.predecessor_id, []).append(link)

    order = _topological_order(task_ids, live_links)
    results: dict[str, CriticalPathTask] = {}

    # Forward pass
    for task_id in order:
        duration = durations[task_id]
        task_preds = preds_of.get(task_id, [])
        if task_preds:
            early_start = max(
                _early_start(link, results[link.predecessor_id], duration) for link in task_preds
            )
        else:
            early_start = dates[task_id].start
        early_finish = add_days(early_start, duration - 1)
        results[task_id] = CriticalPathTask(
            task_id=task_id,
            early_start=early_start,
            early_finish=early_finish,
            late_start=early_start,
            late_finish=early_finish,
        )

    project_early_finish = max(r.early_finish for r in results.values())

    # Backward pass
    for task_id in reversed(order):
        duration = durations[task_id]
        result = results[task_id]
        late_finish = project_early_finish
        for link in succs_of.get(task_id, []):
            late_finish = min(late_finish, _late_finish(link, results[link.task_id], duration))
        result.late_finish = late_finish
        result.late_start = add_days(late_finish, -duration + 1)

    # Slack
    critical_path: list[str] = []
    for task_id in order:
        result = results[task_id]
        result.total_slack = (result.late_start - result.early_start).days
        # Free slack: how far this task can slip before any successor's early start moves
        link_slacks = [
            (
                results[link.task_id].early_start
                - _early_start(link, result, durations[link.task_id])
            ).days
            for link in succs_of.get(task_id, [])
        ]
        if link_slacks:
            result.free_slack = max(0, min(link_slacks))
        else:
            result.free_slack = result.total_slack
        result.is_critical = result.total_slack <= 0
        if result.is_critical:
            critical_path.append(task_id)

    start = project_start or min(r.early_start for r in results.values())
    logger.debug(f"Critical path: {' -> '.join(critical_path)}")
    return CriticalPathResult(
        tasks=results,
        critical_path=critical_path,
        project_duration=(project_early_finish - start).days + 1,
        project_early_finish=project_early_finish,
        skipped=skipped,
    )
