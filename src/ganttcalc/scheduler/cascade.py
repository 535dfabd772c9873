"""Cascade recalculation of dependent task dates.

After a task's dates change, its successors are checked breadth-first. A
successor that now starts too early is moved to its earliest legal start,
keeping its span, and its own successors are checked in turn. A successor
that still satisfies its constraints ends that branch.

When the task tree is known, a moved child also refreshes the derived spans of
its ancestors, and an ancestor whose span changed has its own successors
checked.

Tasks in a dependency cycle reachable from the changed task are reported and
moved at most once, so the walk always terminates.
"""

from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from ganttcalc.logger import get_logger
from ganttcalc.models import PredecessorLink, Task

from .calculator import ParentSpans
from .config import SchedulingConfig
from .constraints import ConstraintEngine
from .core import CascadeResult, CascadeUpdate, DateSpan
from .cycles import cycle_components, reachable_successors

logger = get_logger()


def find_cycles_reachable_from(
    origins: Iterable[str], dates: Mapping[str, DateSpan], links: Sequence[PredecessorLink]
) -> set[str]:
    """Members of every dependency cycle downstream of (or containing) an origin."""
    reachable: set[str] = set()
    for origin in origins:
        reachable |= reachable_successors(origin, links)

    in_cycle: set[str] = set()
    for component in cycle_components(dates.keys(), links):
        if reachable.intersection(component):
            in_cycle.update(component)
    return in_cycle


def cascade_from(
    origins: Sequence[str],
    dates: Mapping[str, DateSpan],
    engine: ConstraintEngine,
    parents: ParentSpans | None = None,
) -> CascadeResult:
    """Propagate date changes from one or more edited tasks.

    Args:
        origins: Tasks whose dates were edited (never moved by the cascade)
        dates: Effective dates of all tasks, with the edits already applied
        engine: Constraint engine for the project's links
        parents: Task tree used to refresh derived parent spans (optional)

    Returns:
        CascadeResult with one update per moved task
    """
    working = dict(dates)
    origin_set = set(origins)
    graph_links = engine.links
    if parents is not None:
        # A parent depends on its children, so loops through the tree count as cycles
        graph_links = graph_links + parents.hierarchy_links()
    tasks_in_cycle = find_cycles_reachable_from(origins, dates, graph_links)
    updates: dict[str, CascadeUpdate] = {}

    queue = deque(task_id for task_id in origins if task_id in working)
    while queue:
        current = queue.popleft()
        for link in engine.successor_links(current):
            successor = link.task_id
            if successor not in working:
                logger.debug(f"  Skipping link to missing task '{successor}'")
                continue
            if successor in origin_set:
                continue
            if successor in tasks_in_cycle and successor in updates:
                logger.debug(f"  '{successor}' is in a cycle and was already moved; stopping")
                continue

            check = engine.check(successor, working)
            if check.valid or check.min_start is None or check.min_end is None:
                continue

            new_span = DateSpan(check.min_start, check.min_end)
            working[successor] = new_span
            updates[successor] = CascadeUpdate(
                task_id=successor,
                new_start=new_span.start,
                new_end=new_span.end,
                reason=check.message or f'Predecessor "{engine.name_of(current)}" changed',
            )
            logger.changes(
                f"Propose moving '{successor}' to {new_span.start} .. {new_span.end} "
                f"(after '{current}')"
            )
            queue.append(successor)

            if parents is not None:
                for ancestor_id in parents.refresh_ancestors(successor, working):
                    logger.changes(
                        f"  '{ancestor_id}' now spans {working[ancestor_id].start} .. "
                        f"{working[ancestor_id].end}"
                    )
                    queue.append(ancestor_id)

    if tasks_in_cycle:
        logger.warning(
            f"Tasks in dependency cycle: {', '.join(sorted(tasks_in_cycle))}"
        )
    return CascadeResult(updates=list(updates.values()), tasks_in_cycle=tasks_in_cycle)


def recalculate_cascade(
    changed_task_id: str,
    dates: Mapping[str, DateSpan],
    links: Sequence[PredecessorLink],
    names: Mapping[str, str] | None = None,
    config: SchedulingConfig | None = None,
    tasks: Sequence[Task] | None = None,
) -> CascadeResult:
    """Propose new dates for everything downstream of a changed task.

    Args:
        changed_task_id: Task whose dates changed
        dates: Effective dates of all tasks, including the change
        links: All predecessor links
        names: Task display names for messages
        config: Scheduling configuration
        tasks: Project tasks; when given, derived parent spans follow moved children

    Returns:
        CascadeResult; the updates are a proposal for the caller to confirm
    """
    engine = ConstraintEngine(links, names, config=config)
    parents = ParentSpans(tasks) if tasks is not None else None
    return cascade_from([changed_task_id], dates, engine, parents)
