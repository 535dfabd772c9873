"""Task tree assembly."""

import re
from collections.abc import Iterable, Sequence
from datetime import date

from ganttcalc.dates import add_days
from ganttcalc.exceptions import MissingReferenceError
from ganttcalc.logger import get_logger
from ganttcalc.models import Allocation, Resource, Task

from .core import AssignedAllocation, DatedTask, TaskNode

logger = get_logger()

_WBS_PATTERN = re.compile(r"[1-9]\d*(\.[1-9]\d*)*")


def organize_hierarchy(
    dated_tasks: Sequence[DatedTask],
    allocations: Iterable[Allocation] = (),
    resources: Iterable[Resource] = (),
) -> list[TaskNode]:
    """Assemble dated tasks into a tree with their allocations attached.

    Siblings are ordered by sort_order, then by input order. Allocations whose
    resource does not exist are dropped, and tasks whose parent does not exist
    become roots.

    Returns:
        The root nodes
    """
    resources_by_id = {resource.id: resource for resource in resources}

    allocations_by_task: dict[str, list[AssignedAllocation]] = {}
    for allocation in allocations:
        resource = resources_by_id.get(allocation.resource_id)
        if resource is None:
            logger.debug(
                f"Dropping allocation of '{allocation.task_id}' to missing resource "
                f"'{allocation.resource_id}'"
            )
            continue
        allocations_by_task.setdefault(allocation.task_id, []).append(
            AssignedAllocation(allocation=allocation, resource=resource)
        )

    nodes: dict[str, TaskNode] = {}
    for dated in dated_tasks:
        nodes[dated.id] = TaskNode(dated=dated, allocations=allocations_by_task.get(dated.id, []))

    roots: list[TaskNode] = []
    for node in nodes.values():
        parent_id = node.dated.parent_id
        parent = nodes.get(parent_id) if parent_id else None
        if parent is None or parent is node or _is_ancestor(node, parent_id, nodes):
            roots.append(node)
        else:
            parent.subtasks.append(node)

    order = {dated.id: index for index, dated in enumerate(dated_tasks)}

    def sort_key(node: TaskNode) -> tuple[int, int]:
        return (node.dated.task.sort_order, order[node.id])

    for node in nodes.values():
        node.subtasks.sort(key=sort_key)
    roots.sort(key=sort_key)
    return roots


def _is_ancestor(node: TaskNode, parent_id: str | None, nodes: dict[str, TaskNode]) -> bool:
    """Check whether attaching node under parent_id would close a parent loop."""
    seen: set[str] = set()
    current = parent_id
    while current and current not in seen:
        if current == node.id:
            return True
        seen.add(current)
        parent = nodes.get(current)
        current = parent.dated.parent_id if parent else None
    return False


def get_all_descendants(
    parent_ids: Iterable[str], dated_tasks: Sequence[DatedTask]
) -> list[DatedTask]:
    """All descendants of the given parents, level by level."""
    descendants: list[DatedTask] = []
    seen: set[str] = set()
    frontier = set(parent_ids)
    while frontier:
        level = [
            t for t in dated_tasks if t.parent_id in frontier and t.id not in seen
        ]
        if not level:
            break
        descendants.extend(level)
        seen.update(t.id for t in level)
        frontier = {t.id for t in level}
    return descendants


def calculate_date_range(
    dated_tasks: Sequence[DatedTask],
    lead_days: int = 2,
    trail_days: int = 7,
    today: date | None = None,
) -> tuple[date, date]:
    """Timeline range covering all tasks, padded on both sides.

    With no tasks the range is centred on today.
    """
    if dated_tasks:
        min_date = min(t.start_date for t in dated_tasks)
        max_date = max(t.end_date for t in dated_tasks)
    else:
        min_date = max_date = today or date.today()  # noqa: DTZ011
    return add_days(min_date, -lead_days), add_days(max_date, trail_days)


def is_valid_wbs_code(code: str) -> bool:
    """Check for dot-separated positive numbers such as 1.2.3."""
    return bool(_WBS_PATTERN.fullmatch(code))


def wbs_level(code: str) -> int:
    """Depth of a WBS code, 1 for top-level tasks and 0 for no code."""
    return len(code.split(".")) if code else 0


def recalculate_wbs_codes(tasks: Sequence[Task]) -> dict[str, str]:
    """Number the task tree from scratch.

    Top-level tasks get 1, 2, 3 and their children 1.1, 1.2 and so on, with
    siblings in sort_order then input order. Tasks whose parent is missing are
    numbered as top-level tasks after the real roots, as are tasks caught in a
    parent loop.

    Returns:
        Mapping of task ID to its new code
    """
    order = {task.id: index for index, task in enumerate(tasks)}
    by_id = {task.id: task for task in tasks}

    def sort_key(task: Task) -> tuple[int, int]:
        return (task.sort_order, order[task.id])

    children: dict[str, list[Task]] = {}
    roots: list[Task] = []
    orphans: list[Task] = []
    for task in tasks:
        if not task.parent_id:
            roots.append(task)
        elif task.parent_id not in by_id:
            orphans.append(task)
        else:
            children.setdefault(task.parent_id, []).append(task)
    for siblings in children.values():
        siblings.sort(key=sort_key)

    looped = [t for t in tasks if _in_parent_loop(t, by_id)]
    if looped:
        logger.debug(f"Numbering tasks in a parent loop as top-level: {[t.id for t in looped]}")
    top_level = sorted(roots, key=sort_key) + sorted(orphans, key=sort_key)
    top_level += sorted(looped, key=sort_key)

    codes: dict[str, str] = {}
    number = 0
    for top in top_level:
        if top.id in codes:
            continue
        number += 1
        codes[top.id] = str(number)
        stack = [top]
        while stack:
            parent = stack.pop()
            kids = [kid for kid in children.get(parent.id, []) if kid.id not in codes]
            for index, kid in enumerate(kids, start=1):
                codes[kid.id] = f"{codes[parent.id]}.{index}"
            stack.extend(reversed(kids))
    return codes


def _in_parent_loop(task: Task, by_id: dict[str, Task]) -> bool:
    """Check whether following parents leads back to the task."""
    seen: set[str] = set()
    current = by_id.get(task.parent_id) if task.parent_id else None
    while current is not None and current.id not in seen:
        if current.id == task.id:
            return True
        seen.add(current.id)
        current = by_id.get(current.parent_id) if current.parent_id else None
    return False


def next_wbs_code(tasks: Sequence[Task], parent_id: str | None = None) -> str:
    """Code for a new task added under parent_id, or at the top level.

    Existing codes are respected: the new code follows the highest number in
    use among the siblings. A parent without a code gets its computed one.

    Raises:
        MissingReferenceError: If parent_id is not a known task
    """
    if parent_id is None:
        used = [_leading_number(t.wbs_code) for t in tasks if not t.parent_id]
        return str(max(used, default=0) + 1)

    parent = next((t for t in tasks if t.id == parent_id), None)
    if parent is None:
        raise MissingReferenceError(parent_id, "parent task")
    parent_code = parent.wbs_code or recalculate_wbs_codes(tasks)[parent_id]
    used = [
        _trailing_number(t.wbs_code) for t in tasks if t.parent_id == parent_id and t.wbs_code
    ]
    return f"{parent_code}.{max(used, default=0) + 1}"


def _leading_number(code: str) -> int:
    head = code.split(".", 1)[0]
    return int(head) if head.isdigit() else 0


def _trailing_number(code: str) -> int:
    tail = code.rsplit(".", 1)[-1]
    return int(tail) if tail.isdigit() else 0
