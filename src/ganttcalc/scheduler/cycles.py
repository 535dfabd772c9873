"""Dependency cycle detection over predecessor links."""

from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from ganttcalc.logger import get_logger
from ganttcalc.models import PredecessorLink

from .core import CycleReport

logger = get_logger()


def build_dependency_graph(
    task_ids: Iterable[str], links: Sequence[PredecessorLink]
) -> dict[str, list[str]]:
    """Map each task to the tasks it depends on.

    Links referring to unknown tasks are ignored.
    """
    graph: dict[str, list[str]] = {task_id: [] for task_id in task_ids}
    for link in links:
        if link.task_id in graph and link.predecessor_id in graph:
            graph[link.task_id].append(link.predecessor_id)
    return graph


def strongly_connected_components(
    nodes: Iterable[str], graph: Mapping[str, Sequence[str]]
) -> list[list[str]]:
    """Tarjan's algorithm, iterative so deep dependency chains cannot hit the recursion limit."""
    index_of: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    components: list[list[str]] = []
    counter = 0

    for root in nodes:
        if root in index_of:
            continue
        index_of[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(graph.get(root, ())))]

        while work:
            node, neighbours = work[-1]
            descended = False
            for neighbour in neighbours:
                if neighbour not in index_of:
                    index_of[neighbour] = lowlink[neighbour] = counter
                    counter += 1
                    stack.append(neighbour)
                    on_stack.add(neighbour)
                    work.append((neighbour, iter(graph.get(neighbour, ()))))
                    descended = True
                    break
                if neighbour in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[neighbour])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

            if lowlink[node] == index_of[node]:
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(component)

    return components


def cycle_components(
    task_ids: Iterable[str], links: Sequence[PredecessorLink]
) -> list[list[str]]:
    """Groups of tasks that depend on each other (including self-dependencies)."""
    ids = list(task_ids)
    graph = build_dependency_graph(ids, links)
    cycles: list[list[str]] = []
    for component in strongly_connected_components(ids, graph):
        if len(component) > 1 or component[0] in graph[component[0]]:
            cycles.append(component)
    return cycles


def _cycle_path(component: list[str], graph: Mapping[str, Sequence[str]]) -> list[str]:
    """One closed path through a cycle component, e.g. [a, b, a]."""
    members = set(component)
    start = min(component)
    if start in graph.get(start, ()):
        return [start, start]

    parents: dict[str, str] = {}
    queue = deque([start])
    seen = {start}
    while queue:
        node = queue.popleft()
        for neighbour in graph.get(node, ()):
            if neighbour not in members:
                continue
            if neighbour == start:
                path = [node]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                path.reverse()
                return [*path, start]
            if neighbour not in seen:
                seen.add(neighbour)
                parents[neighbour] = node
                queue.append(neighbour)
    return [start, start]


def detect_cycles(task_ids: Iterable[str], links: Sequence[PredecessorLink]) -> CycleReport:
    """Find every task that is part of a dependency cycle.

    Returns:
        CycleReport with all cycle members and one example cycle path
    """
    ids = list(task_ids)
    components = cycle_components(ids, links)
    if not components:
        return CycleReport(has_cycle=False)

    graph = build_dependency_graph(ids, links)
    nodes = {task_id for component in components for task_id in component}
    first = min(components, key=min)
    path = _cycle_path(first, graph)
    logger.warning(f"Dependency cycle detected: {' -> '.join(path)}")
    return CycleReport(has_cycle=True, cycle_nodes=nodes, cycle_path=path)


def would_create_cycle(
    links: Sequence[PredecessorLink], task_id: str, predecessor_id: str
) -> bool:
    """Check whether making task_id depend on predecessor_id would close a cycle."""
    if task_id == predecessor_id:
        return True

    depends_on: dict[str, list[str]] = {}
    for link in links:
        depends_on.setdefault(link.task_id, []).append(link.predecessor_id)

    # A cycle appears if the predecessor already (transitively) depends on the task
    to_process = [predecessor_id]
    visited: set[str] = set()
    while to_process:
        current = to_process.pop()
        if current == task_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        to_process.extend(depends_on.get(current, []))
    return False


def reachable_successors(start: str, links: Sequence[PredecessorLink]) -> set[str]:
    """All tasks that directly or transitively depend on start (start included)."""
    successors: dict[str, list[str]] = {}
    for link in links:
        successors.setdefault(link.predecessor_id, []).append(link.task_id)

    reached = {start}
    to_process = [start]
    while to_process:
        current = to_process.pop()
        for successor in successors.get(current, []):
            if successor not in reached:
                reached.add(successor)
                to_process.append(successor)
    return reached
