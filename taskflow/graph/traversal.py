"""Transitive upstream/downstream traversal of the dependency graph.

Both directions are breadth-first with a visited set, so the result is ordered
by depth and then by discovery order, and a corrupt (cyclic) edge set still
terminates.
"""

from collections import defaultdict, deque
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from taskflow.models import Edge, Task

UPSTREAM = "upstream"
DOWNSTREAM = "downstream"


@dataclass(frozen=True)
class ChainEntry:
    """A task reached by traversal, ``depth`` hops away from the origin."""

    task: Task
    depth: int
    dependency_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.to_dict(),
            "depth": self.depth,
            "dependency_id": self.dependency_id,
        }


def _neighbours(
    edges: Iterable[Edge], direction: str
) -> dict[str, list[tuple[str, str]]]:
    if direction not in (UPSTREAM, DOWNSTREAM):
        raise ValueError(f"Unknown traversal direction '{direction}'")

    neighbours: dict[str, list[tuple[str, str]]] = defaultdict(list)
    for edge in edges:
        if direction == UPSTREAM:
            neighbours[edge.dependent_task_id].append((edge.blocking_task_id, edge.id))
        else:
            neighbours[edge.blocking_task_id].append((edge.dependent_task_id, edge.id))
    return neighbours


def _walk(
    task_id: str, edges: Iterable[Edge], direction: str
) -> list[tuple[str, int, str]]:
    """BFS from ``task_id``; returns (task_id, depth, dependency_id) per reached task."""
    neighbours = _neighbours(edges, direction)
    visited = {task_id}
    queue = deque([(task_id, 0)])
    reached: list[tuple[str, int, str]] = []

    while queue:
        current, depth = queue.popleft()
        for next_id, dependency_id in neighbours.get(current, ()):
            if next_id in visited:
                continue
            visited.add(next_id)
            reached.append((next_id, depth + 1, dependency_id))
            queue.append((next_id, depth + 1))

    return reached


def _chain(
    task_id: str, edges: Iterable[Edge], tasks: Iterable[Task], direction: str
) -> list[ChainEntry]:
    tasks_by_id = {t.id: t for t in tasks}
    return [
        ChainEntry(task=tasks_by_id[tid], depth=depth, dependency_id=dep_id)
        for tid, depth, dep_id in _walk(task_id, edges, direction)
        if tid in tasks_by_id
    ]


def get_upstream_chain(
    task_id: str, edges: Iterable[Edge], tasks: Iterable[Task]
) -> list[ChainEntry]:
    """All tasks ``task_id`` transitively depends on (depth 1 = direct blocker)."""
    return _chain(task_id, edges, tasks, UPSTREAM)


def get_downstream_chain(
    task_id: str, edges: Iterable[Edge], tasks: Iterable[Task]
) -> list[ChainEntry]:
    """All tasks that transitively depend on ``task_id``."""
    return _chain(task_id, edges, tasks, DOWNSTREAM)


def reachable_ids(task_id: str, edges: Iterable[Edge], direction: str) -> set[str]:
    """Ids of every task reachable from ``task_id`` in the given direction."""
    return {tid for tid, _, _ in _walk(task_id, edges, direction)}


def eligible_blockers(
    task_id: str, edges: Iterable[Edge], tasks: Iterable[Task]
) -> list[Task]:
    """Tasks that could be added as a new blocker of ``task_id``.

    Excludes the task itself, its current direct blockers, and every task that
    already depends on it transitively (adding any of those would close a
    cycle). One downstream traversal replaces a cycle check per candidate.
    """
    edge_list = list(edges)
    excluded = reachable_ids(task_id, edge_list, DOWNSTREAM)
    excluded.add(task_id)
    excluded.update(
        e.blocking_task_id for e in edge_list if e.dependent_task_id == task_id
    )
    return [t for t in tasks if t.id not in excluded]


def format_cycle_path(path: list[str], tasks: Iterable[Task]) -> str:
    """Render a cycle path as ``"Task A → Task B → Task A"``.

    The first name is repeated at the end to show the loop closing. Ids with
    no matching task are shown as-is.
    """
    names_by_id = {t.id: t.name for t in tasks}
    names = [names_by_id.get(task_id, task_id) for task_id in path]
    if names:
        names.append(names[0])
    return " → ".join(names)
