"""Cycle detection for the task dependency graph.

Adding the arc ``dependent -> blocking`` closes a cycle exactly when
``blocking`` already depends, directly or transitively, on ``dependent``.
We search outward from ``blocking`` along existing depends-on arcs and stop
as soon as ``dependent`` is reached.
"""

from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from taskflow.models import Edge


@dataclass(frozen=True)
class CycleCheck:
    """Outcome of a cycle check.

    ``path`` is the cycle the new edge would close, in depends-on order,
    starting at the proposed dependent task: ``[dependent, blocking, ...]``.
    Following the path and returning to its first element walks the cycle.
    It is a rotation of ``[blocking, ..., dependent]``: the same cycle, read
    from the task that would gain the new blocker.
    """

    would_cycle: bool
    path: list[str] | None = None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"would_cycle": self.would_cycle}
        if self.path is not None:
            result["path"] = list(self.path)
        return result


def depends_on_map(edges: Iterable[Edge]) -> dict[str, list[str]]:
    """Map each dependent task id to its direct blocking task ids, in edge order."""
    adjacency: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        adjacency[edge.dependent_task_id].append(edge.blocking_task_id)
    return adjacency


def would_create_cycle(
    dependent_id: str, blocking_id: str, edges: Iterable[Edge]
) -> CycleCheck:
    """Return whether adding ``dependent_id -> blocking_id`` would create a cycle.

    Iterative DFS from ``blocking_id`` with a visited set, so it terminates
    even if the stored graph were already corrupt.
    """
    if dependent_id == blocking_id:
        return CycleCheck(would_cycle=True, path=[dependent_id])

    adjacency = depends_on_map(edges)

    visited = {blocking_id}
    path = [blocking_id]
    stack: list[Iterator[str]] = [iter(adjacency.get(blocking_id, ()))]

    while stack:
        next_id = next(stack[-1], None)
        if next_id is None:
            stack.pop()
            path.pop()
            continue
        if next_id == dependent_id:
            return CycleCheck(would_cycle=True, path=[dependent_id, *path])
        if next_id in visited:
            continue
        visited.add(next_id)
        path.append(next_id)
        stack.append(iter(adjacency.get(next_id, ())))

    return CycleCheck(would_cycle=False)


def find_cycle(edges: Iterable[Edge]) -> list[str] | None:
    """Return one cycle in an existing edge set, or None if it is acyclic.

    Used by the migration audit on a stored graph; insertion never needs it
    because every accepted edge already passed would_create_cycle.
    """
    edge_list = list(edges)
    adjacency = depends_on_map(edge_list)
    done: set[str] = set()

    for edge in edge_list:
        start = edge.dependent_task_id
        if start in done:
            continue
        on_path = {start}
        path = [start]
        stack: list[Iterator[str]] = [iter(adjacency.get(start, ()))]
        while stack:
            next_id = next(stack[-1], None)
            if next_id is None:
                stack.pop()
                finished = path.pop()
                on_path.discard(finished)
                done.add(finished)
                continue
            if next_id in on_path:
                return path[path.index(next_id) :]
            if next_id in done:
                continue
            on_path.add(next_id)
            path.append(next_id)
            stack.append(iter(adjacency.get(next_id, ())))

    return None
