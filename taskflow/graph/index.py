"""Derived, read-only dependency index.

The index is a pure function of the edge set and the task statuses. It is
rebuilt from a fresh snapshot on every query; there is no incremental state.

Blocking is direct only: a task is blocked when at least one of its own
blockers is not completed. Blockers further upstream are not consulted.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from taskflow.models import Edge, Task

DEPENDENCY_STATUS_BLOCKED = "blocked"
DEPENDENCY_STATUS_READY = "ready"


@dataclass(frozen=True)
class DependencyInfo:
    """Dependency view of one task."""

    is_blocked: bool = False
    blocked_by: list[Task] = field(default_factory=list)
    blocked_by_ids: list[str] = field(default_factory=list)
    blocks: list[Task] = field(default_factory=list)
    blocks_ids: list[str] = field(default_factory=list)
    dependency_status: str | None = None
    dependency_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_blocked": self.is_blocked,
            "blocked_by": [t.to_dict() for t in self.blocked_by],
            "blocked_by_ids": list(self.blocked_by_ids),
            "blocks": [t.to_dict() for t in self.blocks],
            "blocks_ids": list(self.blocks_ids),
            "dependency_status": self.dependency_status,
            "dependency_count": self.dependency_count,
        }


def _dependency_info(
    task_id: str,
    blocker_ids: list[str],
    dependent_ids: list[str],
    tasks_by_id: dict[str, Task],
) -> DependencyInfo:
    blocked_by = [
        tasks_by_id[bid]
        for bid in blocker_ids
        if bid in tasks_by_id and not tasks_by_id[bid].is_completed
    ]
    blocks = [tasks_by_id[did] for did in dependent_ids if did in tasks_by_id]
    is_blocked = bool(blocked_by)

    status = None
    if is_blocked:
        status = DEPENDENCY_STATUS_BLOCKED
    elif blocker_ids:
        status = DEPENDENCY_STATUS_READY

    return DependencyInfo(
        is_blocked=is_blocked,
        blocked_by=blocked_by,
        blocked_by_ids=list(blocker_ids),
        blocks=blocks,
        blocks_ids=list(dependent_ids),
        dependency_status=status,
        dependency_count=len(blocker_ids),
    )


def build_index(
    edges: Iterable[Edge], tasks: Iterable[Task]
) -> dict[str, DependencyInfo]:
    """Build the dependency info map for every task in ``tasks``."""
    task_list = list(tasks)
    tasks_by_id = {t.id: t for t in task_list}

    blockers: dict[str, list[str]] = defaultdict(list)
    dependents: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        blockers[edge.dependent_task_id].append(edge.blocking_task_id)
        dependents[edge.blocking_task_id].append(edge.dependent_task_id)

    return {
        task.id: _dependency_info(
            task.id, blockers.get(task.id, []), dependents.get(task.id, []), tasks_by_id
        )
        for task in task_list
    }


def get_dependency_info(
    task_id: str, edges: Iterable[Edge], tasks: Iterable[Task]
) -> DependencyInfo:
    """Dependency info for a single task; an unknown id gets the empty info."""
    tasks_by_id = {t.id: t for t in tasks}
    if task_id not in tasks_by_id:
        return DependencyInfo()

    blocker_ids: list[str] = []
    dependent_ids: list[str] = []
    for edge in edges:
        if edge.dependent_task_id == task_id:
            blocker_ids.append(edge.blocking_task_id)
        elif edge.blocking_task_id == task_id:
            dependent_ids.append(edge.dependent_task_id)

    return _dependency_info(task_id, blocker_ids, dependent_ids, tasks_by_id)
