"""Bulk integrity check run before moving many tasks to in-progress.

Reports which of the requested tasks are blocked and by how many incomplete
direct blockers. Blocked tasks are advisory data for the caller, who decides
between skipping them and forcing the whole batch; only unknown task ids are
an error.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Any

from taskflow.errors import TaskNotFoundError
from taskflow.models import Edge, Task


@dataclass(frozen=True)
class BlockedTaskInfo:
    task_id: str
    task_name: str
    blocked_by_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _unique(task_ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(task_ids))


def blocked_tasks_info(
    task_ids: Iterable[str], edges: Iterable[Edge], tasks: Iterable[Task]
) -> list[BlockedTaskInfo]:
    """Return the blocked subset of ``task_ids``, in request order.

    Raises TaskNotFoundError if any requested id is unknown.
    """
    requested = _unique(task_ids)
    tasks_by_id = {t.id: t for t in tasks}

    missing = [tid for tid in requested if tid not in tasks_by_id]
    if missing:
        raise TaskNotFoundError(
            f"Unknown task ids in bulk request: {', '.join(missing)}",
            {"task_ids": missing},
        )

    wanted = set(requested)
    incomplete_blockers: dict[str, set[str]] = defaultdict(set)
    for edge in edges:
        if edge.dependent_task_id not in wanted:
            continue
        blocker = tasks_by_id.get(edge.blocking_task_id)
        if blocker is not None and not blocker.is_completed:
            incomplete_blockers[edge.dependent_task_id].add(blocker.id)

    return [
        BlockedTaskInfo(
            task_id=tid,
            task_name=tasks_by_id[tid].name,
            blocked_by_count=len(incomplete_blockers[tid]),
        )
        for tid in requested
        if incomplete_blockers.get(tid)
    ]


def blocked_task_ids(
    task_ids: Iterable[str], edges: Iterable[Edge], tasks: Iterable[Task]
) -> set[str]:
    """Ids from ``task_ids`` with at least one incomplete direct blocker."""
    return {info.task_id for info in blocked_tasks_info(task_ids, edges, tasks)}
