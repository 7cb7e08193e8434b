"""Graph validation for proposed dependency edges.

Checks run in a fixed order and the first failure wins, so error messages are
deterministic and the cheap checks run before the traversal:

    1. self-reference
    2. both tasks exist
    3. duplicate edge
    4. fan-out limit on the dependent task
    5. cycle

Import validate() from here. Do not duplicate this logic.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any

from taskflow.errors import (
    CircularDependencyError,
    DependencyError,
    DependencyLimitError,
    DuplicateDependencyError,
    SelfReferenceError,
    TaskNotFoundError,
)
from taskflow.graph.cycles import would_create_cycle
from taskflow.models import MAX_DEPENDENCIES_PER_TASK, Edge, Task

logger = logging.getLogger(__name__)

TaskLookup = Callable[[str], Task | None]


def validate(
    dependent_id: str,
    blocking_id: str,
    edges: Iterable[Edge],
    task_lookup: TaskLookup,
    max_dependencies: int = MAX_DEPENDENCIES_PER_TASK,
) -> None:
    """Validate that ``dependent_id`` may depend on ``blocking_id``.

    Pure decision function: returns None when the edge is acceptable and
    raises a DependencyError subclass otherwise.
    """
    if dependent_id == blocking_id:
        raise SelfReferenceError(details={"task_id": dependent_id})

    missing = [
        task_id
        for task_id in (dependent_id, blocking_id)
        if task_lookup(task_id) is None
    ]
    if missing:
        raise TaskNotFoundError(details={"task_ids": missing})

    edge_list = list(edges)

    for edge in edge_list:
        if (
            edge.dependent_task_id == dependent_id
            and edge.blocking_task_id == blocking_id
        ):
            raise DuplicateDependencyError(details={"dependency_id": edge.id})

    count = sum(1 for e in edge_list if e.dependent_task_id == dependent_id)
    if count >= max_dependencies:
        raise DependencyLimitError(max_dependencies)

    check = would_create_cycle(dependent_id, blocking_id, edge_list)
    if check.would_cycle:
        logger.debug(
            "Rejected %s -> %s: cycle %s", dependent_id, blocking_id, check.path
        )
        raise CircularDependencyError(check.path or [])


def check_dependency(
    dependent_id: str,
    blocking_id: str,
    edges: Iterable[Edge],
    task_lookup: TaskLookup,
    max_dependencies: int = MAX_DEPENDENCIES_PER_TASK,
) -> dict[str, Any]:
    """Non-raising pre-flight form of validate() for UI pre-validation.

    Returns {"valid": True} or {"valid": False, "reason", "message"[, "path"]}.
    """
    try:
        validate(dependent_id, blocking_id, edges, task_lookup, max_dependencies)
    except DependencyError as e:
        result: dict[str, Any] = {
            "valid": False,
            "reason": e.code,
            "message": e.message,
        }
        if isinstance(e, CircularDependencyError):
            result["path"] = e.path
        return result
    return {"valid": True}
