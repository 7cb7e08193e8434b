"""MCP tool implementations for taskflow.

Each function takes a DependencyEngine and explicit params, returns a dict.
Engine errors become {"error": code, "message": ..., "details": ...} dicts;
the server module registers these as MCP tools and the REST routes map the
codes to HTTP statuses.
"""

from collections.abc import Callable
from typing import Any, TypeVar

from db.state_machine import InvalidStatusError
from taskflow.engine import DependencyEngine
from taskflow.errors import CircularDependencyError, DependencyError
from taskflow.graph.index import build_index

T = TypeVar("T")


def _not_found(task_id: str) -> dict[str, Any]:
    return {
        "error": "TASK_NOT_FOUND",
        "message": f"Task '{task_id}' not found",
        "details": {"task_ids": [task_id]},
    }


def _call(
    engine: DependencyEngine, fn: Callable[[], T]
) -> T | dict[str, Any]:
    """Run ``fn`` and convert engine/status errors to error dicts."""
    try:
        return fn()
    except CircularDependencyError as e:
        result = e.to_dict()
        result["details"]["formatted_path"] = engine.format_cycle_path(e.path)
        return result
    except DependencyError as e:
        return e.to_dict()
    except InvalidStatusError as e:
        return {"error": "invalid_transition", "message": str(e), "details": {}}


def _is_error(result: Any) -> bool:
    return isinstance(result, dict) and "error" in result


# ── Task tools ────────────────────────────────────────────


def create_task(
    engine: DependencyEngine, name: str, status: str = "pending"
) -> dict[str, Any]:
    """Create a task."""
    if not name or not name.strip():
        return {
            "error": "invalid_input",
            "message": "Task name must be a non-empty string",
            "details": {},
        }
    result = _call(engine, lambda: engine.store.create_task(name.strip(), status))
    return result if _is_error(result) else result.to_dict()


def list_tasks(engine: DependencyEngine) -> dict[str, Any]:
    """Return every task with its dependency info."""
    edges, all_tasks = engine.store.load_graph()
    index = build_index(edges, all_tasks)
    tasks = []
    for task in all_tasks:
        task_dict = task.to_dict()
        task_dict["dependencies"] = index[task.id].to_dict()
        tasks.append(task_dict)
    return {"tasks": tasks}


def get_task(engine: DependencyEngine, task_id: str) -> dict[str, Any]:
    """Return a single task with its dependency info."""
    task = engine.store.get_task_by_id(task_id)
    if task is None:
        return _not_found(task_id)
    result = task.to_dict()
    result["dependencies"] = engine.get_dependency_info(task_id).to_dict()
    return result


def update_task_status(
    engine: DependencyEngine, task_id: str, status: str
) -> dict[str, Any]:
    """Change a task's status. Blocking is reported, not enforced."""
    result = _call(engine, lambda: engine.store.update_task_status(task_id, status))
    if _is_error(result):
        return result
    task_dict = result.to_dict()
    task_dict["dependencies"] = engine.get_dependency_info(task_id).to_dict()
    return task_dict


def delete_task(engine: DependencyEngine, task_id: str) -> dict[str, Any]:
    """Delete a task and cascade-delete its dependency edges."""
    result = _call(engine, lambda: engine.store.delete_task(task_id))
    if _is_error(result):
        return result
    return {"status": "deleted", **result}


def bulk_update_status(
    engine: DependencyEngine,
    task_ids: list[str],
    status: str,
    skip_blocked: bool = False,
) -> dict[str, Any]:
    """Move many tasks to a status; ``skip_blocked`` leaves blocked tasks pending."""
    result = _call(
        engine,
        lambda: engine.store.bulk_update_status(task_ids, status, skip_blocked),
    )
    return result if _is_error(result) else result.to_dict()


def bulk_delete_tasks(engine: DependencyEngine, task_ids: list[str]) -> dict[str, Any]:
    result = _call(engine, lambda: engine.store.bulk_delete_tasks(task_ids))
    return result if _is_error(result) else {"affected_count": result}


# ── Dependency tools ──────────────────────────────────────


def create_dependency(
    engine: DependencyEngine,
    dependent_task_id: str,
    blocking_task_id: str,
    created_by: str | None = None,
) -> dict[str, Any]:
    """Add a dependency edge: dependent is blocked until blocking completes."""
    result = _call(
        engine,
        lambda: engine.create_dependency(
            dependent_task_id, blocking_task_id, created_by
        ),
    )
    return result if _is_error(result) else result.to_dict()


def delete_dependency(engine: DependencyEngine, dependency_id: str) -> dict[str, Any]:
    """Remove a dependency edge."""
    result = _call(engine, lambda: engine.delete_dependency(dependency_id))
    if _is_error(result):
        return result
    return {"status": "removed", "id": dependency_id}


def delete_dependencies_for_task(
    engine: DependencyEngine, task_id: str
) -> dict[str, Any]:
    """Remove every edge where the task is either the dependent or the blocker."""
    if engine.store.get_task_by_id(task_id) is None:
        return _not_found(task_id)
    return _call(engine, lambda: engine.delete_dependencies_for_task(task_id))


def get_dependencies(engine: DependencyEngine, task_id: str) -> dict[str, Any]:
    """Return the edges where the task is the dependent and where it is the blocker."""
    if engine.store.get_task_by_id(task_id) is None:
        return _not_found(task_id)
    return {
        "task_id": task_id,
        "blocked_by": [e.to_dict() for e in engine.dependencies_for_task(task_id)],
        "blocks": [e.to_dict() for e in engine.tasks_blocked_by(task_id)],
    }


def get_dependency_info(engine: DependencyEngine, task_id: str) -> dict[str, Any]:
    if engine.store.get_task_by_id(task_id) is None:
        return _not_found(task_id)
    return {"task_id": task_id, **engine.get_dependency_info(task_id).to_dict()}


def would_create_cycle(
    engine: DependencyEngine, dependent_task_id: str, blocking_task_id: str
) -> dict[str, Any]:
    result = engine.would_create_cycle(dependent_task_id, blocking_task_id).to_dict()
    if result["would_cycle"]:
        result["formatted_path"] = engine.format_cycle_path(result["path"])
    return result


def can_add_dependency(
    engine: DependencyEngine, dependent_task_id: str, blocking_task_id: str
) -> dict[str, Any]:
    return engine.can_add_dependency(dependent_task_id, blocking_task_id)


def get_upstream_chain(engine: DependencyEngine, task_id: str) -> dict[str, Any]:
    """All tasks this task transitively depends on, with depth."""
    if engine.store.get_task_by_id(task_id) is None:
        return _not_found(task_id)
    chain = engine.get_upstream_chain(task_id)
    return {"task_id": task_id, "chain": [entry.to_dict() for entry in chain]}


def get_downstream_chain(engine: DependencyEngine, task_id: str) -> dict[str, Any]:
    """All tasks that transitively depend on this task, with depth."""
    if engine.store.get_task_by_id(task_id) is None:
        return _not_found(task_id)
    chain = engine.get_downstream_chain(task_id)
    return {"task_id": task_id, "chain": [entry.to_dict() for entry in chain]}


def get_available_blockers(engine: DependencyEngine, task_id: str) -> dict[str, Any]:
    if engine.store.get_task_by_id(task_id) is None:
        return _not_found(task_id)
    return {
        "task_id": task_id,
        "tasks": [t.to_dict() for t in engine.get_available_blockers(task_id)],
    }


def get_blocked_tasks_info(
    engine: DependencyEngine, task_ids: list[str]
) -> dict[str, Any]:
    """Report which of the given tasks are blocked before a bulk move to in-progress."""
    result = _call(engine, lambda: engine.get_blocked_tasks_info(task_ids))
    if _is_error(result):
        return result
    return {"blocked": [info.to_dict() for info in result]}
