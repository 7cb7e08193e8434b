"""REST route handlers for the taskflow API.

Routes wrap MCP tool functions with HTTP semantics. All task and dependency
mutations go through the MCP tools (source of truth for business logic).
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.websockets import WebSocket, WebSocketDisconnect

from api.deps import get_engine
from api.models import (
    BlockedTaskInfoResponse,
    BulkStatusRequest,
    BulkStatusResponse,
    BulkTaskIdsRequest,
    ChainResponse,
    CheckDependencyRequest,
    CreateDependencyRequest,
    CreateTaskRequest,
    DependencyInfoResponse,
    DependencyResponse,
    TaskDetailResponse,
    TaskResponse,
    UpdateTaskRequest,
)
from api.ws import manager
from taskflow.engine import DependencyEngine
from taskflow.mcp import tools

router = APIRouter()

_NOT_FOUND = ("TASK_NOT_FOUND", "NOT_FOUND")
_CONFLICT = ("DUPLICATE", "CIRCULAR")
_UNPROCESSABLE = (
    "SELF_REFERENCE",
    "LIMIT_EXCEEDED",
    "invalid_input",
    "invalid_transition",
)


def _check_error(result: dict[str, Any]) -> None:
    """Convert MCP tool error dicts to HTTPException."""
    if "error" not in result:
        return
    error = result["error"]
    detail = {
        "error": error,
        "message": result.get("message", "Unknown error"),
        "details": result.get("details", {}),
    }
    if error in _NOT_FOUND:
        raise HTTPException(status_code=404, detail=detail)
    if error in _CONFLICT:
        raise HTTPException(status_code=409, detail=detail)
    if error in _UNPROCESSABLE:
        raise HTTPException(status_code=422, detail=detail)
    raise HTTPException(status_code=400, detail=detail)


# ── Task endpoints ─────────────────────────────────────────


@router.post("/tasks", status_code=201, response_model=TaskResponse)
def create_task_endpoint(
    body: CreateTaskRequest,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Create a task."""
    result = tools.create_task(engine, body.name, body.status)
    _check_error(result)
    return result


@router.get("/tasks", response_model=list[TaskDetailResponse])
def list_tasks_endpoint(
    engine: DependencyEngine = Depends(get_engine),
) -> list[dict[str, Any]]:
    """List every task with its dependency info."""
    return tools.list_tasks(engine)["tasks"]


@router.get("/tasks/{task_id}", response_model=TaskDetailResponse)
def get_task_endpoint(
    task_id: str,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Get a task with its dependency info."""
    result = tools.get_task(engine, task_id)
    _check_error(result)
    return result


@router.patch("/tasks/{task_id}", response_model=TaskDetailResponse)
def update_task_endpoint(
    task_id: str,
    body: UpdateTaskRequest,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Change a task's status. Blocked tasks may still be moved."""
    result = tools.update_task_status(engine, task_id, body.status)
    _check_error(result)
    return result


@router.delete("/tasks/{task_id}")
def delete_task_endpoint(
    task_id: str,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Delete a task and every dependency that references it."""
    result = tools.delete_task(engine, task_id)
    _check_error(result)
    return result


@router.post("/tasks/bulk-status", response_model=BulkStatusResponse)
def bulk_status_endpoint(
    body: BulkStatusRequest,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Move many tasks to a status, optionally skipping blocked ones."""
    result = tools.bulk_update_status(
        engine, body.task_ids, body.status, body.skip_blocked
    )
    _check_error(result)
    return result


@router.post("/tasks/bulk-delete")
def bulk_delete_endpoint(
    body: BulkTaskIdsRequest,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = tools.bulk_delete_tasks(engine, body.task_ids)
    _check_error(result)
    return result


@router.post("/tasks/blocked-info", response_model=list[BlockedTaskInfoResponse])
def blocked_info_endpoint(
    body: BulkTaskIdsRequest,
    engine: DependencyEngine = Depends(get_engine),
) -> list[dict[str, Any]]:
    """Report which of the given tasks are blocked, for the bulk-start prompt."""
    result = tools.get_blocked_tasks_info(engine, body.task_ids)
    _check_error(result)
    return result["blocked"]


# ── Dependency views of a task ─────────────────────────────


@router.get("/tasks/{task_id}/dependencies")
def task_dependencies_endpoint(
    task_id: str,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Edges on both sides of a task plus its derived dependency info."""
    result = tools.get_dependencies(engine, task_id)
    _check_error(result)
    info = tools.get_dependency_info(engine, task_id)
    _check_error(info)
    result["info"] = DependencyInfoResponse(**info).model_dump()
    return result


@router.get("/tasks/{task_id}/upstream", response_model=ChainResponse)
def upstream_endpoint(
    task_id: str,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = tools.get_upstream_chain(engine, task_id)
    _check_error(result)
    return result


@router.get("/tasks/{task_id}/downstream", response_model=ChainResponse)
def downstream_endpoint(
    task_id: str,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = tools.get_downstream_chain(engine, task_id)
    _check_error(result)
    return result


@router.get(
    "/tasks/{task_id}/available-blockers", response_model=list[TaskResponse]
)
def available_blockers_endpoint(
    task_id: str,
    engine: DependencyEngine = Depends(get_engine),
) -> list[dict[str, Any]]:
    """Tasks that can be picked as a new blocker without closing a cycle."""
    result = tools.get_available_blockers(engine, task_id)
    _check_error(result)
    return result["tasks"]


# ── Dependency endpoints ───────────────────────────────────


@router.post("/dependencies", status_code=201, response_model=DependencyResponse)
def create_dependency_endpoint(
    body: CreateDependencyRequest,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Add a dependency edge: the dependent is blocked until the blocker completes."""
    result = tools.create_dependency(
        engine, body.dependent_task_id, body.blocking_task_id, body.created_by
    )
    _check_error(result)
    return result


@router.delete("/dependencies/{dependency_id}")
def delete_dependency_endpoint(
    dependency_id: str,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = tools.delete_dependency(engine, dependency_id)
    _check_error(result)
    return result


@router.post("/dependencies/check")
def check_dependency_endpoint(
    body: CheckDependencyRequest,
    engine: DependencyEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Pre-flight a dependency. Always 200; the body says whether it is valid."""
    result = tools.can_add_dependency(
        engine, body.dependent_task_id, body.blocking_task_id
    )
    if result.get("path"):
        result["formatted_path"] = engine.format_cycle_path(result["path"])
    return result


# ── WebSocket ──────────────────────────────────────────────


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for live task and dependency updates."""
    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
