"""MCP server for taskflow.

Exposes task and dependency-graph tools via stdio transport.
Launched by `taskflow mcp`.
"""

from __future__ import annotations

import json
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from db.store import SqliteStore
from taskflow.config import DEFAULT_DB_PATH, DB_ENV_VAR
from taskflow.engine import DependencyEngine
from taskflow.mcp import tools
from taskflow.models import MAX_DEPENDENCIES_PER_TASK

MAX_DEPS_ENV_VAR = "TASKFLOW_MAX_DEPENDENCIES"


@dataclass
class AppState:
    """Lifespan state accessible by tools via Context."""

    engine: DependencyEngine


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppState]:  # type: ignore[type-arg]
    """Open the store at startup, close on shutdown."""
    db_path = os.environ.get(DB_ENV_VAR, DEFAULT_DB_PATH)
    db_path = str(Path(db_path).expanduser())
    max_deps = int(os.environ.get(MAX_DEPS_ENV_VAR, MAX_DEPENDENCIES_PER_TASK))

    store = SqliteStore.open(db_path)
    try:
        yield AppState(engine=DependencyEngine(store, max_dependencies=max_deps))
    finally:
        store.close()


def _get_engine(ctx: Context) -> DependencyEngine:
    """Extract the engine from Context lifespan state."""
    state: AppState = ctx.request_context.lifespan_context
    return state.engine


def _dump(result: dict[str, Any]) -> str:
    return json.dumps(result, indent=2)


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools registered."""
    server = FastMCP(
        name="taskflow",
        instructions="Task dependency graph tools: add/remove blocking relations, "
        "inspect blocked status and dependency chains, and bulk status changes.",
        lifespan=app_lifespan,
    )

    @server.tool(description="Create a new task (status: pending, in-progress, completed)")
    def create_task(
        name: str,
        status: str = "pending",
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(tools.create_task(_get_engine(ctx), name, status))

    @server.tool(description="List all tasks with their dependency info")
    def list_tasks(ctx: Context) -> str:
        return _dump(tools.list_tasks(_get_engine(ctx)))

    @server.tool(description="Return a single task with its dependency info")
    def get_task(task_id: str, ctx: Context) -> str:
        return _dump(tools.get_task(_get_engine(ctx), task_id))

    @server.tool(description="Change a task's status")
    def update_task_status(
        task_id: str,
        status: str,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(tools.update_task_status(_get_engine(ctx), task_id, status))

    @server.tool(description="Delete a task and every dependency that references it")
    def delete_task(task_id: str, ctx: Context = None) -> str:  # type: ignore[assignment]
        return _dump(tools.delete_task(_get_engine(ctx), task_id))

    @server.tool(
        description="Move many tasks to a status in one transaction. With "
        "skip_blocked=true, tasks blocked by incomplete dependencies are skipped "
        "when moving to in-progress; otherwise every task is moved."
    )
    def bulk_update_status(
        task_ids: list[str],
        status: str,
        skip_blocked: bool = False,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(
            tools.bulk_update_status(_get_engine(ctx), task_ids, status, skip_blocked)
        )

    @server.tool(description="Delete many tasks and their dependencies in one transaction")
    def bulk_delete_tasks(
        task_ids: list[str],
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(tools.bulk_delete_tasks(_get_engine(ctx), task_ids))

    @server.tool(
        description="Add a dependency: the dependent task is blocked until the "
        "blocking task is completed. Rejects self-references, duplicates, more "
        "than the per-task limit, and cycles."
    )
    def create_dependency(
        dependent_task_id: str,
        blocking_task_id: str,
        created_by: str | None = None,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(
            tools.create_dependency(
                _get_engine(ctx), dependent_task_id, blocking_task_id, created_by
            )
        )

    @server.tool(description="Remove a dependency edge by id")
    def delete_dependency(
        dependency_id: str,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(tools.delete_dependency(_get_engine(ctx), dependency_id))

    @server.tool(description="Delete every dependency touching a task")
    def delete_dependencies_for_task(
        task_id: str,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(tools.delete_dependencies_for_task(_get_engine(ctx), task_id))

    @server.tool(description="Get the dependency edges on both sides of a task")
    def get_dependencies(task_id: str, ctx: Context = None) -> str:  # type: ignore[assignment]
        return _dump(tools.get_dependencies(_get_engine(ctx), task_id))

    @server.tool(description="Is this task blocked, by whom, and whom does it block")
    def get_dependency_info(task_id: str, ctx: Context = None) -> str:  # type: ignore[assignment]
        return _dump(tools.get_dependency_info(_get_engine(ctx), task_id))

    @server.tool(description="Check whether a proposed dependency would create a cycle")
    def would_create_cycle(
        dependent_task_id: str,
        blocking_task_id: str,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(
            tools.would_create_cycle(
                _get_engine(ctx), dependent_task_id, blocking_task_id
            )
        )

    @server.tool(description="Pre-flight check of a proposed dependency without creating it")
    def can_add_dependency(
        dependent_task_id: str,
        blocking_task_id: str,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(
            tools.can_add_dependency(
                _get_engine(ctx), dependent_task_id, blocking_task_id
            )
        )

    @server.tool(description="All tasks this task transitively depends on, with depth")
    def get_upstream_chain(task_id: str, ctx: Context = None) -> str:  # type: ignore[assignment]
        return _dump(tools.get_upstream_chain(_get_engine(ctx), task_id))

    @server.tool(description="All tasks that transitively depend on this task, with depth")
    def get_downstream_chain(task_id: str, ctx: Context = None) -> str:  # type: ignore[assignment]
        return _dump(tools.get_downstream_chain(_get_engine(ctx), task_id))

    @server.tool(description="Tasks that can be added as blockers of this task")
    def get_available_blockers(task_id: str, ctx: Context = None) -> str:  # type: ignore[assignment]
        return _dump(tools.get_available_blockers(_get_engine(ctx), task_id))

    @server.tool(
        description="Report which of the given tasks are blocked, and by how many "
        "incomplete blockers, before a bulk move to in-progress"
    )
    def get_blocked_tasks_info(
        task_ids: list[str],
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        return _dump(tools.get_blocked_tasks_info(_get_engine(ctx), task_ids))

    return server


def run_server(db_path: str | None = None, max_dependencies: int | None = None) -> None:
    """Entry point: create server and run on stdio."""
    if db_path:
        os.environ[DB_ENV_VAR] = db_path
    if max_dependencies is not None:
        os.environ[MAX_DEPS_ENV_VAR] = str(max_dependencies)

    server = create_server()
    server.run(transport="stdio")
