"""FastAPI dependency injection and DB helpers for taskflow."""

import sqlite3
from collections.abc import Generator
from typing import Any

from fastapi import Depends

from db.client import get_connection
from db.store import SqliteStore
from taskflow.engine import DependencyEngine
from taskflow.models import MAX_DEPENDENCIES_PER_TASK


# Module-level settings, set by create_app()
_db_path: str = ""
_max_dependencies: int = MAX_DEPENDENCIES_PER_TASK


def set_db_path(path: str) -> None:
    """Set the database path used by the DB dependency."""
    global _db_path  # noqa: PLW0603
    _db_path = path


def set_max_dependencies(limit: int) -> None:
    """Set the per-task dependency limit used by the engine dependency."""
    global _max_dependencies  # noqa: PLW0603
    _max_dependencies = limit


def get_db() -> Generator[sqlite3.Connection, None, None]:
    """FastAPI dependency that yields a DB connection per request."""
    conn = get_connection(_db_path, check_same_thread=False)
    try:
        yield conn
    finally:
        conn.close()


def get_engine(conn: sqlite3.Connection = Depends(get_db)) -> DependencyEngine:
    """FastAPI dependency that wraps the request's connection in an engine."""
    return DependencyEngine(SqliteStore(conn), max_dependencies=_max_dependencies)


def enrich_event_payload(
    conn: sqlite3.Connection, event: dict[str, Any]
) -> dict[str, Any]:
    """Build a websocket event with full object payload, not just IDs."""
    event_type = event["type"]
    payload = event["payload"]

    if event_type in ("task_created", "task_status_changed"):
        task_id = payload.get("task_id")
        if task_id:
            task = conn.execute(
                "SELECT * FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
            if task:
                return {"type": event_type, "payload": dict(task)}

    elif event_type == "dependency_created":
        dependency_id = payload.get("dependency_id")
        if dependency_id:
            dep = conn.execute(
                "SELECT * FROM task_dependencies WHERE id = ?", (dependency_id,)
            ).fetchone()
            if dep:
                return {"type": event_type, "payload": dict(dep)}

    # Fallback: return raw payload
    return {"type": event_type, "payload": payload}
