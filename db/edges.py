"""SQL access for the task_dependencies table.

Functions take an open connection and never commit; callers run them inside
SqliteStore.transaction() so validation and the write are one unit.
"""

import sqlite3
import uuid
from datetime import datetime, timezone

from db.events import emit_event
from taskflow.models import Edge


def insert_edge(
    conn: sqlite3.Connection,
    dependent_task_id: str,
    blocking_task_id: str,
    created_by: str | None = None,
) -> Edge:
    """Insert an edge with a generated id and timestamp."""
    edge = Edge(
        id=str(uuid.uuid4()),
        dependent_task_id=dependent_task_id,
        blocking_task_id=blocking_task_id,
        created_by=created_by,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    conn.execute(
        """INSERT INTO task_dependencies
           (id, dependent_task_id, blocking_task_id, created_by, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        (
            edge.id,
            edge.dependent_task_id,
            edge.blocking_task_id,
            edge.created_by,
            edge.created_at,
        ),
    )
    return edge


def get_edge(conn: sqlite3.Connection, edge_id: str) -> Edge | None:
    row = conn.execute(
        "SELECT * FROM task_dependencies WHERE id = ?", (edge_id,)
    ).fetchone()
    return Edge.from_row(row) if row else None


def get_edge_by_tasks(
    conn: sqlite3.Connection, dependent_task_id: str, blocking_task_id: str
) -> Edge | None:
    row = conn.execute(
        """SELECT * FROM task_dependencies
           WHERE dependent_task_id = ? AND blocking_task_id = ?""",
        (dependent_task_id, blocking_task_id),
    ).fetchone()
    return Edge.from_row(row) if row else None


def list_edges(conn: sqlite3.Connection) -> list[Edge]:
    """Every edge, oldest first."""
    rows = conn.execute(
        "SELECT * FROM task_dependencies ORDER BY created_at, rowid"
    ).fetchall()
    return [Edge.from_row(r) for r in rows]


def edges_for_dependent(conn: sqlite3.Connection, task_id: str) -> list[Edge]:
    """Edges where ``task_id`` is the dependent (what blocks this task)."""
    rows = conn.execute(
        """SELECT * FROM task_dependencies
           WHERE dependent_task_id = ? ORDER BY created_at, rowid""",
        (task_id,),
    ).fetchall()
    return [Edge.from_row(r) for r in rows]


def edges_for_blocker(conn: sqlite3.Connection, task_id: str) -> list[Edge]:
    """Edges where ``task_id`` is the blocker (what this task blocks)."""
    rows = conn.execute(
        """SELECT * FROM task_dependencies
           WHERE blocking_task_id = ? ORDER BY created_at, rowid""",
        (task_id,),
    ).fetchall()
    return [Edge.from_row(r) for r in rows]


def count_for_dependent(conn: sqlite3.Connection, task_id: str) -> int:
    row = conn.execute(
        "SELECT COUNT(*) AS cnt FROM task_dependencies WHERE dependent_task_id = ?",
        (task_id,),
    ).fetchone()
    return row["cnt"]


def delete_edge(conn: sqlite3.Connection, edge_id: str) -> bool:
    """Delete one edge by id. Returns False if no such edge."""
    cur = conn.execute("DELETE FROM task_dependencies WHERE id = ?", (edge_id,))
    return cur.rowcount > 0


def delete_edges_for_task(conn: sqlite3.Connection, task_id: str) -> int:
    """Delete every edge touching ``task_id`` on either end. Returns the count."""
    cur = conn.execute(
        """DELETE FROM task_dependencies
           WHERE dependent_task_id = ? OR blocking_task_id = ?""",
        (task_id, task_id),
    )
    return cur.rowcount


def cascade_delete_edges(conn: sqlite3.Connection, task_id: str) -> int:
    """Delete every edge touching ``task_id`` and record the cascade event.

    The single cascade path for task deletion and the engine's
    delete_dependencies_for_task. No event is written when nothing was deleted.
    """
    deleted = delete_edges_for_task(conn, task_id)
    if deleted:
        emit_event(
            conn,
            "dependencies_cascade_deleted",
            {"task_id": task_id, "deleted_count": deleted},
        )
    return deleted
