"""SQL access for the tasks table.

Like db.edges, these functions never commit.
"""

import sqlite3
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from taskflow.models import STATUS_COMPLETED, STATUS_PENDING, Task


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def insert_task(
    conn: sqlite3.Connection, name: str, status: str = STATUS_PENDING
) -> Task:
    now = _now()
    task = Task(
        id=str(uuid.uuid4()),
        name=name,
        status=status,
        created_at=now,
        updated_at=now,
        completed_at=now if status == STATUS_COMPLETED else None,
    )
    conn.execute(
        """INSERT INTO tasks (id, name, status, created_at, updated_at, completed_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            task.id,
            task.name,
            task.status,
            task.created_at,
            task.updated_at,
            task.completed_at,
        ),
    )
    return task


def get_task(conn: sqlite3.Connection, task_id: str) -> Task | None:
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    return Task.from_row(row) if row else None


def list_tasks(conn: sqlite3.Connection) -> list[Task]:
    rows = conn.execute("SELECT * FROM tasks ORDER BY created_at, rowid").fetchall()
    return [Task.from_row(r) for r in rows]


def missing_task_ids(conn: sqlite3.Connection, task_ids: Iterable[str]) -> list[str]:
    """Return the ids from ``task_ids`` that have no task row, in input order."""
    ids = list(dict.fromkeys(task_ids))
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    rows = conn.execute(
        f"SELECT id FROM tasks WHERE id IN ({placeholders})",  # noqa: S608
        ids,
    ).fetchall()
    found = {r["id"] for r in rows}
    return [tid for tid in ids if tid not in found]


def set_status(conn: sqlite3.Connection, task_id: str, status: str) -> str:
    """Update a task's status; completed_at tracks the completed state.

    Returns the timestamp written.
    """
    now = _now()
    completed_at = now if status == STATUS_COMPLETED else None
    conn.execute(
        "UPDATE tasks SET status = ?, completed_at = ?, updated_at = ? WHERE id = ?",
        (status, completed_at, now, task_id),
    )
    return now


def delete_task_row(conn: sqlite3.Connection, task_id: str) -> bool:
    cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
    return cur.rowcount > 0
