"""Event emission and consumption.

Every write operation inserts an event row so the API server
can broadcast it via websocket.
"""

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any


def emit_event(
    conn: sqlite3.Connection,
    event_type: str,
    payload: dict[str, Any],
) -> str:
    """Insert an event row and return its ID.

    The caller manages the transaction so the data write and event
    emission commit together.

    Args:
        conn: Active SQLite connection.
        event_type: One of 'task_created', 'task_status_changed', 'task_deleted',
                    'dependency_created', 'dependency_removed',
                    'dependencies_cascade_deleted', 'bulk_status_updated'.
        payload: JSON-serializable dict with event details.

    Returns:
        The generated event ID (UUID4).
    """
    event_id = str(uuid.uuid4())
    now = datetime.now(timezone.utc).isoformat()
    conn.execute(
        "INSERT INTO events (id, type, payload, created_at) VALUES (?, ?, ?, ?)",
        (event_id, event_type, json.dumps(payload), now),
    )
    return event_id


def get_unconsumed_events(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    """Fetch all unconsumed events from the events table."""
    rows = conn.execute(
        "SELECT id, type, payload, created_at FROM events"
        " WHERE consumed = 0 ORDER BY created_at, rowid"
    ).fetchall()
    return [
        {
            "id": row["id"],
            "type": row["type"],
            "payload": json.loads(row["payload"]),
            "created_at": row["created_at"],
        }
        for row in rows
    ]


def mark_event_consumed(conn: sqlite3.Connection, event_id: str) -> None:
    """Mark an event as consumed."""
    conn.execute("UPDATE events SET consumed = 1 WHERE id = ?", (event_id,))
    conn.commit()
