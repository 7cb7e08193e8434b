"""Task status rules for taskflow.

Statuses: pending, in-progress, completed.
    - Any status may move to any other status
    - No-op: moving to the current status is rejected
    - Unknown status values are rejected

Blocking is not enforced here. Whether a blocked task may start is the
caller's decision (see the bulk integrity check).

Import validate_status_transition() from here. Do not duplicate this logic.
"""

import sqlite3
from typing import Any

from taskflow.models import STATUSES


class InvalidStatusError(Exception):
    """Raised when a status value or status change is not allowed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


def validate_status(status: str) -> None:
    """Raise InvalidStatusError unless ``status`` is a known task status."""
    if status not in STATUSES:
        raise InvalidStatusError(
            f"Invalid status '{status}'. Must be one of: {', '.join(STATUSES)}"
        )


def validate_status_transition(
    conn: sqlite3.Connection, task_id: str, target_status: str
) -> dict[str, Any]:
    """Validate a single task status change.

    Returns dict with current/target status on success.
    Raises InvalidStatusError if the change is invalid.
    """
    validate_status(target_status)

    task = conn.execute(
        "SELECT id, name, status FROM tasks WHERE id = ?", (task_id,)
    ).fetchone()
    if task is None:
        raise InvalidStatusError(f"Task '{task_id}' not found")

    if task["status"] == target_status:
        raise InvalidStatusError(
            f"Task '{task['name']}' is already '{target_status}'"
        )

    return {
        "task_id": task_id,
        "task_name": task["name"],
        "current_status": task["status"],
        "target_status": target_status,
    }
