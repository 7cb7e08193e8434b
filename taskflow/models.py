"""Core records shared by the dependency engine, the stores, and the tools."""

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"

STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED)

# Maximum number of blocking tasks a single dependent task may reference
MAX_DEPENDENCIES_PER_TASK = 10


@dataclass(frozen=True)
class Task:
    """A task as seen by the dependency engine: identity, name and status."""

    id: str
    name: str
    status: str = STATUS_PENDING
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Task":
        return cls(
            id=row["id"],
            name=row["name"],
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            completed_at=row["completed_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Edge:
    """A dependency edge: the dependent task cannot start until the blocking task completes."""

    id: str
    dependent_task_id: str
    blocking_task_id: str
    created_by: str | None
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Edge":
        return cls(
            id=row["id"],
            dependent_task_id=row["dependent_task_id"],
            blocking_task_id=row["blocking_task_id"],
            created_by=row["created_by"],
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
