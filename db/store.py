"""Transactional SQLite store for tasks and dependency edges.

SqliteStore wraps one connection and is the handle injected into the
dependency engine. It provides:

    - transaction(): a BEGIN IMMEDIATE write transaction. Validate-then-commit
      runs inside one, so two writers can never both validate against a stale
      edge set. Nested use joins the outer transaction.
    - snapshot(): a read transaction, so a query sees edges and task statuses
      from the same committed state.
    - get_task_by_id(): the task lookup the validator consumes.
    - the thin task store (create, status update, delete with cascade, bulk
      status update, bulk delete).
"""

import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from db import edges as edge_db
from db import tasks as task_db
from db.events import emit_event
from db.migrations import init_db
from db.state_machine import validate_status, validate_status_transition
from taskflow.errors import TaskNotFoundError
from taskflow.graph.bulk import blocked_task_ids
from taskflow.models import STATUS_IN_PROGRESS, STATUS_PENDING, Edge, Task

logger = logging.getLogger(__name__)


@dataclass
class BulkResult:
    """Outcome of a bulk status update."""

    affected_count: int = 0
    skipped_count: int = 0
    skipped_task_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SqliteStore:
    """Tasks + dependency edges behind one serialized SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._lock = threading.RLock()
        self._depth = 0

    @classmethod
    def open(cls, db_path: str | Path) -> "SqliteStore":
        """Open (and migrate) a database file for use from any thread."""
        return cls(init_db(db_path, check_same_thread=False))

    def close(self) -> None:
        self.conn.close()

    # ── Transactions ──────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block as one atomic write transaction.

        Commits on normal exit and rolls back if the block raises.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost and not self.conn.in_transaction:
                self.conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield self.conn
            except BaseException:
                self._depth -= 1
                if outermost:
                    self.conn.rollback()
                raise
            self._depth -= 1
            if outermost:
                self.conn.commit()

    @contextmanager
    def snapshot(self) -> Iterator[sqlite3.Connection]:
        """Run the block inside a read transaction (or the enclosing one)."""
        with self._lock:
            if self._depth or self.conn.in_transaction:
                yield self.conn
                return
            self.conn.execute("BEGIN")
            self._depth += 1
            try:
                yield self.conn
            finally:
                self._depth -= 1
                self.conn.commit()

    def load_graph(self) -> tuple[list[Edge], list[Task]]:
        """Return (edges, tasks) from one consistent snapshot."""
        with self.snapshot() as conn:
            return edge_db.list_edges(conn), task_db.list_tasks(conn)

    # ── Task lookup ───────────────────────────────────────

    def get_task_by_id(self, task_id: str) -> Task | None:
        with self._lock:
            return task_db.get_task(self.conn, task_id)

    def list_tasks(self) -> list[Task]:
        with self.snapshot() as conn:
            return task_db.list_tasks(conn)

    # ── Task store ────────────────────────────────────────

    def create_task(self, name: str, status: str = STATUS_PENDING) -> Task:
        validate_status(status)
        with self.transaction() as conn:
            task = task_db.insert_task(conn, name, status)
            emit_event(conn, "task_created", {"task_id": task.id})
        logger.info("Created task %s (%s)", task.id, name)
        return task

    def update_task_status(self, task_id: str, status: str) -> Task:
        """Change one task's status. Raises TaskNotFoundError or InvalidStatusError."""
        with self.transaction() as conn:
            if task_db.get_task(conn, task_id) is None:
                raise TaskNotFoundError(
                    f"Task '{task_id}' not found", {"task_ids": [task_id]}
                )
            info = validate_status_transition(conn, task_id, status)
            task_db.set_status(conn, task_id, status)
            emit_event(
                conn,
                "task_status_changed",
                {
                    "task_id": task_id,
                    "old_status": info["current_status"],
                    "new_status": status,
                },
            )
            task = task_db.get_task(conn, task_id)
        logger.info(
            "Task %s status %s -> %s", task_id, info["current_status"], status
        )
        return task  # type: ignore[return-value]

    def delete_task(self, task_id: str) -> dict[str, Any]:
        """Delete a task and every dependency edge referencing it, atomically."""
        with self.transaction() as conn:
            if task_db.get_task(conn, task_id) is None:
                raise TaskNotFoundError(
                    f"Task '{task_id}' not found", {"task_ids": [task_id]}
                )
            deleted = edge_db.cascade_delete_edges(conn, task_id)
            task_db.delete_task_row(conn, task_id)
            emit_event(conn, "task_deleted", {"task_id": task_id})
        logger.info("Deleted task %s and %d dependencies", task_id, deleted)
        return {"task_id": task_id, "deleted_dependencies": deleted}

    def bulk_update_status(
        self,
        task_ids: Iterable[str],
        status: str,
        skip_blocked: bool = False,
    ) -> BulkResult:
        """Move many tasks to ``status`` in one transaction.

        With ``skip_blocked`` and a target of in-progress, tasks with an
        incomplete direct blocker are left alone and reported as skipped.
        Without it every requested task is transitioned. Unknown ids abort
        the whole operation before anything is written.
        """
        validate_status(status)
        ids = list(dict.fromkeys(task_ids))
        if not ids:
            return BulkResult()

        with self.transaction() as conn:
            missing = task_db.missing_task_ids(conn, ids)
            if missing:
                raise TaskNotFoundError(
                    f"Unknown task ids in bulk request: {', '.join(missing)}",
                    {"task_ids": missing},
                )

            blocked: set[str] = set()
            if skip_blocked and status == STATUS_IN_PROGRESS:
                blocked = blocked_task_ids(
                    ids, edge_db.list_edges(conn), task_db.list_tasks(conn)
                )

            result = BulkResult()
            for task_id in ids:
                if task_id in blocked:
                    result.skipped_count += 1
                    result.skipped_task_ids.append(task_id)
                    continue
                task_db.set_status(conn, task_id, status)
                result.affected_count += 1

            emit_event(
                conn,
                "bulk_status_updated",
                {
                    "status": status,
                    "task_ids": [tid for tid in ids if tid not in blocked],
                    "skipped_task_ids": result.skipped_task_ids,
                },
            )

        logger.info(
            "Bulk status -> %s: %d updated, %d skipped",
            status,
            result.affected_count,
            result.skipped_count,
        )
        return result

    def bulk_delete_tasks(self, task_ids: Iterable[str]) -> int:
        """Delete many tasks and all their dependency edges in one transaction."""
        ids = list(dict.fromkeys(task_ids))
        if not ids:
            return 0

        with self.transaction() as conn:
            missing = task_db.missing_task_ids(conn, ids)
            if missing:
                raise TaskNotFoundError(
                    f"Unknown task ids in bulk request: {', '.join(missing)}",
                    {"task_ids": missing},
                )
            deleted_edges = 0
            for task_id in ids:
                deleted_edges += edge_db.cascade_delete_edges(conn, task_id)
                task_db.delete_task_row(conn, task_id)
                emit_event(conn, "task_deleted", {"task_id": task_id})

        logger.info(
            "Bulk deleted %d tasks and %d dependencies", len(ids), deleted_edges
        )
        return len(ids)
