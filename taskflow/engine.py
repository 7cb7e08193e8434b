"""Task dependency graph engine.

DependencyEngine is the in-process API the rest of the application calls.
It owns no graph state: every query rebuilds what it needs from a fresh
snapshot of edges + tasks, and every mutation validates and writes inside one
store transaction.

    store = SqliteStore.open("taskflow.db")
    engine = DependencyEngine(store)
    engine.create_dependency(task_a.id, task_b.id, created_by="alice")
    engine.get_dependency_info(task_a.id).is_blocked
"""

import logging
from collections.abc import Iterable
from typing import Any

from db import edges as edge_db
from db.events import emit_event
from db.store import SqliteStore
from taskflow.errors import DependencyError, DependencyNotFoundError
from taskflow.graph.bulk import BlockedTaskInfo, blocked_tasks_info
from taskflow.graph.cycles import CycleCheck, would_create_cycle
from taskflow.graph.index import DependencyInfo, build_index, get_dependency_info
from taskflow.graph.traversal import (
    ChainEntry,
    eligible_blockers,
    format_cycle_path,
    get_downstream_chain,
    get_upstream_chain,
)
from taskflow.graph.validator import check_dependency, validate
from taskflow.models import MAX_DEPENDENCIES_PER_TASK, Edge, Task

logger = logging.getLogger(__name__)


class DependencyEngine:
    """Validated mutations and derived queries over the dependency graph."""

    def __init__(
        self,
        store: SqliteStore,
        max_dependencies: int = MAX_DEPENDENCIES_PER_TASK,
    ) -> None:
        self.store = store
        self.max_dependencies = max_dependencies

    # ── Mutations ─────────────────────────────────────────

    def create_dependency(
        self,
        dependent_task_id: str,
        blocking_task_id: str,
        created_by: str | None = None,
    ) -> Edge:
        """Add "dependent depends on blocking". Raises a DependencyError subclass on rejection."""
        with self.store.transaction() as conn:
            try:
                validate(
                    dependent_task_id,
                    blocking_task_id,
                    edge_db.list_edges(conn),
                    self.store.get_task_by_id,
                    self.max_dependencies,
                )
            except DependencyError as e:
                logger.debug(
                    "Rejected dependency %s -> %s: %s",
                    dependent_task_id,
                    blocking_task_id,
                    e.code,
                )
                raise

            edge = edge_db.insert_edge(
                conn, dependent_task_id, blocking_task_id, created_by
            )
            emit_event(
                conn,
                "dependency_created",
                {
                    "dependency_id": edge.id,
                    "dependent_task_id": dependent_task_id,
                    "blocking_task_id": blocking_task_id,
                },
            )

        logger.info(
            "Created dependency %s: %s depends on %s",
            edge.id,
            dependent_task_id,
            blocking_task_id,
        )
        return edge

    def delete_dependency(self, edge_id: str) -> None:
        """Remove one edge by id. Raises DependencyNotFoundError if it does not exist."""
        with self.store.transaction() as conn:
            edge = edge_db.get_edge(conn, edge_id)
            if edge is None:
                raise DependencyNotFoundError(
                    f"Dependency '{edge_id}' not found", {"dependency_id": edge_id}
                )
            edge_db.delete_edge(conn, edge_id)
            emit_event(
                conn,
                "dependency_removed",
                {
                    "dependency_id": edge_id,
                    "dependent_task_id": edge.dependent_task_id,
                    "blocking_task_id": edge.blocking_task_id,
                },
            )
        logger.info("Removed dependency %s", edge_id)

    def delete_dependencies_for_task(self, task_id: str) -> dict[str, int]:
        """Delete every edge where ``task_id`` is either endpoint.

        Joins the caller's transaction when called from inside one, so the
        task deletion and this cascade commit together.
        """
        with self.store.transaction() as conn:
            deleted = edge_db.cascade_delete_edges(conn, task_id)
        logger.info("Cascade-deleted %d dependencies of task %s", deleted, task_id)
        return {"deleted_count": deleted}

    # ── Queries ───────────────────────────────────────────

    def would_create_cycle(
        self, dependent_task_id: str, blocking_task_id: str
    ) -> CycleCheck:
        edges, _ = self.store.load_graph()
        return would_create_cycle(dependent_task_id, blocking_task_id, edges)

    def can_add_dependency(
        self, dependent_task_id: str, blocking_task_id: str
    ) -> dict[str, Any]:
        """Pre-flight check with the same rules and order as create_dependency."""
        with self.store.snapshot() as conn:
            return check_dependency(
                dependent_task_id,
                blocking_task_id,
                edge_db.list_edges(conn),
                self.store.get_task_by_id,
                self.max_dependencies,
            )

    def get_dependency_info(self, task_id: str) -> DependencyInfo:
        edges, tasks = self.store.load_graph()
        return get_dependency_info(task_id, edges, tasks)

    def get_dependency_map(self) -> dict[str, DependencyInfo]:
        edges, tasks = self.store.load_graph()
        return build_index(edges, tasks)

    def get_upstream_chain(self, task_id: str) -> list[ChainEntry]:
        edges, tasks = self.store.load_graph()
        return get_upstream_chain(task_id, edges, tasks)

    def get_downstream_chain(self, task_id: str) -> list[ChainEntry]:
        edges, tasks = self.store.load_graph()
        return get_downstream_chain(task_id, edges, tasks)

    def get_available_blockers(self, task_id: str) -> list[Task]:
        """Tasks that may be added as blockers of ``task_id`` without closing a cycle.

        The fan-out limit is not applied here; a task at its limit still lists
        candidates and create_dependency reports LIMIT_EXCEEDED.
        """
        edges, tasks = self.store.load_graph()
        return eligible_blockers(task_id, edges, tasks)

    def get_blocked_tasks_info(self, task_ids: Iterable[str]) -> list[BlockedTaskInfo]:
        """Which of ``task_ids`` are blocked right now, with incomplete-blocker counts."""
        edges, tasks = self.store.load_graph()
        return blocked_tasks_info(task_ids, edges, tasks)

    def format_cycle_path(self, path: list[str]) -> str:
        return format_cycle_path(path, self.store.list_tasks())

    # ── Edge lookups ──────────────────────────────────────

    def get_dependency(self, edge_id: str) -> Edge | None:
        with self.store.snapshot() as conn:
            return edge_db.get_edge(conn, edge_id)

    def get_dependency_by_tasks(
        self, dependent_task_id: str, blocking_task_id: str
    ) -> Edge | None:
        with self.store.snapshot() as conn:
            return edge_db.get_edge_by_tasks(conn, dependent_task_id, blocking_task_id)

    def dependency_exists(self, dependent_task_id: str, blocking_task_id: str) -> bool:
        return self.get_dependency_by_tasks(dependent_task_id, blocking_task_id) is not None

    def list_dependencies(self) -> list[Edge]:
        with self.store.snapshot() as conn:
            return edge_db.list_edges(conn)

    def dependencies_for_task(self, task_id: str) -> list[Edge]:
        """Edges where ``task_id`` is the dependent."""
        with self.store.snapshot() as conn:
            return edge_db.edges_for_dependent(conn, task_id)

    def tasks_blocked_by(self, task_id: str) -> list[Edge]:
        """Edges where ``task_id`` is the blocker."""
        with self.store.snapshot() as conn:
            return edge_db.edges_for_blocker(conn, task_id)

    def dependency_count(self, task_id: str) -> int:
        with self.store.snapshot() as conn:
            return edge_db.count_for_dependent(conn, task_id)
