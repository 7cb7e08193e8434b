"""Schema creation and migration logic for taskflow.

Migrations are idempotent: running them multiple times has no effect
because all CREATE statements use IF NOT EXISTS.

Can be run directly:
    python -m db.migrations [db_path]
"""

import sqlite3
import sys
from pathlib import Path

from db.client import get_connection
from db.edges import list_edges
from db.schema import INDEXES, TABLE_CREATION_ORDER, TABLES
from taskflow.graph.cycles import find_cycle


def run_migrations(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes in dependency order. Idempotent."""
    for table_name in TABLE_CREATION_ORDER:
        conn.execute(TABLES[table_name])
    conn.commit()

    # Migration: databases created before completion tracking lack completed_at
    _add_completed_at(conn)

    for index_sql in INDEXES:
        conn.execute(index_sql)
    conn.commit()


def _add_completed_at(conn: sqlite3.Connection) -> None:
    """Add tasks.completed_at and backfill it for already-completed tasks."""
    columns = conn.execute("PRAGMA table_info(tasks)").fetchall()
    col_names = [c[1] for c in columns]

    if "completed_at" in col_names:
        return

    conn.execute("ALTER TABLE tasks ADD COLUMN completed_at TEXT")
    conn.execute(
        "UPDATE tasks SET completed_at = updated_at WHERE status = 'completed'"
    )
    conn.commit()


def init_db(
    db_path: str | Path, check_same_thread: bool = True
) -> sqlite3.Connection:
    """Open a connection, run migrations, and return the ready connection."""
    conn = get_connection(db_path, check_same_thread=check_same_thread)
    run_migrations(conn)
    return conn


def find_stored_cycle(conn: sqlite3.Connection) -> list[str] | None:
    """Return a dependency cycle present in the database, or None.

    Edges written through the engine never form one; rows inserted by
    hand or by an older tool might.
    """
    return find_cycle(list_edges(conn))


def main() -> None:
    """CLI entry point for running migrations directly."""
    if len(sys.argv) > 1:
        db_path = sys.argv[1]
    else:
        db_path = "taskflow.db"

    print(f"Running migrations on {db_path}...")
    conn = init_db(db_path)

    # Verify WAL mode
    journal_mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    print(f"Journal mode: {journal_mode}")

    # Verify tables
    tables = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ).fetchall()
    print(f"Tables created: {[t[0] for t in tables]}")

    # Audit stored dependencies
    cycle = find_stored_cycle(conn)
    if cycle:
        print(f"WARNING: dependency cycle found: {' -> '.join(cycle)}")
    else:
        print("Dependency graph: acyclic")

    conn.close()
    print("Done.")


if __name__ == "__main__":
    main()
