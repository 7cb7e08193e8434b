"""Database table definitions for taskflow.

The schema is defined as raw DDL to keep migrations simple and explicit.
One row per dependency edge; the (dependent_task_id, blocking_task_id) pair is
unique and each foreign key has its own index so that both "blockers of X" and
"tasks blocked by X" are index lookups.
"""

TABLES = {
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id            TEXT PRIMARY KEY,
            name          TEXT NOT NULL,
            status        TEXT NOT NULL DEFAULT 'pending'
                          CHECK (status IN ('pending', 'in-progress', 'completed')),
            created_at    TEXT NOT NULL,
            updated_at    TEXT NOT NULL,
            completed_at  TEXT
        )
    """,
    "task_dependencies": """
        CREATE TABLE IF NOT EXISTS task_dependencies (
            id                 TEXT PRIMARY KEY,
            dependent_task_id  TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            blocking_task_id   TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            created_by         TEXT,
            created_at         TEXT NOT NULL,
            UNIQUE(dependent_task_id, blocking_task_id),
            CHECK (dependent_task_id != blocking_task_id)
        )
    """,
    "events": """
        CREATE TABLE IF NOT EXISTS events (
            id          TEXT PRIMARY KEY,
            type        TEXT NOT NULL,
            payload     TEXT NOT NULL,
            created_at  TEXT NOT NULL,
            consumed    INTEGER NOT NULL DEFAULT 0
        )
    """,
}

# Ordered list for creation: respects foreign key dependencies
TABLE_CREATION_ORDER = [
    "tasks",
    "task_dependencies",
    "events",
]

INDEXES = [
    """CREATE INDEX IF NOT EXISTS idx_task_dependencies_dependent
       ON task_dependencies(dependent_task_id)""",
    """CREATE INDEX IF NOT EXISTS idx_task_dependencies_blocking
       ON task_dependencies(blocking_task_id)""",
    """CREATE INDEX IF NOT EXISTS idx_events_consumed
       ON events(consumed, created_at)""",
]
