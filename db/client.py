"""Database connection helper for taskflow.

Every connection enables WAL mode and foreign keys. Foreign keys must be on
for the ON DELETE CASCADE backstop on task_dependencies to fire.
"""

import sqlite3
from pathlib import Path


def get_connection(
    db_path: str | Path, check_same_thread: bool = True
) -> sqlite3.Connection:
    """Create a new SQLite connection with WAL mode and foreign keys enabled."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), check_same_thread=check_same_thread)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn
