"""DDL for the deadline store and a check that an existing file matches it."""

from __future__ import annotations

import sqlite3

from companion.observability.logging import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES: dict[str, list[str]] = {
    "deadlines": [
        "id",
        "user_id",
        "course",
        "task",
        "due_date",
        "source_due_date",
        "priority",
        "completed",
        "canvas_assignment_id",
    ],
}


def init_schema(conn: sqlite3.Connection) -> None:
    """
    Create the deadlines table and indexes unless they already exist.

    Side Effects:
    - Creates the deadlines table and its indexes if missing
    - Commits on the given connection
    """
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS deadlines (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL DEFAULT 'default',
            course TEXT NOT NULL,
            task TEXT NOT NULL,
            due_date TEXT NOT NULL,
            source_due_date TEXT,
            priority TEXT NOT NULL DEFAULT 'medium',
            completed INTEGER NOT NULL DEFAULT 0,
            canvas_assignment_id INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_deadlines_user_due
            ON deadlines(user_id, due_date);

        CREATE INDEX IF NOT EXISTS idx_deadlines_user_canvas
            ON deadlines(user_id, canvas_assignment_id);
    """)
    conn.commit()
    logger.debug("Deadline schema ensured")


def _table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    # PRAGMA takes no bound parameters; only names from REQUIRED_TABLES reach here
    if not table.replace("_", "").isalnum():
        raise ValueError(f"Refusing to inspect table {table!r}")
    return {info[1] for info in conn.execute(f"PRAGMA table_info({table})")}


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Check that every table and column the store reads is present.

    Raises ValueError naming the first table that is absent or incomplete.
    """
    present = {
        name for (name,) in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    }
    for table, columns in REQUIRED_TABLES.items():
        if table not in present:
            raise ValueError(f"Deadline schema has no {table!r} table")
        absent = sorted(set(columns) - _table_columns(conn, table))
        if absent:
            raise ValueError(f"Table {table!r} lacks columns: {', '.join(absent)}")
    return True
