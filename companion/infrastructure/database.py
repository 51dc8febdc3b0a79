"""SQLite access for the deadline store

Provides:
- One shared connection per database path (WAL, foreign keys, Row factory)
- Transaction context manager (commit on success, rollback on error)
- Retry decorator for transient "database is locked" errors

The store is the only cross-run consistency guarantee the bridges rely on:
every write happens inside a single transaction under the connection lock.
"""

from __future__ import annotations

import random
import sqlite3
import threading
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import lru_cache, wraps
from pathlib import Path
from typing import Any, TypeVar

from companion.config import (
    DB_CONNECT_TIMEOUT,
    DB_PATH,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
)
from companion.infrastructure.database_schema import init_schema
from companion.observability.logging import get_logger
from companion.observability.telemetry import counter

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "companion.db"
MEMORY_PATH = ":memory:"

logger = get_logger(__name__)


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Retry a store write when SQLite reports the database as locked or busy.

    A scheduled bridge sync and a request handler can write at the same time;
    the loser backs off exponentially (with jitter) and tries again. Any other
    OperationalError propagates on the first attempt.

    Side Effects:
        - Sleeps between attempts
        - Warns per retry; errors and bumps database.lock_retry_exhausted on give-up
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            retries_left = max_retries
            delay = base_delay
            while True:
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    if not _is_lock_error(e):
                        raise
                    if retries_left <= 0:
                        logger.error("Giving up on %s after %d lock retries: %s",
                                     func.__name__, max_retries, e)
                        counter("database.lock_retry_exhausted")
                        raise

                    pause = min(delay, max_delay)
                    pause += random.uniform(0, pause * DB_RETRY_JITTER)
                    logger.warning("%s hit a locked database, retrying in %.2fs (%d left)",
                                   func.__name__, pause, retries_left)
                    time.sleep(pause)
                    retries_left -= 1
                    delay *= 2

        return wrapper  # type: ignore[return-value]

    return decorator


class Database:
    """
    Thread-safe wrapper around a single SQLite connection

    A single connection keeps ":memory:" databases coherent across calls;
    a lock serializes access from scheduler threads and request handlers.
    """

    def __init__(self, path: str | Path = MEMORY_PATH):
        self.path = str(path)
        self._lock = threading.RLock()
        self._conn = self._create_connection()
        init_schema(self._conn)

    def _create_connection(self) -> sqlite3.Connection:
        """
        Open the connection with WAL (file databases only) and Row access.

        Side Effects:
            - Creates the parent directory of file-backed databases
            - Executes PRAGMA statements (journal_mode, foreign_keys)
        """
        if self.path != MEMORY_PATH:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            self.path,
            timeout=DB_CONNECT_TIMEOUT,
            check_same_thread=False,
        )
        if self.path != MEMORY_PATH:
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield the shared connection while holding the lock (read access)."""
        with self._lock:
            yield self._conn

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Run the block as one unit of work on the shared connection.

        Side Effects:
            - Commits on success, rolls back on exception
        """
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def get_db_path() -> str:
    """Database path from COMPANION_DB_PATH, falling back to the package data dir."""
    return DB_PATH or str(DEFAULT_DB_PATH)


@lru_cache(maxsize=1)
def get_database() -> Database:
    """
    Process-wide Database for the configured path, opened on first use.

    Side Effects:
        - Opens the database file and ensures the schema on first call
    """
    db_path = get_db_path()
    logger.info("Opening deadline database at %s", db_path)
    return Database(db_path)
