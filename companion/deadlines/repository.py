"""
Deadline entity store.

The reconciliation bridges and the duplicate review only need the small
DeadlineStore protocol below. Two implementations:

- InMemoryDeadlineStore: lock-guarded dicts, used in tests and embedded runs
- SQLiteDeadlineRepository: the deadlines table, following the same
  transaction and lock-retry patterns as the rest of the infrastructure layer

Both scope every read and write by user_id and return None (never raise)
when an update targets a missing id.
"""

from __future__ import annotations

import sqlite3
import threading
import uuid
from datetime import UTC, datetime
from typing import Any, Protocol

from companion.deadlines.models import Deadline, DeadlineCreate, DeadlineUpdate, Priority
from companion.deadlines.text import parse_due_date
from companion.infrastructure.database import Database, retry_on_db_lock
from companion.observability.logging import get_logger

logger = get_logger(__name__)


class DeadlineStore(Protocol):
    def list_deadlines(self, user_id: str, include_completed: bool = False) -> list[Deadline]: ...

    def get_deadline(self, user_id: str, deadline_id: str) -> Deadline | None: ...

    def create_deadline(self, user_id: str, fields: DeadlineCreate) -> Deadline: ...

    def update_deadline(
        self, user_id: str, deadline_id: str, updates: DeadlineUpdate
    ) -> Deadline | None: ...


def _sort_key(deadline: Deadline) -> tuple[datetime, str]:
    parsed = parse_due_date(deadline.due_date) or datetime.max.replace(tzinfo=UTC)
    return parsed, deadline.id


def _new_deadline(user_id: str, fields: DeadlineCreate) -> Deadline:
    return Deadline(
        id=fields.id or str(uuid.uuid4()),
        user_id=user_id,
        course=fields.course,
        task=fields.task,
        due_date=fields.due_date,
        priority=fields.priority,
        completed=fields.completed,
        source_due_date=fields.source_due_date,
        canvas_assignment_id=fields.canvas_assignment_id,
    )


class InMemoryDeadlineStore:
    """Process-local store; each write is atomic under one lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Deadline]] = {}

    def list_deadlines(self, user_id: str, include_completed: bool = False) -> list[Deadline]:
        with self._lock:
            records = list(self._records.get(user_id, {}).values())
        if not include_completed:
            records = [record for record in records if not record.completed]
        return sorted(records, key=_sort_key)

    def get_deadline(self, user_id: str, deadline_id: str) -> Deadline | None:
        with self._lock:
            return self._records.get(user_id, {}).get(deadline_id)

    def create_deadline(self, user_id: str, fields: DeadlineCreate) -> Deadline:
        deadline = _new_deadline(user_id, fields)
        with self._lock:
            user_records = self._records.setdefault(user_id, {})
            if deadline.id in user_records:
                raise ValueError(f"Deadline id already exists: {deadline.id}")
            user_records[deadline.id] = deadline
        logger.debug("Created deadline %s for user %s", deadline.id, user_id)
        return deadline

    def update_deadline(
        self, user_id: str, deadline_id: str, updates: DeadlineUpdate
    ) -> Deadline | None:
        with self._lock:
            user_records = self._records.get(user_id, {})
            existing = user_records.get(deadline_id)
            if existing is None:
                return None
            updated = existing.model_copy(update=updates.changes())
            user_records[deadline_id] = updated
        return updated


class SQLiteDeadlineRepository:
    """
    Repository for Deadline CRUD operations on the deadlines table.

    All writes run inside a transaction and retry on transient lock errors.
    """

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Deadline:
        return Deadline(
            id=row["id"],
            user_id=row["user_id"],
            course=row["course"],
            task=row["task"],
            due_date=row["due_date"],
            priority=Priority(row["priority"]),
            completed=bool(row["completed"]),
            source_due_date=row["source_due_date"],
            canvas_assignment_id=row["canvas_assignment_id"],
        )

    def list_deadlines(self, user_id: str, include_completed: bool = False) -> list[Deadline]:
        """
        List deadlines for a user.

        Args:
            user_id: User's identifier
            include_completed: Include records marked completed

        Returns:
            Deadlines ordered by due date (unparseable dates last), then id
        """
        query = "SELECT * FROM deadlines WHERE user_id = ?"
        if not include_completed:
            query += " AND completed = 0"

        with self.database.connection() as conn:
            rows = conn.execute(query, (user_id,)).fetchall()

        return sorted((self._from_row(row) for row in rows), key=_sort_key)

    def get_deadline(self, user_id: str, deadline_id: str) -> Deadline | None:
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT * FROM deadlines WHERE id = ? AND user_id = ?",
                (deadline_id, user_id),
            ).fetchone()

        if not row:
            return None
        return self._from_row(row)

    @retry_on_db_lock()
    def create_deadline(self, user_id: str, fields: DeadlineCreate) -> Deadline:
        """
        Create a new deadline.

        Args:
            user_id: Owner of the record
            fields: DeadlineCreate; an explicit id is kept, otherwise a uuid4 is generated

        Returns:
            Created Deadline

        Raises:
            ValueError: If the explicit id is already taken

        Side Effects:
            - Inserts row into deadlines table
            - Commits transaction
        """
        deadline = _new_deadline(user_id, fields)
        now = datetime.now(UTC).isoformat()
        params: dict[str, Any] = {
            **deadline.model_dump(),
            "priority": deadline.priority.value,
            "completed": int(deadline.completed),
            "created_at": now,
            "updated_at": now,
        }

        try:
            with self.database.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO deadlines (
                        id, user_id, course, task, due_date, source_due_date,
                        priority, completed, canvas_assignment_id, created_at, updated_at
                    ) VALUES (
                        :id, :user_id, :course, :task, :due_date, :source_due_date,
                        :priority, :completed, :canvas_assignment_id, :created_at, :updated_at
                    )
                    """,
                    params,
                )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Deadline id already exists: {deadline.id}") from e

        logger.info("Created deadline %s for user %s", deadline.id, user_id)
        return deadline

    @retry_on_db_lock()
    def update_deadline(
        self, user_id: str, deadline_id: str, updates: DeadlineUpdate
    ) -> Deadline | None:
        """
        Update a deadline with partial data.

        Returns:
            Updated Deadline, or None if not found for this user

        Side Effects:
            - Updates specified fields in deadlines table
            - Commits transaction
        """
        update_data: dict[str, Any] = updates.changes()
        if "priority" in update_data:
            update_data["priority"] = Priority(update_data["priority"]).value
        if "completed" in update_data:
            update_data["completed"] = int(update_data["completed"])

        if not update_data:
            return self.get_deadline(user_id, deadline_id)

        update_data["updated_at"] = datetime.now(UTC).isoformat()
        set_clause = ", ".join(f"{column} = :{column}" for column in update_data)

        with self.database.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE deadlines SET {set_clause} WHERE id = :id AND user_id = :user_id",
                {**update_data, "id": deadline_id, "user_id": user_id},
            )
            if cursor.rowcount == 0:
                return None

        logger.info("Updated deadline %s with fields: %s", deadline_id, list(update_data))
        return self.get_deadline(user_id, deadline_id)
