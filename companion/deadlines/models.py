"""
Deadline domain models (Pydantic v2).

Due dates are kept as ISO-8601 strings exactly as stored, so that a value
which fails to parse degrades duplicate scoring instead of failing validation,
and so that divergence checks compare the stored values verbatim.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Priority(str, Enum):
    """Deadline priority.

    Extends str so JSON serialization produces raw strings (e.g. "high").
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK: dict[Priority, int] = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}


class DeadlineSource(str, Enum):
    """Inferred provenance of a deadline, used for canonical ranking."""

    MANUAL = "manual"
    CANVAS = "canvas"
    GITHUB = "github"

    @property
    def rank(self) -> int:
        return SOURCE_RANK[self]


SOURCE_RANK: dict[DeadlineSource, int] = {
    DeadlineSource.GITHUB: 1,
    DeadlineSource.CANVAS: 2,
    DeadlineSource.MANUAL: 3,
}


class Deadline(BaseModel):
    """A canonical deadline record owned by the entity store.

    A record with ``source_due_date`` set is automation-managed; without it the
    record is manual and no bridge may overwrite or shadow it.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: str
    user_id: str = "default"
    course: str
    task: str
    due_date: str
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    source_due_date: str | None = None
    canvas_assignment_id: int | None = None

    @property
    def is_managed(self) -> bool:
        return bool(self.source_due_date)

    @property
    def user_diverged(self) -> bool:
        """True when the user edited due_date away from the feed value."""
        return self.is_managed and self.due_date != self.source_due_date


class DeadlineCreate(BaseModel):
    """Fields accepted when creating a deadline."""

    id: str | None = None
    course: str
    task: str
    due_date: str
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    source_due_date: str | None = None
    canvas_assignment_id: int | None = None

    @field_validator("course", "task", "due_date")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class DeadlineUpdate(BaseModel):
    """Partial update; only non-None fields are applied."""

    course: str | None = None
    task: str | None = None
    due_date: str | None = None
    source_due_date: str | None = None
    priority: Priority | None = None
    completed: bool | None = None

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True)


class DedupMember(Deadline):
    """A deadline tagged with its inferred source for duplicate review."""

    source: DeadlineSource = Field(default=DeadlineSource.MANUAL)
