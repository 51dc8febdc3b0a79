"""
Module: types
Purpose: Shared result types for duplicate review and the source bridges.
Dependencies: companion.deadlines.models

Kept in a leaf module so similarity, dedup, reconcile and the bridges can
share them without importing each other.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, Field

from companion.deadlines.models import Deadline, DeadlineSource, DedupMember, Priority

MergeConfidence = Literal["high", "medium"]


# ---------------------------------------------------------------------------
# Similarity engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DuplicateSignal:
    """Pairwise duplicate verdict plus the sub-scores that produced it."""

    is_duplicate: bool
    score: float
    task_score: float
    due_distance_days: float
    course_key: str

    @classmethod
    def rejected(cls, course_key: str, due_distance_days: float = math.inf) -> DuplicateSignal:
        return cls(
            is_duplicate=False,
            score=0.0,
            task_score=0.0,
            due_distance_days=due_distance_days,
            course_key=course_key,
        )


# ---------------------------------------------------------------------------
# Merge suggestions (computed on demand, never persisted)
# ---------------------------------------------------------------------------


class MergePreview(BaseModel):
    """What the canonical record would look like after an accepted merge."""

    course: str
    task: str
    due_date: str
    priority: Priority
    completed: bool


class MergeSuggestion(BaseModel):
    canonical_id: str
    canonical_source: DeadlineSource
    duplicate_ids: list[str]
    confidence: MergeConfidence
    score: float
    reason: str
    merged_preview: MergePreview
    members: list[DedupMember] = Field(default_factory=list)


class DeadlineDedupResult(BaseModel):
    generated_at: str
    total_deadlines: int
    duplicate_groups: int
    suggestions: list[MergeSuggestion]


# ---------------------------------------------------------------------------
# Bridges
# ---------------------------------------------------------------------------


@dataclass
class DeadlineCandidate:
    """A deadline extracted from an external source, before reconciliation.

    source_due_date always equals due_date at extraction time.
    """

    course: str
    task: str
    due_date: str
    source_due_date: str
    priority: Priority
    canvas_assignment_id: int | None = None


@dataclass
class BridgeSyncResult:
    """Outcome counters of one bridge run, used for logging and telemetry."""

    bridge: str
    candidates: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    created_deadlines: list[Deadline] = field(default_factory=list)
    updated_deadlines: list[Deadline] = field(default_factory=list)

    def absorb(self, other: BridgeSyncResult) -> None:
        """Fold a partial (per-course) result into this one."""
        self.candidates += other.candidates
        self.created += other.created
        self.updated += other.updated
        self.skipped += other.skipped
        self.errors.extend(other.errors)
        self.created_deadlines.extend(other.created_deadlines)
        self.updated_deadlines.extend(other.updated_deadlines)


@dataclass
class GitHubSyncResult(BridgeSyncResult):
    course_codes: list[str] = field(default_factory=list)
    repositories_scanned: list[str] = field(default_factory=list)
