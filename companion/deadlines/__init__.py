"""
Deadlines module - duplicate review and source reconciliation.
"""

from companion.deadlines.models import (
    Deadline,
    DeadlineCreate,
    DeadlineSource,
    DeadlineUpdate,
    DedupMember,
    Priority,
)
from companion.deadlines.types import (
    BridgeSyncResult,
    DeadlineCandidate,
    DeadlineDedupResult,
    DuplicateSignal,
    GitHubSyncResult,
    MergePreview,
    MergeSuggestion,
)
from companion.deadlines.similarity import evaluate_duplicate_signal, is_duplicate
from companion.deadlines.grouping import group_duplicates, infer_deadline_source
from companion.deadlines.dedup import build_dedup_result, generate_merge_suggestions
from companion.deadlines.eligibility import is_assignment_or_exam_deadline
from companion.deadlines.repository import (
    DeadlineStore,
    InMemoryDeadlineStore,
    SQLiteDeadlineRepository,
)
from companion.deadlines.reconcile import ReconcilePolicy, reconcile_candidates

__all__ = [
    # Models
    "Deadline",
    "DeadlineCreate",
    "DeadlineSource",
    "DeadlineUpdate",
    "DedupMember",
    "Priority",
    # Result types
    "BridgeSyncResult",
    "DeadlineCandidate",
    "DeadlineDedupResult",
    "DuplicateSignal",
    "GitHubSyncResult",
    "MergePreview",
    "MergeSuggestion",
    # Duplicate review
    "build_dedup_result",
    "evaluate_duplicate_signal",
    "generate_merge_suggestions",
    "group_duplicates",
    "infer_deadline_source",
    "is_duplicate",
    # Eligibility
    "is_assignment_or_exam_deadline",
    # Store
    "DeadlineStore",
    "InMemoryDeadlineStore",
    "SQLiteDeadlineRepository",
    # Reconciliation
    "ReconcilePolicy",
    "reconcile_candidates",
]
