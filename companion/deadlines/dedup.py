"""
Canonical selection and merge suggestions over duplicate groups.

Read-only: nothing here mutates a store. Suggestions are advisory and a
human decides whether to apply them.
"""

from __future__ import annotations

import math
from datetime import datetime
from functools import cmp_to_key

from companion.config import DEDUP_HIGH_CONFIDENCE, DEDUP_SAME_DAY_DAYS
from companion.deadlines.grouping import group_duplicates
from companion.deadlines.models import Deadline, DedupMember, Priority
from companion.deadlines.similarity import evaluate_duplicate_signal
from companion.deadlines.text import normalize_course_key, parse_due_date, to_iso
from companion.deadlines.types import DeadlineDedupResult, MergePreview, MergeSuggestion
from companion.observability.logging import get_logger
from companion.observability.telemetry import counter, time_block

logger = get_logger(__name__)


def compare_canonical_candidates(left: DedupMember, right: DedupMember) -> int:
    """
    Total order for canonical selection, most preferred first.

    1. Not completed before completed
    2. Source rank: manual > canvas > github
    3. Higher priority
    4. Earlier due date (unparseable dates don't decide)
    5. Lexicographic id
    """
    if left.completed != right.completed:
        return 1 if left.completed else -1

    source_diff = right.source.rank - left.source.rank
    if source_diff:
        return source_diff

    priority_diff = right.priority.rank - left.priority.rank
    if priority_diff:
        return priority_diff

    left_due = parse_due_date(left.due_date)
    right_due = parse_due_date(right.due_date)
    if left_due is not None and right_due is not None and left_due != right_due:
        return -1 if left_due < right_due else 1

    if left.id == right.id:
        return 0
    return -1 if left.id < right.id else 1


def highest_priority(deadlines: list[DedupMember]) -> Priority:
    best = Priority.LOW
    for deadline in deadlines:
        if deadline.priority.rank > best.rank:
            best = deadline.priority
    return best


def earliest_due_date(deadlines: list[DedupMember], fallback: str) -> str:
    """Earliest parseable due date, returned in its stored form."""
    valid = [
        (parsed, deadline.due_date)
        for deadline in deadlines
        if (parsed := parse_due_date(deadline.due_date)) is not None
    ]
    if not valid:
        return fallback
    return min(valid, key=lambda entry: entry[0])[1]


def build_merge_preview(canonical: DedupMember, members: list[DedupMember]) -> MergePreview:
    """Course/task from the canonical record; date, priority and completion from the group."""
    return MergePreview(
        course=canonical.course,
        task=canonical.task,
        due_date=earliest_due_date(members, canonical.due_date),
        priority=highest_priority(members),
        completed=any(member.completed for member in members),
    )


def _build_reason(course_key: str, member_count: int, max_due_distance_days: float) -> str:
    if max_due_distance_days < DEDUP_SAME_DAY_DAYS:
        within_window = "same due day"
    else:
        within_window = f"due dates within {math.ceil(max_due_distance_days)} day(s)"
    return (
        f"{member_count} deadlines appear duplicated for {course_key}; "
        f"tasks are textually similar with {within_window}."
    )


def _suggestion_for_group(group: list[DedupMember]) -> MergeSuggestion:
    ordered = sorted(group, key=cmp_to_key(compare_canonical_candidates))
    canonical = ordered[0]
    duplicates = ordered[1:]

    signals = [evaluate_duplicate_signal(canonical, member) for member in duplicates]
    average_score = sum(signal.score for signal in signals) / max(1, len(signals))
    finite_distances = [s.due_distance_days for s in signals if math.isfinite(s.due_distance_days)]
    max_distance = max(finite_distances, default=0.0)

    return MergeSuggestion(
        canonical_id=canonical.id,
        canonical_source=canonical.source,
        duplicate_ids=[member.id for member in duplicates],
        confidence="high" if average_score >= DEDUP_HIGH_CONFIDENCE else "medium",
        score=round(average_score, 3),
        reason=_build_reason(normalize_course_key(canonical.course), len(ordered), max_distance),
        merged_preview=build_merge_preview(canonical, ordered),
        members=ordered,
    )


def generate_merge_suggestions(deadlines: list[Deadline]) -> list[MergeSuggestion]:
    """
    Merge suggestions for every duplicate group in the list.

    Sorted high confidence first, then by duplicate count, then by score.
    """
    if len(deadlines) < 2:
        return []

    with time_block("deadline_dedup.generate"):
        suggestions = [_suggestion_for_group(group) for group in group_duplicates(deadlines)]

    suggestions.sort(
        key=lambda s: (0 if s.confidence == "high" else 1, -len(s.duplicate_ids), -s.score)
    )

    if suggestions:
        counter("deadline_dedup.groups", len(suggestions))
        logger.info(
            "Found %d duplicate group(s) across %d deadlines", len(suggestions), len(deadlines)
        )
    return suggestions


def build_dedup_result(deadlines: list[Deadline], generated_at: datetime) -> DeadlineDedupResult:
    """Suggestions plus summary counts; generated_at is injected by the caller."""
    suggestions = generate_merge_suggestions(deadlines)
    return DeadlineDedupResult(
        generated_at=to_iso(generated_at),
        total_deadlines=len(deadlines),
        duplicate_groups=len(suggestions),
        suggestions=suggestions,
    )
