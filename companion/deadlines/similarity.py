"""
Pairwise duplicate scoring for deadlines.

Pure functions, no side effects. Course match is a hard gate, then the due
date window is a hard gate, and only then does task-text similarity count:
"Assignment 1" exists in every course, and the same course can have
"Assignment 1" twice a week apart.
"""

from __future__ import annotations

import math

from companion.config import (
    DEDUP_DUE_WEIGHT,
    DEDUP_DUE_WINDOW_DAYS,
    DEDUP_MIN_SCORE,
    DEDUP_MIN_TASK_SCORE,
    DEDUP_SUBSTRING_MIN_LEN,
    DEDUP_SUBSTRING_SCORE,
    DEDUP_TASK_WEIGHT,
)
from companion.deadlines.models import Deadline
from companion.deadlines.text import (
    normalize_course_key,
    normalize_task,
    parse_due_date,
    tokenize_task,
)
from companion.deadlines.types import DuplicateSignal

_SECONDS_PER_DAY = 24 * 60 * 60


def jaccard_similarity(left: list[str], right: list[str]) -> float:
    if not left or not right:
        return 0.0

    left_set = set(left)
    right_set = set(right)
    union = left_set | right_set
    return len(left_set & right_set) / len(union) if union else 0.0


def task_similarity(left_task: str, right_task: str) -> float:
    """
    Score two task descriptions in [0, 1].

    1.0 for identical normalized text, 0.9 when one contains the other and the
    shorter is at least 8 characters, otherwise Jaccard over meaningful tokens.
    """
    left = normalize_task(left_task)
    right = normalize_task(right_task)

    if not left or not right:
        return 0.0

    if left == right:
        return 1.0

    if (left in right or right in left) and min(len(left), len(right)) >= DEDUP_SUBSTRING_MIN_LEN:
        return DEDUP_SUBSTRING_SCORE

    return jaccard_similarity(tokenize_task(left), tokenize_task(right))


def due_date_distance_days(left_due_date: str, right_due_date: str) -> float:
    """Absolute distance in days; infinity when either side fails to parse."""
    left = parse_due_date(left_due_date)
    right = parse_due_date(right_due_date)

    if left is None or right is None:
        return math.inf

    return abs((left - right).total_seconds()) / _SECONDS_PER_DAY


def evaluate_duplicate_signal(left: Deadline, right: Deadline) -> DuplicateSignal:
    """Score a pair of deadlines for likely duplication."""
    left_course = normalize_course_key(left.course)
    right_course = normalize_course_key(right.course)

    if not left_course or not right_course or left_course != right_course:
        return DuplicateSignal.rejected(left_course or right_course)

    distance = due_date_distance_days(left.due_date, right.due_date)
    if not math.isfinite(distance) or distance > DEDUP_DUE_WINDOW_DAYS:
        return DuplicateSignal.rejected(left_course, distance)

    task_score = task_similarity(left.task, right.task)
    due_score = max(0.0, 1 - distance / DEDUP_DUE_WINDOW_DAYS)
    score = task_score * DEDUP_TASK_WEIGHT + due_score * DEDUP_DUE_WEIGHT

    return DuplicateSignal(
        is_duplicate=task_score >= DEDUP_MIN_TASK_SCORE and score >= DEDUP_MIN_SCORE,
        score=score,
        task_score=task_score,
        due_distance_days=distance,
        course_key=left_course,
    )


def is_duplicate(left: Deadline, right: Deadline) -> bool:
    return evaluate_duplicate_signal(left, right).is_duplicate
