"""Tests for the pairwise duplicate similarity engine."""

from __future__ import annotations

import math

import pytest

from companion.deadlines.models import Deadline
from companion.deadlines.similarity import (
    due_date_distance_days,
    evaluate_duplicate_signal,
    is_duplicate,
    jaccard_similarity,
    task_similarity,
)


def _deadline(id: str, course: str, task: str, due_date: str) -> Deadline:
    return Deadline(id=id, course=course, task=task, due_date=due_date)


class TestTaskSimilarity:
    def test_identical_after_normalization(self):
        assert task_similarity("Assignment 3: Report", "assignment 3 report") == 1.0

    def test_substring_with_long_enough_shorter_side(self):
        assert task_similarity("Assignment 3", "Assignment 3 report") == 0.9

    def test_short_substring_falls_back_to_jaccard(self):
        # "lab 1" is under 8 characters and only has stop words / single chars
        assert task_similarity("Lab 1", "Lab 1 extra") == 0.0

    def test_jaccard_ignores_stop_words(self):
        # tokens: {oblig, sockets} vs {oblig, threads}
        assert task_similarity("Oblig 1 sockets", "Oblig 1 threads") == pytest.approx(1 / 3)

    def test_empty_task_scores_zero(self):
        assert task_similarity("", "Assignment 1") == 0.0
        assert task_similarity("!!!", "Assignment 1") == 0.0

    def test_jaccard_empty_side(self):
        assert jaccard_similarity([], ["exam"]) == 0.0


class TestDueDistance:
    def test_distance_in_days(self):
        assert due_date_distance_days(
            "2026-03-20T00:00:00Z", "2026-03-21T12:00:00Z"
        ) == pytest.approx(1.5)

    def test_unparseable_is_infinite(self):
        assert math.isinf(due_date_distance_days("next friday", "2026-03-21T12:00:00Z"))


class TestDuplicateSignal:
    def test_course_gate_rejects_identical_tasks_in_different_courses(self):
        left = _deadline("a", "DAT560", "Assignment 1", "2026-03-20T23:59:00Z")
        right = _deadline("b", "DAT520", "Assignment 1", "2026-03-20T23:59:00Z")

        signal = evaluate_duplicate_signal(left, right)

        assert signal.is_duplicate is False
        assert signal.score == 0.0

    def test_course_section_suffix_is_ignored(self):
        left = _deadline("a", "DAT560-1", "Assignment 1", "2026-03-20T23:59:00Z")
        right = _deadline("b", "dat560", "Assignment 1", "2026-03-20T23:59:00Z")

        signal = evaluate_duplicate_signal(left, right)

        assert signal.is_duplicate is True
        assert signal.course_key == "DAT560"
        assert signal.score == pytest.approx(1.0)

    def test_course_without_code_uses_stripped_uppercase(self):
        left = _deadline("a", "Machine Learning", "Exam", "2026-06-01T09:00:00Z")
        right = _deadline("b", "machine-learning", "Exam", "2026-06-01T09:00:00Z")

        assert is_duplicate(left, right) is True

    def test_date_gate_rejects_identical_tasks_two_weeks_apart(self):
        left = _deadline("a", "DAT560", "Assignment 1", "2026-03-01T23:59:00Z")
        right = _deadline("b", "DAT560", "Assignment 1", "2026-03-15T23:59:00Z")

        signal = evaluate_duplicate_signal(left, right)

        assert signal.is_duplicate is False
        assert signal.due_distance_days == pytest.approx(14.0)

    def test_unparseable_date_is_never_duplicate(self):
        left = _deadline("a", "DAT560", "Assignment 1", "soon")
        right = _deadline("b", "DAT560", "Assignment 1", "2026-03-15T23:59:00Z")

        assert is_duplicate(left, right) is False

    def test_composite_score(self):
        # substring (0.9) and 1.5 days apart: 0.9 * 0.7 + 0.25 * 0.3
        left = _deadline("a", "DAT560", "Assignment 3", "2026-03-20T00:00:00Z")
        right = _deadline("b", "DAT560", "Assignment 3 report", "2026-03-21T12:00:00Z")

        signal = evaluate_duplicate_signal(left, right)

        assert signal.task_score == 0.9
        assert signal.score == pytest.approx(0.705)
        assert signal.is_duplicate is True

    def test_low_task_score_is_not_duplicate_even_on_same_day(self):
        left = _deadline("a", "DAT560", "Oblig 1 sockets", "2026-03-20T00:00:00Z")
        right = _deadline("b", "DAT560", "Oblig 1 threads", "2026-03-20T00:00:00Z")

        signal = evaluate_duplicate_signal(left, right)

        # 1/3 * 0.7 + 0.3 = 0.533, below both thresholds
        assert signal.is_duplicate is False
