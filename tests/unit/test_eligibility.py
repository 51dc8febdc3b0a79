"""Tests for the assignment/exam eligibility filter."""

from __future__ import annotations

import pytest

from companion.deadlines.eligibility import (
    has_assignment_or_exam_keyword,
    is_assignment_or_exam_deadline,
)
from companion.deadlines.models import Deadline


def _deadline(course: str, task: str, canvas_assignment_id: int | None = None) -> Deadline:
    return Deadline(
        id="d1",
        course=course,
        task=task,
        due_date="2026-03-01T12:00:00Z",
        canvas_assignment_id=canvas_assignment_id,
    )


@pytest.mark.parametrize(
    "task",
    [
        "Assignment 2",
        "Final exam",
        "Eksamen i DAT560",
        "Oblig 3",
        "Obligatorisk innlevering",
        "Lab 4",
        "lab2 handout",
        "Project + report due",
        "Midterm",
        "Quiz 3",
        "Homework 1",
    ],
)
def test_keyword_tasks_are_eligible(task):
    assert is_assignment_or_exam_deadline(_deadline("DAT560", task)) is True


@pytest.mark.parametrize("task", ["Forelesning", "Office hours", "Read chapter 4"])
def test_non_keyword_tasks_are_not_eligible(task):
    assert is_assignment_or_exam_deadline(_deadline("DAT560", task)) is False


def test_canvas_link_alone_is_sufficient():
    assert is_assignment_or_exam_deadline(_deadline("DAT560", "Week 6 reading", 4411)) is True


def test_keyword_in_course_counts():
    assert is_assignment_or_exam_deadline(_deadline("Project course", "Kickoff")) is True


def test_keyword_helper_handles_empty_text():
    assert has_assignment_or_exam_keyword("") is False
