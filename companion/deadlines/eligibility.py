"""Decide whether a record is assignment/exam-like enough to track as a deadline."""

from __future__ import annotations

import re
from typing import Protocol

ASSIGNMENT_OR_EXAM_RE = re.compile(
    r"\b("
    r"assignments?|exam(?:s|en)?|eksamen|oblig\w*|labs?|lab\d+|projects?|prosjekt"
    r"|final|midterm|quiz(?:zes)?|innlevering|homework|deliverables?|hand-?in"
    r")\b",
    re.IGNORECASE,
)


class DeadlineLike(Protocol):
    course: str
    task: str
    canvas_assignment_id: int | None


def has_assignment_or_exam_keyword(text: str) -> bool:
    return bool(ASSIGNMENT_OR_EXAM_RE.search(text or ""))


def is_assignment_or_exam_deadline(record: DeadlineLike) -> bool:
    # A Canvas link is assignment-like by construction, whatever the title says
    if record.canvas_assignment_id is not None:
        return True
    return has_assignment_or_exam_keyword(f"{record.course} {record.task}")
