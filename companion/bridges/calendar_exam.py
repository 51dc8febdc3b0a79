"""
Calendar-exam bridge: exam events from the timetable feed become deadlines.

An event counts as an exam when its summary or description mentions an exam
keyword (English or Norwegian, plus the WISEflow exam platform). The course
code comes from the summary; the task label is the summary without the code.
"""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel

from companion.deadlines.grouping import infer_deadline_source
from companion.deadlines.models import Deadline, DeadlineSource
from companion.deadlines.reconcile import ReconcilePolicy, reconcile_candidates
from companion.deadlines.repository import DeadlineStore
from companion.deadlines.text import (
    as_utc,
    infer_priority_from_due_date,
    normalize_text_key,
    parse_due_date,
    to_iso,
)
from companion.deadlines.types import BridgeSyncResult, DeadlineCandidate
from companion.observability.logging import get_logger
from companion.observability.telemetry import log_event

logger = get_logger(__name__)

BRIDGE_NAME = "calendar_exam"

EXAM_COURSE_CODE_RE = re.compile(r"\b[A-Z]{2,5}\d{3}\b")
EXAM_KEYWORD_RE = re.compile(r"\b(exam(?:en)?|eksamen|midterm|final|wiseflow)\b", re.IGNORECASE)

_WHITESPACE_RE = re.compile(r"\s+")


class CalendarEvent(BaseModel):
    """One event from an imported calendar feed."""

    summary: str
    start_time: str
    end_time: str | None = None
    description: str | None = None


def is_exam_event(event: CalendarEvent) -> bool:
    return bool(EXAM_KEYWORD_RE.search(f"{event.summary} {event.description or ''}"))


def is_exam_deadline(deadline: Deadline) -> bool:
    return bool(EXAM_KEYWORD_RE.search(f"{deadline.course} {deadline.task}"))


def owns_exam_deadline(deadline: Deadline) -> bool:
    """
    Managed exam records that no other bridge created.

    Canvas-linked and github- records with an exam-like title stay with
    their own bridge.
    """
    return (
        deadline.is_managed
        and infer_deadline_source(deadline) is DeadlineSource.MANUAL
        and is_exam_deadline(deadline)
    )


def extract_exam_course_code(summary: str) -> str | None:
    match = EXAM_COURSE_CODE_RE.search(summary.upper())
    return match.group(0) if match else None


def build_exam_task_label(summary: str, course_code: str) -> str:
    """Summary minus the course code; "Exam" when nothing else is left."""
    without_code = re.sub(rf"\b{re.escape(course_code)}\b", " ", summary, flags=re.IGNORECASE)
    without_code = _WHITESPACE_RE.sub(" ", without_code).strip()
    if not without_code:
        return "Exam"
    return without_code[0].upper() + without_code[1:]


def extract_exam_candidates(events: list[CalendarEvent], now: datetime) -> list[DeadlineCandidate]:
    """
    Pick future exam events, one candidate per (course, task, due date).

    Events without a course code or a parseable start time are ignored.
    Result is sorted by due date.
    """
    now = as_utc(now)
    seen: dict[tuple[str, str, str], DeadlineCandidate] = {}

    for event in events:
        if not is_exam_event(event):
            continue

        course_code = extract_exam_course_code(event.summary)
        if not course_code:
            continue

        start = parse_due_date(event.start_time)
        if start is None or start <= now:
            continue

        due_date = to_iso(start)
        candidate = DeadlineCandidate(
            course=course_code,
            task=build_exam_task_label(event.summary, course_code),
            due_date=due_date,
            source_due_date=due_date,
            priority=infer_priority_from_due_date(due_date, now),
        )
        key = (candidate.course, normalize_text_key(candidate.task), candidate.due_date)
        seen.setdefault(key, candidate)

    return sorted(seen.values(), key=lambda candidate: parse_due_date(candidate.due_date))


class CalendarExamBridge:
    """Reconcile exam events for one user."""

    def __init__(self, store: DeadlineStore, user_id: str):
        self.store = store
        self.user_id = user_id
        self.policy = ReconcilePolicy(
            bridge=BRIDGE_NAME,
            owns=owns_exam_deadline,
            rederive_priority=True,
        )

    def sync_exam_deadlines(self, events: list[CalendarEvent], now: datetime) -> BridgeSyncResult:
        """
        Create or refresh exam deadlines from calendar events.

        Side Effects:
            - Writes deadlines through the store
            - Logs a summary line and a deadline_bridge.sync_complete event
        """
        candidates = extract_exam_candidates(events, now)
        result = reconcile_candidates(self.store, self.user_id, candidates, now, self.policy)

        logger.info(
            "Exam bridge user=%s candidates=%d created=%d updated=%d skipped=%d errors=%d",
            self.user_id,
            result.candidates,
            result.created,
            result.updated,
            result.skipped,
            len(result.errors),
        )
        log_event(
            "deadline_bridge.sync_complete",
            bridge=BRIDGE_NAME,
            user_id=self.user_id,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
        )
        return result
