"""
Canvas bridge: assignments from the Canvas LMS become linked deadlines.

Records created here carry canvas_assignment_id, which makes them Canvas-owned
and lets later syncs follow an assignment across title changes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from companion.deadlines.models import Deadline
from companion.deadlines.reconcile import ReconcilePolicy, reconcile_candidates
from companion.deadlines.repository import DeadlineStore
from companion.deadlines.text import (
    COURSE_KEY_RE,
    as_utc,
    infer_priority_from_due_date,
    parse_due_date,
    to_iso,
)
from companion.deadlines.types import BridgeSyncResult, DeadlineCandidate
from companion.integrations.canvas_client import CanvasAssignment, CanvasCourse
from companion.observability.logging import get_logger
from companion.observability.telemetry import log_event

logger = get_logger(__name__)

BRIDGE_NAME = "canvas"


class CanvasSource(Protocol):
    def get_courses(self) -> list[CanvasCourse]: ...

    def get_assignments(self, course_id: int) -> list[CanvasAssignment]: ...


class CanvasData(BaseModel):
    """One Canvas sync payload: the user's courses and their assignments."""

    courses: list[CanvasCourse] = Field(default_factory=list)
    assignments: list[CanvasAssignment] = Field(default_factory=list)


def course_label(course: CanvasCourse | None, course_id: int) -> str:
    """Course code like DAT560 when one is present, else Canvas's own labels."""
    if course is None:
        return f"Course {course_id}"

    match = COURSE_KEY_RE.search(f"{course.course_code or ''} {course.name or ''}".upper())
    if match:
        return match.group(0)
    label = (course.course_code or "").strip() or (course.name or "").strip()
    return label or f"Course {course_id}"


def owns_canvas_deadline(deadline: Deadline) -> bool:
    return deadline.canvas_assignment_id is not None


def extract_canvas_candidates(data: CanvasData, now: datetime) -> list[DeadlineCandidate]:
    """Future assignments with a parseable due_at, one candidate per assignment id."""
    now = as_utc(now)
    courses = {course.id: course for course in data.courses}
    candidates: dict[int, DeadlineCandidate] = {}

    for assignment in data.assignments:
        due = parse_due_date(assignment.due_at)
        if due is None or due <= now:
            continue

        due_date = to_iso(due)
        candidates.setdefault(
            assignment.id,
            DeadlineCandidate(
                course=course_label(courses.get(assignment.course_id), assignment.course_id),
                task=assignment.name.strip(),
                due_date=due_date,
                source_due_date=due_date,
                priority=infer_priority_from_due_date(due_date, now),
                canvas_assignment_id=assignment.id,
            ),
        )

    return sorted(candidates.values(), key=lambda candidate: parse_due_date(candidate.due_date))


class CanvasDeadlineBridge:
    """Reconcile Canvas assignments for one user."""

    def __init__(self, store: DeadlineStore, user_id: str):
        self.store = store
        self.user_id = user_id
        # Priority is only a creation default here; users re-prioritise Canvas items
        self.policy = ReconcilePolicy(
            bridge=BRIDGE_NAME,
            owns=owns_canvas_deadline,
            rederive_priority=False,
        )

    def sync_canvas_deadlines(self, data: CanvasData, now: datetime) -> BridgeSyncResult:
        """
        Create or refresh Canvas-linked deadlines from a sync payload.

        Side Effects:
            - Writes deadlines through the store
            - Logs a summary line and a deadline_bridge.sync_complete event
        """
        candidates = extract_canvas_candidates(data, now)
        result = reconcile_candidates(self.store, self.user_id, candidates, now, self.policy)
        self._log_result(result)
        return result

    def sync_from_client(self, client: CanvasSource, now: datetime) -> BridgeSyncResult:
        """
        Fetch courses and assignments from Canvas, then sync them.

        A course whose assignments cannot be fetched is reported in errors;
        the other courses still sync. If the course list itself fails nothing
        is written.
        """
        try:
            courses = client.get_courses()
        except Exception as e:
            logger.warning("Canvas course fetch failed for user=%s: %s", self.user_id, e)
            result = BridgeSyncResult(bridge=BRIDGE_NAME)
            result.errors.append(f"Canvas courses: {e}")
            return result

        assignments: list[CanvasAssignment] = []
        fetch_errors: list[str] = []
        for course in courses:
            try:
                assignments.extend(client.get_assignments(course.id))
            except Exception as e:
                label = course_label(course, course.id)
                logger.warning("Canvas assignment fetch failed for %s: %s", label, e)
                fetch_errors.append(f"{label}: {e}")

        data = CanvasData(courses=courses, assignments=assignments)
        result = self.sync_canvas_deadlines(data, now)
        result.errors[:0] = fetch_errors
        return result

    def _log_result(self, result: BridgeSyncResult) -> None:
        logger.info(
            "Canvas bridge user=%s candidates=%d created=%d updated=%d skipped=%d errors=%d",
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
