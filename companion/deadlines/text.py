"""
Shared text and date normalization for deadline matching.

Used by the similarity engine, the eligibility filter and every bridge so
that "same course" and "same task" mean the same thing everywhere.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

from companion.config import PRIORITY_CRITICAL_HOURS, PRIORITY_HIGH_HOURS
from companion.deadlines.models import Priority

# 3 letters + 3 digits, e.g. DAT560; section suffixes like "-1" are ignored
COURSE_KEY_RE = re.compile(r"[A-Z]{3}\d{3}")

TASK_STOP_WORDS = frozenset(
    {
        "assignment",
        "assignments",
        "lab",
        "project",
        "task",
        "due",
        "submission",
        "report",
        "part",
        "week",
    }
)

_NON_ALNUM_UPPER_RE = re.compile(r"[^A-Z0-9]")
_NON_TASK_CHARS_RE = re.compile(r"[^a-z0-9\s]")
_NON_KEY_CHARS_RE = re.compile(r"[^a-z0-9]+")
_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def normalize_course_key(course: str) -> str:
    """Canonical course key: the course code if present, else stripped uppercase."""
    upper = course.upper()
    match = COURSE_KEY_RE.search(upper)
    if match:
        return match.group(0)
    return _NON_ALNUM_UPPER_RE.sub("", upper)


def normalize_task(task: str) -> str:
    """Lowercase, punctuation to spaces, collapsed whitespace."""
    lowered = _NON_TASK_CHARS_RE.sub(" ", task.lower())
    return _WHITESPACE_RE.sub(" ", lowered).strip()


def tokenize_task(task: str) -> list[str]:
    """Meaningful task words: no single characters, no generic stop words."""
    return [
        token
        for token in normalize_task(task).split(" ")
        if len(token) > 1 and token not in TASK_STOP_WORDS
    ]


def normalize_text_key(value: str) -> str:
    """Lookup key used by the bridges to match (course, task) pairs."""
    return _WHITESPACE_RE.sub(" ", _NON_KEY_CHARS_RE.sub(" ", value.lower())).strip()


def deadline_key(course: str, task: str) -> tuple[str, str]:
    return normalize_text_key(course), normalize_text_key(task)


def slugify(value: str) -> str:
    return _SLUG_RE.sub("-", value.lower()).strip("-")


def parse_due_date(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 due date into an aware UTC datetime.

    Naive values are treated as UTC. Returns None for anything unparseable;
    callers decide whether that drops a candidate or degrades a score.
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_iso(moment: datetime) -> str:
    """Format as UTC with millisecond precision and a trailing Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def canonical_due_date(value: str | None) -> str | None:
    """Re-format a parseable due date into the canonical ISO form."""
    parsed = parse_due_date(value)
    return to_iso(parsed) if parsed else None


def infer_priority_from_due_date(due_date: str, now: datetime) -> Priority:
    """Default priority from time-to-due: <=24h critical, <=96h high, else medium."""
    due = parse_due_date(due_date)
    if due is None:
        return Priority.MEDIUM

    hours_left = (due - as_utc(now)).total_seconds() / 3600
    if hours_left <= PRIORITY_CRITICAL_HOURS:
        return Priority.CRITICAL
    if hours_left <= PRIORITY_HIGH_HOURS:
        return Priority.HIGH
    return Priority.MEDIUM


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so comparisons with parsed dates never fail."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)
