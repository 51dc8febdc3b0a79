"""
GitHub-README bridge: course deadlines from the course's GitHub repository.

Course codes come from the timetable feed. For each code the bridge finds the
course repository (best-effort scoring on name and owner), reads its README
and parses dated deadline rows and extension announcements out of it.

Supported README shapes:
- schedule tables: ``| 8 | 18.02.2026 | **Assignment 2 deadline** |``
- extension notes: ``- [17.02.2026] Assignment 2 deadline is extended to 22.02.2026 23.59``
- plain list lines: ``- Oblig 1 frist 03.03.2026 12:00``
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from companion.bridges.calendar_exam import CalendarEvent
from companion.config import README_DEFAULT_DUE_HOUR, README_DEFAULT_DUE_MINUTE
from companion.deadlines.grouping import GITHUB_ID_PREFIX, infer_deadline_source
from companion.deadlines.models import Deadline, DeadlineSource
from companion.deadlines.reconcile import ReconcilePolicy, reconcile_candidates
from companion.deadlines.repository import DeadlineStore
from companion.deadlines.text import (
    as_utc,
    infer_priority_from_due_date,
    normalize_text_key,
    parse_due_date,
    slugify,
    to_iso,
)
from companion.deadlines.types import DeadlineCandidate, GitHubSyncResult
from companion.integrations.github_client import GitHubRepository
from companion.observability.logging import get_logger
from companion.observability.telemetry import log_event

logger = get_logger(__name__)

BRIDGE_NAME = "github"

TIMETABLE_COURSE_CODE_RE = re.compile(r"\b[A-Z]{3}\d{3}\b")

README_DATE_RE = re.compile(
    r"(?<!\d)(?P<day>\d{1,2})\.(?P<month>\d{1,2})\.(?P<year>\d{4})"
    r"(?:\s+(?:kl\.?\s*)?(?P<hour>\d{1,2})[.:](?P<minute>\d{2}))?"
)
TABLE_TASK_KEYWORD_RE = re.compile(
    r"\b(deadline|due|assignment|oblig\w*|exam|project|lab|submission|innlevering|frist)\b",
    re.IGNORECASE,
)
LIST_TASK_KEYWORD_RE = re.compile(r"\b(deadline|due|frist)\b", re.IGNORECASE)
EXTENSION_RE = re.compile(
    r"^(?P<task>.+?)\s+(?:is|has\s+been|was|er)\s+"
    r"(?:extended|postponed|moved|utsatt|forlenget)\s+(?:to|until|til)\s+(?P<rest>.+)$",
    re.IGNORECASE,
)

_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_STAMP_RE = re.compile(r"^\[\s*\d{1,2}\.\d{1,2}\.\d{4}\s*\]\s*")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_NUMERIC_RE = re.compile(r"^\d+$")
_WHITESPACE_RE = re.compile(r"\s+")
_TASK_EDGE_CHARS = " \t:;,-–|*_"


class RepositorySource(Protocol):
    """What the bridge needs from GitHub: repository search and README reads."""

    def search_repositories(self, query: str) -> list[GitHubRepository]: ...

    def get_readme(self, full_name: str) -> str | None: ...


@dataclass
class ReadmeDeadline:
    task: str
    due: datetime
    is_extension: bool = False


# ---------------------------------------------------------------------------
# Course codes and repository selection
# ---------------------------------------------------------------------------


def extract_course_codes(events: Iterable[CalendarEvent]) -> list[str]:
    """Distinct XXX000 course codes in event summaries, sorted."""
    codes: set[str] = set()
    for event in events:
        codes.update(TIMETABLE_COURSE_CODE_RE.findall(event.summary.upper()))
    return sorted(codes)


def score_repository(repository: GitHubRepository, course_code: str) -> int:
    code = course_code.lower()
    score = 0
    if repository.name.lower() == "info":
        score += 10
    if code in repository.owner_login.lower():
        score += 5
    if code in repository.full_name.lower():
        score += 3
    return score


def select_repository(
    repositories: list[GitHubRepository], course_code: str
) -> GitHubRepository | None:
    """Highest-scoring repository, ties broken by full name; None if nothing scores."""
    scored = [
        (score_repository(repository, course_code), repository)
        for repository in repositories
    ]
    scored = [(score, repository) for score, repository in scored if score > 0]
    if not scored:
        return None
    scored.sort(key=lambda pair: (-pair[0], pair[1].full_name.lower()))
    return scored[0][1]


# ---------------------------------------------------------------------------
# README parsing
# ---------------------------------------------------------------------------


def parse_readme_date(match: re.Match[str]) -> datetime | None:
    """dd.mm.yyyy [hh.mm] as UTC; 23:59 when no time is given."""
    hour = int(match.group("hour")) if match.group("hour") else README_DEFAULT_DUE_HOUR
    minute = int(match.group("minute")) if match.group("minute") else README_DEFAULT_DUE_MINUTE
    try:
        return as_utc(
            datetime(
                int(match.group("year")),
                int(match.group("month")),
                int(match.group("day")),
                hour,
                minute,
            )
        )
    except ValueError:
        return None


def _clean_task(text: str) -> str:
    text = _BOLD_RE.sub(r"\1", text).replace("**", "")
    return _WHITESPACE_RE.sub(" ", text).strip(_TASK_EDGE_CHARS)


def _parse_table_row(line: str) -> ReadmeDeadline | None:
    cells = [cell.strip() for cell in line.strip().strip("|").split("|")]

    due = None
    for cell in cells:
        match = README_DATE_RE.search(cell)
        if match:
            due = parse_readme_date(match)
            break
    if due is None:
        return None

    task = None
    for cell in cells:
        bold = _BOLD_RE.search(cell)
        if bold:
            task = _clean_task(bold.group(1))
            break
    if not task:
        for cell in cells:
            if not cell or README_DATE_RE.search(cell) or _NUMERIC_RE.match(cell):
                continue
            task = _clean_task(cell)
            break

    if not task or not TABLE_TASK_KEYWORD_RE.search(task):
        return None
    return ReadmeDeadline(task=task, due=due)


def _parse_extension_line(text: str) -> ReadmeDeadline | None:
    match = EXTENSION_RE.match(text)
    if not match:
        return None

    date_match = README_DATE_RE.search(match.group("rest"))
    if not date_match:
        return None
    due = parse_readme_date(date_match)
    task = _clean_task(match.group("task"))
    if due is None or not task:
        return None
    return ReadmeDeadline(task=task, due=due, is_extension=True)


def _parse_list_line(text: str) -> ReadmeDeadline | None:
    matches = list(README_DATE_RE.finditer(text))
    if len(matches) != 1 or not LIST_TASK_KEYWORD_RE.search(text):
        return None

    due = parse_readme_date(matches[0])
    task = _clean_task(README_DATE_RE.sub(" ", text))
    if due is None or not task:
        return None
    return ReadmeDeadline(task=task, due=due)


def _parse_line(line: str) -> ReadmeDeadline | None:
    if line.lstrip().startswith("|"):
        return _parse_table_row(line)

    if not _BULLET_RE.match(line):
        return None

    text = _STAMP_RE.sub("", _BULLET_RE.sub("", line)).strip()
    return _parse_extension_line(text) or _parse_list_line(text)


def _prefer(current: ReadmeDeadline | None, incoming: ReadmeDeadline) -> ReadmeDeadline:
    if current is None:
        return incoming
    # Extension announcements override the schedule table
    if incoming.is_extension != current.is_extension:
        return incoming if incoming.is_extension else current
    return incoming if incoming.due > current.due else current


def parse_readme_deadlines(readme: str, course_code: str, now: datetime) -> list[DeadlineCandidate]:
    """
    Extract future deadlines for one course from README markdown.

    Entries for the same task are merged before the future-only filter, so a
    past table date that was extended to a future one surfaces as the extended
    date and a past-only task disappears. Sorted by due date.
    """
    now = as_utc(now)
    merged: dict[str, ReadmeDeadline] = {}

    for line in readme.splitlines():
        entry = _parse_line(line)
        if entry is None:
            continue
        key = normalize_text_key(entry.task)
        merged[key] = _prefer(merged.get(key), entry)

    candidates = []
    for entry in sorted(merged.values(), key=lambda item: item.due):
        if entry.due <= now:
            continue
        due_date = to_iso(entry.due)
        candidates.append(
            DeadlineCandidate(
                course=course_code,
                task=entry.task,
                due_date=due_date,
                source_due_date=due_date,
                priority=infer_priority_from_due_date(due_date, now),
            )
        )
    return candidates


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------


def owns_github_deadline(deadline: Deadline) -> bool:
    """Managed records this bridge created, recognised by the id it assigns."""
    return deadline.is_managed and infer_deadline_source(deadline) is DeadlineSource.GITHUB


def github_deadline_id(candidate: DeadlineCandidate) -> str:
    course = slugify(candidate.course)
    task = slugify(candidate.task)[:48].strip("-")
    return f"{GITHUB_ID_PREFIX}{course}-{task}-{uuid.uuid4().hex[:6]}"


class GitHubDeadlineBridge:
    """Reconcile README deadlines of every timetable course for one user."""

    def __init__(self, store: DeadlineStore, user_id: str, source: RepositorySource):
        self.store = store
        self.user_id = user_id
        self.source = source
        self.policy = ReconcilePolicy(
            bridge=BRIDGE_NAME,
            owns=owns_github_deadline,
            rederive_priority=True,
            id_factory=github_deadline_id,
        )

    def sync_github_deadlines(self, events: list[CalendarEvent], now: datetime) -> GitHubSyncResult:
        """Derive course codes from timetable events, then sync each course."""
        course_codes = extract_course_codes(events)
        if not course_codes:
            result = GitHubSyncResult(bridge=BRIDGE_NAME)
            result.errors.append("No course codes found in calendar events.")
            return result
        return self.sync_courses(course_codes, now)

    def sync_courses(self, course_codes: list[str], now: datetime) -> GitHubSyncResult:
        """
        Sync README deadlines for the given course codes.

        A course whose repository cannot be found or read is reported in
        errors; the remaining courses still sync.

        Side Effects:
            - Calls the GitHub source (search + README read per course)
            - Writes deadlines through the store
            - Logs a summary line and a deadline_bridge.sync_complete event
        """
        result = GitHubSyncResult(bridge=BRIDGE_NAME, course_codes=list(course_codes))

        for course_code in course_codes:
            try:
                candidates = self._course_candidates(course_code, now, result)
            except Exception as e:
                logger.warning("GitHub sync failed for %s: %s", course_code, e)
                result.errors.append(f"{course_code}: {e}")
                continue

            if candidates is None:
                continue
            result.absorb(
                reconcile_candidates(self.store, self.user_id, candidates, now, self.policy)
            )

        logger.info(
            "GitHub bridge user=%s courses=%d repos=%d created=%d updated=%d skipped=%d errors=%d",
            self.user_id,
            len(course_codes),
            len(result.repositories_scanned),
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

    def _course_candidates(
        self, course_code: str, now: datetime, result: GitHubSyncResult
    ) -> list[DeadlineCandidate] | None:
        repository = select_repository(self.source.search_repositories(course_code), course_code)
        if repository is None:
            result.errors.append(f"{course_code}: no matching GitHub repository found")
            return None

        result.repositories_scanned.append(repository.full_name)
        readme = self.source.get_readme(repository.full_name)
        if not readme or not readme.strip():
            result.errors.append(f"{course_code}: README in {repository.full_name} is empty")
            return None

        return parse_readme_deadlines(readme, course_code, now)
