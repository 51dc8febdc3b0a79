"""Tests for README deadline parsing and the GitHub bridge."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from companion.bridges.calendar_exam import CalendarEvent
from companion.bridges.github_readme import (
    GitHubDeadlineBridge,
    extract_course_codes,
    parse_readme_deadlines,
    score_repository,
    select_repository,
)
from companion.deadlines.models import DeadlineCreate, Priority
from companion.integrations.github_client import GitHubRepository
from companion.integrations.retry import IntegrationError

NOW = datetime(2026, 2, 20, 0, 0, tzinfo=UTC)
USER = "student-1"

SAMPLE_README = """# DAT560 Generative AI

## Announcements
- [17.02.2026] Assignment 2 deadline is extended to **22.02.2026 23.59**

## Schedule
| Week | Date | Topic |
|------|------|-------|
| 4 | 28.01.2026 | **Assignment 1 deadline** |
| 8 | 18.02.2026 | **Assignment 2 deadline** |
| 12 | 18.03.2026 | **Assignment 3 deadline** |
| 17 | 24.04.2026 | **Project + report due** |
"""

INFO_REPO = GitHubRepository(name="info", full_name="dat560-2026/info", owner_login="dat560-2026")


class FakeRepositorySource:
    """In-memory stand-in for the GitHub client."""

    def __init__(self, repositories=None, readmes=None, failing=()):
        self.repositories = repositories or {}
        self.readmes = readmes or {}
        self.failing = set(failing)
        self.searches: list[str] = []

    def search_repositories(self, query):
        self.searches.append(query)
        if query in self.failing:
            raise IntegrationError("github request failed with HTTP 503", status_code=503)
        return list(self.repositories.get(query, []))

    def get_readme(self, full_name):
        return self.readmes.get(full_name)


def _keys(candidates):
    return [f"{c.task}::{c.due_date}" for c in candidates]


class TestCourseCodes:
    def test_extracts_sorted_unique_codes(self):
        events = [
            CalendarEvent(summary="DAT560 Forelesning", start_time="2026-02-23T08:15:00Z"),
            CalendarEvent(summary="DAT520 Lab", start_time="2026-02-24T10:15:00Z"),
            CalendarEvent(summary="dat560 Lab", start_time="2026-02-25T10:15:00Z"),
            CalendarEvent(summary="Fadderuke", start_time="2026-02-26T10:15:00Z"),
        ]

        assert extract_course_codes(events) == ["DAT520", "DAT560"]


class TestRepositorySelection:
    def test_scores_info_repo_under_course_org_highest(self):
        assert score_repository(INFO_REPO, "DAT560") == 18

    def test_scores_unrelated_repo_zero(self):
        repo = GitHubRepository(name="notes", full_name="alice/notes", owner_login="alice")
        assert score_repository(repo, "DAT560") == 0

    def test_selects_best_match(self):
        labs = GitHubRepository(
            name="dat560-labs", full_name="someone/dat560-labs", owner_login="someone"
        )
        assert select_repository([labs, INFO_REPO], "DAT560") == INFO_REPO

    def test_ties_break_on_full_name(self):
        b = GitHubRepository(name="dat560-b", full_name="x/dat560-b", owner_login="x")
        a = GitHubRepository(name="dat560-a", full_name="x/dat560-a", owner_login="x")
        assert select_repository([b, a], "DAT560") == a

    def test_returns_none_when_nothing_scores(self):
        repo = GitHubRepository(name="notes", full_name="alice/notes", owner_login="alice")
        assert select_repository([repo], "DAT560") is None


class TestReadmeParsing:
    def test_extension_overrides_table_and_past_rows_drop(self):
        candidates = parse_readme_deadlines(SAMPLE_README, "DAT560", NOW)

        assert _keys(candidates) == [
            "Assignment 2 deadline::2026-02-22T23:59:00.000Z",
            "Assignment 3 deadline::2026-03-18T23:59:00.000Z",
            "Project + report due::2026-04-24T23:59:00.000Z",
        ]
        assert all(c.course == "DAT560" for c in candidates)
        assert all(c.source_due_date == c.due_date for c in candidates)

    def test_priority_follows_time_to_due(self):
        candidates = parse_readme_deadlines(SAMPLE_README, "DAT560", NOW)

        assert candidates[0].priority == Priority.HIGH
        assert candidates[1].priority == Priority.MEDIUM

    def test_list_line_with_time(self):
        readme = "- Oblig 1 frist 03.03.2026 12:00\n"

        candidates = parse_readme_deadlines(readme, "DAT520", NOW)

        assert _keys(candidates) == ["Oblig 1 frist::2026-03-03T12:00:00.000Z"]

    def test_ignores_rows_without_task_keyword(self):
        readme = "| 9 | 25.02.2026 | Guest lecture on transformers |\n"

        assert parse_readme_deadlines(readme, "DAT560", NOW) == []

    def test_ignores_invalid_calendar_dates(self):
        readme = "| 9 | 31.02.2026 | **Assignment 4 deadline** |\n"

        assert parse_readme_deadlines(readme, "DAT560", NOW) == []

    def test_later_table_date_wins_without_extension(self):
        readme = (
            "| 1 | 10.03.2026 | **Lab 1 deadline** |\n"
            "| 2 | 12.03.2026 | **Lab 1 deadline** |\n"
        )

        assert _keys(parse_readme_deadlines(readme, "DAT560", NOW)) == [
            "Lab 1 deadline::2026-03-12T23:59:00.000Z"
        ]


class TestGitHubDeadlineBridge:
    def _bridge(self, store, **source_kwargs):
        source = FakeRepositorySource(
            repositories={"DAT560": [INFO_REPO]},
            readmes={"dat560-2026/info": SAMPLE_README},
            **source_kwargs,
        )
        return GitHubDeadlineBridge(store, USER, source), source

    def test_full_sync_creates_and_updates(self, memory_store):
        memory_store.create_deadline(
            USER,
            DeadlineCreate(
                id="github-dat560-assignment-2-deadline-4f2a9c",
                course="DAT560",
                task="Assignment 2 deadline",
                due_date="2026-02-18T23:59:00.000Z",
                source_due_date="2026-02-18T23:59:00.000Z",
                priority=Priority.HIGH,
            ),
        )
        bridge, _ = self._bridge(memory_store)

        result = bridge.sync_github_deadlines(
            [CalendarEvent(summary="DAT560 Forelesning", start_time="2026-02-23T08:15:00Z")], NOW
        )

        assert (result.created, result.updated) == (2, 1)
        assert result.errors == []
        assert result.course_codes == ["DAT560"]
        assert result.repositories_scanned == ["dat560-2026/info"]

        by_task = {d.task: d for d in memory_store.list_deadlines(USER)}
        assert by_task["Assignment 2 deadline"].due_date == "2026-02-22T23:59:00.000Z"
        assert by_task["Assignment 2 deadline"].source_due_date == "2026-02-22T23:59:00.000Z"

    def test_created_ids_carry_github_prefix(self, memory_store):
        bridge, _ = self._bridge(memory_store)

        result = bridge.sync_courses(["DAT560"], NOW)

        assert result.created == 3
        assert all(d.id.startswith("github-dat560-") for d in result.created_deadlines)

    def test_second_run_is_idempotent(self, memory_store):
        bridge, _ = self._bridge(memory_store)
        bridge.sync_courses(["DAT560"], NOW)

        result = bridge.sync_courses(["DAT560"], NOW)

        assert (result.created, result.updated, result.skipped) == (0, 0, 3)
        assert len(memory_store.list_deadlines(USER)) == 3

    def test_missing_repository_does_not_block_other_courses(self, memory_store):
        bridge, _ = self._bridge(memory_store)

        result = bridge.sync_courses(["DAT520", "DAT560"], NOW)

        assert result.errors == ["DAT520: no matching GitHub repository found"]
        assert result.created == 3

    def test_source_failure_is_reported_per_course(self, memory_store):
        bridge, _ = self._bridge(memory_store, failing={"DAT520"})

        result = bridge.sync_courses(["DAT520", "DAT560"], NOW)

        assert len(result.errors) == 1
        assert result.errors[0].startswith("DAT520: ")
        assert result.created == 3

    def test_empty_readme_is_an_error(self, memory_store):
        source = FakeRepositorySource(
            repositories={"DAT560": [INFO_REPO]}, readmes={"dat560-2026/info": "   \n"}
        )
        bridge = GitHubDeadlineBridge(memory_store, USER, source)

        result = bridge.sync_courses(["DAT560"], NOW)

        assert result.errors == ["DAT560: README in dat560-2026/info is empty"]
        assert result.repositories_scanned == ["dat560-2026/info"]
        assert result.created == 0

    def test_no_course_codes_in_events(self, memory_store):
        bridge, source = self._bridge(memory_store)

        result = bridge.sync_github_deadlines(
            [CalendarEvent(summary="Fadderuke", start_time="2026-02-23T08:15:00Z")], NOW
        )

        assert result.errors == ["No course codes found in calendar events."]
        assert source.searches == []

    @pytest.mark.parametrize(
        "existing",
        [
            pytest.param(
                DeadlineCreate(
                    course="DAT560",
                    task="Assignment 3 deadline",
                    due_date="2026-03-18T23:59:00.000Z",
                ),
                id="manual",
            ),
            pytest.param(
                DeadlineCreate(
                    course="DAT560",
                    task="Assignment 3 deadline",
                    due_date="2026-03-18T23:59:00.000Z",
                    source_due_date="2026-03-18T23:59:00.000Z",
                    canvas_assignment_id=42,
                ),
                id="canvas-owned",
            ),
            pytest.param(
                DeadlineCreate(
                    course="DAT560",
                    task="Assignment 3 deadline",
                    due_date="2026-03-18T23:59:00.000Z",
                    source_due_date="2026-03-11T23:59:00.000Z",
                ),
                id="managed-without-github-id",
            ),
        ],
    )
    def test_leaves_records_it_does_not_own(self, memory_store, existing):
        memory_store.create_deadline(USER, existing)
        bridge, _ = self._bridge(memory_store)

        result = bridge.sync_courses(["DAT560"], NOW)

        assert (result.created, result.skipped) == (2, 1)
        matching = [d for d in memory_store.list_deadlines(USER) if d.task == "Assignment 3 deadline"]
        assert len(matching) == 1
        assert matching[0].canvas_assignment_id == existing.canvas_assignment_id

    def test_follows_extended_final_project_row(self, memory_store):
        def readme(date):
            return f"| Week | Date | Topic |\n|---|---|---|\n| 12 | {date} | **Final project deadline** |\n"

        source = FakeRepositorySource(
            repositories={"DAT560": [INFO_REPO]}, readmes={"dat560-2026/info": readme("10.03.2026")}
        )
        bridge = GitHubDeadlineBridge(memory_store, USER, source)
        first = bridge.sync_courses(["DAT560"], NOW)

        source.readmes["dat560-2026/info"] = readme("17.03.2026")
        second = bridge.sync_courses(["DAT560"], NOW)

        assert first.created == 1
        assert (second.created, second.updated, second.skipped) == (0, 1, 0)
        (deadline,) = memory_store.list_deadlines(USER)
        assert deadline.task == "Final project deadline"
        assert deadline.due_date == "2026-03-17T23:59:00.000Z"
        assert deadline.source_due_date == "2026-03-17T23:59:00.000Z"
