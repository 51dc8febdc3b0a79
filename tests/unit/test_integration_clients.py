"""Tests for the GitHub and Canvas REST clients against a fake session."""

from __future__ import annotations

import base64

import pytest
import requests

from companion.integrations.canvas_client import CanvasClient
from companion.integrations.github_client import GitHubClient, GitHubRepository
from companion.integrations.retry import CircuitBreaker, IntegrationError, RetryPolicy
from companion.observability.telemetry import get_counter


class FakeResponse:
    def __init__(self, status_code=200, payload=None, links=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self.links = links or {}
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "params": params, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _no_sleep_policy(stage: str) -> RetryPolicy:
    return RetryPolicy(stage=stage, max_attempts=3, base_delay=0.0, jitter=0.0, sleep_fn=None)


def _github(session, token="ghp_test", circuit=None) -> GitHubClient:
    return GitHubClient(
        token=token,
        base_url="https://api.github.test",
        session=session,
        retry_policy=_no_sleep_policy("github"),
        circuit=circuit,
    )


def _canvas(session) -> CanvasClient:
    return CanvasClient(
        token="canvas-token",
        base_url="https://canvas.test/",
        session=session,
        retry_policy=_no_sleep_policy("canvas"),
    )


class TestGitHubClient:
    def test_search_repositories(self):
        session = FakeSession(
            [
                FakeResponse(
                    payload={
                        "items": [
                            {
                                "name": "info",
                                "full_name": "dat560-2026/info",
                                "owner": {"login": "dat560-2026"},
                            }
                        ]
                    }
                )
            ]
        )

        repositories = _github(session).search_repositories("DAT560")

        assert repositories == [
            GitHubRepository(name="info", full_name="dat560-2026/info", owner_login="dat560-2026")
        ]
        call = session.calls[0]
        assert call["url"] == "https://api.github.test/search/repositories"
        assert call["params"]["q"] == "DAT560 in:name"
        assert call["headers"]["Authorization"] == "Bearer ghp_test"
        assert get_counter("github.requests") == 1

    def test_get_readme_decodes_base64(self):
        content = base64.b64encode("# DAT560\n| 1 | 18.03.2026 | **Lab 1** |".encode()).decode()
        session = FakeSession([FakeResponse(payload={"content": content, "encoding": "base64"})])

        readme = _github(session).get_readme("dat560-2026/info")

        assert readme.startswith("# DAT560")
        assert session.calls[0]["url"] == "https://api.github.test/repos/dat560-2026/info/readme"

    def test_missing_readme_is_none(self):
        session = FakeSession([FakeResponse(status_code=404)])

        assert _github(session).get_readme("dat560-2026/info") is None
        assert len(session.calls) == 1

    def test_server_errors_are_retried(self):
        session = FakeSession(
            [FakeResponse(status_code=502), FakeResponse(payload={"items": []})]
        )

        assert _github(session).search_repositories("DAT520") == []
        assert len(session.calls) == 2

    def test_timeouts_surface_as_integration_error(self):
        session = FakeSession([requests.exceptions.Timeout()] * 3)

        with pytest.raises(IntegrationError, match="github request timed out"):
            _github(session).search_repositories("DAT520")

        assert get_counter("github.failures") == 1

    def test_missing_token_fails_before_any_request(self):
        session = FakeSession([])

        with pytest.raises(IntegrationError, match="github token is not configured"):
            _github(session, token="").search_repositories("DAT520")

        assert session.calls == []

    def test_open_circuit_blocks_requests(self):
        circuit = CircuitBreaker(stage="github", fail_max=1, reset_timeout=300.0)
        session = FakeSession([FakeResponse(status_code=500)] * 3)
        client = _github(session, circuit=circuit)

        with pytest.raises(IntegrationError):
            client.search_repositories("DAT520")
        with pytest.raises(IntegrationError, match="circuit open"):
            client.search_repositories("DAT520")

        assert len(session.calls) == 3


class TestCanvasClient:
    def test_follows_pagination_links(self):
        next_url = "https://canvas.test/api/v1/courses?page=2&per_page=100"
        session = FakeSession(
            [
                FakeResponse(
                    payload=[{"id": 1, "name": "Generative AI", "course_code": "DAT560-1 26V"}],
                    links={"next": {"url": next_url}},
                ),
                FakeResponse(payload=[{"id": 2, "name": "Distributed Systems"}, {"name": "no id"}]),
            ]
        )

        courses = _canvas(session).get_courses()

        assert [course.id for course in courses] == [1, 2]
        assert courses[1].course_code is None
        assert session.calls[0]["url"] == "https://canvas.test/api/v1/courses"
        assert session.calls[0]["params"] == {"enrollment_state": "active", "per_page": 100}
        assert session.calls[1]["url"] == next_url
        assert session.calls[1]["params"] is None

    def test_assignments_default_course_id(self):
        session = FakeSession(
            [
                FakeResponse(
                    payload=[
                        {"id": 101, "name": "Assignment 2", "due_at": "2026-03-01T22:59:00Z"},
                        {"id": 102, "name": ""},
                    ]
                )
            ]
        )

        assignments = _canvas(session).get_assignments(7)

        assert len(assignments) == 1
        assert assignments[0].course_id == 7
        assert assignments[0].due_at == "2026-03-01T22:59:00Z"

    def test_invalid_json_is_an_integration_error(self):
        session = FakeSession([FakeResponse(invalid_json=True)])

        with pytest.raises(IntegrationError, match="invalid JSON"):
            _canvas(session).get_courses()
