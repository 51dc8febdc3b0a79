"""
GitHub REST client for course repositories.

Only the two reads the README bridge needs: repository search by course code
and README content. Authenticated with COURSE_GITHUB_PAT.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

import requests

from companion.config import (
    COURSE_GITHUB_PAT,
    GITHUB_API_URL,
    GITHUB_SEARCH_LIMIT,
    GITHUB_TIMEOUT_SECONDS,
)
from companion.integrations.http import JsonApiClient
from companion.integrations.retry import CircuitBreaker, IntegrationError, RetryPolicy
from companion.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GitHubRepository:
    name: str
    full_name: str
    owner_login: str

    @classmethod
    def from_api(cls, item: dict) -> GitHubRepository:
        owner = item.get("owner") or {}
        return cls(
            name=str(item.get("name", "")),
            full_name=str(item.get("full_name", "")),
            owner_login=str(owner.get("login", "")),
        )


class GitHubClient(JsonApiClient):
    stage = "github"

    def __init__(
        self,
        token: str | None = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = GITHUB_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
        retry_policy: RetryPolicy | None = None,
        circuit: CircuitBreaker | None = None,
    ):
        super().__init__(
            base_url=base_url,
            token=COURSE_GITHUB_PAT if token is None else token,
            timeout=timeout,
            session=session,
            retry_policy=retry_policy or RetryPolicy(stage=self.stage),
            circuit=circuit or CircuitBreaker(stage=self.stage),
        )

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.github+json"
        return headers

    def search_repositories(self, query: str) -> list[GitHubRepository]:
        """Repositories whose name matches the query (course code)."""
        payload = self.get_json(
            "/search/repositories",
            params={"q": f"{query} in:name", "per_page": GITHUB_SEARCH_LIMIT},
        )
        items = payload.get("items", []) if isinstance(payload, dict) else []
        repositories = [GitHubRepository.from_api(item) for item in items if isinstance(item, dict)]
        logger.debug("GitHub search %r returned %d repositories", query, len(repositories))
        return repositories

    def get_readme(self, full_name: str) -> str | None:
        """
        Decoded README of a repository, or None when it has none.

        Raises:
            IntegrationError: on any failure other than 404
        """
        try:
            payload = self.get_json(f"/repos/{full_name}/readme")
        except IntegrationError as e:
            if e.status_code == 404:
                return None
            raise

        content = payload.get("content") if isinstance(payload, dict) else None
        if not content:
            return None
        if payload.get("encoding", "base64") != "base64":
            return str(content)

        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError) as e:
            raise IntegrationError(f"README of {full_name} could not be decoded") from e
