"""
Canvas LMS REST client (read-only: active courses and their assignments).

Canvas paginates with RFC 5988 Link headers; both reads follow "next" links.
"""

from __future__ import annotations

from typing import Any

import requests
from pydantic import BaseModel

from companion.config import CANVAS_API_TOKEN, CANVAS_BASE_URL, CANVAS_TIMEOUT_SECONDS
from companion.integrations.http import JsonApiClient
from companion.integrations.retry import CircuitBreaker, IntegrationError, RetryPolicy
from companion.observability.logging import get_logger

logger = get_logger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 20


class CanvasCourse(BaseModel):
    id: int
    name: str | None = None
    course_code: str | None = None


class CanvasAssignment(BaseModel):
    id: int
    course_id: int
    name: str
    due_at: str | None = None
    html_url: str | None = None


class CanvasClient(JsonApiClient):
    stage = "canvas"

    def __init__(
        self,
        token: str | None = None,
        base_url: str = CANVAS_BASE_URL,
        timeout: float = CANVAS_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
        retry_policy: RetryPolicy | None = None,
        circuit: CircuitBreaker | None = None,
    ):
        super().__init__(
            base_url=base_url,
            token=CANVAS_API_TOKEN if token is None else token,
            timeout=timeout,
            session=session,
            retry_policy=retry_policy or RetryPolicy(stage=self.stage),
            circuit=circuit or CircuitBreaker(stage=self.stage),
        )

    def _get_paginated(self, path: str, params: dict[str, Any]) -> list[dict]:
        items: list[dict] = []
        url: str | None = path
        query: dict[str, Any] | None = {**params, "per_page": PAGE_SIZE}
        pages = 0

        while url is not None:
            if pages >= MAX_PAGES:
                logger.warning("Canvas pagination for %s stopped after %d pages", path, MAX_PAGES)
                break
            response = self.get(url, query)
            pages += 1
            try:
                page = response.json()
            except ValueError as e:
                raise IntegrationError("canvas returned invalid JSON") from e
            if isinstance(page, list):
                items.extend(entry for entry in page if isinstance(entry, dict))
            url = response.links.get("next", {}).get("url")
            # The next link already carries the query string
            query = None

        return items

    def get_courses(self) -> list[CanvasCourse]:
        raw = self._get_paginated("/api/v1/courses", {"enrollment_state": "active"})
        return [CanvasCourse.model_validate(item) for item in raw if "id" in item]

    def get_assignments(self, course_id: int) -> list[CanvasAssignment]:
        raw = self._get_paginated(f"/api/v1/courses/{course_id}/assignments", {})
        return [
            CanvasAssignment.model_validate({**item, "course_id": item.get("course_id", course_id)})
            for item in raw
            if "id" in item and item.get("name")
        ]
