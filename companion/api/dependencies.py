"""
Injectable collaborators for the API routes.

Tests replace any of these through app.dependency_overrides.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import UTC, datetime
from functools import lru_cache

from fastapi import Header, HTTPException, status

from companion.deadlines.repository import DeadlineStore, SQLiteDeadlineRepository
from companion.infrastructure.database import get_database
from companion.integrations.canvas_client import CanvasClient
from companion.integrations.github_client import GitHubClient

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@lru_cache(maxsize=1)
def get_deadline_store() -> DeadlineStore:
    return SQLiteDeadlineRepository(get_database())


def get_current_user_id(x_user_id: str | None = Header(None)) -> str:
    """
    Resolve the user whose deadlines a request reads or writes.

    Single-user deployments (AUTH_REQUIRED unset or false) share the
    "default" user. Behind an auth proxy the X-User-Id header names the user.

    Raises:
        HTTPException: 401 if AUTH_REQUIRED=true and the header is missing
    """
    if os.getenv("AUTH_REQUIRED", "false").lower() != "true":
        return "default"

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    return user_id


def get_clock() -> Clock:
    return utc_now


def get_github_source() -> GitHubClient:
    return GitHubClient()


def get_canvas_source() -> CanvasClient:
    return CanvasClient()
