"""Health check endpoint for the Companion API."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from companion.config import APP_VERSION, CANVAS_API_TOKEN, COURSE_GITHUB_PAT

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Service status, version, and which course platforms have credentials.

    Does not call GitHub or Canvas, only checks configuration presence.
    """
    return {
        "status": "healthy",
        "service": "Companion API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "integrations": {
            "github": bool(COURSE_GITHUB_PAT),
            "canvas": bool(CANVAS_API_TOKEN),
        },
    }
