"""FastAPI server for Companion deadline review and source sync"""

from __future__ import annotations

import os
import sqlite3
from typing import Any

from dotenv import load_dotenv

# .env must be loaded before companion.config reads os.environ
load_dotenv()

from fastapi import FastAPI, Request, status  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from companion.api.dependencies import get_deadline_store  # noqa: E402
from companion.api.routes.deadlines import router as deadlines_router  # noqa: E402
from companion.api.routes.health import router as health_router  # noqa: E402
from companion.config import (  # noqa: E402
    APP_ENV,
    APP_VERSION,
    SCHEDULED_SYNC_USER_ID,
    SCHEDULER_ENABLED,
)
from companion.infrastructure.database import get_database  # noqa: E402
from companion.infrastructure.database_schema import validate_schema  # noqa: E402
from companion.observability.logging import get_logger  # noqa: E402
from companion.observability.telemetry import counter, log_event  # noqa: E402
from companion.scheduling.scheduled_sync import (  # noqa: E402
    ScheduledSyncService,
    build_default_scheduler,
)

logger = get_logger(__name__)

app = FastAPI(title="Companion API", version=APP_VERSION)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Report which fields failed without echoing rules or submitted values.

    Side Effects:
        - Logs the full pydantic error list at warning level
        - Increments api.validation_errors counter
    """
    errors = exc.errors()
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, errors)
    counter("api.validation_errors")

    invalid_fields = [str(err["loc"][-1]) for err in errors]
    body = {
        "detail": "Request body did not validate.",
        "error_count": len(errors),
        "invalid_fields": invalid_fields,
    }
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body)


def _allowed_origins() -> list[str]:
    configured = os.getenv("COMPANION_ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in configured.split(",") if origin.strip()]
    if APP_ENV == "development":
        # local web client dev servers
        for port in (5173, 3000):
            origins += [f"http://localhost:{port}", f"http://127.0.0.1:{port}"]
    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-User-Id"],
)

app.include_router(health_router)
app.include_router(deadlines_router)

_scheduler: ScheduledSyncService | None = None


@app.on_event("startup")
async def startup() -> None:
    """Validate the database schema and start scheduled syncs if enabled.

    Side Effects:
        - Opens the deadline database (creates schema on first run)
        - May start daemon threads for scheduled bridge syncs
        - Raises RuntimeError if the schema is broken (fail fast)
    """
    global _scheduler

    try:
        with get_database().connection() as conn:
            validate_schema(conn)
    except (ValueError, sqlite3.Error) as e:
        logger.critical("Deadline store at startup is unusable: %s", e)
        raise RuntimeError(f"Deadline store schema check failed: {e}") from e
    logger.info("Deadline store schema OK")

    if SCHEDULER_ENABLED:
        _scheduler = build_default_scheduler(get_deadline_store(), SCHEDULED_SYNC_USER_ID)
        _scheduler.start()

    log_event("api.startup", service="companion", version=APP_VERSION, env=APP_ENV)


@app.on_event("shutdown")
async def shutdown() -> None:
    if _scheduler is not None:
        _scheduler.stop()


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "Companion API",
        "version": APP_VERSION,
        "endpoints": {
            "deadlines": "/api/deadlines",
            "duplicates": "/api/deadlines/duplicates",
            "merge_suggestions": "/api/deadlines/merge-suggestions",
            "sync": "/api/deadlines/sync/{calendar-exams,github,canvas}",
        },
    }


@app.get("/api/sync/status")
def sync_status() -> dict[str, Any]:
    if _scheduler is None:
        return {"enabled": False, "jobs": {}}
    return {"enabled": True, "jobs": _scheduler.get_status()}


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "companion.api.app:app",
        host=os.getenv("COMPANION_HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
