"""
Deadline API endpoints: listing, duplicate review, manual edits and bridge syncs.

Sync endpoints always answer 200 with the bridge result; per-course and
per-candidate failures are reported inside it, sanitized.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from companion.api.dependencies import (
    Clock,
    get_canvas_source,
    get_clock,
    get_current_user_id,
    get_deadline_store,
    get_github_source,
)
from companion.bridges.calendar_exam import CalendarEvent, CalendarExamBridge
from companion.bridges.canvas import CanvasData, CanvasDeadlineBridge, CanvasSource
from companion.bridges.github_readme import GitHubDeadlineBridge, RepositorySource
from companion.config import API_LIST_LIMIT_MAX
from companion.deadlines import (
    BridgeSyncResult,
    Deadline,
    DeadlineCreate,
    DeadlineDedupResult,
    DeadlineStore,
    DeadlineUpdate,
    GitHubSyncResult,
    MergeSuggestion,
    Priority,
    build_dedup_result,
    generate_merge_suggestions,
    is_assignment_or_exam_deadline,
)
from companion.deadlines.text import canonical_due_date
from companion.observability.logging import get_logger
from companion.utils.error_sanitizer import (
    get_safe_error_detail,
    sanitize_error_message,
    sanitize_sync_errors,
)

router = APIRouter(prefix="/api/deadlines", tags=["deadlines"])
logger = get_logger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================


class DeadlineListResponse(BaseModel):
    deadlines: list[Deadline]
    total: int


class ManualDeadlineRequest(BaseModel):
    """A deadline typed in by the user; never automation-managed."""

    course: str = Field(..., min_length=1, max_length=100)
    task: str = Field(..., min_length=1, max_length=300)
    due_date: str
    priority: Priority = Priority.MEDIUM
    completed: bool = False

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: str) -> str:
        canonical = canonical_due_date(v)
        if canonical is None:
            raise ValueError("due_date must be an ISO-8601 date-time")
        return canonical


class DeadlineEditRequest(BaseModel):
    """User edit; moving due_date away from the feed value takes ownership of it."""

    course: str | None = Field(None, min_length=1, max_length=100)
    task: str | None = Field(None, min_length=1, max_length=300)
    due_date: str | None = None
    priority: Priority | None = None
    completed: bool | None = None

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: str | None) -> str | None:
        if v is None:
            return None
        canonical = canonical_due_date(v)
        if canonical is None:
            raise ValueError("due_date must be an ISO-8601 date-time")
        return canonical


class CalendarSyncRequest(BaseModel):
    events: list[CalendarEvent] = Field(default_factory=list)


class GitHubSyncRequest(BaseModel):
    """Either timetable events (course codes are derived) or explicit course codes."""

    events: list[CalendarEvent] = Field(default_factory=list)
    course_codes: list[str] = Field(default_factory=list, max_length=50)

    @field_validator("course_codes")
    @classmethod
    def normalize_codes(cls, v: list[str]) -> list[str]:
        return sorted({code.strip().upper() for code in v if code.strip()})


class BridgeSyncResponse(BaseModel):
    bridge: str
    candidates: int
    created: int
    updated: int
    skipped: int
    errors: list[str]
    created_ids: list[str]
    updated_ids: list[str]

    @classmethod
    def from_result(cls, result: BridgeSyncResult) -> BridgeSyncResponse:
        return cls(
            bridge=result.bridge,
            candidates=result.candidates,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            errors=sanitize_sync_errors(result.errors),
            created_ids=[deadline.id for deadline in result.created_deadlines],
            updated_ids=[deadline.id for deadline in result.updated_deadlines],
        )


class GitHubSyncResponse(BridgeSyncResponse):
    course_codes: list[str]
    repositories_scanned: list[str]

    @classmethod
    def from_github_result(cls, result: GitHubSyncResult) -> GitHubSyncResponse:
        base = BridgeSyncResponse.from_result(result)
        return cls(
            **base.model_dump(),
            course_codes=result.course_codes,
            repositories_scanned=result.repositories_scanned,
        )


# ============================================================================
# Read endpoints
# ============================================================================


@router.get("", response_model=DeadlineListResponse)
def list_deadlines(
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
    include_completed: bool = Query(False),
    assignments_only: bool = Query(False, description="Only assignment/exam-like deadlines"),
    limit: int = Query(API_LIST_LIMIT_MAX, ge=1, le=API_LIST_LIMIT_MAX),
) -> DeadlineListResponse:
    """List deadlines ordered by due date (soonest first)."""
    try:
        deadlines = store.list_deadlines(user_id, include_completed=include_completed)
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="Failed to list deadlines")
        raise HTTPException(status_code=500, detail=detail) from None

    if assignments_only:
        deadlines = [d for d in deadlines if is_assignment_or_exam_deadline(d)]
    return DeadlineListResponse(deadlines=deadlines[:limit], total=len(deadlines))


@router.get("/duplicates", response_model=DeadlineDedupResult)
def get_duplicates(
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
    clock: Clock = Depends(get_clock),
) -> DeadlineDedupResult:
    """Duplicate groups with merge suggestions; computed on demand, never stored."""
    try:
        deadlines = store.list_deadlines(user_id, include_completed=True)
        return build_dedup_result(deadlines, generated_at=clock())
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="Failed to build duplicate review")
        raise HTTPException(status_code=500, detail=detail) from None


@router.get("/merge-suggestions", response_model=list[MergeSuggestion])
def get_merge_suggestions(
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
) -> list[MergeSuggestion]:
    try:
        return generate_merge_suggestions(store.list_deadlines(user_id, include_completed=True))
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="Failed to generate merge suggestions")
        raise HTTPException(status_code=500, detail=detail) from None


@router.get("/{deadline_id}", response_model=Deadline)
def get_deadline(
    deadline_id: str,
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
) -> Deadline:
    deadline = store.get_deadline(user_id, deadline_id)
    if deadline is None:
        raise HTTPException(status_code=404, detail="Deadline not found")
    return deadline


# ============================================================================
# Manual edits
# ============================================================================


@router.post("", response_model=Deadline, status_code=201)
def create_manual_deadline(
    request: ManualDeadlineRequest,
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
) -> Deadline:
    try:
        return store.create_deadline(
            user_id,
            DeadlineCreate(
                course=request.course,
                task=request.task,
                due_date=request.due_date,
                priority=request.priority,
                completed=request.completed,
            ),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="Failed to create deadline")
        raise HTTPException(status_code=500, detail=detail) from None


@router.patch("/{deadline_id}", response_model=Deadline)
def edit_deadline(
    deadline_id: str,
    request: DeadlineEditRequest,
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
) -> Deadline:
    try:
        updated = store.update_deadline(
            user_id, deadline_id, DeadlineUpdate(**request.model_dump(exclude_none=True))
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="Failed to update deadline")
        raise HTTPException(status_code=500, detail=detail) from None

    if updated is None:
        raise HTTPException(status_code=404, detail="Deadline not found")
    return updated


# ============================================================================
# Bridge syncs
# ============================================================================


@router.post("/sync/calendar-exams", response_model=BridgeSyncResponse)
def sync_calendar_exams(
    request: CalendarSyncRequest,
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
    clock: Clock = Depends(get_clock),
) -> BridgeSyncResponse:
    try:
        result = CalendarExamBridge(store, user_id).sync_exam_deadlines(request.events, clock())
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="Calendar exam sync failed")
        raise HTTPException(status_code=500, detail=detail) from None
    return BridgeSyncResponse.from_result(result)


@router.post("/sync/github", response_model=GitHubSyncResponse)
def sync_github(
    request: GitHubSyncRequest,
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
    source: RepositorySource = Depends(get_github_source),
    clock: Clock = Depends(get_clock),
) -> GitHubSyncResponse:
    bridge = GitHubDeadlineBridge(store, user_id, source)
    try:
        if request.course_codes:
            result = bridge.sync_courses(request.course_codes, clock())
        else:
            result = bridge.sync_github_deadlines(request.events, clock())
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="GitHub deadline sync failed")
        raise HTTPException(status_code=500, detail=detail) from None
    if result.errors:
        logger.info("GitHub sync for %s finished with %d course errors", user_id, len(result.errors))
    return GitHubSyncResponse.from_github_result(result)


@router.post("/sync/canvas", response_model=BridgeSyncResponse)
def sync_canvas(
    data: CanvasData,
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
    clock: Clock = Depends(get_clock),
) -> BridgeSyncResponse:
    """Reconcile a Canvas payload pushed by the client."""
    try:
        result = CanvasDeadlineBridge(store, user_id).sync_canvas_deadlines(data, clock())
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="Canvas deadline sync failed")
        raise HTTPException(status_code=500, detail=detail) from None
    return BridgeSyncResponse.from_result(result)


@router.post("/sync/canvas/fetch", response_model=BridgeSyncResponse)
def sync_canvas_from_api(
    user_id: str = Depends(get_current_user_id),
    store: DeadlineStore = Depends(get_deadline_store),
    source: CanvasSource = Depends(get_canvas_source),
    clock: Clock = Depends(get_clock),
) -> BridgeSyncResponse:
    """Fetch courses and assignments from Canvas with the server token, then reconcile."""
    try:
        result = CanvasDeadlineBridge(store, user_id).sync_from_client(source, clock())
    except Exception as e:
        detail = get_safe_error_detail(e, 500, context="Canvas deadline sync failed")
        raise HTTPException(status_code=500, detail=detail) from None
    if result.errors:
        logger.info("Canvas fetch for %s finished with %d errors", user_id, len(result.errors))
    return BridgeSyncResponse.from_result(result)
