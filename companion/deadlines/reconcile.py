"""
Reconcile externally sourced deadline candidates against the entity store.

One algorithm shared by every bridge; bridges differ only in how they
extract candidates and in which records they consider their own.

Per candidate, against a snapshot taken once at the start of the run:
1. Exact match owned by this bridge (same course+task, same source due date)
   → no-op unless the bridge re-derives priority or the spelling changed
2. Same course+task owned by this bridge, source due date changed
   → update source_due_date; move due_date too only if the user never
     edited it away from the previous source value
3. Same course+task not owned by this bridge (manual, or another bridge's)
   → skip, never overwrite or shadow it
4. No match → create with source_due_date = due_date

Records created or updated during the run replace their snapshot entries,
so later candidates in the same run see them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from companion.deadlines.models import Deadline, DeadlineCreate, DeadlineUpdate
from companion.deadlines.repository import DeadlineStore
from companion.deadlines.text import as_utc, deadline_key, parse_due_date
from companion.deadlines.types import BridgeSyncResult, DeadlineCandidate
from companion.observability.logging import get_logger
from companion.observability.telemetry import counter

logger = get_logger(__name__)

Outcome = Literal["created", "updated", "skipped"]
OwnershipPredicate = Callable[[Deadline], bool]


@dataclass(frozen=True)
class ReconcilePolicy:
    """How one bridge reconciles: its name, what it owns, how it names new records."""

    bridge: str
    owns: OwnershipPredicate
    rederive_priority: bool = True
    id_factory: Callable[[DeadlineCandidate], str] | None = None


def same_instant(left: str | None, right: str | None) -> bool:
    """Compare due dates as instants; fall back to string equality if unparseable."""
    left_parsed = parse_due_date(left)
    right_parsed = parse_due_date(right)
    if left_parsed is None or right_parsed is None:
        return left == right
    return left_parsed == right_parsed


def is_future_candidate(candidate: DeadlineCandidate, now: datetime) -> bool:
    due = parse_due_date(candidate.due_date)
    return due is not None and due > as_utc(now)


def _matching_deadlines(
    snapshot: list[Deadline], candidate: DeadlineCandidate
) -> list[Deadline]:
    if candidate.canvas_assignment_id is not None:
        linked = [d for d in snapshot if d.canvas_assignment_id == candidate.canvas_assignment_id]
        if linked:
            return linked

    key = deadline_key(candidate.course, candidate.task)
    return [d for d in snapshot if deadline_key(d.course, d.task) == key]


def _replace_in_snapshot(snapshot: list[Deadline], updated: Deadline) -> None:
    for index, deadline in enumerate(snapshot):
        if deadline.id == updated.id:
            snapshot[index] = updated
            return


class _Reconciler:
    def __init__(
        self,
        store: DeadlineStore,
        user_id: str,
        policy: ReconcilePolicy,
        snapshot: list[Deadline],
        result: BridgeSyncResult,
    ):
        self.store = store
        self.user_id = user_id
        self.policy = policy
        self.snapshot = snapshot
        self.result = result

    def _apply_update(self, existing: Deadline, changes: dict[str, object]) -> Outcome:
        pending = {
            name: value for name, value in changes.items() if getattr(existing, name) != value
        }
        if not pending:
            return "skipped"

        updated = self.store.update_deadline(
            self.user_id, existing.id, DeadlineUpdate.model_validate(pending)
        )
        if updated is None:
            # Deleted between snapshot and write
            return "skipped"

        _replace_in_snapshot(self.snapshot, updated)
        self.result.updated_deadlines.append(updated)
        return "updated"

    def reconcile(self, candidate: DeadlineCandidate) -> Outcome:
        owns = self.policy.owns
        matches = _matching_deadlines(self.snapshot, candidate)

        exact = next(
            (
                d
                for d in matches
                if d.is_managed
                and owns(d)
                and same_instant(d.source_due_date, candidate.source_due_date)
            ),
            None,
        )
        if exact is not None:
            changes: dict[str, object] = {"course": candidate.course, "task": candidate.task}
            if self.policy.rederive_priority:
                changes["priority"] = candidate.priority
            return self._apply_update(exact, changes)

        managed = next((d for d in matches if d.is_managed and owns(d)), None)
        if managed is not None:
            user_overrode = not same_instant(managed.due_date, managed.source_due_date)
            source_changed = not same_instant(managed.source_due_date, candidate.source_due_date)
            next_due = (
                candidate.due_date if source_changed and not user_overrode else managed.due_date
            )

            changes = {
                "course": candidate.course,
                "task": candidate.task,
                "due_date": next_due,
                "source_due_date": candidate.source_due_date,
            }
            if self.policy.rederive_priority:
                changes["priority"] = candidate.priority
            if user_overrode:
                logger.info(
                    "Keeping user due date for %s (%s); tracking new source date %s",
                    managed.id,
                    self.policy.bridge,
                    candidate.source_due_date,
                )
            return self._apply_update(managed, changes)

        if matches:
            # Manual record (or another bridge's) already covers this course+task
            return "skipped"

        created = self.store.create_deadline(
            self.user_id,
            DeadlineCreate(
                id=self.policy.id_factory(candidate) if self.policy.id_factory else None,
                course=candidate.course,
                task=candidate.task,
                due_date=candidate.due_date,
                source_due_date=candidate.source_due_date,
                priority=candidate.priority,
                completed=False,
                canvas_assignment_id=candidate.canvas_assignment_id,
            ),
        )
        self.snapshot.append(created)
        self.result.created_deadlines.append(created)
        return "created"


def reconcile_candidates(
    store: DeadlineStore,
    user_id: str,
    candidates: list[DeadlineCandidate],
    now: datetime,
    policy: ReconcilePolicy,
) -> BridgeSyncResult:
    """
    Apply candidates to the store for one user.

    Past-dated or unparseable candidates are dropped before matching. Business
    outcomes are counted, never raised; an unexpected exception for one
    candidate is recorded in errors and the run continues.

    Side Effects:
        - Creates/updates deadlines through the store
        - Increments deadline_bridge.<bridge>.* telemetry counters
    """
    result = BridgeSyncResult(bridge=policy.bridge)
    future = [candidate for candidate in candidates if is_future_candidate(candidate, now)]
    result.candidates = len(future)
    if not future:
        return result

    snapshot = store.list_deadlines(user_id, include_completed=True)
    reconciler = _Reconciler(store, user_id, policy, snapshot, result)

    for candidate in future:
        try:
            outcome = reconciler.reconcile(candidate)
        except Exception as e:
            logger.warning(
                "Failed to reconcile %s candidate %s / %s: %s",
                policy.bridge,
                candidate.course,
                candidate.task,
                e,
            )
            result.errors.append(f"{candidate.course} {candidate.task}: {e}")
            continue

        if outcome == "created":
            result.created += 1
        elif outcome == "updated":
            result.updated += 1
        else:
            result.skipped += 1

    counter(f"deadline_bridge.{policy.bridge}.created", result.created)
    counter(f"deadline_bridge.{policy.bridge}.updated", result.updated)
    counter(f"deadline_bridge.{policy.bridge}.skipped", result.skipped)
    return result
