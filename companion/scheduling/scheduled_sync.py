"""
Scheduled sync service: runs bridge jobs periodically, never overlapping.

Each job gets its own daemon timer thread. A job that is still running when
its next tick (or a manual trigger) arrives is not started a second time.
Job failures are logged and recorded in the status, never propagated.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from companion.bridges.canvas import CanvasDeadlineBridge
from companion.bridges.github_readme import GitHubDeadlineBridge
from companion.config import (
    CANVAS_API_TOKEN,
    CANVAS_SYNC_INTERVAL_SECONDS,
    COURSE_GITHUB_PAT,
    GITHUB_SYNC_INTERVAL_SECONDS,
    SCHEDULED_COURSE_CODES,
)
from companion.deadlines.repository import DeadlineStore
from companion.integrations.canvas_client import CanvasClient
from companion.integrations.github_client import GitHubClient
from companion.observability.logging import get_logger
from companion.observability.telemetry import counter, log_event

logger = get_logger(__name__)

SyncFunction = Callable[[datetime], Any]

STOP_JOIN_TIMEOUT_SECONDS = 2.0


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class SyncJob:
    name: str
    interval_seconds: float
    run: SyncFunction
    last_run: datetime | None = None
    last_error: str | None = None
    runs: int = 0


class ScheduledSyncService:
    """Named periodic jobs with an in-flight guard per job."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self._jobs: dict[str, SyncJob] = {}
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._timers: list[threading.Thread] = []

    def register(self, name: str, interval_seconds: float, run: SyncFunction) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval for {name} must be positive")
        with self._lock:
            self._jobs[name] = SyncJob(name=name, interval_seconds=interval_seconds, run=run)

    @property
    def job_names(self) -> list[str]:
        return sorted(self._jobs)

    def _claim(self, name: str) -> SyncJob | None:
        with self._lock:
            job = self._jobs.get(name)
            if job is None:
                raise KeyError(f"Unknown sync job: {name}")
            if name in self._in_flight:
                return None
            self._in_flight.add(name)
            return job

    def _execute(self, job: SyncJob) -> None:
        now = self.clock()
        error: str | None = None
        try:
            logger.info("Starting scheduled sync %s", job.name)
            job.run(now)
            log_event("scheduled_sync.completed", job=job.name)
        except Exception as e:
            error = str(e)
            counter(f"scheduled_sync.{job.name}.failed")
            logger.error("Scheduled sync %s failed: %s", job.name, e)
        finally:
            with self._lock:
                job.last_run = now
                job.last_error = error
                job.runs += 1
                self._in_flight.discard(job.name)

    def run_job(self, name: str) -> bool:
        """Run a job on the calling thread; False if it is already running."""
        job = self._claim(name)
        if job is None:
            logger.info("Sync %s already in flight, skipping", name)
            return False
        self._execute(job)
        return True

    def trigger(self, name: str) -> bool:
        """
        Start a job on a daemon thread; False if it is already running.

        Side Effects:
            - Spawns a daemon thread running the job
        """
        job = self._claim(name)
        if job is None:
            logger.info("Sync %s already in flight, skipping", name)
            return False
        thread = threading.Thread(
            target=self._execute, args=(job,), name=f"sync-{name}", daemon=True
        )
        thread.start()
        return True

    def _timer_loop(self, name: str, interval_seconds: float) -> None:
        while not self._stop.is_set():
            self.trigger(name)
            if self._stop.wait(interval_seconds):
                break

    def start(self) -> None:
        """Run every job now, then on its interval, until stop()."""
        self._stop.clear()
        for job in list(self._jobs.values()):
            timer = threading.Thread(
                target=self._timer_loop,
                args=(job.name, job.interval_seconds),
                name=f"sync-timer-{job.name}",
                daemon=True,
            )
            timer.start()
            self._timers.append(timer)
        logger.info("Scheduled sync started with jobs: %s", ", ".join(self.job_names) or "none")

    def stop(self, timeout: float = STOP_JOIN_TIMEOUT_SECONDS) -> None:
        """
        Signal the timer threads and wait briefly for each to exit.

        A job already running finishes on its own thread; stop() does not wait for it.
        """
        self._stop.set()
        timers, self._timers = self._timers, []
        for timer in timers:
            if timer is threading.current_thread():
                continue
            timer.join(timeout)
            if timer.is_alive():
                logger.warning("Timer thread %s did not exit within %.1fs", timer.name, timeout)

    def get_status(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {
                name: {
                    "interval_seconds": job.interval_seconds,
                    "last_run": job.last_run.isoformat() if job.last_run else None,
                    "last_error": job.last_error,
                    "runs": job.runs,
                    "running": name in self._in_flight,
                }
                for name, job in sorted(self._jobs.items())
            }


def build_default_scheduler(
    store: DeadlineStore,
    user_id: str,
    clock: Callable[[], datetime] = utc_now,
) -> ScheduledSyncService:
    """
    Scheduler with the bridge jobs that have credentials configured.

    Canvas runs when CANVAS_API_TOKEN is set; the GitHub README sync runs when
    COURSE_GITHUB_PAT and COMPANION_COURSE_CODES are set.
    """
    service = ScheduledSyncService(clock=clock)

    if CANVAS_API_TOKEN:
        canvas_bridge = CanvasDeadlineBridge(store, user_id)
        canvas_client = CanvasClient()
        service.register(
            "canvas",
            CANVAS_SYNC_INTERVAL_SECONDS,
            lambda now: canvas_bridge.sync_from_client(canvas_client, now),
        )
    else:
        logger.info("CANVAS_API_TOKEN not set - scheduled Canvas sync disabled")

    if COURSE_GITHUB_PAT and SCHEDULED_COURSE_CODES:
        github_bridge = GitHubDeadlineBridge(store, user_id, GitHubClient())
        service.register(
            "github",
            GITHUB_SYNC_INTERVAL_SECONDS,
            lambda now: github_bridge.sync_courses(SCHEDULED_COURSE_CODES, now),
        )
    else:
        logger.info("GitHub token or course codes not set - scheduled GitHub sync disabled")

    return service
