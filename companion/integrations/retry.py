"""
Failure policy for course platform calls: IntegrationError, retries, circuit breaker.

A failure is transient when it never reached a response (connection error,
timeout) or the platform answered 429 or 5xx. Transient failures are retried
with capped exponential backoff; anything else surfaces immediately. Each
client owns one CircuitBreaker so a platform that keeps failing stops being
called for a while.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from companion.config import (
    INTEGRATION_MAX_RETRIES,
    INTEGRATION_RETRY_BASE_DELAY,
    INTEGRATION_RETRY_MAX_DELAY,
)
from companion.observability.telemetry import counter, log_event

T = TypeVar("T")

CIRCUIT_CLOSED = "closed"
CIRCUIT_OPEN = "open"
CIRCUIT_HALF_OPEN = "half_open"


class IntegrationError(RuntimeError):
    """A GitHub or Canvas call failed; status_code is None when no response arrived."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def transient(self) -> bool:
        code = self.status_code
        return code is None or code == 429 or 500 <= code < 600


@dataclass
class RetryPolicy:
    stage: str
    max_attempts: int = INTEGRATION_MAX_RETRIES
    base_delay: float = INTEGRATION_RETRY_BASE_DELAY
    max_delay: float = INTEGRATION_RETRY_MAX_DELAY
    jitter: float = 0.1
    sleep_fn: Callable[[float], None] | None = time.sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff after the given (1-based) failed attempt."""
        capped = min(self.base_delay * 2 ** (attempt - 1), self.max_delay)
        return capped + random.uniform(0, self.jitter)

    def execute(self, func: Callable[..., T], *args, **kwargs) -> T:
        """
        Call func until it succeeds, fails permanently, or attempts run out.

        Raises:
            IntegrationError: the last failure

        Side Effects:
            - Sleeps between attempts via sleep_fn
            - Increments integration.retry_count per retry
        """
        attempts = max(1, self.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except IntegrationError as e:
                if not e.transient or attempt == attempts:
                    log_event(
                        "integration.request_failed",
                        stage=self.stage,
                        status=e.status_code,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise

                delay = self.delay_for(attempt)
                counter("integration.retry_count")
                log_event(
                    "integration.retry", stage=self.stage, attempt=attempt, delay=round(delay, 3)
                )
                if self.sleep_fn is not None:
                    self.sleep_fn(delay)

        raise AssertionError("unreachable")


@dataclass
class CircuitBreaker:
    """
    Consecutive-failure breaker.

    Opens after fail_max failures in a row. Once reset_timeout has passed, the
    next allow_request() moves it to half-open and lets one call through; its
    outcome closes or re-opens the circuit.
    """

    stage: str
    fail_max: int = 5
    reset_timeout: float = 60.0
    clock: Callable[[], float] = time.monotonic
    _consecutive_failures: int = field(default=0, init=False)
    _state: str = field(default=CIRCUIT_CLOSED, init=False)
    _opened_at: float = field(default=0.0, init=False)

    @property
    def state(self) -> str:
        return self._state

    def allow_request(self) -> bool:
        if self._state != CIRCUIT_OPEN:
            return True

        if self.clock() - self._opened_at < self.reset_timeout:
            counter("integration.circuit_rejected")
            return False

        self._state = CIRCUIT_HALF_OPEN
        self._consecutive_failures = 0
        log_event("integration.circuit_half_open", stage=self.stage)
        return True

    def record_success(self) -> None:
        if self._state != CIRCUIT_CLOSED:
            log_event("integration.circuit_closed", stage=self.stage)
        self._state = CIRCUIT_CLOSED
        self._consecutive_failures = 0

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._state == CIRCUIT_HALF_OPEN or self._consecutive_failures >= self.fail_max:
            self._state = CIRCUIT_OPEN
            self._opened_at = self.clock()
            counter("integration.circuit_opened")
            log_event(
                "integration.circuit_opened",
                stage=self.stage,
                failures=self._consecutive_failures,
            )
