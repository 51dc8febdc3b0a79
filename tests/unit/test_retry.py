"""Tests for integration retry policy and circuit breaker."""

from __future__ import annotations

import pytest

from companion.integrations.retry import CircuitBreaker, IntegrationError, RetryPolicy
from companion.observability.telemetry import get_counter


def _policy(sleeps: list[float], max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(
        stage="github",
        max_attempts=max_attempts,
        base_delay=0.5,
        max_delay=8.0,
        jitter=0.0,
        sleep_fn=sleeps.append,
    )


class Flaky:
    def __init__(self, failures: list[IntegrationError], value: str = "ok"):
        self.failures = list(failures)
        self.value = value
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.value


class TestRetryPolicy:
    def test_retries_transient_errors_with_backoff(self):
        sleeps: list[float] = []
        func = Flaky([IntegrationError("timeout"), IntegrationError("busy", status_code=503)])

        assert _policy(sleeps).execute(func) == "ok"
        assert func.calls == 3
        assert sleeps == [0.5, 1.0]
        assert get_counter("integration.retry_count") == 2

    def test_rate_limit_is_retried(self):
        sleeps: list[float] = []
        func = Flaky([IntegrationError("slow down", status_code=429)])

        assert _policy(sleeps).execute(func) == "ok"
        assert func.calls == 2

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_fail_immediately(self, status):
        sleeps: list[float] = []
        func = Flaky([IntegrationError("nope", status_code=status)])

        with pytest.raises(IntegrationError) as excinfo:
            _policy(sleeps).execute(func)

        assert excinfo.value.status_code == status
        assert func.calls == 1
        assert sleeps == []

    def test_gives_up_after_max_attempts(self):
        sleeps: list[float] = []
        func = Flaky([IntegrationError("down", status_code=502)] * 5)

        with pytest.raises(IntegrationError, match="down"):
            _policy(sleeps, max_attempts=2).execute(func)

        assert func.calls == 2
        assert len(sleeps) == 1

    def test_delay_is_capped(self):
        sleeps: list[float] = []
        policy = RetryPolicy(
            stage="canvas", max_attempts=6, base_delay=1.0, max_delay=3.0, jitter=0.0,
            sleep_fn=sleeps.append,
        )
        func = Flaky([IntegrationError("down")] * 5)

        policy.execute(func)

        assert sleeps == [1.0, 2.0, 3.0, 3.0, 3.0]


class TestCircuitBreaker:
    def test_opens_after_fail_max_and_half_opens_after_timeout(self):
        now = [0.0]
        breaker = CircuitBreaker(stage="github", fail_max=2, reset_timeout=60.0, clock=lambda: now[0])

        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()

        assert breaker.state == "open"
        assert not breaker.allow_request()

        now[0] = 61.0
        assert breaker.allow_request()
        assert breaker.state == "half_open"

        breaker.record_success()
        assert breaker.state == "closed"

    def test_success_resets_failure_count(self):
        breaker = CircuitBreaker(stage="canvas", fail_max=2)

        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()

        assert breaker.state == "closed"
