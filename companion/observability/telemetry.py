"""
In-process instrumentation for deadline syncs and duplicate review.

Nothing leaves the process: events go to the log, counters and latencies
live in module dicts that tests read back and reset.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("companion.telemetry")

_COUNTERS: dict[str, int] = {}
_LATENCIES: dict[str, list[float]] = {}


def log_event(event_name: str, **fields: Any) -> None:
    """
    Emit one structured event line.

    Side Effects:
        - Writes to the companion.telemetry logger at info level
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Add to a named counter and return the new total.

    An increment of 0 reads the counter without changing it.

    Side Effects:
        - Updates _COUNTERS
        - Debug log with the new value
    """
    total = _COUNTERS.get(name, 0) + increment
    _COUNTERS[name] = total
    logger.debug("counter=%s value=%s", name, total)
    return total


def get_counter(name: str) -> int:
    return _COUNTERS.get(name, 0)


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Record the wall time of the enclosed block in seconds, even if it raises.

    Side Effects:
        - Appends to _LATENCIES[metric_name]
        - Debug log with the elapsed time
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        seconds = time.perf_counter() - started
        _LATENCIES.setdefault(metric_name, []).append(seconds)
        logger.debug("timing=%s seconds=%.6f", metric_name, seconds)


def get_latencies(metric_name: str) -> list[float]:
    return list(_LATENCIES.get(metric_name, []))


def reset_telemetry() -> None:
    """Forget all counters and latencies (test isolation)."""
    _COUNTERS.clear()
    _LATENCIES.clear()
