"""Companion/AXIS - deadline reconciliation and duplicate review"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports so lightweight modules don't pull in the whole package
def __getattr__(name: str):
    if name in ("Deadline", "DeadlineCreate", "DeadlineUpdate", "Priority"):
        from companion.deadlines import models

        return getattr(models, name)

    if name in ("build_dedup_result", "generate_merge_suggestions"):
        from companion.deadlines import dedup

        return getattr(dedup, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "Deadline",
    "DeadlineCreate",
    "DeadlineUpdate",
    "Priority",
    "build_dedup_result",
    "generate_merge_suggestions",
]
