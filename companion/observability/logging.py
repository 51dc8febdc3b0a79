"""
Process-wide log setup.

Every module asks for its logger through get_logger(); the first call hangs
one stream handler off the root logger so bridge, scheduler and API output
share a format. COMPANION_LOG_LEVEL is re-read on each call so tests can
raise verbosity with monkeypatch.setenv.
"""

from __future__ import annotations

import logging
import os
from typing import Final

LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT: Final[str] = "%Y-%m-%dT%H:%M:%S"

_root_handler: logging.Handler | None = None


def _level_from_env() -> int:
    name = os.getenv("COMPANION_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    global _root_handler

    level = _level_from_env()
    root = logging.getLogger()
    if _root_handler is None:
        _root_handler = logging.StreamHandler()
        _root_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        root.addHandler(_root_handler)
    root.setLevel(level)

    module_logger = logging.getLogger(name)
    module_logger.setLevel(level)
    return module_logger
