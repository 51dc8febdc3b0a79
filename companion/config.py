"""Centralized configuration for the Companion backend.

Typed constants for the dedup engine, bridges, database, integrations and
scheduling. Environment variable overrides use safe defaults so the app
starts without extra env configuration.
"""

from __future__ import annotations

import os

# --- App ---
APP_VERSION: str = "1.0.0"
APP_ENV: str = os.getenv("COMPANION_ENV", "development")

# --- Database ---
DB_PATH: str = os.getenv("COMPANION_DB_PATH", "")
DB_CONNECT_TIMEOUT: float = float(os.getenv("COMPANION_DB_CONNECT_TIMEOUT", "30.0"))
DB_RETRY_MAX: int = int(os.getenv("COMPANION_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("COMPANION_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("COMPANION_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("COMPANION_DB_RETRY_JITTER", "0.1"))

# --- Duplicate detection ---
DEDUP_DUE_WINDOW_DAYS: float = 2.0
DEDUP_TASK_WEIGHT: float = 0.7
DEDUP_DUE_WEIGHT: float = 0.3
DEDUP_MIN_TASK_SCORE: float = 0.45
DEDUP_MIN_SCORE: float = 0.58
DEDUP_SUBSTRING_SCORE: float = 0.9
DEDUP_SUBSTRING_MIN_LEN: int = 8
DEDUP_HIGH_CONFIDENCE: float = 0.8
DEDUP_SAME_DAY_DAYS: float = 0.25

# --- Bridges ---
PRIORITY_CRITICAL_HOURS: float = 24.0
PRIORITY_HIGH_HOURS: float = 96.0
README_DEFAULT_DUE_HOUR: int = 23
README_DEFAULT_DUE_MINUTE: int = 59

# --- GitHub ---
GITHUB_API_URL: str = os.getenv("COMPANION_GITHUB_API_URL", "https://api.github.com")
COURSE_GITHUB_PAT: str = os.getenv("COURSE_GITHUB_PAT", "")
GITHUB_TIMEOUT_SECONDS: float = float(os.getenv("COMPANION_GITHUB_TIMEOUT", "15"))
GITHUB_SEARCH_LIMIT: int = 10

# --- Canvas ---
CANVAS_BASE_URL: str = os.getenv("CANVAS_BASE_URL", "https://stavanger.instructure.com")
CANVAS_API_TOKEN: str = os.getenv("CANVAS_API_TOKEN", "")
CANVAS_TIMEOUT_SECONDS: float = float(os.getenv("COMPANION_CANVAS_TIMEOUT", "15"))

# --- Integration retries ---
INTEGRATION_MAX_RETRIES: int = int(os.getenv("COMPANION_INTEGRATION_MAX_RETRIES", "3"))
INTEGRATION_RETRY_BASE_DELAY: float = float(os.getenv("COMPANION_INTEGRATION_RETRY_DELAY", "0.5"))
INTEGRATION_RETRY_MAX_DELAY: float = 8.0

# --- Scheduled sync ---
CANVAS_SYNC_INTERVAL_SECONDS: int = int(os.getenv("COMPANION_CANVAS_SYNC_INTERVAL", str(30 * 60)))
GITHUB_SYNC_INTERVAL_SECONDS: int = int(
    os.getenv("COMPANION_GITHUB_SYNC_INTERVAL", str(24 * 60 * 60))
)
SCHEDULER_ENABLED: bool = os.getenv("COMPANION_SCHEDULER_ENABLED", "false").lower() == "true"
SCHEDULED_SYNC_USER_ID: str = os.getenv("COMPANION_SYNC_USER_ID", "default")
# Comma-separated course codes for the scheduled GitHub README sync, e.g. "DAT560,DAT520"
SCHEDULED_COURSE_CODES: list[str] = [
    code.strip().upper()
    for code in os.getenv("COMPANION_COURSE_CODES", "").split(",")
    if code.strip()
]

# --- API ---
API_LIST_LIMIT_MAX: int = 500
