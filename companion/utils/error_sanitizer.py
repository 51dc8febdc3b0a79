"""
Keep internals out of error strings returned to API clients.

Bridge results echo per-course and per-candidate errors back to the caller,
and those strings can carry whatever an integration or the database raised:
file paths, SQL, access tokens. Anything matching SENSITIVE_PATTERNS is
replaced by a generic message; the original is only ever logged.
"""

from __future__ import annotations

import re

from companion.observability.logging import get_logger

logger = get_logger(__name__)

SYNC_ERROR_PLACEHOLDER = "Sync step failed (details logged)."

# (kind, pattern); kind only goes to the log
SENSITIVE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (kind, re.compile(pattern, re.IGNORECASE))
    for kind, pattern in (
        ("path", r"/[^\s]+\.py"),
        ("path", r"[A-Za-z]:\\[^\s]+"),
        ("traceback", r"Traceback \(most recent call last\)"),
        ("traceback", r"File \".*\""),
        ("database", r"sqlite3?\."),
        ("database", r"UNIQUE constraint|no such (?:table|column)"),
        ("token", r"gh[pousr]_[A-Za-z0-9]{16,}"),
        ("token", r"github_pat_[A-Za-z0-9_]{16,}"),
        ("token", r"\b\d{4,5}~[A-Za-z0-9]{20,}"),
        ("token", r"Bearer [A-Za-z0-9._~-]+"),
        ("module", r"companion\.[a-z_.]+"),
    )
)

GENERIC_MESSAGES: dict[int, str] = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    403: "Access denied.",
    404: "Resource not found.",
    422: "Invalid data format.",
    429: "Too many requests. Please try again later.",
    500: "An internal error occurred. Please try again later.",
    502: "Course platform request failed.",
    503: "Service temporarily unavailable.",
}
_FALLBACK_MESSAGE = "An error occurred."

_MAX_CLIENT_MESSAGE_LEN = 100
_STRUCTURE_CHARS = frozenset("{}[]\n")


def _sensitive_kind(message: str) -> str | None:
    for kind, pattern in SENSITIVE_PATTERNS:
        if pattern.search(message):
            return kind
    return None


def contains_sensitive_data(message: str) -> bool:
    return _sensitive_kind(message) is not None


def _generic(status_code: int) -> str:
    return GENERIC_MESSAGES.get(status_code, _FALLBACK_MESSAGE)


def _is_plain_client_message(message: str) -> bool:
    return len(message) < _MAX_CLIENT_MESSAGE_LEN and not _STRUCTURE_CHARS.intersection(message)


def sanitize_error_message(
    message: str,
    status_code: int = 500,
    allow_field_names: bool = True,
) -> str:
    """
    Client-safe version of an error message.

    Short, unstructured 400 messages (e.g. "due_date must not be blank") pass
    through when allow_field_names is set; everything else collapses to the
    generic message for the status code.
    """
    if not message:
        return _generic(status_code)

    kind = _sensitive_kind(message)
    if kind is not None:
        logger.warning("Masked %s details in error message (status=%d)", kind, status_code)
        return _generic(status_code)

    if status_code == 400 and allow_field_names and _is_plain_client_message(message):
        return message
    return _generic(status_code)


def sanitize_sync_errors(errors: list[str]) -> list[str]:
    """Bridge result errors with sensitive entries replaced, order kept."""
    return [SYNC_ERROR_PLACEHOLDER if contains_sensitive_data(error) else error for error in errors]


def get_safe_error_detail(
    error: Exception,
    status_code: int = 500,
    context: str | None = None,
) -> str:
    """
    HTTP detail for an exception; server errors prefer the caller's context line.

    Side Effects:
        - Logs the unsanitized error at error level
    """
    logger.error("Request failed (status=%d): %s: %s", status_code, type(error).__name__, error)

    if context and status_code >= 500:
        return context
    return sanitize_error_message(str(error), status_code)
