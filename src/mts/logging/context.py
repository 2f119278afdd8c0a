"""Request/attempt context for structured logging.

Uses contextvars so every log record emitted while a transcode attempt is
running (including from monitor worker threads, which run in a copy of
the caller's context) carries the request id and attempt number.
"""

from __future__ import annotations

import contextvars
import logging
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_attempt: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "attempt", default=None
)


def new_request_id() -> str:
    """Generate a short request identifier (8 hex characters)."""
    return uuid.uuid4().hex[:8]


@contextmanager
def attempt_context(
    request_id: str | None = None,
    attempt: int | None = None,
) -> Generator[None, None, None]:
    """Context manager binding request/attempt identifiers to log records.

    Values left as None keep whatever the enclosing context set, so an
    outer request_context can be refined per attempt.

    Args:
        request_id: Request identifier (e.g., "3fa85f64").
        attempt: 1-based attempt number.

    Yields:
        None

    Example:
        with attempt_context("3fa85f64", 2):
            logger.info("Starting ffmpeg")  # [R3fa85f64:A2] ...
    """
    request_token = _request_id.set(request_id) if request_id is not None else None
    attempt_token = _attempt.set(attempt) if attempt is not None else None
    try:
        yield
    finally:
        if attempt_token is not None:
            _attempt.reset(attempt_token)
        if request_token is not None:
            _request_id.reset(request_token)


def get_attempt_context() -> tuple[str | None, int | None]:
    """Get current (request_id, attempt), either may be None."""
    return _request_id.get(), _attempt.get()


class AttemptContextFilter(logging.Filter):
    """Logging filter that injects request/attempt context into records.

    Adds request_id and attempt attributes for JSON output and a compact
    attempt_tag like "[R3fa85f64:A2] " for text output.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        request_id, attempt = get_attempt_context()

        record.request_id = request_id
        record.attempt = attempt

        if request_id:
            if attempt is not None:
                record.attempt_tag = f"[R{request_id}:A{attempt}] "
            else:
                record.attempt_tag = f"[R{request_id}] "
        else:
            record.attempt_tag = ""

        return True  # Never filter out records
