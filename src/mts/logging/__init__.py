"""Structured logging for mts.

Provides configurable logging with JSON format support, file rotation and
request/attempt context tags.
"""

from mts.logging.config import configure_logging
from mts.logging.context import (
    AttemptContextFilter,
    attempt_context,
    get_attempt_context,
    new_request_id,
)
from mts.logging.handlers import JSONFormatter

__all__ = [
    "AttemptContextFilter",
    "JSONFormatter",
    "attempt_context",
    "configure_logging",
    "get_attempt_context",
    "new_request_id",
]
