"""Centralized exit codes for all CLI commands.

Exit code ranges:
    0: Success
    1-9: General errors
    10-19: Validation errors (config, profile, input)
    30-39: Tool/dependency errors
    40-49: Operation errors
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for mts CLI commands."""

    # Success (0)
    SUCCESS = 0

    # General errors (1-9)
    GENERAL_ERROR = 1
    INTERRUPTED = 2  # SIGINT/SIGTERM

    # Validation errors (10-19)
    CONFIG_ERROR = 11
    PROFILE_NOT_FOUND = 12
    INVALID_INPUT = 13

    # Tool/dependency errors (30-39)
    TOOL_NOT_AVAILABLE = 30

    # Operation errors (40-49)
    OPERATION_FAILED = 40
    STREAM_UNHEALTHY = 41
    RETRIES_EXHAUSTED = 42
