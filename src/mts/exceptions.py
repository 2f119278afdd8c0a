"""Exception hierarchy and recoverability classification for mts.

All mts exceptions inherit from MTSError for easy catching. Whether a
failure is worth retrying is decided by is_recoverable(), which looks at an
explicit ``recoverable`` flag first and falls back to matching the error
text against known transport and input-problem patterns.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Retry classification of a failed attempt."""

    RECOVERABLE = "recoverable"
    NON_RECOVERABLE = "non_recoverable"


class MTSError(Exception):
    """Base exception for all mts errors.

    Attributes:
        message: Human-readable error message.
        recoverable: Explicit retry classification. None defers to message
            pattern matching in is_recoverable().
    """

    def __init__(self, message: str, *, recoverable: bool | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


# =============================================================================
# Health check errors
# =============================================================================


class HealthCheckError(MTSError):
    """Stream manifest probe failed."""

    def __init__(
        self, message: str, *, url: str = "", recoverable: bool | None = None
    ) -> None:
        super().__init__(message, recoverable=recoverable)
        self.url = url


class StreamUnreachableError(HealthCheckError):
    """Transport-level failure reaching the manifest URL."""


class StreamBadStatusError(HealthCheckError):
    """Manifest URL answered with a non-success HTTP status."""

    def __init__(self, message: str, *, url: str = "", status_code: int = 0) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code


class StreamBadFormatError(HealthCheckError):
    """Manifest body does not start with the HLS marker."""


# =============================================================================
# Process monitor errors
# =============================================================================


class MonitorError(MTSError):
    """Supervised engine process ended unsuccessfully."""


class StallTimeoutError(MonitorError):
    """No progress observed within the stall threshold."""

    def __init__(self, message: str, *, threshold_seconds: float) -> None:
        super().__init__(message)
        self.threshold_seconds = threshold_seconds


class ConnectionFailedError(MonitorError):
    """Engine reported a connection problem, or never attempted to connect.

    Always recoverable, whatever engine or health-probe text the message
    carries.
    """

    def __init__(self, message: str, *, recoverable: bool = True) -> None:
        super().__init__(message, recoverable=recoverable)


class StreamDisconnectedError(MonitorError):
    """Engine reported the input stream dropping mid-run. Always recoverable."""

    def __init__(self, message: str, *, recoverable: bool = True) -> None:
        super().__init__(message, recoverable=recoverable)


class ExecutionFailedError(MonitorError):
    """Engine exited with an error status and no more specific signal."""

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        recoverable: bool | None = None,
    ) -> None:
        super().__init__(message, recoverable=recoverable)
        self.returncode = returncode


# =============================================================================
# Orchestration errors
# =============================================================================


class TranscodeCancelledError(MTSError):
    """The request was cancelled (signal or caller). Never retried."""

    def __init__(self, message: str = "transcode cancelled") -> None:
        super().__init__(message, recoverable=False)


class RetryError(MTSError):
    """A guarded operation did not succeed within the retry policy.

    Attributes:
        description: Name of the guarded operation (used in the message).
        attempts: Number of times the operation was invoked.
        last_error: The final underlying failure.
        exhausted: True if all attempts were used, False if a
            non-recoverable failure stopped the loop early.
    """

    def __init__(
        self,
        description: str,
        *,
        attempts: int,
        last_error: BaseException | None,
        exhausted: bool,
    ) -> None:
        noun = "attempt" if attempts == 1 else "attempts"
        super().__init__(
            f"{description} failed after {attempts} {noun}, last error: {last_error}",
            recoverable=False,
        )
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        self.exhausted = exhausted


class EngineNotFoundError(MTSError):
    """The transcoding engine executable could not be found."""

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=False)


class ConcatenationError(MTSError):
    """Joining recorded segments into the final output failed."""


# =============================================================================
# Classification
# =============================================================================

# Checked first: any match means the failure is worth another attempt
RECOVERABLE_PATTERNS: tuple[str, ...] = (
    "connection",
    "network",
    "timeout",
    "unreachable",
    "refused",
    "reset",
    "broken pipe",
    "i/o timeout",
    "no route to host",
    "temporary failure",
    "server misbehaving",
    "http2: server sent goaway",
    "eof",
)

# Structural/input problems: retrying cannot help
NON_RECOVERABLE_PATTERNS: tuple[str, ...] = (
    "file not found",
    "no such file",
    "permission denied",
    "invalid argument",
    "malformed",
    "unsupported",
    "codec not found",
    "invalid data",
)


def is_recoverable(error: BaseException | None) -> bool:
    """Decide whether a failure should schedule another attempt.

    Args:
        error: The failure, or None when there was no failure.

    Returns:
        False for None (nothing to retry). Otherwise the error's explicit
        ``recoverable`` flag when set, else a match against
        RECOVERABLE_PATTERNS (True), then NON_RECOVERABLE_PATTERNS (False).
        Unmatched errors default to True.
    """
    if error is None:
        return False

    explicit = getattr(error, "recoverable", None)
    if isinstance(explicit, bool):
        return explicit

    text = str(error).casefold()
    if any(pattern in text for pattern in RECOVERABLE_PATTERNS):
        return True
    if any(pattern in text for pattern in NON_RECOVERABLE_PATTERNS):
        return False
    return True


def classify_error(error: BaseException | None) -> ErrorKind | None:
    """Map a failure onto ErrorKind, or None when there was no failure."""
    if error is None:
        return None
    if is_recoverable(error):
        return ErrorKind.RECOVERABLE
    return ErrorKind.NON_RECOVERABLE
