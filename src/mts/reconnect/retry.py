"""Generic retry with exponential backoff.

retry_with_backoff() is the only retry loop in mts. Health probes and
engine executions both run through it, differing only in the operation
they pass in.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from mts.core.cancellation import CancellationToken
from mts.exceptions import (
    ErrorKind,
    RetryError,
    TranscodeCancelledError,
    is_recoverable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits and backoff timing.

    max_retries counts retries, so an operation is invoked at most
    max_retries + 1 times.
    """

    max_retries: int = 5
    initial_delay: float = 2.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    health_check_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= "
                f"initial_delay ({self.initial_delay})"
            )
        if self.backoff_factor <= 1:
            raise ValueError(f"backoff_factor must be > 1, got {self.backoff_factor}")
        if self.health_check_timeout <= 0:
            raise ValueError(
                "health_check_timeout must be positive, "
                f"got {self.health_check_timeout}"
            )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


def compute_backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Compute the wait before a retried attempt.

    Args:
        attempt: 0-based attempt index. Attempt 0 never waits.
        policy: Retry policy.

    Returns:
        min(initial_delay * backoff_factor ** (attempt - 1), max_delay).

    Example:
        >>> policy = RetryPolicy(initial_delay=2, max_delay=60, backoff_factor=2)
        >>> [compute_backoff_delay(n, policy) for n in range(1, 7)]
        [2.0, 4.0, 8.0, 16.0, 32.0, 60.0]
    """
    if attempt <= 0:
        return 0.0
    try:
        delay = policy.initial_delay * policy.backoff_factor ** (attempt - 1)
    except OverflowError:
        return float(policy.max_delay)
    return float(min(delay, policy.max_delay))


@dataclass(frozen=True)
class AttemptOutcome:
    """What happened on one attempt. Passed to on_attempt callbacks."""

    attempt: int
    """0-based attempt index."""

    success: bool
    error: BaseException | None = None
    kind: ErrorKind | None = None
    message: str = ""


def _default_wait(
    cancel_token: CancellationToken | None,
) -> Callable[[float], object]:
    if cancel_token is not None:
        return cancel_token.wait
    return time.sleep


def retry_with_backoff(
    operation: Callable[[int], T],
    policy: RetryPolicy,
    *,
    description: str,
    classify: Callable[[BaseException], bool] = is_recoverable,
    cancel_token: CancellationToken | None = None,
    on_attempt: Callable[[AttemptOutcome], None] | None = None,
    wait: Callable[[float], object] | None = None,
) -> T:
    """Invoke operation until it succeeds, fails permanently, or runs out.

    Args:
        operation: Callable receiving the 0-based attempt index.
        policy: Retry policy.
        description: Operation name for log and error messages.
        classify: Returns True when a failure is worth retrying.
        cancel_token: Token checked before each attempt and during waits.
        on_attempt: Called with an AttemptOutcome after every attempt.
        wait: Sleep function (injectable for tests). Defaults to waiting on
            the cancel token, or time.sleep without one.

    Returns:
        The operation's result.

    Raises:
        TranscodeCancelledError: Cancelled before or between attempts, or
            raised by the operation itself (never wrapped).
        RetryError: A non-recoverable failure, or all attempts failed.
    """
    sleep = wait or _default_wait(cancel_token)
    last_error: BaseException | None = None
    invocations = 0
    attempt = 0

    while attempt <= policy.max_retries:
        if attempt > 0:
            delay = compute_backoff_delay(attempt, policy)
            logger.info(
                "Retrying %s in %.1fs (attempt %d/%d)",
                description,
                delay,
                attempt + 1,
                policy.max_attempts,
            )
            sleep(delay)

        if cancel_token is not None and cancel_token.cancelled:
            raise TranscodeCancelledError(f"{description} cancelled")

        invocations += 1
        try:
            result = operation(attempt)
        except TranscodeCancelledError:
            raise
        except Exception as e:
            last_error = e
            recoverable = classify(e)
            kind = ErrorKind.RECOVERABLE if recoverable else ErrorKind.NON_RECOVERABLE
            _notify(on_attempt, AttemptOutcome(attempt, False, e, kind, str(e)))

            if not recoverable:
                logger.error("%s failed with non-recoverable error: %s", description, e)
                raise RetryError(
                    description,
                    attempts=invocations,
                    last_error=e,
                    exhausted=False,
                ) from e

            logger.warning(
                "%s attempt %d/%d failed: %s",
                description,
                attempt + 1,
                policy.max_attempts,
                e,
            )
            attempt += 1
            continue

        _notify(on_attempt, AttemptOutcome(attempt, True, message="success"))
        if attempt > 0:
            logger.info("%s succeeded after %d attempts", description, attempt + 1)
        return result

    logger.error("%s failed after %d attempts", description, invocations)
    raise RetryError(
        description,
        attempts=invocations,
        last_error=last_error,
        exhausted=True,
    ) from last_error


def _notify(
    on_attempt: Callable[[AttemptOutcome], None] | None, outcome: AttemptOutcome
) -> None:
    if on_attempt is None:
        return
    try:
        on_attempt(outcome)
    except Exception as e:
        logger.warning("Attempt callback error: %s", e)
