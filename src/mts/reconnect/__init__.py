"""Retry and reconnection logic around engine runs."""

from mts.reconnect.orchestrator import (
    ReconnectionOrchestrator,
    default_health_checker_factory,
)
from mts.reconnect.retry import (
    AttemptOutcome,
    RetryPolicy,
    compute_backoff_delay,
    retry_with_backoff,
)

__all__ = [
    "AttemptOutcome",
    "ReconnectionOrchestrator",
    "RetryPolicy",
    "compute_backoff_delay",
    "default_health_checker_factory",
    "retry_with_backoff",
]
