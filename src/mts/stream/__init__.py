"""Stream probing for network sources."""

from mts.executor.types import is_hls_source
from mts.stream.health import (
    DEFAULT_USER_AGENT,
    HLS_ACCEPT,
    StreamHealthChecker,
)

__all__ = [
    "DEFAULT_USER_AGENT",
    "HLS_ACCEPT",
    "StreamHealthChecker",
    "is_hls_source",
]
