"""External tool output parsing."""

from mts.tools.ffmpeg_progress import (
    PROGRESS_MARKERS,
    PROGRESS_PATTERNS,
    FFmpegProgress,
    has_progress_marker,
    parse_stderr_progress,
)

__all__ = [
    "PROGRESS_MARKERS",
    "PROGRESS_PATTERNS",
    "FFmpegProgress",
    "has_progress_marker",
    "parse_stderr_progress",
]
