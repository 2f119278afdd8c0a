"""FFmpeg progress line parsing.

ffmpeg reports encoding progress on stderr as stats lines:

    frame= 1234 fps= 30 q=28.0 size=  2048kB time=00:01:23.45 bitrate=5000kbits/s speed=2.0x

The process monitor only needs to know *whether* a line shows forward
progress, but keeps the parsed values for logging.
"""

import re
from dataclasses import dataclass

# Any of these substrings means the engine has moved forward
PROGRESS_MARKERS = ("time=", "size=")


@dataclass
class FFmpegProgress:
    """Parsed FFmpeg stats line."""

    frame: int | None = None
    fps: float | None = None
    size: str | None = None
    bitrate: str | None = None
    out_time_us: int | None = None  # Output time in microseconds
    speed: str | None = None

    @property
    def out_time_seconds(self) -> float | None:
        """Get output time in seconds."""
        if self.out_time_us is not None:
            return self.out_time_us / 1_000_000
        return None

    def describe(self) -> str:
        """Short human-readable summary for log messages."""
        parts = []
        if self.out_time_seconds is not None:
            parts.append(f"time={self.out_time_seconds:.2f}s")
        if self.frame is not None:
            parts.append(f"frame={self.frame}")
        if self.size is not None:
            parts.append(f"size={self.size}")
        if self.speed is not None:
            parts.append(f"speed={self.speed}")
        return " ".join(parts)


PROGRESS_PATTERNS = {
    "frame": re.compile(r"frame=\s*(\d+)"),
    "fps": re.compile(r"fps=\s*([\d.]+)"),
    "size": re.compile(r"(?<!\w)size=\s*([^\s]+)"),
    "bitrate": re.compile(r"bitrate=\s*([^\s]+)"),
    "speed": re.compile(r"speed=\s*([^\s]+)"),
}

_TIME_PATTERN = re.compile(r"time=\s*(\d+):(\d+):(\d+)\.(\d+)")


def _convert_progress_value(key: str, value: str) -> int | float | str | None:
    """Convert a progress value to the appropriate type.

    Args:
        key: The field name.
        value: The string value to convert.

    Returns:
        Converted value or None.
    """
    if key == "frame":
        try:
            return int(value)
        except ValueError:
            return None
    if key == "fps":
        try:
            return float(value)
        except ValueError:
            return None
    return value if value != "N/A" else None


def has_progress_marker(line: str) -> bool:
    """Check whether an output line carries a time= or size= progress field."""
    return any(marker in line for marker in PROGRESS_MARKERS)


def parse_stderr_progress(line: str) -> FFmpegProgress | None:
    """Parse FFmpeg stderr progress line.

    Args:
        line: A line from FFmpeg stderr.

    Returns:
        Parsed FFmpegProgress or None if not a progress line.
    """
    if "frame=" not in line and not has_progress_marker(line):
        return None

    result = FFmpegProgress()

    for key, pattern in PROGRESS_PATTERNS.items():
        match = pattern.search(line)
        if match:
            converted = _convert_progress_value(key, match.group(1))
            if converted is not None:
                setattr(result, key, converted)

    time_match = _TIME_PATTERN.search(line)
    if time_match:
        hours = int(time_match.group(1))
        minutes = int(time_match.group(2))
        seconds = int(time_match.group(3))
        fraction = time_match.group(4)
        # ffmpeg prints centiseconds, but tolerate other precisions
        micros = int(fraction.ljust(6, "0")[:6])
        total_seconds = hours * 3600 + minutes * 60 + seconds
        result.out_time_us = total_seconds * 1_000_000 + micros

    return result
