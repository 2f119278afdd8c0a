"""Segmented recording helpers.

Long live recordings can be written as fixed-length MPEG-TS segments so a
dropped connection loses at most one segment. Once recording finishes the
segments are joined into the requested output with ffmpeg's concat demuxer.
"""

from __future__ import annotations

import logging
import re
import subprocess  # nosec B404 - only used for TimeoutExpired
from pathlib import Path

from mts.core.subprocess_utils import run_command
from mts.exceptions import ConcatenationError

logger = logging.getLogger(__name__)

CONCAT_LIST_NAME = "filelist.txt"
SEGMENT_GLOB = "segment_*.ts"
_SEGMENT_NUMBER = re.compile(r"segment_(\d+)\.ts")

# Concatenation is a stream copy; allow generous time for long recordings
CONCAT_TIMEOUT = 3600


def segment_directory_for(output: Path) -> Path:
    """Directory holding segments for output (the output path minus suffix)."""
    return output.with_suffix("")


def create_segment_directory(output: Path) -> Path:
    """Create the segment directory for output.

    Args:
        output: Final output path, e.g. recordings/show.mp4.

    Returns:
        The created directory, e.g. recordings/show/.
    """
    directory = segment_directory_for(output)
    directory.mkdir(parents=True, exist_ok=True)
    logger.debug("Segment directory ready: %s", directory)
    return directory


def _numbered_segments(directory: Path) -> list[tuple[int, Path]]:
    numbered = []
    for path in directory.glob(SEGMENT_GLOB):
        match = _SEGMENT_NUMBER.fullmatch(path.name)
        if match:
            numbered.append((int(match.group(1)), path))
    return sorted(numbered)


def list_segments(directory: Path) -> list[Path]:
    """List recorded segments in recording order.

    Sorted by segment number, so segment_1000.ts follows segment_999.ts.
    """
    return [path for _, path in _numbered_segments(directory)]


def next_segment_number(directory: Path) -> int:
    """Index the next recorded segment should take.

    A reconnected recording continues numbering after the segments already
    on disk instead of overwriting them from segment_000.ts.
    """
    numbered = _numbered_segments(directory)
    return numbered[-1][0] + 1 if numbered else 0


def _quote_concat_path(path: Path) -> str:
    # Concat demuxer syntax: single quotes escaped as '\''
    return str(path.resolve()).replace("'", "'\\''")


def write_concat_list(segments: list[Path], list_path: Path) -> Path:
    """Write a concat demuxer list referencing segments in order.

    Args:
        segments: Segment files.
        list_path: File to write.

    Returns:
        list_path.
    """
    lines = [f"file '{_quote_concat_path(segment)}'\n" for segment in segments]
    list_path.write_text("".join(lines), encoding="utf-8")
    return list_path


def concatenate_segments(
    engine_path: str | Path, directory: Path, output: Path
) -> list[Path]:
    """Join all segments in directory into output.

    Args:
        engine_path: ffmpeg executable.
        directory: Segment directory.
        output: Final output file.

    Returns:
        The segments that were joined.

    Raises:
        ConcatenationError: If there are no segments or ffmpeg fails.
    """
    segments = list_segments(directory)
    if not segments:
        raise ConcatenationError(f"No segments found in {directory}")

    list_path = write_concat_list(segments, directory / CONCAT_LIST_NAME)
    logger.info("Concatenating %d segments into %s", len(segments), output)

    args = [
        engine_path,
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        list_path,
        "-c",
        "copy",
        "-y",
        output,
    ]
    try:
        _, stderr, returncode = run_command(args, timeout=CONCAT_TIMEOUT)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ConcatenationError(f"Segment concatenation failed: {e}") from e

    if returncode != 0:
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        raise ConcatenationError(
            f"Segment concatenation failed (exit {returncode}): {detail}"
        )
    return segments
