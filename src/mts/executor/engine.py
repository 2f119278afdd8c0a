"""Transcoding engine discovery and process launch."""

from __future__ import annotations

import logging
import shutil
import subprocess  # nosec B404 - subprocess is required for FFmpeg invocation
from collections.abc import Sequence
from pathlib import Path

from mts.core.subprocess_utils import format_command, run_command
from mts.exceptions import EngineNotFoundError, ExecutionFailedError

logger = logging.getLogger(__name__)

DEFAULT_ENGINE_NAME = "ffmpeg"
VERSION_TIMEOUT = 10


def find_engine(configured_path: str | Path | None = None) -> Path | None:
    """Find the engine executable.

    Args:
        configured_path: Optional configured path or command name.

    Returns:
        Path to the executable, or None if not found.
    """
    if configured_path:
        candidate = Path(configured_path).expanduser()
        if candidate.is_file():
            return candidate
        which_result = shutil.which(str(configured_path))
        if which_result:
            return Path(which_result)
        logger.warning("Configured ffmpeg path is not usable: %s", configured_path)

    which_result = shutil.which(DEFAULT_ENGINE_NAME)
    if which_result:
        return Path(which_result)
    return None


def require_engine(configured_path: str | Path | None = None) -> Path:
    """Get the engine path, raising if it cannot be found.

    Raises:
        EngineNotFoundError: If no usable executable exists.
    """
    path = find_engine(configured_path)
    if path is None:
        raise EngineNotFoundError(
            "ffmpeg not found. Install ffmpeg or set MTS_FFMPEG_PATH / "
            "[tools] ffmpeg in the config file."
        )
    return path


def get_engine_version(engine_path: str | Path) -> str | None:
    """Get the first line of `ffmpeg -version`, or None if it cannot run."""
    try:
        stdout, _, returncode = run_command(
            [engine_path, "-version"], timeout=VERSION_TIMEOUT
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Engine version check failed: %s", e)
        return None
    if returncode != 0 or not stdout.strip():
        return None
    return stdout.splitlines()[0].strip()


def launch_engine(
    engine_path: str | Path, args: Sequence[str]
) -> subprocess.Popen[str]:
    """Start the engine with both output streams piped as text.

    Output is decoded with errors="replace" and universal newlines, so the
    carriage-return separated stats updates arrive as separate lines.

    Args:
        engine_path: Engine executable.
        args: Compiled arguments (without the executable).

    Returns:
        The running process.

    Raises:
        EngineNotFoundError: If the executable does not exist.
        ExecutionFailedError: If the process cannot be started.
    """
    cmd = [str(engine_path), *args]
    logger.info("Starting ffmpeg: %s", format_command(cmd))
    try:
        return subprocess.Popen(  # nosec B603 - args are built by mts, not a shell
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except FileNotFoundError as e:
        raise EngineNotFoundError(f"ffmpeg executable not found: {engine_path}") from e
    except OSError as e:
        raise ExecutionFailedError(
            f"Failed to start ffmpeg: {e}", recoverable=False
        ) from e
