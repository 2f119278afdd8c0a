"""Subprocess utilities for one-shot engine invocations.

Long-running transcodes are supervised by mts.executor.monitor. This module
covers the short, blocking invocations (segment concatenation, version
checks) where capturing the full output after exit is sufficient.
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404 - subprocess is required for ffmpeg invocation
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def format_command(args: list[str | Path], limit: int | None = None) -> str:
    """Render a command for log output, optionally truncated to `limit` args."""
    str_args = [str(arg) for arg in args]
    if limit is not None and len(str_args) > limit:
        return " ".join(str_args[:limit]) + " ..."
    return " ".join(str_args)


def run_command(
    args: list[str | Path],
    timeout: float | None = 120,
    errors: str = "replace",
    **kwargs: Any,
) -> tuple[str, str, int]:
    """Run an external command to completion and capture its output.

    Args:
        args: Command and arguments. Path objects are converted to strings.
        timeout: Timeout in seconds (default 120). None waits indefinitely.
        errors: Error handling mode for text decoding (default "replace").
        **kwargs: Additional subprocess.run arguments.

    Returns:
        Tuple of (stdout, stderr, returncode).

    Raises:
        subprocess.TimeoutExpired: If the command times out. subprocess.run()
            kills the child before raising, so no zombie is left behind.
        OSError: If the executable cannot be started.
    """
    str_args = [str(arg) for arg in args]
    command_name = Path(str_args[0]).name if str_args else "unknown"

    logger.debug(
        "Executing command: %s",
        format_command(str_args),
        extra={"command": command_name, "arg_count": len(str_args)},
    )

    start_time = time.monotonic()
    try:
        result = subprocess.run(  # nosec B603 - args are built by mts, not a shell
            str_args,
            capture_output=True,
            text=True,
            errors=errors,
            timeout=timeout,
            **kwargs,
        )
    except subprocess.TimeoutExpired:
        logger.warning(
            "Command timed out after %ss: %s",
            timeout,
            format_command(str_args, limit=3),
            extra={
                "command": command_name,
                "timeout_seconds": timeout,
                "elapsed_seconds": round(time.monotonic() - start_time, 3),
            },
        )
        raise

    logger.debug(
        "Command completed",
        extra={
            "command": command_name,
            "elapsed_seconds": round(time.monotonic() - start_time, 3),
            "returncode": result.returncode,
        },
    )
    return result.stdout or "", result.stderr or "", result.returncode
