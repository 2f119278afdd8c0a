"""Environment variables recognised by mts.

EnvReader wraps an injectable mapping (os.environ by default) and exposes
one typed accessor per MTS_* variable. Values that are blank, unparsable or
out of range are logged and treated as unset, so a bad variable falls back
to the config file or built-in default instead of aborting startup.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

MTS_CONFIG_PATH = "MTS_CONFIG_PATH"
MTS_DATA_DIR = "MTS_DATA_DIR"
MTS_FFMPEG_PATH = "MTS_FFMPEG_PATH"
# Conventional variable honoured by other ffmpeg wrappers
FFMPEG_PATH = "FFMPEG_PATH"
MTS_MAX_RETRIES = "MTS_MAX_RETRIES"
MTS_INITIAL_DELAY = "MTS_INITIAL_DELAY"
MTS_MAX_DELAY = "MTS_MAX_DELAY"
MTS_BACKOFF_FACTOR = "MTS_BACKOFF_FACTOR"
MTS_HEALTH_CHECK_TIMEOUT = "MTS_HEALTH_CHECK_TIMEOUT"
MTS_USER_AGENT = "MTS_USER_AGENT"
MTS_LOG_LEVEL = "MTS_LOG_LEVEL"

ENV_VARS = (
    MTS_CONFIG_PATH,
    MTS_DATA_DIR,
    MTS_FFMPEG_PATH,
    FFMPEG_PATH,
    MTS_MAX_RETRIES,
    MTS_INITIAL_DELAY,
    MTS_MAX_DELAY,
    MTS_BACKOFF_FACTOR,
    MTS_HEALTH_CHECK_TIMEOUT,
    MTS_USER_AGENT,
    MTS_LOG_LEVEL,
)

LOG_LEVELS = ("debug", "info", "warning", "error")


class EnvReader:
    """Typed access to mts environment variables.

    Example:
        # Production usage (reads from os.environ)
        reader = EnvReader()
        retries = reader.max_retries()

        # Testing usage (inject custom env)
        reader = EnvReader(env={"MTS_MAX_RETRIES": "3"})
        retries = reader.max_retries()  # Returns 3
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        """Initialize the environment reader.

        Args:
            env: Optional mapping to use instead of os.environ.
                 If None, reads from os.environ. Useful for testing.
        """
        self._env: Mapping[str, str] = env if env is not None else os.environ

    # -------------------------------------------------------------------------
    # Generic accessors
    # -------------------------------------------------------------------------

    def get_str(self, var: str, default: str | None = None) -> str | None:
        """Get a stripped string. Blank values are treated as unset."""
        value = self._env.get(var)
        if value is None or not value.strip():
            return default
        return value.strip()

    def get_int(self, var: str, default: int | None = None) -> int | None:
        """Get an integer from environment variable.

        Args:
            var: Environment variable name.
            default: Default value if not set or invalid.

        Returns:
            Parsed integer value, or default if not set or invalid.
            Logs a warning if the value is set but cannot be parsed.
        """
        value = self.get_str(var)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid integer value for %s: %s", var, value)
            return default

    def get_float(self, var: str, default: float | None = None) -> float | None:
        """Get a float from environment variable.

        Logs a warning and returns default if the value cannot be parsed.
        """
        value = self.get_str(var)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid float value for %s: %s", var, value)
            return default

    def get_path(
        self, var: str, must_exist: bool = True, default: Path | None = None
    ) -> Path | None:
        """Get a path from environment variable.

        Args:
            var: Environment variable name.
            must_exist: If True, validate that the path exists and log a
                       warning if it doesn't. Defaults to True.
            default: Default value if not set or path doesn't exist.

        Returns:
            Path object, or default if not set (or if must_exist=True
            and path doesn't exist).
        """
        value = self.get_str(var)
        if value is None:
            return default

        path = Path(value).expanduser()
        if must_exist and not path.exists():
            logger.warning(
                "Environment variable %s points to non-existent path: %s",
                var,
                value,
            )
            return default
        return path

    def _bounded(
        self, var: str, value: float | None, ok: bool, requirement: str
    ) -> float | None:
        if value is None or ok:
            return value
        logger.warning("Ignoring %s=%s: must be %s", var, value, requirement)
        return None

    # -------------------------------------------------------------------------
    # mts variables
    # -------------------------------------------------------------------------

    def config_path(self) -> Path | None:
        return self.get_path(MTS_CONFIG_PATH, must_exist=False)

    def data_dir(self) -> Path | None:
        return self.get_path(MTS_DATA_DIR, must_exist=False)

    def ffmpeg_path(self) -> Path | None:
        """ffmpeg executable; MTS_FFMPEG_PATH wins over FFMPEG_PATH."""
        return self.get_path(MTS_FFMPEG_PATH, must_exist=False) or self.get_path(
            FFMPEG_PATH, must_exist=False
        )

    def max_retries(self) -> int | None:
        value = self.get_int(MTS_MAX_RETRIES)
        if value is not None and value < 0:
            logger.warning("Ignoring %s=%s: must be >= 0", MTS_MAX_RETRIES, value)
            return None
        return value

    def initial_delay(self) -> float | None:
        value = self.get_float(MTS_INITIAL_DELAY)
        return self._bounded(
            MTS_INITIAL_DELAY, value, value is not None and value >= 0, ">= 0"
        )

    def max_delay(self) -> float | None:
        value = self.get_float(MTS_MAX_DELAY)
        return self._bounded(
            MTS_MAX_DELAY, value, value is not None and value >= 0, ">= 0"
        )

    def backoff_factor(self) -> float | None:
        value = self.get_float(MTS_BACKOFF_FACTOR)
        return self._bounded(
            MTS_BACKOFF_FACTOR, value, value is not None and value > 1, "> 1"
        )

    def health_check_timeout(self) -> float | None:
        value = self.get_float(MTS_HEALTH_CHECK_TIMEOUT)
        return self._bounded(
            MTS_HEALTH_CHECK_TIMEOUT, value, value is not None and value > 0, "> 0"
        )

    def user_agent(self) -> str | None:
        return self.get_str(MTS_USER_AGENT)

    def log_level(self) -> str | None:
        """Lower-cased log level, or None when unset or unknown."""
        value = self.get_str(MTS_LOG_LEVEL)
        if value is None:
            return None
        level = value.lower()
        if level not in LOG_LEVELS:
            logger.warning(
                "Ignoring %s=%s: expected one of %s",
                MTS_LOG_LEVEL,
                value,
                ", ".join(LOG_LEVELS),
            )
            return None
        return level
