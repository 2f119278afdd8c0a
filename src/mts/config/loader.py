"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to functions)
2. Environment variables (MTS_*)
3. Config file (~/.mts/config.toml)
4. Default values

Environment variables:
- MTS_FFMPEG_PATH: Path to ffmpeg executable (FFMPEG_PATH is also honored)
- MTS_MAX_RETRIES, MTS_INITIAL_DELAY, MTS_MAX_DELAY, MTS_BACKOFF_FACTOR,
  MTS_HEALTH_CHECK_TIMEOUT: Reconnection policy
- MTS_USER_AGENT: User-Agent for stream health probes
- MTS_LOG_LEVEL: Log level
- MTS_CONFIG_PATH: Path to config file (overrides default location)
- MTS_DATA_DIR: Path to mts data directory (overrides ~/.mts/)
"""

from __future__ import annotations

import logging
import threading
import tomllib
from pathlib import Path
from typing import Any

from mts.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from mts.config.env import EnvReader
from mts.config.models import MTSConfig
from mts.exceptions import MTSError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".mts"
CONFIG_FILE_NAME = "config.toml"

# Cache for loaded config files (path -> (parsed dict, mtime))
_config_cache: dict[Path, tuple[dict[str, Any], float]] = {}
_config_cache_lock = threading.Lock()


class ConfigError(MTSError):
    """Config file could not be read or parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=False)


def get_data_dir() -> Path:
    """Get the mts data directory (config file and profiles).

    Can be overridden by MTS_DATA_DIR environment variable.

    Returns:
        Path to the data directory (~/.mts/ by default).
    """
    return EnvReader().data_dir() or DEFAULT_CONFIG_DIR


def get_default_config_path() -> Path:
    """Get the default config file path.

    Can be overridden by MTS_CONFIG_PATH environment variable.
    """
    return EnvReader().config_path() or get_data_dir() / CONFIG_FILE_NAME


def _read_toml(path: Path, *, strict: bool) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        if strict:
            raise ConfigError(f"Cannot load config file {path}: {e}") from e
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}


def load_config_file(
    path: Path | None = None, *, strict: bool = False
) -> dict[str, Any]:
    """Load configuration from TOML file.

    Results are cached with mtime-based invalidation. The cache automatically
    reloads the file if it has been modified since the last read.

    Args:
        path: Path to config file. If None, uses default location.
        strict: If True, raise ConfigError on parse failures.
                If False (default), return empty dict on errors.

    Returns:
        Parsed configuration dict. Empty dict if file doesn't exist.

    Raises:
        ConfigError: When strict=True and the file cannot be parsed.
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        current_mtime = 0.0

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        result = _read_toml(path, strict=strict)
        _config_cache[path] = (result, current_mtime)
        return result


def clear_config_cache() -> None:
    """Clear the config file cache. Primarily useful for testing."""
    with _config_cache_lock:
        _config_cache.clear()


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    ffmpeg_path: Path | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> MTSConfig:
    """Get mts configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides MTS_CONFIG_PATH).
        ffmpeg_path: CLI override for ffmpeg path.
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, raise ConfigError on config file parse failures.

    Returns:
        MTSConfig with merged configuration.

    Raises:
        ConfigError: When strict=True and the config file cannot be parsed.
        ValueError: When a merged value fails validation.
    """
    reader = env_reader or EnvReader()
    file_config = load_config_file(config_path, strict=strict)

    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config))
    builder.apply(source_from_env(reader))
    builder.apply(ConfigSource(ffmpeg_path=ffmpeg_path))
    return builder.build()
