"""Configuration builder with explicit layering.

This module provides ConfigBuilder for building MTSConfig by composing
multiple configuration sources with explicit precedence handling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from mts.config.env import EnvReader
from mts.config.models import (
    HttpConfig,
    LoggingConfig,
    MonitorConfig,
    MTSConfig,
    ReconnectConfig,
    ToolPathsConfig,
)

logger = logging.getLogger(__name__)


@dataclass
class ConfigSource:
    """Configuration values from a single source.

    None values indicate "not specified in this source" and will not
    override values from lower-precedence sources.
    """

    # Tools
    ffmpeg_path: Path | None = None

    # Reconnect
    max_retries: int | None = None
    initial_delay: float | None = None
    max_delay: float | None = None
    backoff_factor: float | None = None
    health_check_timeout: float | None = None

    # Monitor
    poll_interval: float | None = None
    hls_stall_timeout: float | None = None
    file_stall_timeout: float | None = None
    health_poll_interval: float | None = None
    health_poll_timeout: float | None = None

    # HTTP
    user_agent: str | None = None

    # Logging
    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None


class ConfigBuilder:
    """Builds MTSConfig by layering ConfigSources with precedence.

    Later sources override earlier ones (for non-None values).

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config))
        builder.apply(source_from_env(reader))
        builder.apply(cli_source)
        config = builder.build()
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def apply(self, source: ConfigSource) -> None:
        """Apply configuration source, overriding existing values.

        Args:
            source: Configuration source to apply.
        """
        for field_obj in fields(source):
            value = getattr(source, field_obj.name)
            if value is not None:
                self._values[field_obj.name] = value

    def _get(self, key: str, default: Any) -> Any:
        return self._values.get(key, default)

    def build(self) -> MTSConfig:
        """Build the final MTSConfig.

        Raises:
            ValueError: If a merged value fails section validation.
        """
        reconnect_defaults = ReconnectConfig()
        monitor_defaults = MonitorConfig()
        logging_defaults = LoggingConfig()

        return MTSConfig(
            tools=ToolPathsConfig(ffmpeg=self._get("ffmpeg_path", None)),
            reconnect=ReconnectConfig(
                max_retries=self._get("max_retries", reconnect_defaults.max_retries),
                initial_delay=self._get(
                    "initial_delay", reconnect_defaults.initial_delay
                ),
                max_delay=self._get("max_delay", reconnect_defaults.max_delay),
                backoff_factor=self._get(
                    "backoff_factor", reconnect_defaults.backoff_factor
                ),
                health_check_timeout=self._get(
                    "health_check_timeout", reconnect_defaults.health_check_timeout
                ),
            ),
            monitor=MonitorConfig(
                poll_interval=self._get(
                    "poll_interval", monitor_defaults.poll_interval
                ),
                hls_stall_timeout=self._get(
                    "hls_stall_timeout", monitor_defaults.hls_stall_timeout
                ),
                file_stall_timeout=self._get(
                    "file_stall_timeout", monitor_defaults.file_stall_timeout
                ),
                health_poll_interval=self._get(
                    "health_poll_interval", monitor_defaults.health_poll_interval
                ),
                health_poll_timeout=self._get(
                    "health_poll_timeout", monitor_defaults.health_poll_timeout
                ),
            ),
            http=HttpConfig(user_agent=self._get("user_agent", None)),
            logging=LoggingConfig(
                level=self._get("logging_level", logging_defaults.level),
                file=self._get("logging_file", logging_defaults.file),
                format=self._get("logging_format", logging_defaults.format),
                include_stderr=self._get(
                    "logging_include_stderr", logging_defaults.include_stderr
                ),
                max_bytes=self._get("logging_max_bytes", logging_defaults.max_bytes),
                backup_count=self._get(
                    "logging_backup_count", logging_defaults.backup_count
                ),
            ),
        )


def _optional_path(value: Any) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value)).expanduser()


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Create ConfigSource from a parsed config file.

    Args:
        file_config: Parsed TOML dictionary.

    Returns:
        ConfigSource with values from the file.
    """
    tools = file_config.get("tools", {})
    reconnect = file_config.get("reconnect", {})
    monitor = file_config.get("monitor", {})
    http = file_config.get("http", {})
    logging_section = file_config.get("logging", {})

    known_sections = {"tools", "reconnect", "monitor", "http", "logging"}
    unknown = sorted(set(file_config) - known_sections)
    if unknown:
        logger.warning("Ignoring unknown config sections: %s", ", ".join(unknown))

    return ConfigSource(
        ffmpeg_path=_optional_path(tools.get("ffmpeg")),
        max_retries=reconnect.get("max_retries"),
        initial_delay=reconnect.get("initial_delay"),
        max_delay=reconnect.get("max_delay"),
        backoff_factor=reconnect.get("backoff_factor"),
        health_check_timeout=reconnect.get("health_check_timeout"),
        poll_interval=monitor.get("poll_interval"),
        hls_stall_timeout=monitor.get("hls_stall_timeout"),
        file_stall_timeout=monitor.get("file_stall_timeout"),
        health_poll_interval=monitor.get("health_poll_interval"),
        health_poll_timeout=monitor.get("health_poll_timeout"),
        user_agent=http.get("user_agent"),
        logging_level=logging_section.get("level"),
        logging_file=_optional_path(logging_section.get("file")),
        logging_format=logging_section.get("format"),
        logging_include_stderr=logging_section.get("include_stderr"),
        logging_max_bytes=logging_section.get("max_bytes"),
        logging_backup_count=logging_section.get("backup_count"),
    )


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Create ConfigSource from environment variables.

    Args:
        reader: EnvReader instance for reading environment variables.

    Returns:
        ConfigSource with values from environment variables.
    """
    return ConfigSource(
        ffmpeg_path=reader.ffmpeg_path(),
        max_retries=reader.max_retries(),
        initial_delay=reader.initial_delay(),
        max_delay=reader.max_delay(),
        backoff_factor=reader.backoff_factor(),
        health_check_timeout=reader.health_check_timeout(),
        user_agent=reader.user_agent(),
        logging_level=reader.log_level(),
    )
