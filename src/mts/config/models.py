"""Configuration data models for mts.

Each dataclass covers one section of ~/.mts/config.toml and validates
itself in __post_init__, so a bad value fails at load time rather than in
the middle of a transcode.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from mts.executor.monitor import MonitorSettings
from mts.reconnect.retry import RetryPolicy


@dataclass(frozen=True)
class ToolPathsConfig:
    """Configuration for external tool paths.

    If not specified, ffmpeg is looked up in PATH.
    """

    ffmpeg: Path | None = None


@dataclass(frozen=True)
class ReconnectConfig:
    """Retry and backoff settings ([reconnect] section)."""

    max_retries: int = 5
    initial_delay: float = 2.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    health_check_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        # RetryPolicy owns the invariants; building one raises ValueError
        self.to_retry_policy()

    def to_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_factor=self.backoff_factor,
            health_check_timeout=self.health_check_timeout,
        )


@dataclass(frozen=True)
class MonitorConfig:
    """Process supervision timing ([monitor] section).

    A health_poll_interval of 0 disables background health polling.
    """

    poll_interval: float = 5.0
    hls_stall_timeout: float = 45.0
    file_stall_timeout: float = 90.0
    health_poll_interval: float = 30.0
    health_poll_timeout: float = 5.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.health_poll_interval < 0:
            raise ValueError(
                "health_poll_interval must be >= 0 (0 disables polling), "
                f"got {self.health_poll_interval}"
            )
        self.to_monitor_settings()

    def to_monitor_settings(self) -> MonitorSettings:
        return MonitorSettings(
            poll_interval=self.poll_interval,
            hls_stall_timeout=self.hls_stall_timeout,
            file_stall_timeout=self.file_stall_timeout,
            health_poll_interval=self.health_poll_interval or None,
            health_poll_timeout=self.health_poll_timeout,
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP settings used for probes and engine headers."""

    # Used when a request sets no User-Agent of its own. None sends no
    # header to ffmpeg and DEFAULT_USER_AGENT with health probes.
    user_agent: str | None = None


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )
        if self.max_bytes <= 0:
            raise ValueError(f"max_bytes must be positive, got {self.max_bytes}")
        if self.backup_count < 0:
            raise ValueError(f"backup_count must be >= 0, got {self.backup_count}")


@dataclass(frozen=True)
class MTSConfig:
    """Main configuration container for mts."""

    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
