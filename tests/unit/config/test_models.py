"""Tests for configuration models."""

import pytest

from mts.config.models import (
    LoggingConfig,
    MonitorConfig,
    MTSConfig,
    ReconnectConfig,
)
from mts.reconnect.retry import RetryPolicy


class TestReconnectConfig:
    """Tests for ReconnectConfig."""

    def test_defaults_match_retry_policy(self):
        assert ReconnectConfig().to_retry_policy() == RetryPolicy()

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError, match="backoff_factor"):
            ReconnectConfig(backoff_factor=0.5)
        with pytest.raises(ValueError, match="max_delay"):
            ReconnectConfig(initial_delay=30, max_delay=10)


class TestMonitorConfig:
    """Tests for MonitorConfig."""

    def test_to_monitor_settings(self):
        config = MonitorConfig(poll_interval=1, hls_stall_timeout=20)
        settings = config.to_monitor_settings()
        assert settings.poll_interval == 1
        assert settings.hls_stall_timeout == 20
        assert settings.file_stall_timeout == 90.0
        assert settings.health_poll_interval == 30.0

    def test_zero_poll_interval_disables_polling(self):
        settings = MonitorConfig(health_poll_interval=0).to_monitor_settings()
        assert settings.health_poll_interval is None

    def test_negative_poll_interval_rejected(self):
        with pytest.raises(ValueError):
            MonitorConfig(health_poll_interval=-1)

    def test_invalid_stall_timeout_rejected(self):
        with pytest.raises(ValueError):
            MonitorConfig(hls_stall_timeout=0)


class TestLoggingConfig:
    """Tests for LoggingConfig validation."""

    def test_defaults(self):
        config = LoggingConfig()
        assert config.level == "info"
        assert config.file is None
        assert config.format == "text"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"level": "verbose"},
            {"format": "xml"},
            {"max_bytes": 0},
            {"backup_count": -1},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            LoggingConfig(**kwargs)

    def test_level_case_insensitive(self):
        assert LoggingConfig(level="DEBUG").level == "DEBUG"


def test_mts_config_defaults():
    config = MTSConfig()
    assert config.tools.ffmpeg is None
    assert config.http.user_agent is None
    assert config.reconnect.max_retries == 5
