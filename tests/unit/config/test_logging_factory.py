"""Tests for build_logging_config."""

from pathlib import Path

import pytest

from mts.config.logging_factory import build_logging_config
from mts.config.models import LoggingConfig


def test_no_overrides_keeps_base():
    base = LoggingConfig(level="warning", file=Path("/var/log/mts.log"), backup_count=2)
    assert build_logging_config(base) == base


def test_overrides_apply():
    base = LoggingConfig()
    config = build_logging_config(
        base, level="debug", file=Path("mts.log"), format="json", include_stderr=True
    )
    assert config.level == "debug"
    assert config.file == Path("mts.log")
    assert config.format == "json"
    assert config.include_stderr is True
    assert config.max_bytes == base.max_bytes


def test_invalid_override_raises():
    with pytest.raises(ValueError):
        build_logging_config(LoggingConfig(), level="loud")
