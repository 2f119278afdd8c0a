"""Tests for config file loading and precedence."""

import os
from pathlib import Path

import pytest

from mts.config.env import EnvReader
from mts.config.loader import (
    ConfigError,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
)
from mts.exceptions import is_recoverable

SAMPLE_CONFIG = """
[tools]
ffmpeg = "/opt/ffmpeg/bin/ffmpeg"

[reconnect]
max_retries = 3
initial_delay = 1.0

[monitor]
health_poll_interval = 0

[http]
user_agent = "Mozilla/5.0"

[logging]
level = "warning"
"""


@pytest.fixture
def config_file(temp_dir):
    path = temp_dir / "config.toml"
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    return path


class TestPaths:
    """Tests for data directory and config path resolution."""

    def test_data_dir_from_env(self, monkeypatch, temp_dir):
        monkeypatch.setenv("MTS_DATA_DIR", str(temp_dir))
        assert get_data_dir() == temp_dir

    def test_default_data_dir(self, monkeypatch):
        monkeypatch.delenv("MTS_DATA_DIR")
        assert get_data_dir() == Path.home() / ".mts"

    def test_config_path_from_env(self, monkeypatch, temp_dir):
        monkeypatch.setenv("MTS_CONFIG_PATH", str(temp_dir / "custom.toml"))
        assert get_default_config_path() == temp_dir / "custom.toml"

    def test_config_path_in_data_dir(self, isolated_mts_home):
        assert get_default_config_path() == isolated_mts_home / "config.toml"


class TestLoadConfigFile:
    """Tests for load_config_file."""

    def test_missing_file(self, temp_dir):
        assert load_config_file(temp_dir / "none.toml") == {}

    def test_parses_toml(self, config_file):
        data = load_config_file(config_file)
        assert data["reconnect"]["max_retries"] == 3
        assert data["http"]["user_agent"] == "Mozilla/5.0"

    def test_invalid_toml_lenient(self, temp_dir):
        path = temp_dir / "bad.toml"
        path.write_text("[reconnect\nmax_retries = ", encoding="utf-8")
        assert load_config_file(path) == {}

    def test_invalid_toml_strict(self, temp_dir):
        path = temp_dir / "bad.toml"
        path.write_text("[reconnect\nmax_retries = ", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            load_config_file(path, strict=True)
        assert not is_recoverable(exc_info.value)

    def test_cache_reloads_on_mtime_change(self, config_file):
        first = load_config_file(config_file)
        assert load_config_file(config_file) is first

        config_file.write_text("[reconnect]\nmax_retries = 9\n", encoding="utf-8")
        stat = config_file.stat()
        os.utime(config_file, (stat.st_atime, stat.st_mtime + 10))

        assert load_config_file(config_file)["reconnect"]["max_retries"] == 9


class TestGetConfig:
    """Tests for get_config precedence."""

    def test_defaults_without_file(self, temp_dir):
        config = get_config(temp_dir / "none.toml", env_reader=EnvReader(env={}))
        assert config.reconnect.max_retries == 5
        assert config.tools.ffmpeg is None

    def test_file_values(self, config_file):
        config = get_config(config_file, env_reader=EnvReader(env={}))

        assert config.tools.ffmpeg == Path("/opt/ffmpeg/bin/ffmpeg")
        assert config.reconnect.max_retries == 3
        assert config.reconnect.initial_delay == 1.0
        assert config.reconnect.max_delay == 60.0
        assert config.monitor.to_monitor_settings().health_poll_interval is None
        assert config.http.user_agent == "Mozilla/5.0"
        assert config.logging.level == "warning"

    def test_env_overrides_file(self, config_file):
        reader = EnvReader(env={"MTS_MAX_RETRIES": "7", "MTS_USER_AGENT": "VLC"})
        config = get_config(config_file, env_reader=reader)

        assert config.reconnect.max_retries == 7
        assert config.http.user_agent == "VLC"
        assert config.reconnect.initial_delay == 1.0

    def test_cli_overrides_env(self, config_file):
        reader = EnvReader(env={"MTS_FFMPEG_PATH": "/env/ffmpeg"})
        config = get_config(
            config_file, ffmpeg_path=Path("/cli/ffmpeg"), env_reader=reader
        )
        assert config.tools.ffmpeg == Path("/cli/ffmpeg")

    def test_default_location(self, isolated_mts_home):
        isolated_mts_home.mkdir(parents=True)
        (isolated_mts_home / "config.toml").write_text(
            "[reconnect]\nmax_retries = 1\n", encoding="utf-8"
        )
        assert get_config(env_reader=EnvReader(env={})).reconnect.max_retries == 1

    def test_invalid_value_raises(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text("[reconnect]\nbackoff_factor = 1.0\n", encoding="utf-8")

        with pytest.raises(ValueError, match="backoff_factor"):
            get_config(path, env_reader=EnvReader(env={}))
