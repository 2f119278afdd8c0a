"""Configuration: config file, environment overrides and profiles."""

from mts.config.env import EnvReader
from mts.config.loader import (
    ConfigError,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
)
from mts.config.logging_factory import build_logging_config
from mts.config.models import (
    HttpConfig,
    LoggingConfig,
    MonitorConfig,
    MTSConfig,
    ReconnectConfig,
    ToolPathsConfig,
)
from mts.config.profiles import (
    ProfileError,
    ProfileNotFoundError,
    TranscodeProfileModel,
    get_profiles_directory,
    list_profiles,
    load_profile,
)

__all__ = [
    "ConfigError",
    "EnvReader",
    "HttpConfig",
    "LoggingConfig",
    "MTSConfig",
    "MonitorConfig",
    "ProfileError",
    "ProfileNotFoundError",
    "ReconnectConfig",
    "ToolPathsConfig",
    "TranscodeProfileModel",
    "build_logging_config",
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "get_profiles_directory",
    "list_profiles",
    "load_profile",
]
