"""Transcode profile management.

Profiles store named transcode defaults (encoder choice, quality, headers,
retry overrides) as YAML files in ~/.mts/profiles/<name>.yaml and are
applied with the --profile flag. Explicit CLI options override profile
values, which override built-in defaults.
"""

from __future__ import annotations

import re
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mts.config.loader import get_data_dir
from mts.config.models import ReconnectConfig
from mts.core.codecs import HardwareAccel
from mts.executor.command import double_bitrate

PROFILE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class ProfileError(Exception):
    """Error loading or validating a profile."""

    pass


class ProfileNotFoundError(ProfileError):
    """Profile does not exist."""

    pass


class ReconnectOverridesModel(BaseModel):
    """Per-profile retry overrides. Unset fields keep the configured value."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_retries: int | None = Field(default=None, ge=0)
    initial_delay: float | None = Field(default=None, ge=0)
    max_delay: float | None = Field(default=None, ge=0)
    backoff_factor: float | None = Field(default=None, gt=1)
    health_check_timeout: float | None = Field(default=None, gt=0)


class TranscodeProfileModel(BaseModel):
    """Pydantic model for a transcode profile file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str | None = None
    description: str | None = None

    gpu: str | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    preset: str | None = None
    include_audio: bool | None = None

    origin: str | None = None
    referer: str | None = None
    user_agent: str | None = None

    target_bitrate: str | None = None
    prefer_10bit: bool | None = None
    ensure_even_size: bool | None = None

    vt_quality: int | None = Field(default=None, ge=1, le=100)
    x265_crf: int | None = Field(default=None, ge=0, le=51)
    svt_crf: int | None = Field(default=None, ge=0, le=63)
    aom_crf: int | None = Field(default=None, ge=0, le=63)

    reconnect: ReconnectOverridesModel | None = None

    @field_validator("gpu")
    @classmethod
    def validate_gpu(cls, v: str | None) -> str | None:
        """Validate GPU vendor name."""
        if v is None:
            return v
        valid = {member.value for member in HardwareAccel}
        if v.casefold() not in valid:
            raise ValueError(
                f"Invalid gpu '{v}'. Must be one of: {', '.join(sorted(valid))}"
            )
        return v.casefold()

    @field_validator("target_bitrate")
    @classmethod
    def validate_bitrate(cls, v: str | None) -> str | None:
        """Validate bitrate format."""
        if v is not None and double_bitrate(v) is None:
            raise ValueError(
                f"Invalid target_bitrate '{v}'. "
                "Must be a number followed by M or k (e.g., '8M', '4500k')."
            )
        return v

    def request_defaults(self) -> dict[str, Any]:
        """Map set profile fields onto TranscodeRequest keyword arguments.

        Returns:
            Keyword arguments for TranscodeRequest, omitting unset fields.
        """
        values: dict[str, Any] = {}
        if self.gpu is not None:
            values["hw_accel"] = HardwareAccel.parse(self.gpu)
        for key in (
            "video_codec",
            "audio_codec",
            "preset",
            "include_audio",
            "origin",
            "referer",
            "user_agent",
            "prefer_10bit",
            "ensure_even_size",
        ):
            value = getattr(self, key)
            if value is not None:
                values[key] = value
        if self.target_bitrate is not None:
            values["target_bitrate"] = self.target_bitrate
            values["use_bitrate_target"] = True
        for key in ("vt_quality", "x265_crf", "svt_crf", "aom_crf"):
            value = getattr(self, key)
            if value is not None:
                values[key] = str(value)
        return values

    def apply_reconnect(self, base: ReconnectConfig) -> ReconnectConfig:
        """Merge the profile's retry overrides into base.

        Raises:
            ValueError: If the merged values are inconsistent.
        """
        if self.reconnect is None:
            return base
        overrides = self.reconnect.model_dump(exclude_none=True)
        return replace(base, **overrides)


def get_profiles_directory() -> Path:
    """Get the profiles directory path.

    Returns:
        Path to ~/.mts/profiles/ (follows MTS_DATA_DIR).
    """
    return get_data_dir() / "profiles"


def list_profiles(directory: Path | None = None) -> list[str]:
    """List available profile names.

    Returns:
        Sorted profile names (without .yaml extension).
    """
    profiles_dir = directory or get_profiles_directory()
    if not profiles_dir.exists():
        return []

    return sorted(
        p.stem
        for p in profiles_dir.glob("*.yaml")
        if p.is_file() and not p.name.startswith(".")
    )


def load_profile(name: str, directory: Path | None = None) -> TranscodeProfileModel:
    """Load a profile by name.

    Args:
        name: Profile name (without .yaml extension).
        directory: Profiles directory. None uses get_profiles_directory().

    Returns:
        Validated profile. Its name defaults to the file name.

    Raises:
        ProfileNotFoundError: If profile doesn't exist.
        ProfileError: If profile is invalid.
    """
    if not PROFILE_NAME_PATTERN.match(name):
        raise ProfileError(f"Profile name must be alphanumeric (with - or _): {name}")

    profile_path = (directory or get_profiles_directory()) / f"{name}.yaml"
    if not profile_path.exists():
        raise ProfileNotFoundError(f"Profile not found: {name}")

    try:
        with open(profile_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ProfileError(f"Invalid YAML in profile {name}: {e}") from e

    if not isinstance(data, dict):
        raise ProfileError(f"Profile {name} must be a mapping of settings")

    data.setdefault("name", name)
    try:
        return TranscodeProfileModel.model_validate(data)
    except ValidationError as e:
        raise ProfileError(f"Invalid profile {name}: {e}") from e
