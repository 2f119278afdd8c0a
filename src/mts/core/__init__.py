"""Core utilities package.

Helpers shared across mts: codec tables, string handling, one-shot
subprocess invocation and request cancellation.
"""

from mts.core.cancellation import CancellationToken
from mts.core.codecs import (
    COPY_CODEC,
    DEFAULT_VIDEO_ENCODER,
    HWACCEL_BACKENDS,
    HardwareAccel,
    get_container_tag,
    get_pixel_format,
    is_software_encoder,
    is_videotoolbox_encoder,
    map_preset,
    resolve_video_encoder,
)
from mts.core.string_utils import contains_any, first_non_empty, normalize_string
from mts.core.subprocess_utils import format_command, run_command

__all__ = [
    "CancellationToken",
    # Codecs
    "COPY_CODEC",
    "DEFAULT_VIDEO_ENCODER",
    "HWACCEL_BACKENDS",
    "HardwareAccel",
    "get_container_tag",
    "get_pixel_format",
    "is_software_encoder",
    "is_videotoolbox_encoder",
    "map_preset",
    "resolve_video_encoder",
    # Strings
    "contains_any",
    "first_non_empty",
    "normalize_string",
    # Subprocess
    "format_command",
    "run_command",
]
