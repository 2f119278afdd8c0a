"""Codec registry for argument compilation.

This module is the single source of truth for the engine-facing codec
knowledge used when compiling transcode arguments:
- Hardware acceleration backends per GPU vendor
- Video codec alias table (user input -> ffmpeg encoder)
- Container tags and pixel formats per encoder
- Preset scales and default quality values per encoder family
"""

from __future__ import annotations

from enum import Enum

from mts.core.string_utils import normalize_string

# =============================================================================
# Hardware Acceleration
# =============================================================================


class HardwareAccel(Enum):
    """GPU vendor class used to pick an ffmpeg decode acceleration backend."""

    NONE = "none"
    APPLE = "apple"
    INTEL = "intel"
    AMD = "amd"
    NVIDIA = "nvidia"

    @classmethod
    def parse(cls, value: str | HardwareAccel | None) -> HardwareAccel:
        """Parse a vendor name, resolving unknown or empty values to NONE.

        Args:
            value: Vendor name (case-insensitive) or an existing member.

        Returns:
            Matching HardwareAccel member, NONE if unrecognized.
        """
        if isinstance(value, HardwareAccel):
            return value
        normalized = normalize_string(value)
        for member in cls:
            if member.value == normalized:
                return member
        return cls.NONE


HWACCEL_BACKENDS: dict[HardwareAccel, str] = {
    HardwareAccel.APPLE: "videotoolbox",
    HardwareAccel.INTEL: "qsv",
    HardwareAccel.AMD: "dxva2",
    HardwareAccel.NVIDIA: "cuda",
}

# =============================================================================
# Video Encoders
# =============================================================================

COPY_CODEC = "copy"

H264_VIDEOTOOLBOX = "h264_videotoolbox"
HEVC_VIDEOTOOLBOX = "hevc_videotoolbox"
AV1_VIDEOTOOLBOX = "av1_videotoolbox"
LIBX265 = "libx265"
LIBAOM_AV1 = "libaom-av1"
LIBSVTAV1 = "libsvtav1"

# Used for any video codec name the alias table does not recognize
DEFAULT_VIDEO_ENCODER = H264_VIDEOTOOLBOX

VIDEO_ENCODER_ALIASES: dict[str, str] = {
    "": COPY_CODEC,
    "copy": COPY_CODEC,
    "libx264": H264_VIDEOTOOLBOX,
    "avc1": H264_VIDEOTOOLBOX,
    "h264": H264_VIDEOTOOLBOX,
    "hevc": HEVC_VIDEOTOOLBOX,
    "libx265": LIBX265,
    "x265": LIBX265,
    "av1": AV1_VIDEOTOOLBOX,
    "av1_videotoolbox": AV1_VIDEOTOOLBOX,
    "libaom": LIBAOM_AV1,
    "libaom-av1": LIBAOM_AV1,
    "aom": LIBAOM_AV1,
    "svt": LIBSVTAV1,
    "libsvtav1": LIBSVTAV1,
}

SOFTWARE_ENCODERS: frozenset[str] = frozenset({LIBX265, LIBSVTAV1, LIBAOM_AV1})

HEVC_ENCODERS: frozenset[str] = frozenset({HEVC_VIDEOTOOLBOX, LIBX265})
AV1_ENCODERS: frozenset[str] = frozenset({AV1_VIDEOTOOLBOX, LIBAOM_AV1, LIBSVTAV1})

# Container tags required for Apple/browser players to recognize the stream
CONTAINER_TAGS: dict[str, str] = {
    **{encoder: "hvc1" for encoder in HEVC_ENCODERS},
    **{encoder: "av01" for encoder in AV1_ENCODERS},
}

DEFAULT_PIXEL_FORMAT = "yuv420p"

# Only encoders listed here produce 10-bit output when it is requested
TEN_BIT_PIXEL_FORMATS: dict[str, str] = {
    HEVC_VIDEOTOOLBOX: "p010le",
    LIBX265: "yuv420p10le",
    LIBSVTAV1: "yuv420p10le",
    LIBAOM_AV1: "yuv420p10le",
}

# =============================================================================
# Quality Defaults
# =============================================================================

DEFAULT_VT_QUALITY = "17"
DEFAULT_X265_CRF = "18"
DEFAULT_SVT_CRF = "24"
DEFAULT_AOM_CRF = "30"

X265_PARAMS = (
    "aq-mode=3:aq-strength=1.0:qcomp=0.72:rd=4:psy-rd=2.0:psy-rdoq=1.0:"
    "deblock=-1,-1:strong-intra-smoothing=0:sao=0"
)
SVTAV1_PARAMS = "tune=0:scd=1"

# =============================================================================
# Presets
# =============================================================================

X265_PRESETS: frozenset[str] = frozenset(
    {
        "ultrafast",
        "superfast",
        "veryfast",
        "faster",
        "fast",
        "medium",
        "slow",
        "slower",
        "veryslow",
        "placebo",
    }
)
DEFAULT_X265_PRESET = "slow"

# SVT-AV1 numeric presets 0-13 (lower = slower/better quality)
SVTAV1_PRESET_SCALE: dict[str, str] = {
    "placebo": "3",
    "veryslow": "3",
    "slower": "4",
    "slow": "5",
    "medium": "6",
    "fast": "7",
    "faster": "8",
    "veryfast": "9",
    "superfast": "10",
    "ultrafast": "12",
}
DEFAULT_SVTAV1_PRESET = "6"

# libaom-av1 cpu-used 0-8 (lower = slower/better quality)
AOM_CPU_USED_SCALE: dict[str, str] = {
    "placebo": "1",
    "veryslow": "1",
    "slower": "2",
    "slow": "3",
    "medium": "4",
    "fast": "5",
    "faster": "6",
    "veryfast": "7",
    "superfast": "8",
    "ultrafast": "8",
}
DEFAULT_AOM_CPU_USED = "4"


def resolve_video_encoder(name: str | None) -> str:
    """Map a user-supplied video codec name to an ffmpeg encoder.

    Args:
        name: Codec name as typed by the user (e.g., "h264", "x265", "copy").

    Returns:
        ffmpeg encoder name. Empty input resolves to "copy"; unrecognized
        names resolve to DEFAULT_VIDEO_ENCODER.

    Example:
        >>> resolve_video_encoder("libx264")
        'h264_videotoolbox'
        >>> resolve_video_encoder("divx")
        'h264_videotoolbox'
    """
    return VIDEO_ENCODER_ALIASES.get(normalize_string(name), DEFAULT_VIDEO_ENCODER)


def is_software_encoder(encoder: str) -> bool:
    """True if the encoder runs on the CPU and takes CRF + preset settings."""
    return encoder in SOFTWARE_ENCODERS


def is_videotoolbox_encoder(encoder: str) -> bool:
    """True if the encoder is a VideoToolbox hardware encoder."""
    return encoder.endswith("videotoolbox")


def get_container_tag(encoder: str) -> str | None:
    """Get the -tag:v value an encoder needs, or None if it needs none."""
    return CONTAINER_TAGS.get(encoder)


def get_pixel_format(encoder: str, prefer_10bit: bool = False) -> str:
    """Get the output pixel format for an encoder.

    Args:
        encoder: ffmpeg encoder name.
        prefer_10bit: Request 10-bit output where the encoder supports it.

    Returns:
        Pixel format name; 8-bit planar unless 10-bit is requested and supported.
    """
    if prefer_10bit and encoder in TEN_BIT_PIXEL_FORMATS:
        return TEN_BIT_PIXEL_FORMATS[encoder]
    return DEFAULT_PIXEL_FORMAT


def map_preset(encoder: str, preset: str | None) -> str:
    """Translate a preset name into the encoder's native scale.

    x264-style names (ultrafast ... placebo) are mapped onto the numeric
    scales used by SVT-AV1 and libaom. Numeric presets pass through
    unchanged. Empty or unknown names resolve to the encoder default, so
    the result is never an empty token.

    Args:
        encoder: ffmpeg encoder name.
        preset: Preset name or number.

    Returns:
        Encoder-native preset value.
    """
    raw = (preset or "").strip()
    normalized = normalize_string(raw)

    if encoder == LIBSVTAV1:
        if normalized.isdigit():
            return normalized
        return SVTAV1_PRESET_SCALE.get(normalized, DEFAULT_SVTAV1_PRESET)

    if encoder == LIBAOM_AV1:
        if normalized.isdigit():
            return normalized
        return AOM_CPU_USED_SCALE.get(normalized, DEFAULT_AOM_CPU_USED)

    if encoder == LIBX265:
        if normalized in X265_PRESETS:
            return normalized
        return DEFAULT_X265_PRESET

    return raw
