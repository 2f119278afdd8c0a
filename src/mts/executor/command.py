"""ffmpeg command building for transcoding.

This module turns a TranscodeRequest into the ordered argument list passed
to the engine. Compilation is pure: no I/O, no state, and no failure mode.
Unrecognized inputs resolve to safe defaults instead of raising.

Argument order is fixed:
    hwaccel, headers, input (+metadata), video codec, tag/pix_fmt/movflags,
    rate control, audio, output.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from mts.core.codecs import (
    COPY_CODEC,
    DEFAULT_AOM_CRF,
    DEFAULT_SVT_CRF,
    DEFAULT_VT_QUALITY,
    DEFAULT_X265_CRF,
    HWACCEL_BACKENDS,
    LIBAOM_AV1,
    LIBSVTAV1,
    LIBX265,
    SVTAV1_PARAMS,
    X265_PARAMS,
    HardwareAccel,
    get_container_tag,
    get_pixel_format,
    is_software_encoder,
    is_videotoolbox_encoder,
    map_preset,
    resolve_video_encoder,
)
from mts.core.string_utils import first_non_empty, normalize_string

from .types import TranscodeRequest

logger = logging.getLogger(__name__)

HEADER_SEPARATOR = "\r\n"
EVEN_SIZE_FILTER = "scale=trunc(iw/2)*2:trunc(ih/2)*2"
FASTSTART_FLAGS = ("-movflags", "+faststart")

DEFAULT_SEGMENT_TIME = 10
SEGMENT_PLAYLIST_NAME = "playlist.m3u8"
SEGMENT_PATTERN = "segment_%03d.ts"

_BITRATE_PATTERN = re.compile(r"^(\d+)([km])$")


def build_hwaccel_args(hw_accel: HardwareAccel | str | None) -> list[str]:
    """Build decode acceleration arguments.

    Args:
        hw_accel: GPU vendor class (unknown values contribute nothing).

    Returns:
        ["-hwaccel", backend] or an empty list.
    """
    backend = HWACCEL_BACKENDS.get(HardwareAccel.parse(hw_accel))
    if backend is None:
        return []
    return ["-hwaccel", backend]


def build_header_args(request: TranscodeRequest) -> list[str]:
    """Join the request's HTTP headers into a single -headers block."""
    headers = request.headers
    if not headers:
        return []
    block = HEADER_SEPARATOR.join(f"{name}: {value}" for name, value in headers.items())
    return ["-headers", block]


def build_input_args(request: TranscodeRequest) -> list[str]:
    args = ["-i", request.source_url]
    if request.original_link.strip():
        args.extend(["-metadata", f'url="{request.original_link}"'])
    return args


def double_bitrate(bitrate: str) -> str | None:
    """Double a k/M suffixed bitrate for use as a VBV buffer size.

    Args:
        bitrate: Bitrate such as "4500k" or "4M" (case-insensitive suffix).

    Returns:
        Doubled bitrate ("9000k", "8M"), or None if the value cannot be parsed.

    Example:
        >>> double_bitrate("4500k")
        '9000k'
        >>> double_bitrate("4M")
        '8M'
    """
    match = _BITRATE_PATTERN.match(normalize_string(bitrate))
    if not match:
        return None
    value = int(match.group(1))
    if value <= 0:
        return None
    unit = "k" if match.group(2) == "k" else "M"
    return f"{value * 2}{unit}"


def build_rate_control_args(encoder: str, request: TranscodeRequest) -> list[str]:
    """Build quality/bitrate arguments for the resolved encoder.

    Software encoders get CRF plus a preset translated to their native
    scale. VideoToolbox encoders get either a fixed bitrate with a doubled
    buffer (when a bitrate target is requested) or a constant quality factor.

    Args:
        encoder: Resolved ffmpeg encoder name.
        request: Transcode request with optional quality overrides.

    Returns:
        List of ffmpeg arguments, empty for encoders without rate control.
    """
    args: list[str] = []

    if is_software_encoder(encoder):
        preset = map_preset(encoder, request.preset)
        if encoder == LIBX265:
            args.extend(
                [
                    "-crf",
                    first_non_empty(request.x265_crf, DEFAULT_X265_CRF),
                    "-preset",
                    preset,
                    "-tune",
                    "grain",
                    "-x265-params",
                    X265_PARAMS,
                    "-g",
                    "250",
                ]
            )
        elif encoder == LIBSVTAV1:
            args.extend(
                [
                    "-crf",
                    first_non_empty(request.svt_crf, DEFAULT_SVT_CRF),
                    "-preset",
                    preset,
                    "-g",
                    "300",
                    "-svtav1-params",
                    SVTAV1_PARAMS,
                ]
            )
        elif encoder == LIBAOM_AV1:
            args.extend(
                [
                    "-crf",
                    first_non_empty(request.aom_crf, DEFAULT_AOM_CRF),
                    "-cpu-used",
                    preset,
                    "-row-mt",
                    "1",
                    "-tile-columns",
                    "1",
                    "-tile-rows",
                    "0",
                    "-aq-mode",
                    "1",
                    "-g",
                    "300",
                ]
            )

    elif is_videotoolbox_encoder(encoder):
        target = request.target_bitrate.strip()
        if request.use_bitrate_target and target:
            args.extend(["-b:v", target, "-maxrate", target])
            bufsize = double_bitrate(target)
            if bufsize is not None:
                args.extend(["-bufsize", bufsize])
            else:
                logger.warning(
                    "Could not parse target bitrate %r, omitting -bufsize", target
                )
        else:
            quality = first_non_empty(request.vt_quality, DEFAULT_VT_QUALITY)
            args.extend(["-b:v", "0", "-q:v", quality])
        args.extend(["-g", "300"])

    return args


def build_video_args(request: TranscodeRequest) -> list[str]:
    """Build video encoder arguments, including container compatibility flags."""
    encoder = resolve_video_encoder(request.video_codec)
    args = ["-c:v", encoder]
    if encoder == COPY_CODEC:
        return args

    tag = get_container_tag(encoder)
    if tag:
        args.extend(["-tag:v", tag])
    args.extend(["-pix_fmt", get_pixel_format(encoder, request.prefer_10bit)])
    args.extend(FASTSTART_FLAGS)
    if request.ensure_even_size:
        args.extend(["-vf", EVEN_SIZE_FILTER])
    args.extend(build_rate_control_args(encoder, request))
    return args


def build_audio_args(request: TranscodeRequest) -> list[str]:
    if not request.include_audio:
        return ["-an"]
    if normalize_string(request.audio_codec) in ("", COPY_CODEC):
        return ["-c:a", COPY_CODEC]
    return ["-c:a", request.audio_codec]


def _build_common_args(request: TranscodeRequest) -> list[str]:
    args: list[str] = []
    args.extend(build_hwaccel_args(request.hw_accel))
    args.extend(build_header_args(request))
    args.extend(build_input_args(request))
    args.extend(build_video_args(request))
    args.extend(build_audio_args(request))
    return args


def build_transcode_args(request: TranscodeRequest) -> list[str]:
    """Compile a request into the ordered ffmpeg argument list.

    The engine executable itself is not included; callers prepend it.

    Args:
        request: Transcode request.

    Returns:
        Argument list ending with "-y" and the output path.
    """
    args = _build_common_args(request)
    args.extend(["-y", request.output.strip()])
    return args


def build_segment_args(
    request: TranscodeRequest,
    output_dir: Path,
    segment_time: int = DEFAULT_SEGMENT_TIME,
    start_number: int = 0,
) -> list[str]:
    """Compile a request for segmented recording into output_dir.

    The engine writes fixed-length MPEG-TS segments plus an m3u8 playlist,
    so an interrupted recording still leaves usable pieces on disk.

    Args:
        request: Transcode request.
        output_dir: Directory receiving the segments.
        segment_time: Segment length in seconds.
        start_number: Index of the first segment written. Non-zero when a
            reconnected recording continues after existing segments.

    Returns:
        Argument list ending with "-y" and the segment filename pattern.
    """
    args = _build_common_args(request)
    args.extend(
        [
            "-f",
            "segment",
            "-segment_time",
            str(segment_time),
            "-segment_format",
            "mpegts",
            "-reset_timestamps",
            "1",
        ]
    )
    if start_number > 0:
        args.extend(["-segment_start_number", str(start_number)])
    args.extend(
        [
            "-segment_list",
            str(output_dir / SEGMENT_PLAYLIST_NAME),
            "-segment_list_type",
            "m3u8",
            "-y",
            str(output_dir / SEGMENT_PATTERN),
        ]
    )
    return args
