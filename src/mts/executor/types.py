"""Transcode request and result types.

This module defines the immutable value objects that flow through the
executor: the request describing one transcode, and the result returned
once it has completed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from mts.core.codecs import HardwareAccel


def is_hls_source(source: str) -> bool:
    """Guess whether a source locator points at an HLS stream.

    Args:
        source: URL or file path.

    Returns:
        True if the locator mentions an .m3u8 manifest or "hls".
    """
    return ".m3u8" in source or "hls" in source.casefold()


@dataclass(frozen=True)
class TranscodeRequest:
    """Everything needed to compile one engine invocation.

    Only ``source`` and ``output`` are required. Every other field may be
    left empty and resolves to a documented default during compilation.
    """

    source: str
    """Input URL or file path."""

    output: str
    """Output file path (or segmented recording target)."""

    hw_accel: HardwareAccel = HardwareAccel.NONE
    video_codec: str = ""
    audio_codec: str = ""
    preset: str = ""
    include_audio: bool = True

    # HTTP headers forwarded to the engine and to health probes
    origin: str = ""
    referer: str = ""
    user_agent: str = ""

    original_link: str = ""
    """Page the stream was taken from, stored as url= metadata."""

    ensure_even_size: bool = False
    prefer_10bit: bool = False

    # Rate control for hardware encoders
    use_bitrate_target: bool = False
    target_bitrate: str = ""

    # Quality overrides; empty means the per-encoder default
    vt_quality: str = ""
    x265_crf: str = ""
    svt_crf: str = ""
    aom_crf: str = ""

    def __post_init__(self) -> None:
        """Validate locators and normalize the acceleration class."""
        if not self.source or not self.source.strip():
            raise ValueError("source must not be empty")
        if not self.output or not self.output.strip():
            raise ValueError("output must not be empty")
        if not isinstance(self.hw_accel, HardwareAccel):
            object.__setattr__(self, "hw_accel", HardwareAccel.parse(self.hw_accel))

    @property
    def source_url(self) -> str:
        """Source locator with surrounding whitespace removed."""
        return self.source.strip()

    @property
    def output_path(self) -> Path:
        return Path(self.output.strip())

    @property
    def is_hls(self) -> bool:
        return is_hls_source(self.source_url)

    @property
    def headers(self) -> dict[str, str]:
        """Non-empty HTTP headers in Origin, Referer, User-Agent order."""
        candidates = (
            ("Origin", self.origin),
            ("Referer", self.referer),
            ("User-Agent", self.user_agent),
        )
        return {
            name: value.strip() for name, value in candidates if value and value.strip()
        }


@dataclass(frozen=True)
class TranscodeResult:
    """Outcome of a successful transcode."""

    output_path: Path
    attempts: int
    """Number of engine runs it took (1 = first try)."""

    elapsed_seconds: float
    segmented: bool = False
    segment_files: tuple[Path, ...] = field(default_factory=tuple)
