"""CLI command for resilient transcoding."""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import click

from mts.cli.exit_codes import ExitCode
from mts.config.models import MTSConfig, ReconnectConfig
from mts.config.profiles import (
    ProfileError,
    ProfileNotFoundError,
    TranscodeProfileModel,
    load_profile,
)
from mts.core.cancellation import CancellationToken
from mts.core.codecs import HardwareAccel
from mts.core.subprocess_utils import format_command
from mts.exceptions import (
    ConcatenationError,
    EngineNotFoundError,
    HealthCheckError,
    RetryError,
    TranscodeCancelledError,
)
from mts.executor.command import (
    DEFAULT_SEGMENT_TIME,
    build_segment_args,
    build_transcode_args,
)
from mts.executor.engine import require_engine
from mts.executor.segments import segment_directory_for
from mts.executor.types import TranscodeRequest, TranscodeResult
from mts.reconnect.orchestrator import ReconnectionOrchestrator

logger = logging.getLogger(__name__)

GPU_CHOICES = [member.value for member in HardwareAccel]


def _install_signal_handlers(token: CancellationToken) -> Callable[[], None]:
    """Cancel token on SIGINT/SIGTERM.

    Returns:
        A function restoring the previous handlers.
    """
    previous: dict[int, Any] = {}

    def handler(signum: int, frame: object) -> None:
        token.cancel(f"received {signal.Signals(signum).name}")

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[signum] = signal.signal(signum, handler)
        except ValueError:
            # Not in the main thread; rely on the caller to cancel
            logger.debug("Cannot install handler for %s", signum)

    def restore() -> None:
        for signum, old in previous.items():
            signal.signal(signum, old)

    return restore


def _build_request(
    source: str,
    output: Path,
    profile: TranscodeProfileModel | None,
    cli_values: dict[str, Any],
    config: MTSConfig,
) -> TranscodeRequest:
    """Merge built-in defaults < profile < CLI options into a request."""
    values: dict[str, Any] = profile.request_defaults() if profile else {}
    values.update({k: v for k, v in cli_values.items() if v is not None})

    if values.get("target_bitrate"):
        values["use_bitrate_target"] = True
    if not values.get("user_agent") and config.http.user_agent:
        values["user_agent"] = config.http.user_agent

    return TranscodeRequest(source=source, output=str(output), **values)


def _build_reconnect(
    base: ReconnectConfig,
    profile: TranscodeProfileModel | None,
    overrides: dict[str, Any],
) -> ReconnectConfig:
    reconnect = profile.apply_reconnect(base) if profile else base
    explicit = {k: v for k, v in overrides.items() if v is not None}
    return replace(reconnect, **explicit) if explicit else reconnect


def _exit_code_for_retry_error(error: RetryError) -> ExitCode:
    last = error.last_error
    if isinstance(last, EngineNotFoundError):
        return ExitCode.TOOL_NOT_AVAILABLE
    if isinstance(last, HealthCheckError):
        return ExitCode.STREAM_UNHEALTHY
    if error.exhausted:
        return ExitCode.RETRIES_EXHAUSTED
    return ExitCode.OPERATION_FAILED


@click.command("transcode")
@click.argument("source")
@click.argument("output", type=click.Path(path_type=Path, dir_okay=False))
@click.option(
    "--gpu",
    type=click.Choice(GPU_CHOICES, case_sensitive=False),
    default=None,
    help="GPU vendor for hardware-accelerated decoding.",
)
@click.option(
    "--video-codec",
    default=None,
    help="Video codec (copy, h264, hevc, x265, av1, svt, aom).",
)
@click.option("--audio-codec", default=None, help="Audio encoder (default: copy).")
@click.option("--preset", default=None, help="Encoder preset (e.g. slow, medium, 6).")
@click.option("--no-audio", is_flag=True, default=False, help="Drop the audio track.")
@click.option("--origin", default=None, help="Origin HTTP header.")
@click.option("--referer", default=None, help="Referer HTTP header.")
@click.option("--user-agent", default=None, help="User-Agent HTTP header.")
@click.option(
    "--original-link",
    default=None,
    help="Source page, stored as url metadata.",
)
@click.option(
    "--target-bitrate",
    default=None,
    help="Fixed bitrate for hardware encoders (e.g. 8M, 4500k).",
)
@click.option(
    "--prefer-10bit",
    is_flag=True,
    default=False,
    help="Encode 10-bit where supported.",
)
@click.option(
    "--even-size",
    is_flag=True,
    default=False,
    help="Round dimensions down to even numbers.",
)
@click.option("--profile", "profile_name", default=None, help="Transcode profile name.")
@click.option(
    "--ffmpeg",
    "ffmpeg_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="ffmpeg executable (overrides config and environment).",
)
@click.option("--max-retries", type=click.IntRange(min=0), default=None)
@click.option("--initial-delay", type=click.FloatRange(min=0), default=None)
@click.option("--max-delay", type=click.FloatRange(min=0), default=None)
@click.option("--backoff-factor", type=float, default=None)
@click.option("--health-check-timeout", type=float, default=None)
@click.option(
    "--segment",
    is_flag=True,
    default=False,
    help="Record in segments, then join them.",
)
@click.option(
    "--segment-time",
    type=click.IntRange(min=1),
    default=DEFAULT_SEGMENT_TIME,
    show_default=True,
    help="Segment length in seconds.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print the ffmpeg command and exit.",
)
@click.pass_context
def transcode_command(
    ctx: click.Context,
    source: str,
    output: Path,
    gpu: str | None,
    video_codec: str | None,
    audio_codec: str | None,
    preset: str | None,
    no_audio: bool,
    origin: str | None,
    referer: str | None,
    user_agent: str | None,
    original_link: str | None,
    target_bitrate: str | None,
    prefer_10bit: bool,
    even_size: bool,
    profile_name: str | None,
    ffmpeg_path: Path | None,
    max_retries: int | None,
    initial_delay: float | None,
    max_delay: float | None,
    backoff_factor: float | None,
    health_check_timeout: float | None,
    segment: bool,
    segment_time: int,
    dry_run: bool,
) -> None:
    """Transcode SOURCE (URL or file) into OUTPUT, reconnecting on failure.

    HLS sources are health-checked before the first run and between
    reconnection attempts. Ctrl+C stops the transcode cleanly.

    Examples:

        mts transcode https://example.com/live.m3u8 out.mp4 --video-codec hevc

        mts transcode input.mkv out.mp4 --video-codec svt --preset slow
    """
    config: MTSConfig = ctx.obj["config"]

    profile: TranscodeProfileModel | None = None
    if profile_name:
        try:
            profile = load_profile(profile_name)
        except ProfileNotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(ExitCode.PROFILE_NOT_FOUND)
        except ProfileError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(ExitCode.CONFIG_ERROR)

    cli_values: dict[str, Any] = {
        "hw_accel": HardwareAccel.parse(gpu) if gpu else None,
        "video_codec": video_codec,
        "audio_codec": audio_codec,
        "preset": preset,
        "include_audio": False if no_audio else None,
        "origin": origin,
        "referer": referer,
        "user_agent": user_agent,
        "original_link": original_link,
        "target_bitrate": target_bitrate,
        "prefer_10bit": True if prefer_10bit else None,
        "ensure_even_size": True if even_size else None,
    }
    try:
        request = _build_request(source, output, profile, cli_values, config)
        reconnect = _build_reconnect(
            config.reconnect,
            profile,
            {
                "max_retries": max_retries,
                "initial_delay": initial_delay,
                "max_delay": max_delay,
                "backoff_factor": backoff_factor,
                "health_check_timeout": health_check_timeout,
            },
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.INVALID_INPUT)

    configured_engine = ffmpeg_path or config.tools.ffmpeg

    if segment:
        args = build_segment_args(
            request, segment_directory_for(request.output_path), segment_time
        )
    else:
        args = build_transcode_args(request)

    if dry_run:
        click.echo(format_command([str(configured_engine or "ffmpeg"), *args]))
        ctx.exit(ExitCode.SUCCESS)

    try:
        engine_path = require_engine(configured_engine)
    except EngineNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.TOOL_NOT_AVAILABLE)

    token = CancellationToken()
    orchestrator = ReconnectionOrchestrator(
        engine_path,
        policy=reconnect.to_retry_policy(),
        monitor_settings=config.monitor.to_monitor_settings(),
        cancel_token=token,
    )

    restore_signals = _install_signal_handlers(token)
    try:
        if segment:
            result = orchestrator.transcode_segmented(request, segment_time)
        else:
            result = orchestrator.transcode(request)
    except TranscodeCancelledError:
        click.echo("Transcode cancelled.", err=True)
        ctx.exit(ExitCode.INTERRUPTED)
    except RetryError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(_exit_code_for_retry_error(e))
    except ConcatenationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.OPERATION_FAILED)
    finally:
        restore_signals()

    _echo_result(result)


def _echo_result(result: TranscodeResult) -> None:
    click.echo(
        f"Transcode complete: {result.output_path} "
        f"({result.attempts} attempt(s), {result.elapsed_seconds:.1f}s)"
    )
    if result.segmented:
        click.echo(f"  Segments: {len(result.segment_files)}")
