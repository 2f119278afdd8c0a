"""Resilient transcode orchestration.

ReconnectionOrchestrator ties the pieces together for one request:
pre-flight health check for HLS sources, argument compilation, engine
launch under a ProcessMonitor, and reconnection through
retry_with_backoff() when an attempt fails recoverably.
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404 - only used for the launcher type
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from mts.core.cancellation import CancellationToken
from mts.executor.command import (
    DEFAULT_SEGMENT_TIME,
    build_segment_args,
    build_transcode_args,
)
from mts.executor.engine import launch_engine
from mts.executor.monitor import MonitorSettings, ProcessMonitor
from mts.executor.segments import (
    concatenate_segments,
    create_segment_directory,
    next_segment_number,
)
from mts.executor.types import TranscodeRequest, TranscodeResult
from mts.logging.context import attempt_context, get_attempt_context, new_request_id
from mts.reconnect.retry import AttemptOutcome, RetryPolicy, retry_with_backoff
from mts.stream.health import StreamHealthChecker

logger = logging.getLogger(__name__)

Launcher = Callable[[str, Sequence[str]], "subprocess.Popen[str]"]
HealthCheckerFactory = Callable[[TranscodeRequest], StreamHealthChecker]
# Compiles engine arguments for one 0-based attempt
ArgsFactory = Callable[[int], Sequence[str]]


def default_health_checker_factory(request: TranscodeRequest) -> StreamHealthChecker:
    """Build a checker sending the request's own HTTP headers."""
    return StreamHealthChecker(
        user_agent=request.user_agent,
        origin=request.origin,
        referer=request.referer,
    )


class ReconnectionOrchestrator:
    """Run transcodes with health checks and automatic reconnection.

    One orchestrator serves one logical request at a time. The cancel
    token spans the whole request: cancelling it kills the running engine
    and stops any pending retry wait.
    """

    def __init__(
        self,
        engine_path: str | Path,
        policy: RetryPolicy | None = None,
        monitor_settings: MonitorSettings | None = None,
        health_checker_factory: HealthCheckerFactory = default_health_checker_factory,
        cancel_token: CancellationToken | None = None,
        launcher: Launcher = launch_engine,
        on_attempt: Callable[[AttemptOutcome], None] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            engine_path: ffmpeg executable used for every launch.
            policy: Retry policy. None uses RetryPolicy defaults.
            monitor_settings: Supervision timing. None uses defaults.
            health_checker_factory: Builds a StreamHealthChecker per request.
            cancel_token: Request-wide cancellation token.
            launcher: Starts the engine (injectable for tests).
            on_attempt: Optional observer for every attempt outcome.
        """
        self._engine_path = str(engine_path)
        self._policy = policy or RetryPolicy()
        self._monitor_settings = monitor_settings or MonitorSettings()
        self._health_checker_factory = health_checker_factory
        self._cancel_token = cancel_token or CancellationToken()
        self._launcher = launcher
        self._on_attempt = on_attempt

    @property
    def cancel_token(self) -> CancellationToken:
        return self._cancel_token

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def check_stream_health(self, request: TranscodeRequest) -> None:
        """Probe the request's source, retrying per the policy.

        Raises:
            RetryError: The source never passed a health check.
            TranscodeCancelledError: The request was cancelled.
        """
        checker = self._health_checker_factory(request)
        url = request.source_url
        timeout = self._policy.health_check_timeout

        def probe(attempt: int) -> None:
            checker.check(url, timeout)

        retry_with_backoff(
            probe,
            self._policy,
            description="stream health check",
            cancel_token=self._cancel_token,
            on_attempt=self._on_attempt,
        )
        logger.info("Stream is healthy: %s", url)

    def execute_with_reconnection(
        self, request: TranscodeRequest, args: Sequence[str] | ArgsFactory
    ) -> int:
        """Launch and supervise the engine, reconnecting on recoverable failure.

        Retried attempts against an HLS source re-verify stream health
        first. A failed re-check fails that attempt without launching.

        Args:
            request: The transcode request (used for source kind and URL).
            args: Compiled engine arguments, or a factory called with the
                attempt index just before each launch.

        Returns:
            Number of attempts made (1 = first try succeeded).

        Raises:
            RetryError: All attempts failed, or one failed permanently.
            TranscodeCancelledError: The request was cancelled.
        """
        checker = self._health_checker_factory(request) if request.is_hls else None
        monitor = ProcessMonitor(self._monitor_settings, health_checker=checker)
        request_id, _ = get_attempt_context()

        def run_once(attempt: int) -> int:
            with attempt_context(request_id, attempt + 1):
                if attempt > 0 and checker is not None:
                    logger.info("Re-verifying stream health before reconnecting")
                    checker.check(request.source_url, self._policy.health_check_timeout)

                attempt_args = args(attempt) if callable(args) else args
                process = self._launcher(self._engine_path, attempt_args)
                monitor.supervise(
                    process,
                    is_hls=request.is_hls,
                    source_url=request.source_url,
                    cancel_token=self._cancel_token,
                )
                return attempt + 1

        return retry_with_backoff(
            run_once,
            self._policy,
            description="ffmpeg execution",
            cancel_token=self._cancel_token,
            on_attempt=self._on_attempt,
        )

    def transcode(self, request: TranscodeRequest) -> TranscodeResult:
        """Transcode request.source into request.output.

        Raises:
            RetryError: Health check or execution failed.
            TranscodeCancelledError: The request was cancelled.
        """
        with attempt_context(new_request_id()):
            start = time.monotonic()
            logger.info("Transcoding %s -> %s", request.source_url, request.output_path)

            if request.is_hls:
                logger.info("HLS source detected, checking stream health")
                self.check_stream_health(request)

            request.output_path.parent.mkdir(parents=True, exist_ok=True)
            args = build_transcode_args(request)
            attempts = self.execute_with_reconnection(request, args)

            elapsed = time.monotonic() - start
            logger.info(
                "Transcode completed in %.1fs (%d attempt(s)): %s",
                elapsed,
                attempts,
                request.output_path,
            )
            return TranscodeResult(
                output_path=request.output_path,
                attempts=attempts,
                elapsed_seconds=elapsed,
            )

    def transcode_segmented(
        self,
        request: TranscodeRequest,
        segment_time: int = DEFAULT_SEGMENT_TIME,
    ) -> TranscodeResult:
        """Record request.source as segments, then join them into the output.

        Segments land in a directory named after the output file (without
        its suffix) and are kept after concatenation.
        Each reconnection continues numbering after the segments already
        recorded.

        Raises:
            RetryError: Health check or execution failed.
            ConcatenationError: Joining the segments failed.
            TranscodeCancelledError: The request was cancelled.
        """
        with attempt_context(new_request_id()):
            start = time.monotonic()
            logger.info(
                "Segmented recording %s -> %s (%ds segments)",
                request.source_url,
                request.output_path,
                segment_time,
            )

            if request.is_hls:
                self.check_stream_health(request)

            segment_dir = create_segment_directory(request.output_path)

            def segment_args(attempt: int) -> list[str]:
                start_number = next_segment_number(segment_dir)
                if start_number:
                    logger.info("Continuing recording at segment %d", start_number)
                return build_segment_args(
                    request, segment_dir, segment_time, start_number
                )

            attempts = self.execute_with_reconnection(request, segment_args)

            segments = concatenate_segments(
                self._engine_path, segment_dir, request.output_path
            )
            elapsed = time.monotonic() - start
            logger.info(
                "Segmented transcode completed in %.1fs: %d segments -> %s",
                elapsed,
                len(segments),
                request.output_path,
            )
            return TranscodeResult(
                output_path=request.output_path,
                attempts=attempts,
                elapsed_seconds=elapsed,
                segmented=True,
                segment_files=tuple(segments),
            )
