"""Supervision of a running transcoding engine process.

A ProcessMonitor watches one engine invocation with four worker threads:

- stdout reader: progress lines (time=/size=)
- stderr reader: progress, connection attempts, connection failures and
  disconnects, plus the last diagnostic error line
- stall checker: kills the process when no progress is seen for too long
- health poller (HLS only, optional): kills the process when the source
  manifest stops answering

All workers share one ProcessObservation. Once the process has exited and
the workers are drained, a single snapshot decides the outcome.
"""

from __future__ import annotations

import contextvars
import logging
import subprocess  # nosec B404 - subprocess is required for FFmpeg invocation
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import IO, TYPE_CHECKING

from mts.core.cancellation import CancellationToken
from mts.core.string_utils import contains_any
from mts.exceptions import (
    ConnectionFailedError,
    ExecutionFailedError,
    HealthCheckError,
    StallTimeoutError,
    StreamDisconnectedError,
    TranscodeCancelledError,
)
from mts.tools.ffmpeg_progress import has_progress_marker, parse_stderr_progress

if TYPE_CHECKING:
    from mts.stream.health import StreamHealthChecker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonitorSettings:
    """Timing knobs for process supervision (all values in seconds)."""

    poll_interval: float = 5.0
    hls_stall_timeout: float = 45.0
    file_stall_timeout: float = 90.0
    health_poll_interval: float | None = 30.0
    """Interval between background manifest probes. None disables polling."""

    health_poll_timeout: float = 5.0
    drain_timeout: float = 5.0
    """Upper bound on waiting for each worker thread after process exit."""

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError(
                f"poll_interval must be positive, got {self.poll_interval}"
            )
        if self.hls_stall_timeout <= 0 or self.file_stall_timeout <= 0:
            raise ValueError("stall timeouts must be positive")
        if self.health_poll_interval is not None and self.health_poll_interval <= 0:
            raise ValueError(
                "health_poll_interval must be positive or None, "
                f"got {self.health_poll_interval}"
            )
        if self.health_poll_timeout <= 0:
            raise ValueError("health_poll_timeout must be positive")
        if self.drain_timeout < 0:
            raise ValueError("drain_timeout must be non-negative")

    def stall_timeout(self, is_hls: bool) -> float:
        """Get the stall threshold for a stream kind."""
        return self.hls_stall_timeout if is_hls else self.file_stall_timeout


# =============================================================================
# Stderr classification
# =============================================================================


class LineSignal(Enum):
    """Facts a single engine output line can establish."""

    PROGRESS = "progress"
    CONNECTION_ATTEMPT = "connection_attempt"
    CONNECTION_FAILED = "connection_failed"
    DISCONNECTED = "disconnected"
    ERROR = "error"


CONNECTION_ATTEMPT_WORDS = ("opening", "connection")
FAILURE_WORDS = ("error", "failed")
NETWORK_WORDS = ("connection", "network", "timeout", "unreachable")
DISCONNECT_WORDS = ("eof", "broken pipe", "connection lost", "stream ended")


def classify_stderr_line(line: str) -> frozenset[LineSignal]:
    """Extract monitoring signals from one stderr line.

    Args:
        line: Raw stderr line from the engine.

    Returns:
        Set of signals the line establishes (possibly empty).

    Example:
        >>> sorted(s.value for s in classify_stderr_line("Connection timeout error"))
        ['connection_attempt', 'connection_failed', 'error']
    """
    lowered = line.casefold()
    signals: set[LineSignal] = set()

    if contains_any(lowered, CONNECTION_ATTEMPT_WORDS):
        signals.add(LineSignal.CONNECTION_ATTEMPT)

    is_failure = contains_any(lowered, FAILURE_WORDS)
    if is_failure:
        signals.add(LineSignal.ERROR)
        if contains_any(lowered, NETWORK_WORDS):
            signals.add(LineSignal.CONNECTION_FAILED)

    if contains_any(lowered, DISCONNECT_WORDS):
        signals.add(LineSignal.DISCONNECTED)

    # Stream mapping lines ("Stream #0:0: Video: h264 ...") and stats lines
    if "stream" in lowered and ("video" in lowered or "audio" in lowered):
        signals.add(LineSignal.PROGRESS)
    elif has_progress_marker(line):
        signals.add(LineSignal.PROGRESS)

    return frozenset(signals)


# =============================================================================
# Observation
# =============================================================================


@dataclass(frozen=True)
class ObservationSnapshot:
    """Consistent point-in-time copy of a ProcessObservation."""

    is_hls: bool
    last_progress_at: float
    last_progress: str
    connection_attempted: bool
    connection_failed: bool
    stream_disconnected: bool
    timed_out: bool
    failure_detail: str
    last_error_line: str


class ProcessObservation:
    """Mutable record of what the monitor workers have seen.

    One instance is owned by a single supervise() call. Every read and
    write goes through one lock.
    """

    def __init__(
        self, is_hls: bool, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._is_hls = is_hls
        self._last_progress_at = clock()
        self._last_progress = ""
        self._connection_attempted = False
        self._connection_failed = False
        self._stream_disconnected = False
        self._timed_out = False
        self._failure_detail = ""
        self._last_error_line = ""

    def record_progress(self, text: str = "") -> None:
        with self._lock:
            self._last_progress_at = self._clock()
            if text:
                self._last_progress = text

    def seconds_since_progress(self) -> float:
        with self._lock:
            return self._clock() - self._last_progress_at

    def mark_connection_attempted(self) -> None:
        with self._lock:
            self._connection_attempted = True

    def mark_connection_failed(self, detail: str) -> None:
        with self._lock:
            self._connection_failed = True
            if not self._failure_detail:
                self._failure_detail = detail

    def mark_stream_disconnected(self, detail: str) -> None:
        with self._lock:
            self._stream_disconnected = True
            if not self._failure_detail:
                self._failure_detail = detail

    def mark_timed_out(self) -> None:
        with self._lock:
            self._timed_out = True

    def record_error_line(self, line: str) -> None:
        with self._lock:
            self._last_error_line = line

    def finish_stderr(self) -> None:
        """Apply end-of-output rules once the stderr stream is exhausted.

        An HLS source whose engine never tried to open a connection is
        treated as a connection failure.
        """
        with self._lock:
            if self._is_hls and not self._connection_attempted:
                self._connection_failed = True
                if not self._failure_detail:
                    self._failure_detail = (
                        "no connection attempt detected for HLS source"
                    )

    def snapshot(self) -> ObservationSnapshot:
        with self._lock:
            return ObservationSnapshot(
                is_hls=self._is_hls,
                last_progress_at=self._last_progress_at,
                last_progress=self._last_progress,
                connection_attempted=self._connection_attempted,
                connection_failed=self._connection_failed,
                stream_disconnected=self._stream_disconnected,
                timed_out=self._timed_out,
                failure_detail=self._failure_detail,
                last_error_line=self._last_error_line,
            )


# =============================================================================
# Monitor
# =============================================================================


class ProcessMonitor:
    """Supervise an engine process until it exits, then report the outcome.

    A monitor is stateless between calls; every supervise() call creates
    its own observation and worker threads, so one monitor can supervise
    successive attempts.
    """

    def __init__(
        self,
        settings: MonitorSettings | None = None,
        health_checker: StreamHealthChecker | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the monitor.

        Args:
            settings: Timing settings. None uses MonitorSettings defaults.
            health_checker: Checker used by the background health poller.
                None disables the poller.
            clock: Monotonic clock used for progress timestamps.
        """
        self._settings = settings or MonitorSettings()
        self._health_checker = health_checker
        self._clock = clock

    @property
    def settings(self) -> MonitorSettings:
        return self._settings

    def supervise(
        self,
        process: subprocess.Popen[str],
        *,
        is_hls: bool,
        source_url: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        """Watch process until it exits and raise if the run failed.

        Args:
            process: Started engine process with text-mode stdout/stderr pipes.
            is_hls: True when the source is an HLS stream.
            source_url: Source URL probed by the health poller.
            cancel_token: Token that kills the process when cancelled.

        Raises:
            TranscodeCancelledError: The token was cancelled.
            StallTimeoutError: No progress within the stall threshold.
            ConnectionFailedError: Connection problem reported or inferred.
            StreamDisconnectedError: Input dropped mid-run.
            ExecutionFailedError: Non-zero exit with no more specific signal.
        """
        observation = ProcessObservation(is_hls, clock=self._clock)
        stop_event = threading.Event()
        threshold = self._settings.stall_timeout(is_hls)

        workers = [
            self._spawn(
                "stdout-reader", self._read_stdout, process.stdout, observation
            ),
            self._spawn(
                "stderr-reader", self._read_stderr, process.stderr, observation
            ),
            self._spawn(
                "stall-checker",
                self._check_stalls,
                process,
                observation,
                stop_event,
                threshold,
            ),
        ]
        checker = self._health_checker
        poll_interval = self._settings.health_poll_interval
        if is_hls and source_url and checker is not None and poll_interval:
            workers.append(
                self._spawn(
                    "health-poller",
                    self._poll_health,
                    process,
                    observation,
                    stop_event,
                    checker,
                    source_url,
                    poll_interval,
                )
            )

        unregister = None
        if cancel_token is not None:
            unregister = cancel_token.add_callback(
                lambda: self._kill(process, "cancellation requested")
            )

        try:
            returncode = process.wait()
        finally:
            stop_event.set()
            if unregister is not None:
                unregister()
            self._join_workers(workers)

        self._raise_for_outcome(
            observation.snapshot(), returncode, threshold, cancel_token
        )
        logger.debug("Engine process exited cleanly")

    @staticmethod
    def _spawn(
        name: str, target: Callable[..., None], *args: object
    ) -> threading.Thread:
        # Each worker gets its own context copy so log records keep the
        # caller's request/attempt tags
        context = contextvars.copy_context()
        thread = threading.Thread(
            target=context.run, args=(target, *args), name=f"mts-{name}", daemon=True
        )
        thread.start()
        return thread

    def _join_workers(self, workers: Iterable[threading.Thread]) -> None:
        for thread in workers:
            thread.join(timeout=self._settings.drain_timeout)
            if thread.is_alive():
                logger.error(
                    "Monitor thread %s failed to stop within %ss. "
                    "Thread will be abandoned (potential leak).",
                    thread.name,
                    self._settings.drain_timeout,
                )

    @staticmethod
    def _kill(process: subprocess.Popen[str], reason: str) -> None:
        if process.poll() is not None:
            return
        logger.warning("Killing engine process (pid %s): %s", process.pid, reason)
        try:
            process.kill()
        except OSError as e:
            # Process exited between poll() and kill()
            logger.debug("Kill failed: %s", e)

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    @staticmethod
    def _read_stdout(stream: IO[str] | None, observation: ProcessObservation) -> None:
        if stream is None:
            return
        try:
            for line in stream:
                if has_progress_marker(line):
                    observation.record_progress(line.strip())
        except (ValueError, OSError) as e:
            # Pipe closed or process terminated
            logger.debug("Stdout reader stopped: %s", e)

    @staticmethod
    def _read_stderr(stream: IO[str] | None, observation: ProcessObservation) -> None:
        if stream is None:
            observation.finish_stderr()
            return
        try:
            for raw_line in stream:
                line = raw_line.strip()
                if not line:
                    continue
                logger.debug("ffmpeg: %s", line)
                signals = classify_stderr_line(line)

                if LineSignal.CONNECTION_ATTEMPT in signals:
                    observation.mark_connection_attempted()
                if LineSignal.ERROR in signals:
                    observation.record_error_line(line)
                if LineSignal.CONNECTION_FAILED in signals:
                    logger.warning("Connection error detected: %s", line)
                    observation.mark_connection_failed(line)
                if LineSignal.DISCONNECTED in signals:
                    logger.warning("Stream disconnection detected: %s", line)
                    observation.mark_stream_disconnected(line)
                if LineSignal.PROGRESS in signals:
                    progress = parse_stderr_progress(line)
                    observation.record_progress(progress.describe() if progress else "")
        except (ValueError, OSError) as e:
            logger.debug("Stderr reader stopped: %s", e)
        finally:
            observation.finish_stderr()

    def _check_stalls(
        self,
        process: subprocess.Popen[str],
        observation: ProcessObservation,
        stop_event: threading.Event,
        threshold: float,
    ) -> None:
        while not stop_event.wait(self._settings.poll_interval):
            idle = observation.seconds_since_progress()
            if idle > threshold:
                logger.warning(
                    "No progress for %.1fs (threshold %.0fs), terminating engine",
                    idle,
                    threshold,
                )
                observation.mark_timed_out()
                self._kill(process, "stall timeout")
                return

    def _poll_health(
        self,
        process: subprocess.Popen[str],
        observation: ProcessObservation,
        stop_event: threading.Event,
        checker: StreamHealthChecker,
        source_url: str,
        interval: float,
    ) -> None:
        while not stop_event.wait(interval):
            try:
                checker.check(source_url, self._settings.health_poll_timeout)
            except HealthCheckError as e:
                logger.warning("Stream health check failed during transcode: %s", e)
                observation.mark_connection_failed(f"health check failed: {e}")
                self._kill(process, "stream health check failed")
                return
            logger.debug("Periodic stream health check passed")

    # -------------------------------------------------------------------------
    # Outcome
    # -------------------------------------------------------------------------

    @staticmethod
    def _raise_for_outcome(
        snapshot: ObservationSnapshot,
        returncode: int,
        threshold: float,
        cancel_token: CancellationToken | None,
    ) -> None:
        if cancel_token is not None and cancel_token.cancelled:
            raise TranscodeCancelledError()
        if snapshot.timed_out:
            raise StallTimeoutError(
                f"Process stalled: no progress for {threshold:.0f}s (timeout)",
                threshold_seconds=threshold,
            )
        if snapshot.connection_failed:
            raise ConnectionFailedError(f"Connection failed: {snapshot.failure_detail}")
        if snapshot.stream_disconnected:
            raise StreamDisconnectedError(
                f"Stream disconnected: {snapshot.failure_detail}"
            )
        if returncode != 0:
            message = f"ffmpeg exited with code {returncode}"
            if snapshot.last_error_line:
                message = f"{message}: {snapshot.last_error_line}"
            raise ExecutionFailedError(message, returncode=returncode)
