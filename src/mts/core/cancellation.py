"""Cooperative cancellation shared across one transcode request."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe, one-shot cancellation flag.

    Cancelling sets an internal threading.Event (so waiters wake up
    immediately) and runs every registered callback once. Callbacks added
    after cancellation run straight away.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the token. Subsequent calls are no-ops."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        logger.info("Cancellation requested: %s", reason)
        for callback in callbacks:
            self._run_callback(callback)

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register callback to run on cancellation.

        Args:
            callback: Zero-argument callable.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)

        self._run_callback(callback)
        return lambda: None

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    @staticmethod
    def _run_callback(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning("Cancellation callback error: %s", e)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or timeout elapses.

        Returns:
            True if the token was cancelled.
        """
        return self._event.wait(timeout)
