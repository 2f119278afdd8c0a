"""Tests for mts.core.cancellation."""

import threading
from unittest.mock import MagicMock

from mts.core.cancellation import CancellationToken


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initial_state(self):
        token = CancellationToken()
        assert not token.cancelled
        assert token.reason is None

    def test_cancel_sets_reason_once(self):
        token = CancellationToken()
        token.cancel("received SIGINT")
        token.cancel("second call")
        assert token.cancelled
        assert token.reason == "received SIGINT"

    def test_callbacks_run_once(self):
        token = CancellationToken()
        callback = MagicMock()
        token.add_callback(callback)

        token.cancel()
        token.cancel()

        callback.assert_called_once_with()

    def test_callback_added_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        callback = MagicMock()

        token.add_callback(callback)

        callback.assert_called_once_with()

    def test_unregister_prevents_callback(self):
        token = CancellationToken()
        callback = MagicMock()
        unregister = token.add_callback(callback)

        unregister()
        unregister()
        token.cancel()

        callback.assert_not_called()

    def test_failing_callback_does_not_block_others(self):
        token = CancellationToken()
        failing = MagicMock(side_effect=RuntimeError("boom"))
        other = MagicMock()
        token.add_callback(failing)
        token.add_callback(other)

        token.cancel()

        failing.assert_called_once()
        other.assert_called_once()

    def test_wait_returns_false_on_timeout(self):
        assert CancellationToken().wait(0.01) is False

    def test_wait_wakes_on_cancel_from_other_thread(self):
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        try:
            assert token.wait(5) is True
        finally:
            timer.cancel()
