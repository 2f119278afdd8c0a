"""Tests for request/attempt logging context."""

import logging
import re
import threading

from mts.logging.context import (
    AttemptContextFilter,
    attempt_context,
    get_attempt_context,
    new_request_id,
)


def make_record() -> logging.LogRecord:
    return logging.LogRecord("mts.test", logging.INFO, __file__, 1, "msg", None, None)


class TestAttemptContext:
    """Tests for attempt_context."""

    def test_default_is_empty(self):
        assert get_attempt_context() == (None, None)

    def test_sets_and_resets(self):
        with attempt_context("abcd1234", 1):
            assert get_attempt_context() == ("abcd1234", 1)
        assert get_attempt_context() == (None, None)

    def test_nested_attempt_keeps_request_id(self):
        with attempt_context("abcd1234"):
            with attempt_context(attempt=2):
                assert get_attempt_context() == ("abcd1234", 2)
            assert get_attempt_context() == ("abcd1234", None)

    def test_resets_after_exception(self):
        try:
            with attempt_context("abcd1234", 3):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert get_attempt_context() == (None, None)

    def test_new_thread_does_not_inherit_context(self):
        seen = []
        with attempt_context("abcd1234", 1):
            thread = threading.Thread(target=lambda: seen.append(get_attempt_context()))
            thread.start()
            thread.join()
        assert seen == [(None, None)]

    def test_new_request_id_format(self):
        request_id = new_request_id()
        assert re.fullmatch(r"[0-9a-f]{8}", request_id)
        assert new_request_id() != request_id


class TestAttemptContextFilter:
    """Tests for AttemptContextFilter."""

    def test_tag_with_attempt(self):
        record = make_record()
        with attempt_context("abcd1234", 2):
            assert AttemptContextFilter().filter(record) is True
        assert record.request_id == "abcd1234"
        assert record.attempt == 2
        assert record.attempt_tag == "[Rabcd1234:A2] "

    def test_tag_without_attempt(self):
        record = make_record()
        with attempt_context("abcd1234"):
            AttemptContextFilter().filter(record)
        assert record.attempt_tag == "[Rabcd1234] "

    def test_no_context(self):
        record = make_record()
        AttemptContextFilter().filter(record)
        assert record.request_id is None
        assert record.attempt_tag == ""
