"""Tests for ffmpeg progress parsing."""

from mts.tools.ffmpeg_progress import (
    FFmpegProgress,
    has_progress_marker,
    parse_stderr_progress,
)


class TestParseStderrProgress:
    """Tests for parse_stderr_progress."""

    def test_full_stats_line(self):
        line = (
            "frame= 1234 fps= 30 q=28.0 size=  2048kB time=00:01:23.45 "
            "bitrate=5000kbits/s speed=2.0x"
        )
        progress = parse_stderr_progress(line)

        assert progress is not None
        assert progress.frame == 1234
        assert progress.fps == 30.0
        assert progress.size == "2048kB"
        assert progress.bitrate == "5000kbits/s"
        assert progress.speed == "2.0x"
        assert progress.out_time_us == 83_450_000
        assert progress.out_time_seconds == 83.45

    def test_size_only_line(self):
        progress = parse_stderr_progress("size=     512kB time=00:00:05.00")
        assert progress is not None
        assert progress.size == "512kB"
        assert progress.frame is None
        assert progress.out_time_seconds == 5.0

    def test_not_a_progress_line(self):
        assert parse_stderr_progress("Input #0, hls, from 'x.m3u8':") is None

    def test_na_values_are_dropped(self):
        progress = parse_stderr_progress("frame=0 fps=0.0 size=N/A time=N/A")
        assert progress is not None
        assert progress.size is None
        assert progress.out_time_us is None

    def test_bufsize_is_not_mistaken_for_size(self):
        progress = parse_stderr_progress("bufsize=9000k time=00:00:01.00")
        assert progress is not None
        assert progress.size is None


class TestHelpers:
    """Tests for marker detection and descriptions."""

    def test_has_progress_marker(self):
        assert has_progress_marker("size=1kB")
        assert has_progress_marker("out_time=00:00:01")
        assert not has_progress_marker("frame=10")

    def test_describe(self):
        progress = FFmpegProgress(frame=10, out_time_us=1_500_000, speed="1.0x")
        assert progress.describe() == "time=1.50s frame=10 speed=1.0x"

    def test_describe_empty(self):
        assert FFmpegProgress().describe() == ""
