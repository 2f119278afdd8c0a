"""Tests for segmented recording helpers."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from mts.exceptions import ConcatenationError
from mts.executor.segments import (
    concatenate_segments,
    create_segment_directory,
    list_segments,
    next_segment_number,
    segment_directory_for,
    write_concat_list,
)


@pytest.fixture
def segment_dir(temp_dir):
    directory = temp_dir / "show"
    directory.mkdir()
    for name in ("segment_002.ts", "segment_000.ts", "segment_001.ts"):
        (directory / name).write_bytes(b"\x47")
    (directory / "playlist.m3u8").write_text("#EXTM3U\n")
    return directory


class TestSegmentDirectory:
    """Tests for segment directory handling."""

    def test_directory_is_output_without_suffix(self):
        assert segment_directory_for(Path("rec/show.mp4")) == Path("rec/show")

    def test_create(self, temp_dir):
        directory = create_segment_directory(temp_dir / "nested" / "show.mp4")
        assert directory == temp_dir / "nested" / "show"
        assert directory.is_dir()

    def test_create_is_idempotent(self, temp_dir):
        create_segment_directory(temp_dir / "show.mp4")
        assert create_segment_directory(temp_dir / "show.mp4").is_dir()

    def test_list_segments_sorted(self, segment_dir):
        assert [p.name for p in list_segments(segment_dir)] == [
            "segment_000.ts",
            "segment_001.ts",
            "segment_002.ts",
        ]

    def test_list_segments_skips_unrelated_files(self, segment_dir):
        (segment_dir / "segment_extra.ts").write_bytes(b"\x47")
        assert len(list_segments(segment_dir)) == 3

    def test_list_segments_orders_past_999(self, temp_dir):
        for name in ("segment_1000.ts", "segment_999.ts"):
            (temp_dir / name).write_bytes(b"\x47")
        assert [p.name for p in list_segments(temp_dir)] == [
            "segment_999.ts",
            "segment_1000.ts",
        ]


class TestNextSegmentNumber:
    """Tests for next_segment_number."""

    def test_empty_directory_starts_at_zero(self, temp_dir):
        assert next_segment_number(temp_dir) == 0

    def test_continues_after_highest_segment(self, segment_dir):
        assert next_segment_number(segment_dir) == 3

    def test_gaps_do_not_reuse_numbers(self, temp_dir):
        for name in ("segment_000.ts", "segment_004.ts"):
            (temp_dir / name).write_bytes(b"\x47")
        assert next_segment_number(temp_dir) == 5


class TestWriteConcatList:
    """Tests for write_concat_list."""

    def test_lines_use_absolute_quoted_paths(self, segment_dir):
        segments = list_segments(segment_dir)
        list_path = write_concat_list(segments, segment_dir / "filelist.txt")

        lines = list_path.read_text(encoding="utf-8").splitlines()
        assert lines == [f"file '{segment.resolve()}'" for segment in segments]

    def test_single_quotes_escaped(self, temp_dir):
        segment = temp_dir / "it's" / "segment_000.ts"
        list_path = write_concat_list([segment], temp_dir / "filelist.txt")
        assert "it'\\''s" in list_path.read_text(encoding="utf-8")


class TestConcatenateSegments:
    """Tests for concatenate_segments."""

    def test_no_segments(self, temp_dir):
        with pytest.raises(ConcatenationError, match="No segments"):
            concatenate_segments("ffmpeg", temp_dir, temp_dir / "out.mp4")

    def test_runs_concat_demuxer(self, segment_dir, temp_dir):
        output = temp_dir / "show.mp4"
        with patch(
            "mts.executor.segments.run_command", return_value=("", "", 0)
        ) as mock_run:
            segments = concatenate_segments("/usr/bin/ffmpeg", segment_dir, output)

        assert len(segments) == 3
        args = mock_run.call_args[0][0]
        assert args == [
            "/usr/bin/ffmpeg",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            segment_dir / "filelist.txt",
            "-c",
            "copy",
            "-y",
            output,
        ]
        assert (segment_dir / "filelist.txt").exists()

    def test_nonzero_exit(self, segment_dir, temp_dir):
        stderr = "line one\nfilelist.txt: Invalid data found\n"
        with patch(
            "mts.executor.segments.run_command", return_value=("", stderr, 1)
        ):
            with pytest.raises(ConcatenationError, match="Invalid data found"):
                concatenate_segments("ffmpeg", segment_dir, temp_dir / "out.mp4")

    def test_timeout(self, segment_dir, temp_dir):
        with patch(
            "mts.executor.segments.run_command",
            side_effect=subprocess.TimeoutExpired("ffmpeg", 3600),
        ):
            with pytest.raises(ConcatenationError):
                concatenate_segments("ffmpeg", segment_dir, temp_dir / "out.mp4")
