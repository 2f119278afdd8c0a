"""Tests for ffmpeg argument compilation."""

from pathlib import Path

import pytest

from mts.core.codecs import X265_PARAMS, HardwareAccel
from mts.executor.command import (
    EVEN_SIZE_FILTER,
    build_audio_args,
    build_header_args,
    build_hwaccel_args,
    build_segment_args,
    build_transcode_args,
    double_bitrate,
)
from mts.executor.types import TranscodeRequest

HLS_URL = "https://cdn.example.com/live/master.m3u8"


def make_request(**overrides) -> TranscodeRequest:
    values = {"source": HLS_URL, "output": "out.mp4"}
    values.update(overrides)
    return TranscodeRequest(**values)


class TestBuildTranscodeArgs:
    """Tests for the complete argument list."""

    def test_minimal_request_copies_streams(self):
        request = make_request(source=f"  {HLS_URL} ")
        assert build_transcode_args(request) == [
            "-i",
            HLS_URL,
            "-c:v",
            "copy",
            "-c:a",
            "copy",
            "-y",
            "out.mp4",
        ]

    def test_videotoolbox_hevc_with_headers(self):
        request = make_request(
            hw_accel=HardwareAccel.APPLE,
            video_codec="hevc",
            origin="https://player.example.com",
            referer="https://player.example.com/watch",
        )
        assert build_transcode_args(request) == [
            "-hwaccel",
            "videotoolbox",
            "-headers",
            "Origin: https://player.example.com\r\n"
            "Referer: https://player.example.com/watch",
            "-i",
            HLS_URL,
            "-c:v",
            "hevc_videotoolbox",
            "-tag:v",
            "hvc1",
            "-pix_fmt",
            "yuv420p",
            "-movflags",
            "+faststart",
            "-b:v",
            "0",
            "-q:v",
            "17",
            "-g",
            "300",
            "-c:a",
            "copy",
            "-y",
            "out.mp4",
        ]

    def test_x265_uses_crf_and_preset(self):
        request = make_request(video_codec="x265", preset="Medium", x265_crf="20")
        args = build_transcode_args(request)

        assert args[args.index("-c:v") + 1] == "libx265"
        assert args[args.index("-crf") + 1] == "20"
        assert args[args.index("-preset") + 1] == "medium"
        assert args[args.index("-tune") + 1] == "grain"
        assert args[args.index("-x265-params") + 1] == X265_PARAMS
        assert args[args.index("-g") + 1] == "250"
        assert args[args.index("-tag:v") + 1] == "hvc1"

    def test_svtav1_maps_named_preset(self):
        args = build_transcode_args(make_request(video_codec="svt", preset="slow"))

        assert args[args.index("-crf") + 1] == "24"
        assert args[args.index("-preset") + 1] == "5"
        assert args[args.index("-svtav1-params") + 1] == "tune=0:scd=1"
        assert args[args.index("-tag:v") + 1] == "av01"

    def test_aom_uses_cpu_used(self):
        args = build_transcode_args(make_request(video_codec="aom", preset="ultrafast"))

        assert args[args.index("-crf") + 1] == "30"
        assert args[args.index("-cpu-used") + 1] == "8"
        assert "-row-mt" in args
        assert "-preset" not in args

    def test_unknown_codec_falls_back_to_h264_videotoolbox(self):
        args = build_transcode_args(make_request(video_codec="divx"))

        assert args[args.index("-c:v") + 1] == "h264_videotoolbox"
        assert "-tag:v" not in args
        assert args[args.index("-pix_fmt") + 1] == "yuv420p"

    def test_output_is_last(self):
        args = build_transcode_args(make_request(video_codec="hevc", output=" a.mkv "))
        assert args[-2:] == ["-y", "a.mkv"]

    def test_original_link_metadata_follows_input(self):
        args = build_transcode_args(
            make_request(original_link="https://example.com/show")
        )
        index = args.index("-i")
        assert args[index + 2 : index + 4] == [
            "-metadata",
            'url="https://example.com/show"',
        ]

    def test_even_size_filter_follows_movflags(self):
        args = build_transcode_args(
            make_request(video_codec="h264", ensure_even_size=True)
        )
        index = args.index("-movflags")
        assert args[index + 2 : index + 4] == ["-vf", EVEN_SIZE_FILTER]

    def test_no_even_size_filter_for_copy(self):
        args = build_transcode_args(make_request(ensure_even_size=True))
        assert "-vf" not in args


class TestTenBit:
    """Tests for 10-bit pixel format selection."""

    def test_hevc_videotoolbox_10bit(self):
        args = build_transcode_args(make_request(video_codec="hevc", prefer_10bit=True))
        assert args[args.index("-pix_fmt") + 1] == "p010le"

    def test_h264_ignores_10bit(self):
        args = build_transcode_args(make_request(video_codec="h264", prefer_10bit=True))
        assert args[args.index("-pix_fmt") + 1] == "yuv420p"

    def test_x265_10bit(self):
        args = build_transcode_args(make_request(video_codec="x265", prefer_10bit=True))
        assert args[args.index("-pix_fmt") + 1] == "yuv420p10le"


class TestBitrateTarget:
    """Tests for hardware encoder bitrate targeting."""

    def test_bitrate_target_with_doubled_bufsize(self):
        args = build_transcode_args(
            make_request(
                video_codec="h264", use_bitrate_target=True, target_bitrate="4500k"
            )
        )
        assert args[args.index("-b:v") + 1] == "4500k"
        assert args[args.index("-maxrate") + 1] == "4500k"
        assert args[args.index("-bufsize") + 1] == "9000k"
        assert "-q:v" not in args

    def test_unparseable_bitrate_omits_bufsize(self):
        args = build_transcode_args(
            make_request(
                video_codec="h264", use_bitrate_target=True, target_bitrate="fast"
            )
        )
        assert args[args.index("-b:v") + 1] == "fast"
        assert "-bufsize" not in args

    def test_target_ignored_without_flag(self):
        args = build_transcode_args(
            make_request(video_codec="h264", target_bitrate="8M", vt_quality="40")
        )
        assert args[args.index("-b:v") + 1] == "0"
        assert args[args.index("-q:v") + 1] == "40"

    @pytest.mark.parametrize(
        "bitrate,expected",
        [
            ("4500k", "9000k"),
            ("4M", "8M"),
            ("4m", "8M"),
            ("8K", "16k"),
            ("0k", None),
            ("fast", None),
            ("4.5M", None),
            ("", None),
        ],
    )
    def test_double_bitrate(self, bitrate, expected):
        assert double_bitrate(bitrate) == expected


class TestArgumentHelpers:
    """Tests for the individual argument groups."""

    @pytest.mark.parametrize(
        "accel,expected",
        [
            (HardwareAccel.NVIDIA, ["-hwaccel", "cuda"]),
            ("intel", ["-hwaccel", "qsv"]),
            ("amd", ["-hwaccel", "dxva2"]),
            (HardwareAccel.NONE, []),
            ("matrox", []),
        ],
    )
    def test_hwaccel_args(self, accel, expected):
        assert build_hwaccel_args(accel) == expected

    def test_header_order_and_skipping_blanks(self):
        request = make_request(user_agent="UA/1.0", referer="  ", origin="https://o")
        assert build_header_args(request) == [
            "-headers",
            "Origin: https://o\r\nUser-Agent: UA/1.0",
        ]

    def test_no_headers(self):
        assert build_header_args(make_request()) == []

    def test_audio_disabled(self):
        assert build_audio_args(make_request(include_audio=False)) == ["-an"]

    def test_audio_encoder(self):
        assert build_audio_args(make_request(audio_codec="aac")) == ["-c:a", "aac"]

    def test_audio_copy_normalized(self):
        assert build_audio_args(make_request(audio_codec=" COPY ")) == [
            "-c:a",
            "copy",
        ]


class TestBuildSegmentArgs:
    """Tests for segmented recording arguments."""

    def test_segment_tail(self):
        directory = Path("recordings/show")
        args = build_segment_args(make_request(), directory, 30)

        assert args[:2] == ["-i", HLS_URL]
        assert args[args.index("-f") + 1] == "segment"
        assert args[args.index("-segment_time") + 1] == "30"
        assert args[args.index("-segment_format") + 1] == "mpegts"
        assert args[args.index("-reset_timestamps") + 1] == "1"
        assert args[args.index("-segment_list") + 1] == str(
            directory / "playlist.m3u8"
        )
        assert args[args.index("-segment_list_type") + 1] == "m3u8"
        assert args[-2:] == ["-y", str(directory / "segment_%03d.ts")]
        assert "out.mp4" not in args

    def test_default_segment_time(self):
        args = build_segment_args(make_request(), Path("d"))
        assert args[args.index("-segment_time") + 1] == "10"

    def test_first_recording_has_no_start_number(self):
        args = build_segment_args(make_request(), Path("d"))
        assert "-segment_start_number" not in args

    def test_start_number_continues_numbering(self):
        directory = Path("d")
        args = build_segment_args(make_request(), directory, 10, start_number=7)

        assert args[args.index("-segment_start_number") + 1] == "7"
        assert args.index("-segment_start_number") < args.index("-segment_list")
        assert args[-2:] == ["-y", str(directory / "segment_%03d.ts")]
