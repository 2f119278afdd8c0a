"""Engine invocation: argument compilation, launch and supervision."""

from mts.executor.command import (
    DEFAULT_SEGMENT_TIME,
    build_segment_args,
    build_transcode_args,
)
from mts.executor.engine import (
    find_engine,
    get_engine_version,
    launch_engine,
    require_engine,
)
from mts.executor.monitor import (
    LineSignal,
    MonitorSettings,
    ObservationSnapshot,
    ProcessMonitor,
    ProcessObservation,
    classify_stderr_line,
)
from mts.executor.segments import (
    concatenate_segments,
    create_segment_directory,
    write_concat_list,
)
from mts.executor.types import TranscodeRequest, TranscodeResult, is_hls_source

__all__ = [
    # Command building
    "DEFAULT_SEGMENT_TIME",
    "build_segment_args",
    "build_transcode_args",
    # Engine
    "find_engine",
    "get_engine_version",
    "launch_engine",
    "require_engine",
    # Monitoring
    "LineSignal",
    "MonitorSettings",
    "ObservationSnapshot",
    "ProcessMonitor",
    "ProcessObservation",
    "classify_stderr_line",
    # Segments
    "concatenate_segments",
    "create_segment_directory",
    "write_concat_list",
    # Types
    "TranscodeRequest",
    "TranscodeResult",
    "is_hls_source",
]
