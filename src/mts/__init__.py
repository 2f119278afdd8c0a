"""Media Transcode Supervisor - resilient ffmpeg runs for files and HLS streams."""

__version__ = "0.1.0"
