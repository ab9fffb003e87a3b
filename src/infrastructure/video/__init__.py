"""
Video processing infrastructure.

Wraps FFmpeg for the two operations the ingestion pipeline needs:
- probing stream geometry (ffprobe)
- fast-start remuxing without re-encoding (ffmpeg -c copy)
"""

from .processor import (
    FFmpegMediaToolkit,
    MockMediaToolkit,
    create_media_toolkit,
)

__all__ = [
    "FFmpegMediaToolkit",
    "MockMediaToolkit",
    "create_media_toolkit",
]
