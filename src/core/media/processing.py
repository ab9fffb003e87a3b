"""
Stream inspection and fast-start remuxing.

Both stages wrap an out-of-process media toolkit (ffprobe/ffmpeg in
production). The toolkit arrives as a protocol, so tests substitute a
fake and never need the real binaries.
"""

import logging
import os
from typing import Optional, Protocol

from .errors import InspectionFailedError, ProcessingFailedError
from .models import AspectClass, StreamGeometry
from .staging import StagedFile

logger = logging.getLogger(__name__)


class MediaToolError(Exception):
    """
    Raised by toolkit implementations when a tool fails.

    `stderr` holds whatever the process wrote to its error channel.
    """

    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr
        super().__init__(message)


class MediaToolkit(Protocol):
    """
    Protocol for the external media tools.

    probe: read-only; returns the geometry of the primary video stream.
    remux_faststart: lossless container rewrite with the index up front,
        overwriting `output_path` if it already exists.
    """

    def probe(self, path: str) -> StreamGeometry:
        ...

    def remux_faststart(self, input_path: str, output_path: str) -> None:
        ...


class StreamInspector:
    """Classifies a staged video by the geometry of its primary stream."""

    def __init__(self, toolkit: MediaToolkit) -> None:
        self._toolkit = toolkit

    def inspect(self, path: str) -> AspectClass:
        """
        Probe `path` and classify it.

        Every failure to measure is an InspectionFailedError. OTHER is
        only returned for a stream that was measured successfully.
        """
        try:
            geometry = self._toolkit.probe(path)
        except MediaToolError as e:
            raise InspectionFailedError(diagnostics=f"{e}; stderr: {e.stderr}")
        except (OSError, ValueError) as e:
            raise InspectionFailedError(diagnostics=str(e))

        try:
            aspect_class = geometry.aspect_class
        except ValueError as e:
            raise InspectionFailedError(diagnostics=str(e))

        logger.info(
            "Video inspected",
            extra={
                "width": geometry.width,
                "height": geometry.height,
                "codec": geometry.codec,
                "aspect_class": aspect_class.value,
            },
        )
        return aspect_class


class FastStartRemuxer:
    """
    Moves the container index to the front of the file.

    The result is a new StagedFile that the caller owns and must use as
    a context manager; the input file is left alone.
    """

    def __init__(self, toolkit: MediaToolkit, staging_dir: Optional[str] = None) -> None:
        self._toolkit = toolkit
        self._staging_dir = staging_dir

    def remux(self, input_path: str) -> StagedFile:
        directory = self._staging_dir or os.path.dirname(input_path) or None
        output = StagedFile.create(directory, prefix="tubely-processed-", suffix=".mp4")

        try:
            try:
                self._toolkit.remux_faststart(input_path, output.path)
            except MediaToolError as e:
                raise ProcessingFailedError(diagnostics=f"{e}; stderr: {e.stderr}")
            except OSError as e:
                raise ProcessingFailedError(diagnostics=str(e))

            if not output.exists():
                raise ProcessingFailedError(diagnostics="empty output: file missing")
            if output.size == 0:
                raise ProcessingFailedError(diagnostics="empty output: zero bytes")
        except BaseException:
            output.remove()
            raise

        logger.info(
            "Video remuxed for fast start",
            extra={"size_bytes": output.size},
        )
        return output
