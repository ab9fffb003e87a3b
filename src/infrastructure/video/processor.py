"""
Media toolkit backed by FFmpeg.

Implements the core MediaToolkit protocol:
1. probe: ffprobe JSON output -> geometry of the primary video stream
2. remux_faststart: ffmpeg stream copy with `-movflags faststart`, so the
   moov atom sits before the media data and playback can start early

Why FFmpeg:
- Industry standard, battle-tested
- Stream copy is lossless and fast (no re-encode)
- Available everywhere (including Docker)

Both calls are blocking; the pipeline runs them in worker threads.
"""

import json
import logging
import shutil
import subprocess

from src.core.media.models import StreamGeometry
from src.core.media.processing import MediaToolError, MediaToolkit

logger = logging.getLogger(__name__)


class FFmpegMediaToolkit:
    """
    Media toolkit using FFmpeg/FFprobe binaries.

    Every call captures stderr and attaches it to MediaToolError, so a
    failed upload can be diagnosed from server logs.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        probe_timeout: float = 30.0,
        remux_timeout: float = 600.0,
    ):
        """
        Initialize toolkit with FFmpeg paths.

        Args:
            ffmpeg_path: Path to ffmpeg binary (default assumes it's in PATH)
            ffprobe_path: Path to ffprobe binary
            probe_timeout: Seconds before a probe is abandoned
            remux_timeout: Seconds before a remux is abandoned
        """
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path
        self._probe_timeout = probe_timeout
        self._remux_timeout = remux_timeout

        # verify both tools are available
        for tool in (self._ffmpeg, self._ffprobe):
            try:
                result = subprocess.run(
                    [tool, "-version"],
                    capture_output=True,
                    text=True,
                    timeout=5,
                )
            except FileNotFoundError:
                raise RuntimeError(
                    f"{tool} not found. Install with: apt-get install ffmpeg"
                )
            if result.returncode != 0:
                raise RuntimeError(f"{tool} not working properly")

        logger.info("FFmpeg media toolkit initialized")

    def probe(self, path: str) -> StreamGeometry:
        """
        Read the primary video stream's size with ffprobe.

        The primary stream is the first one ffprobe reports as video.
        Some containers omit codec_type, so fall back to the first stream
        that has dimensions at all.
        """
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]
        result = self._run(cmd, self._probe_timeout, "ffprobe")

        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise MediaToolError(f"could not parse ffprobe output: {e}", result.stderr)

        streams = info.get("streams") if isinstance(info, dict) else None
        if not streams:
            raise MediaToolError("no streams found", result.stderr)

        video_stream = next(
            (s for s in streams if s.get("codec_type") == "video"),
            None,
        )
        if video_stream is None:
            video_stream = next(
                (s for s in streams if s.get("width") and s.get("height")),
                None,
            )
        if video_stream is None:
            raise MediaToolError("no video stream found", result.stderr)

        try:
            width = int(video_stream.get("width", 0))
            height = int(video_stream.get("height", 0))
        except (TypeError, ValueError) as e:
            raise MediaToolError(f"invalid stream dimensions: {e}", result.stderr)

        return StreamGeometry(
            width=width,
            height=height,
            codec=video_stream.get("codec_name", "unknown"),
        )

    def remux_faststart(self, input_path: str, output_path: str) -> None:
        """
        Copy all streams into a new mp4 with the index moved to the front.

        -y overwrites the (pre-created) output path, -nostdin keeps ffmpeg
        from ever waiting on a terminal.
        """
        cmd = [
            self._ffmpeg,
            "-nostdin",
            "-y",
            "-v", "error",
            "-i", input_path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]
        self._run(cmd, self._remux_timeout, "ffmpeg")

    def _run(self, cmd: list[str], timeout: float, tool: str) -> subprocess.CompletedProcess:
        logger.debug("Running media tool", extra={"cmd": " ".join(cmd)})
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as e:
            stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
            raise MediaToolError(f"{tool} timed out after {timeout}s", stderr)
        except OSError as e:
            raise MediaToolError(f"could not run {tool}: {e}")

        if result.returncode != 0:
            logger.warning(
                "Media tool failed",
                extra={"tool": tool, "returncode": result.returncode, "stderr": result.stderr[-2000:]},
            )
            raise MediaToolError(
                f"{tool} exited with status {result.returncode}",
                result.stderr,
            )
        return result


class MockMediaToolkit:
    """
    Mock media toolkit for local development without FFmpeg.

    Reports a fixed geometry (landscape 1920x1080 by default) and "remuxes"
    by copying the file. Useful for testing the API flow without actual
    video processing.
    """

    def __init__(self, width: int = 1920, height: int = 1080):
        self._geometry = StreamGeometry(width=width, height=height, codec="h264")
        logger.info("Initialized mock media toolkit")

    def probe(self, path: str) -> StreamGeometry:
        return self._geometry

    def remux_faststart(self, input_path: str, output_path: str) -> None:
        shutil.copyfile(input_path, output_path)


def create_media_toolkit(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
    probe_timeout: float = 30.0,
    remux_timeout: float = 600.0,
) -> MediaToolkit:
    """
    Factory function for the media toolkit.

    Args:
        mock_mode: If True, return mock toolkit (no FFmpeg required)

    Returns:
        MediaToolkit implementation
    """
    if mock_mode:
        return MockMediaToolkit()

    return FFmpegMediaToolkit(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        probe_timeout=probe_timeout,
        remux_timeout=remux_timeout,
    )
