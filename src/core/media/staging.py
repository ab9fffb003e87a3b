"""
Request-scoped temporary files.

A StagedFile is created with a unique name and deleted when its `with`
block exits, whatever the exit path. The pipeline never removes staged
files by hand at individual error branches.
"""

import logging
import os
import tempfile
from typing import BinaryIO, Optional

from .errors import PayloadTooLargeError, StagingFailedError

logger = logging.getLogger(__name__)

COPY_CHUNK_BYTES = 1024 * 1024


class StagedFile:
    """
    An exclusively-owned temp file on local disk.

    Usage:
        with StagedFile.create(directory, prefix="upload-") as staged:
            staged.write_from(stream, max_bytes)
            run_tool(staged.path)
        # file is gone here, even if run_tool raised
    """

    def __init__(self, path: str) -> None:
        self.path = path

    @classmethod
    def create(
        cls,
        directory: Optional[str] = None,
        prefix: str = "tubely-upload-",
        suffix: str = ".mp4",
    ) -> "StagedFile":
        try:
            fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=directory)
        except OSError as e:
            raise StagingFailedError(diagnostics=f"could not create temp file: {e}")
        os.close(fd)
        logger.debug("Created staged file", extra={"path": path})
        return cls(path)

    def __enter__(self) -> "StagedFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.remove()

    @property
    def size(self) -> int:
        return os.path.getsize(self.path)

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def write_from(self, stream: BinaryIO, max_bytes: int) -> int:
        """
        Copy `stream` into the file, refusing to go past `max_bytes`.

        The declared length is checked before we get here; this guards
        against bodies that are larger than they claimed to be.
        """
        written = 0
        try:
            with open(self.path, "wb") as out:
                while True:
                    chunk = stream.read(COPY_CHUNK_BYTES)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_bytes:
                        raise PayloadTooLargeError(
                            diagnostics=f"stream exceeded {max_bytes} bytes while staging"
                        )
                    out.write(chunk)
        except OSError as e:
            raise StagingFailedError(diagnostics=f"could not write staged file: {e}")
        return written

    def remove(self) -> None:
        try:
            os.unlink(self.path)
            logger.debug("Removed staged file", extra={"path": self.path})
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                "Failed to remove staged file",
                extra={"path": self.path, "error": str(e)},
            )
