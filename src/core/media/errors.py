"""
Error taxonomy for the ingestion pipeline.

Every failure the pipeline can surface is an IngestError subclass. The
`message` is safe to show a client; `diagnostics` (stderr, exception text,
file paths) stays server-side and is only ever logged.

The HTTP layer maps `kind` to a status code, so nothing in here knows
about HTTP.
"""

from typing import Optional

from .models import VideoLocation


class IngestError(Exception):
    """Base class for pipeline failures."""

    kind: str = "ingest_error"
    default_message: str = "Video ingestion failed"

    def __init__(
        self,
        message: Optional[str] = None,
        diagnostics: Optional[str] = None,
    ) -> None:
        self.message = message or self.default_message
        self.diagnostics = diagnostics
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.diagnostics:
            return f"{self.message}: {self.diagnostics}"
        return self.message


class InvalidIdentifierError(IngestError):
    kind = "invalid_identifier"
    default_message = "Invalid identifier"


class UnauthenticatedError(IngestError):
    kind = "unauthenticated"
    default_message = "Missing or invalid credentials"


class ForbiddenError(IngestError):
    kind = "forbidden"
    default_message = "Not authorized to modify this video"


class VideoNotFoundError(IngestError):
    kind = "not_found"
    default_message = "Video not found"


class PayloadTooLargeError(IngestError):
    kind = "payload_too_large"
    default_message = "Upload exceeds the maximum allowed size"


class UnsupportedMediaTypeError(IngestError):
    kind = "unsupported_media_type"
    default_message = "Unsupported media type"


class StagingFailedError(IngestError):
    kind = "staging_failed"
    default_message = "Could not stage upload"


class ProcessingFailedError(IngestError):
    kind = "processing_failed"
    default_message = "Error processing video"


class InspectionFailedError(ProcessingFailedError):
    """Probe could not be run, parsed, or found no usable video stream."""
    kind = "inspection_failed"
    default_message = "Error determining aspect ratio"


class StorageUnavailableError(IngestError):
    kind = "storage_unavailable"
    default_message = "Error storing video"


class MetadataUpdateFailedError(IngestError):
    """
    Object is stored but the record does not point at it yet.

    Carries the stored location so the caller can republish it instead
    of uploading the whole file again.
    """
    kind = "metadata_update_failed"
    default_message = "Video stored but the record could not be updated"

    def __init__(
        self,
        location: VideoLocation,
        message: Optional[str] = None,
        diagnostics: Optional[str] = None,
    ) -> None:
        self.location = location
        super().__init__(message, diagnostics)
