"""
Video ingestion pipeline.

Contains the domain models, error taxonomy, the orchestrator and the
stages it drives (inspection, remux, key derivation, signing).
"""

from .errors import (
    ForbiddenError,
    IngestError,
    InspectionFailedError,
    InvalidIdentifierError,
    MetadataUpdateFailedError,
    PayloadTooLargeError,
    ProcessingFailedError,
    StagingFailedError,
    StorageUnavailableError,
    UnauthenticatedError,
    UnsupportedMediaTypeError,
    VideoNotFoundError,
)
from .keys import aspect_class_from_key, derive_storage_key
from .models import (
    AspectClass,
    SignedVideo,
    StreamGeometry,
    VideoLocation,
    VideoRecord,
    classify_aspect_ratio,
)
from .pipeline import UploadOrchestrator
from .processing import FastStartRemuxer, MediaToolError, MediaToolkit, StreamInspector
from .signing import AccessSigner
from .staging import StagedFile

__all__ = [
    "AccessSigner",
    "AspectClass",
    "FastStartRemuxer",
    "ForbiddenError",
    "IngestError",
    "InspectionFailedError",
    "InvalidIdentifierError",
    "MediaToolError",
    "MediaToolkit",
    "MetadataUpdateFailedError",
    "PayloadTooLargeError",
    "ProcessingFailedError",
    "SignedVideo",
    "StagedFile",
    "StagingFailedError",
    "StorageUnavailableError",
    "StreamGeometry",
    "StreamInspector",
    "UnauthenticatedError",
    "UnsupportedMediaTypeError",
    "UploadOrchestrator",
    "VideoLocation",
    "VideoNotFoundError",
    "VideoRecord",
    "aspect_class_from_key",
    "classify_aspect_ratio",
    "derive_storage_key",
]
