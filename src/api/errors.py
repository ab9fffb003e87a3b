"""
HTTP mapping for pipeline errors.

Each IngestError kind gets one status code. Clients see the error's
client-safe message; diagnostics (paths, ffmpeg stderr, driver errors)
are logged here and never sent back.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..core.media.errors import (
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

logger = logging.getLogger(__name__)


STATUS_BY_ERROR: dict[type[IngestError], int] = {
    InvalidIdentifierError: status.HTTP_400_BAD_REQUEST,
    UnsupportedMediaTypeError: status.HTTP_400_BAD_REQUEST,
    UnauthenticatedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    VideoNotFoundError: status.HTTP_404_NOT_FOUND,
    PayloadTooLargeError: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    StagingFailedError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    InspectionFailedError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ProcessingFailedError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StorageUnavailableError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    MetadataUpdateFailedError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: IngestError) -> int:
    """Most specific mapped status for an error, walking up its MRO."""
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ingest_error_handler(request: Request, exc: IngestError) -> JSONResponse:
    status_code = status_for(exc)

    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_kind": exc.kind,
            "status_code": status_code,
            "diagnostics": exc.diagnostics,
        },
    )

    content = {"detail": exc.message, "error": exc.kind}
    if isinstance(exc, MetadataUpdateFailedError):
        content["retry_location"] = exc.location.to_dict()

    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(status_code=status_code, content=content, headers=headers)
