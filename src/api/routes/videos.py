"""
Video API endpoints.

Handles the video lifecycle:
1. Client creates a draft record (POST /)
2. Client uploads the file (POST /{video_id}/upload)
3. Server inspects, remuxes and stores it, then points the record at it
4. Reads (GET /, GET /{video_id}) return a freshly signed URL each time

Signed URLs expire quickly, so they are minted per response from the
stored (bucket, key) and never saved.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field
from starlette.datastructures import UploadFile
from starlette.types import Message

from ...core.media.errors import (
    ForbiddenError,
    InvalidIdentifierError,
    PayloadTooLargeError,
)
from ...core.media.models import SignedVideo, VideoLocation, VideoRecord
from ..dependencies import (
    AccessSignerDep,
    CurrentUserId,
    SettingsDep,
    UploadOrchestratorDep,
    VideoRepositoryDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# form field that carries the file; must match the client's input name
VIDEO_FORM_FIELD = "video"


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateVideoRequest(BaseModel):
    """Request to create a draft video record."""
    title: str = Field(min_length=1, max_length=200, description="Video title")
    description: str = Field(default="", max_length=5000, description="Video description")


class RepublishRequest(BaseModel):
    """Already-stored location to attach to a record (retry path)."""
    bucket: str = Field(min_length=1, description="Bucket holding the stored video")
    key: str = Field(min_length=1, description="Storage key of the stored video")


class VideoResponse(BaseModel):
    """A video record as clients see it."""
    id: UUID = Field(description="Video identifier")
    user_id: UUID = Field(description="Owner")
    title: str = Field(description="Video title")
    description: str = Field(description="Video description")
    video_url: Optional[str] = Field(
        default=None,
        description="Short-lived signed playback URL. Null while the video is a draft."
    )
    created_at: datetime = Field(description="When the record was created")
    updated_at: datetime = Field(description="Last update time")

    @classmethod
    def from_signed(cls, signed: SignedVideo) -> "VideoResponse":
        record = signed.record
        return cls(
            id=record.id,
            user_id=record.user_id,
            title=record.title,
            description=record.description,
            video_url=signed.video_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def parse_video_id(raw: str) -> UUID:
    try:
        return UUID(raw)
    except ValueError:
        raise InvalidIdentifierError("Invalid ID", diagnostics=f"not a UUID: {raw!r}")


def check_content_length(request: Request, limit: int) -> None:
    """
    Refuse oversized bodies from the Content-Length header alone.

    Runs before the multipart body is parsed, so nothing is read or
    spooled for a request that is already known to be too large.
    """
    header = request.headers.get("content-length")
    if header is None:
        return
    try:
        length = int(header)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Content-Length header",
        )
    if length > limit:
        raise PayloadTooLargeError(diagnostics=f"content-length {length}, limit {limit}")


def metered_request(request: Request, limit: int) -> Request:
    """
    Wrap `request` so reading more than `limit` body bytes raises.

    Covers bodies without a Content-Length (chunked transfer), where
    check_content_length has nothing to go on. The form parser stops at
    the first chunk past the limit instead of spooling the rest.
    """
    received = 0
    receive = request.receive

    async def metered_receive() -> Message:
        nonlocal received
        message = await receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > limit:
                raise PayloadTooLargeError(
                    diagnostics=f"body exceeded {limit} bytes while reading"
                )
        return message

    return Request(request.scope, receive=metered_receive)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create draft video",
    description="Create an empty video record owned by the caller",
)
async def create_video(
    request: CreateVideoRequest,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
) -> VideoResponse:
    record = VideoRecord(
        user_id=user_id,
        title=request.title,
        description=request.description,
    )
    repository.create_video(record)

    return VideoResponse.from_signed(SignedVideo(record=record))


@router.get(
    "",
    response_model=list[VideoResponse],
    status_code=status.HTTP_200_OK,
    summary="List my videos",
    description="All videos owned by the caller, newest first",
)
async def list_videos(
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    signer: AccessSignerDep,
) -> list[VideoResponse]:
    records = repository.list_videos(user_id)
    return [VideoResponse.from_signed(await signer.sign_record(r)) for r in records]


@router.get(
    "/{video_id}",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Get video",
    description="Fetch one video with a freshly signed playback URL",
)
async def get_video(
    video_id: str,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    signer: AccessSignerDep,
) -> VideoResponse:
    record = repository.get_video(parse_video_id(video_id))
    if record.user_id != user_id:
        raise ForbiddenError("Not authorized to view this video")

    return VideoResponse.from_signed(await signer.sign_record(record))


@router.post(
    "/{video_id}/upload",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload video file",
    description="Upload an MP4 (multipart field 'video'); it is remuxed for fast start and stored",
)
async def upload_video(
    video_id: str,
    request: Request,
    user_id: CurrentUserId,
    orchestrator: UploadOrchestratorDep,
    settings: SettingsDep,
) -> VideoResponse:
    """
    Upload the video file for an existing record.

    The body is parsed here rather than through a File() parameter so
    the size checks run before and while it is read, not after.
    """
    parsed_id = parse_video_id(video_id)
    check_content_length(request, settings.max_upload_bytes)

    body = metered_request(request, settings.max_upload_bytes)
    async with body.form(max_files=1) as form:
        video = form.get(VIDEO_FORM_FIELD)
        if not isinstance(video, UploadFile):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unable to parse form file",
            )

        signed = await orchestrator.ingest(
            owner_id=user_id,
            video_id=parsed_id,
            content_type=video.content_type,
            stream=video.file,
            declared_length=video.size,
        )

    return VideoResponse.from_signed(signed)


@router.post(
    "/{video_id}/republish",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Reattach stored video",
    description="Point the record at an already-stored video after a failed metadata update",
)
async def republish_video(
    video_id: str,
    request: RepublishRequest,
    user_id: CurrentUserId,
    orchestrator: UploadOrchestratorDep,
) -> VideoResponse:
    location = VideoLocation(bucket=request.bucket, key=request.key)
    signed = await orchestrator.republish(
        owner_id=user_id,
        video_id=parse_video_id(video_id),
        location=location,
    )
    return VideoResponse.from_signed(signed)
