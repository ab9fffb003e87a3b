"""
The upload-processing-publish pipeline.

UploadOrchestrator.ingest runs one upload end to end:

    validate -> load + authorize -> stage -> inspect -> remux -> key
        -> store -> update record -> sign

Ordering is the whole point. Nothing reaches storage until inspection and
remux have both succeeded, and the record is only touched after storage
accepted the bytes. Staged files are context managers, so every exit path
(including every error below) removes them.

The only inconsistency we accept is "stored but record not updated"
(MetadataUpdateFailedError). That error carries the location so the
client can call `republish` instead of uploading again.
"""

import asyncio
import logging
from typing import BinaryIO, Iterable, Optional, Protocol
from uuid import UUID

from .errors import (
    ForbiddenError,
    InvalidIdentifierError,
    MetadataUpdateFailedError,
    PayloadTooLargeError,
    StorageUnavailableError,
    UnsupportedMediaTypeError,
    VideoNotFoundError,
)
from .keys import aspect_class_from_key, derive_storage_key, parse_media_type
from .models import SignedVideo, VideoLocation, VideoRecord
from .processing import FastStartRemuxer, StreamInspector
from .signing import AccessSigner, ObjectStore
from .staging import StagedFile

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 1 << 30  # 1 GiB


class VideoStore(Protocol):
    """Metadata operations the pipeline needs from the record store."""

    def get_video(self, video_id: UUID) -> VideoRecord:
        """Load a record. Raises VideoNotFoundError if absent."""
        ...

    def update_video(self, record: VideoRecord) -> None:
        ...


class UploadOrchestrator:
    """Runs ingestion for one configured bucket."""

    def __init__(
        self,
        videos: VideoStore,
        store: ObjectStore,
        inspector: StreamInspector,
        remuxer: FastStartRemuxer,
        signer: AccessSigner,
        bucket: str,
        allowed_content_types: Iterable[str] = ("video/mp4",),
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        staging_dir: Optional[str] = None,
    ) -> None:
        self._videos = videos
        self._store = store
        self._inspector = inspector
        self._remuxer = remuxer
        self._signer = signer
        self._bucket = bucket
        self._allowed_content_types = frozenset(
            parse_media_type(ct) for ct in allowed_content_types
        )
        self._max_upload_bytes = max_upload_bytes
        self._staging_dir = staging_dir

    async def ingest(
        self,
        owner_id: UUID,
        video_id: UUID,
        content_type: Optional[str],
        stream: BinaryIO,
        declared_length: Optional[int],
    ) -> SignedVideo:
        """
        Validate, process and publish one upload.

        Returns the updated record with a freshly signed URL (or no URL if
        signing fails after the record is saved). Raises an IngestError
        subclass on any failure before that point.
        """
        if declared_length is not None and declared_length > self._max_upload_bytes:
            raise PayloadTooLargeError(
                diagnostics=f"declared {declared_length} bytes, limit {self._max_upload_bytes}"
            )

        media_type = parse_media_type(content_type or "")
        if media_type not in self._allowed_content_types:
            raise UnsupportedMediaTypeError(
                f"Invalid file type, only {', '.join(sorted(self._allowed_content_types))} allowed",
                diagnostics=f"content type {content_type!r}",
            )

        record = self._load_owned(owner_id, video_id)

        logger.info(
            "Video upload started",
            extra={
                "video_id": str(video_id),
                "user_id": str(owner_id),
                "content_type": media_type,
                "declared_length": declared_length,
            },
        )

        with StagedFile.create(self._staging_dir) as raw:
            size = await asyncio.to_thread(raw.write_from, stream, self._max_upload_bytes)
            logger.debug(
                "Upload staged",
                extra={"video_id": str(video_id), "size_bytes": size},
            )

            aspect_class = await asyncio.to_thread(self._inspector.inspect, raw.path)
            processed = await asyncio.to_thread(self._remuxer.remux, raw.path)

            with processed:
                key = derive_storage_key(media_type, aspect_class)
                location = VideoLocation(bucket=self._bucket, key=key)
                await self._store_artifact(processed, location, media_type)

        updated = self._publish(record, location)

        logger.info(
            "Video upload complete",
            extra={
                "video_id": str(video_id),
                "bucket": location.bucket,
                "key": location.key,
                "aspect_class": aspect_class.value,
            },
        )

        return await self._sign_committed(updated)

    async def republish(
        self,
        owner_id: UUID,
        video_id: UUID,
        location: VideoLocation,
    ) -> SignedVideo:
        """
        Point a record at an object that is already stored.

        This is the retry path for MetadataUpdateFailedError: the bytes
        made it to storage, only the record update needs repeating.
        Safe to call more than once.
        """
        record = self._load_owned(owner_id, video_id)

        if location.bucket != self._bucket:
            raise InvalidIdentifierError(
                "Invalid storage location",
                diagnostics=f"bucket {location.bucket!r} is not {self._bucket!r}",
            )
        aspect_class_from_key(location.key)

        try:
            exists = await self._store.object_exists(location.bucket, location.key)
        except Exception as e:
            raise StorageUnavailableError(
                "Could not verify stored video",
                diagnostics=str(e),
            )
        if not exists:
            raise VideoNotFoundError(
                "Stored video not found",
                diagnostics=f"no object at {location.bucket}/{location.key}",
            )

        if record.video_location == location:
            logger.info(
                "Republish is a no-op, record already points at location",
                extra={"video_id": str(video_id), "key": location.key},
            )
            return await self._sign_committed(record)

        updated = self._publish(record, location)
        logger.info(
            "Video republished",
            extra={"video_id": str(video_id), "key": location.key},
        )
        return await self._sign_committed(updated)

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _load_owned(self, owner_id: UUID, video_id: UUID) -> VideoRecord:
        """Fetch the record and check ownership before any disk or network I/O."""
        record = self._videos.get_video(video_id)
        if record.user_id != owner_id:
            logger.warning(
                "Rejected upload from non-owner",
                extra={"video_id": str(video_id), "user_id": str(owner_id)},
            )
            raise ForbiddenError()
        return record

    async def _store_artifact(
        self,
        artifact: StagedFile,
        location: VideoLocation,
        content_type: str,
    ) -> None:
        try:
            with open(artifact.path, "rb") as body:
                await self._store.put_object(
                    location.bucket,
                    location.key,
                    body,
                    content_type,
                )
        except Exception as e:
            logger.error(
                "Failed to store processed video",
                extra={"bucket": location.bucket, "key": location.key, "error": str(e)},
            )
            raise StorageUnavailableError("Error uploading file to storage", diagnostics=str(e))

    def _publish(self, record: VideoRecord, location: VideoLocation) -> VideoRecord:
        updated = record.with_location(location)
        try:
            self._videos.update_video(updated)
        except Exception as e:
            # object is in storage but unreferenced until republish succeeds
            logger.error(
                "Video stored but record update failed",
                extra={
                    "video_id": str(record.id),
                    "bucket": location.bucket,
                    "key": location.key,
                    "error": str(e),
                },
            )
            raise MetadataUpdateFailedError(location, diagnostics=str(e))
        return updated

    async def _sign_committed(self, record: VideoRecord) -> SignedVideo:
        """
        Sign a record whose update is already committed.

        The upload succeeded at this point, so a signing failure must not
        turn into an error response. The client gets the record without a
        URL and can fetch one later through GET /videos/{id}.
        """
        try:
            return await self._signer.sign_record(record)
        except StorageUnavailableError as e:
            logger.error(
                "Video published but URL signing failed",
                extra={"video_id": str(record.id), "error": e.diagnostics},
            )
            return SignedVideo(record=record, video_url=None)
