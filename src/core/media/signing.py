"""
Signed playback URLs.

Records only ever store a (bucket, key) pair. Every time a record leaves
the API it goes through AccessSigner, which mints a short-lived URL from
that pair. Signed URLs are disposable and never written back.
"""

import logging
from typing import BinaryIO, Optional, Protocol

from .errors import StorageUnavailableError
from .models import SignedVideo, VideoLocation, VideoRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


class ObjectStore(Protocol):
    """
    The storage primitives the pipeline relies on.

    Matches the infrastructure StorageClient; declared here so the core
    doesn't import boto3-backed code.
    """

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> None:
        ...

    async def generate_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int,
    ) -> str:
        ...

    async def object_exists(self, bucket: str, key: str) -> bool:
        ...


class AccessSigner:
    """Turns durable locations into time-limited read URLs."""

    def __init__(self, store: ObjectStore, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._store = store
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    async def sign(self, location: VideoLocation, ttl_seconds: Optional[int] = None) -> str:
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")
        try:
            return await self._store.generate_presigned_url(
                location.bucket,
                location.key,
                ttl,
            )
        except Exception as e:
            logger.error(
                "Failed to sign video location",
                extra={"bucket": location.bucket, "key": location.key, "error": str(e)},
            )
            raise StorageUnavailableError(
                "Couldn't generate presigned URL",
                diagnostics=str(e),
            )

    async def sign_record(self, record: VideoRecord) -> SignedVideo:
        """
        Prepare a record for a response.

        Drafts come back with no URL; that's a valid "no media yet"
        state, not an error.
        """
        if record.video_location is None:
            return SignedVideo(record=record, video_url=None)
        url = await self.sign(record.video_location)
        return SignedVideo(record=record, video_url=url)
