"""
Unit tests for AccessSigner and the storage clients.
"""

import io
import threading
import time
from uuid import uuid4

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError

from src.core.media.errors import StorageUnavailableError
from src.core.media.models import VideoLocation, VideoRecord
from src.core.media.signing import AccessSigner
from src.infrastructure.storage.client import (
    MockStorageClient,
    S3StorageClient,
    StorageConfig,
    StorageError,
)

KEY = "landscape/" + "f" * 64 + ".mp4"


@pytest_asyncio.fixture
async def stored() -> MockStorageClient:
    storage = MockStorageClient()
    await storage.put_object("tubely", KEY, io.BytesIO(b"video"), "video/mp4")
    return storage


class TestAccessSigner:
    """Signed URLs are minted per call and never stored."""

    @pytest.mark.asyncio
    async def test_sign_returns_fresh_url_each_time(self, stored):
        signer = AccessSigner(stored)
        location = VideoLocation(bucket="tubely", key=KEY)

        first = await signer.sign(location)
        second = await signer.sign(location)

        assert first != second
        assert first != KEY
        assert "expires=" in first

    @pytest.mark.asyncio
    async def test_draft_record_has_no_url(self, stored):
        signed = await AccessSigner(stored).sign_record(VideoRecord(user_id=uuid4()))

        assert signed.video_url is None

    @pytest.mark.asyncio
    async def test_signing_does_not_modify_record(self, stored):
        location = VideoLocation(bucket="tubely", key=KEY)
        record = VideoRecord(user_id=uuid4(), video_location=location)

        signed = await AccessSigner(stored).sign_record(record)

        assert signed.video_url is not None
        assert record.video_location == location

    @pytest.mark.asyncio
    async def test_store_failure_is_storage_unavailable(self):
        signer = AccessSigner(MockStorageClient())

        with pytest.raises(StorageUnavailableError, match="presigned URL"):
            await signer.sign(VideoLocation(bucket="tubely", key=KEY))

    def test_default_ttl_is_five_minutes(self):
        assert AccessSigner(MockStorageClient()).ttl_seconds == 300

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValueError):
            AccessSigner(MockStorageClient(), ttl_seconds=0)

    @pytest.mark.asyncio
    async def test_explicit_ttl_is_passed_through(self, stored):
        signer = AccessSigner(stored)

        url = await signer.sign(VideoLocation(bucket="tubely", key=KEY), ttl_seconds=30)
        expires = int(url.split("expires=")[1].split("&")[0])

        assert expires - time.time() <= 31

    @pytest.mark.asyncio
    async def test_explicit_zero_ttl_is_rejected(self, stored):
        signer = AccessSigner(stored)

        with pytest.raises(ValueError):
            await signer.sign(VideoLocation(bucket="tubely", key=KEY), ttl_seconds=0)


class TestMockStorageClient:
    @pytest.mark.asyncio
    async def test_object_exists(self, stored):
        assert await stored.object_exists("tubely", KEY)
        assert not await stored.object_exists("tubely", "other/missing.mp4")

    @pytest.mark.asyncio
    async def test_presign_of_missing_object_fails(self):
        with pytest.raises(StorageError):
            await MockStorageClient().generate_presigned_url("tubely", KEY)


class RecordingS3:
    """Stands in for the boto3 client; records the thread each call runs on."""

    def __init__(self, error_code=None):
        self.error_code = error_code
        self.threads = []

    def head_object(self, Bucket, Key):
        self.threads.append(threading.get_ident())
        if self.error_code:
            raise ClientError({"Error": {"Code": self.error_code}}, "HeadObject")
        return {"ContentLength": 5}


class TestS3StorageClient:
    @pytest.fixture
    def client(self) -> S3StorageClient:
        return S3StorageClient(StorageConfig(bucket_name="tubely"))

    @pytest.mark.asyncio
    async def test_object_exists_runs_off_the_event_loop(self, client):
        s3 = RecordingS3()
        client._s3_client = s3

        assert await client.object_exists("tubely", KEY)
        assert s3.threads != [threading.get_ident()]

    @pytest.mark.asyncio
    async def test_missing_object_is_false(self, client):
        client._s3_client = RecordingS3(error_code="404")

        assert not await client.object_exists("tubely", KEY)

    @pytest.mark.asyncio
    async def test_other_errors_raise(self, client):
        client._s3_client = RecordingS3(error_code="AccessDenied")

        with pytest.raises(StorageError):
            await client.object_exists("tubely", KEY)
