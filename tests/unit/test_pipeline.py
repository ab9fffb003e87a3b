"""
Unit tests for UploadOrchestrator.

The orchestrator runs against fakes for the toolkit and record store and
the in-memory storage client, so each test can check exactly which side
effects happened (and which did not) for a given failure.
"""

import io
import os
import re
from uuid import uuid4

import pytest

from src.core.media.errors import (
    ForbiddenError,
    InspectionFailedError,
    InvalidIdentifierError,
    MetadataUpdateFailedError,
    PayloadTooLargeError,
    ProcessingFailedError,
    StorageUnavailableError,
    UnsupportedMediaTypeError,
    VideoNotFoundError,
)
from src.core.media.models import StreamGeometry, VideoLocation
from src.core.media.processing import MediaToolError

from tests.fakes import (
    TEST_BUCKET,
    FailingPresignStorage,
    FailingPutStorage,
    FakeMediaToolkit,
    remux_failure,
)

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 4096


def upload_stream(data: bytes = VIDEO_BYTES) -> io.BytesIO:
    return io.BytesIO(data)


def staged_files(staging_dir) -> list[str]:
    return os.listdir(staging_dir)


# ---------------------------------------------------------------------------
# Happy Path
# ---------------------------------------------------------------------------

class TestIngestSuccess:
    """A valid upload is processed, stored and published."""

    @pytest.mark.asyncio
    async def test_landscape_upload_is_stored_and_signed(
        self, make_orchestrator, draft, owner_id, storage, video_store, staging_dir
    ):
        orchestrator = make_orchestrator()

        signed = await orchestrator.ingest(
            owner_id=owner_id,
            video_id=draft.id,
            content_type="video/mp4",
            stream=upload_stream(),
            declared_length=len(VIDEO_BYTES),
        )

        location = signed.record.video_location
        assert location.bucket == TEST_BUCKET
        assert re.fullmatch(r"landscape/[0-9a-f]{64}\.mp4", location.key)
        assert video_store.records[draft.id].video_location == location
        assert storage.get_object(TEST_BUCKET, location.key) == (VIDEO_BYTES, "video/mp4")
        assert signed.video_url is not None
        assert signed.video_url != location.key
        assert staged_files(staging_dir) == []

    @pytest.mark.asyncio
    async def test_portrait_upload_goes_under_portrait(
        self, make_orchestrator, draft, owner_id
    ):
        orchestrator = make_orchestrator(
            toolkit=FakeMediaToolkit(geometry=StreamGeometry(1080, 1920))
        )

        signed = await orchestrator.ingest(
            owner_id, draft.id, "video/mp4", upload_stream(), None
        )

        assert signed.record.video_location.key.startswith("portrait/")

    @pytest.mark.asyncio
    async def test_square_upload_goes_under_other(self, make_orchestrator, draft, owner_id):
        orchestrator = make_orchestrator(
            toolkit=FakeMediaToolkit(geometry=StreamGeometry(1000, 1000))
        )

        signed = await orchestrator.ingest(
            owner_id, draft.id, "video/mp4", upload_stream(), None
        )

        assert signed.record.video_location.key.startswith("other/")

    @pytest.mark.asyncio
    async def test_content_type_parameters_are_accepted(
        self, make_orchestrator, draft, owner_id
    ):
        orchestrator = make_orchestrator()

        signed = await orchestrator.ingest(
            owner_id, draft.id, "video/mp4; codecs=avc1", upload_stream(), None
        )

        assert signed.record.video_location.key.endswith(".mp4")

    @pytest.mark.asyncio
    async def test_stored_object_is_the_remuxed_file(
        self, make_orchestrator, draft, owner_id, storage
    ):
        """Storage gets the remux output, not the raw upload."""
        orchestrator = make_orchestrator(
            toolkit=FakeMediaToolkit(remux_output=b"faststart-bytes")
        )

        signed = await orchestrator.ingest(
            owner_id, draft.id, "video/mp4", upload_stream(), None
        )

        data, _ = storage.get_object(TEST_BUCKET, signed.record.video_location.key)
        assert data == b"faststart-bytes"

    @pytest.mark.asyncio
    async def test_reupload_replaces_location(self, make_orchestrator, draft, owner_id):
        orchestrator = make_orchestrator()

        first = await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)
        second = await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        assert first.record.video_location.key != second.record.video_location.key


# ---------------------------------------------------------------------------
# Validation and Authorization
# ---------------------------------------------------------------------------

class TestIngestRejections:
    """Requests refused before anything is written anywhere."""

    @pytest.mark.asyncio
    async def test_wrong_content_type_is_rejected_before_staging(
        self, make_orchestrator, draft, owner_id, storage, toolkit, staging_dir
    ):
        orchestrator = make_orchestrator()

        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            await orchestrator.ingest(owner_id, draft.id, "image/png", upload_stream(), None)

        assert "video/mp4" in exc_info.value.message
        assert toolkit.probed == []
        assert storage.keys() == []
        assert staged_files(staging_dir) == []

    @pytest.mark.asyncio
    async def test_missing_content_type_is_rejected(self, make_orchestrator, draft, owner_id):
        orchestrator = make_orchestrator()

        with pytest.raises(UnsupportedMediaTypeError):
            await orchestrator.ingest(owner_id, draft.id, None, upload_stream(), None)

    @pytest.mark.asyncio
    async def test_declared_size_over_limit_is_rejected_before_staging(
        self, make_orchestrator, draft, owner_id, staging_dir
    ):
        orchestrator = make_orchestrator(max_upload_bytes=1024)

        with pytest.raises(PayloadTooLargeError):
            await orchestrator.ingest(
                owner_id, draft.id, "video/mp4", upload_stream(), declared_length=1025
            )

        assert staged_files(staging_dir) == []

    @pytest.mark.asyncio
    async def test_undeclared_oversized_stream_is_cut_off(
        self, make_orchestrator, draft, owner_id, storage, toolkit, staging_dir, video_store
    ):
        """A body larger than it claimed is caught while staging."""
        orchestrator = make_orchestrator(max_upload_bytes=1024)

        with pytest.raises(PayloadTooLargeError):
            await orchestrator.ingest(
                owner_id, draft.id, "video/mp4", upload_stream(b"x" * 2048), declared_length=None
            )

        assert toolkit.probed == []
        assert storage.keys() == []
        assert staged_files(staging_dir) == []
        assert video_store.records[draft.id].is_draft

    @pytest.mark.asyncio
    async def test_unknown_video_is_not_found(self, make_orchestrator, owner_id, staging_dir):
        orchestrator = make_orchestrator()

        with pytest.raises(VideoNotFoundError):
            await orchestrator.ingest(owner_id, uuid4(), "video/mp4", upload_stream(), None)

        assert staged_files(staging_dir) == []

    @pytest.mark.asyncio
    async def test_non_owner_is_forbidden(
        self, make_orchestrator, draft, storage, toolkit, staging_dir
    ):
        orchestrator = make_orchestrator()

        with pytest.raises(ForbiddenError):
            await orchestrator.ingest(uuid4(), draft.id, "video/mp4", upload_stream(), None)

        assert toolkit.probed == []
        assert storage.keys() == []
        assert staged_files(staging_dir) == []


# ---------------------------------------------------------------------------
# Processing Failures
# ---------------------------------------------------------------------------

class TestIngestProcessingFailures:
    """Inspection and remux failures leave no trace."""

    @pytest.mark.asyncio
    async def test_unreadable_stream_is_inspection_failed(
        self, make_orchestrator, draft, owner_id, storage, video_store, staging_dir
    ):
        toolkit = FakeMediaToolkit(
            probe_error=MediaToolError("ffprobe exited with status 1", "Invalid data found")
        )
        orchestrator = make_orchestrator(toolkit=toolkit)

        with pytest.raises(InspectionFailedError) as exc_info:
            await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        assert "Invalid data found" in exc_info.value.diagnostics
        assert "Invalid data found" not in exc_info.value.message
        assert toolkit.remuxed == []
        assert storage.keys() == []
        assert video_store.records[draft.id].is_draft
        assert staged_files(staging_dir) == []

    @pytest.mark.asyncio
    async def test_zero_height_stream_is_inspection_failed(
        self, make_orchestrator, draft, owner_id
    ):
        orchestrator = make_orchestrator(
            toolkit=FakeMediaToolkit(geometry=StreamGeometry(1920, 0))
        )

        with pytest.raises(InspectionFailedError):
            await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

    @pytest.mark.asyncio
    async def test_inspection_failure_is_a_processing_failure(
        self, make_orchestrator, draft, owner_id
    ):
        orchestrator = make_orchestrator(
            toolkit=FakeMediaToolkit(probe_error=MediaToolError("boom"))
        )

        with pytest.raises(ProcessingFailedError):
            await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

    @pytest.mark.asyncio
    async def test_remux_failure_removes_raw_file_and_keeps_record(
        self, make_orchestrator, draft, owner_id, storage, video_store, staging_dir
    ):
        toolkit = FakeMediaToolkit(remux_error=remux_failure())
        orchestrator = make_orchestrator(toolkit=toolkit)

        with pytest.raises(ProcessingFailedError) as exc_info:
            await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        assert not isinstance(exc_info.value, InspectionFailedError)
        assert "moov atom not found" in exc_info.value.diagnostics
        raw_path, processed_path = toolkit.remuxed[0]
        assert not os.path.exists(raw_path)
        assert not os.path.exists(processed_path)
        assert storage.keys() == []
        assert video_store.records[draft.id].is_draft
        assert video_store.updates == 0

    @pytest.mark.asyncio
    async def test_empty_remux_output_is_processing_failed(
        self, make_orchestrator, draft, owner_id, storage, staging_dir
    ):
        orchestrator = make_orchestrator(toolkit=FakeMediaToolkit(remux_output=b""))

        with pytest.raises(ProcessingFailedError, match="empty output"):
            await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        assert storage.keys() == []
        assert staged_files(staging_dir) == []


# ---------------------------------------------------------------------------
# Storage and Metadata Failures
# ---------------------------------------------------------------------------

class TestIngestStorageFailures:
    """Failures after processing has succeeded."""

    @pytest.mark.asyncio
    async def test_put_failure_leaves_record_unchanged_and_retry_succeeds(
        self, make_orchestrator, draft, owner_id, video_store, staging_dir
    ):
        storage = FailingPutStorage()
        orchestrator = make_orchestrator(storage=storage)

        with pytest.raises(StorageUnavailableError):
            await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        assert video_store.records[draft.id].is_draft
        assert staged_files(staging_dir) == []

        storage.fail_puts = False
        signed = await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        assert signed.video_url is not None
        assert storage.put_attempts == 2
        assert video_store.records[draft.id].video_location == signed.record.video_location

    @pytest.mark.asyncio
    async def test_metadata_failure_reports_stored_location(
        self, make_orchestrator, draft, owner_id, storage, video_store, staging_dir
    ):
        video_store.update_error = RuntimeError("warehouse suspended")
        orchestrator = make_orchestrator()

        with pytest.raises(MetadataUpdateFailedError) as exc_info:
            await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        location = exc_info.value.location
        assert storage.keys() == [(location.bucket, location.key)]
        assert video_store.records[draft.id].is_draft
        assert staged_files(staging_dir) == []

    @pytest.mark.asyncio
    async def test_republish_recovers_after_metadata_failure(
        self, make_orchestrator, draft, owner_id, storage, video_store
    ):
        video_store.update_error = RuntimeError("warehouse suspended")
        orchestrator = make_orchestrator()

        with pytest.raises(MetadataUpdateFailedError) as exc_info:
            await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        video_store.update_error = None
        signed = await orchestrator.republish(owner_id, draft.id, exc_info.value.location)

        assert signed.record.video_location == exc_info.value.location
        assert video_store.records[draft.id].video_location == exc_info.value.location
        assert signed.video_url is not None
        assert len(storage.keys()) == 1

    @pytest.mark.asyncio
    async def test_signing_failure_after_update_returns_record_without_url(
        self, make_orchestrator, draft, owner_id, video_store
    ):
        """The upload is committed, so a signing outage must not look like a failed upload."""
        storage = FailingPresignStorage()
        orchestrator = make_orchestrator(storage=storage)

        signed = await orchestrator.ingest(owner_id, draft.id, "video/mp4", upload_stream(), None)

        assert signed.video_url is None
        assert signed.record.video_location is not None
        assert video_store.records[draft.id].video_location == signed.record.video_location
        assert storage.keys() == [
            (signed.record.video_location.bucket, signed.record.video_location.key)
        ]

    @pytest.mark.asyncio
    async def test_republish_with_signing_failure_still_updates_record(
        self, make_orchestrator, draft, owner_id, video_store
    ):
        storage = FailingPresignStorage()
        location = VideoLocation(bucket=TEST_BUCKET, key="portrait/" + "c" * 64 + ".mp4")
        await storage.put_object(location.bucket, location.key, io.BytesIO(b"x"), "video/mp4")
        orchestrator = make_orchestrator(storage=storage)

        signed = await orchestrator.republish(owner_id, draft.id, location)

        assert signed.video_url is None
        assert video_store.records[draft.id].video_location == location


# ---------------------------------------------------------------------------
# Republish
# ---------------------------------------------------------------------------

class TestRepublish:
    """Reattaching an already-stored object."""

    @pytest.fixture
    def stored_location(self, storage) -> VideoLocation:
        location = VideoLocation(bucket=TEST_BUCKET, key="portrait/" + "ab" * 32 + ".mp4")
        storage._objects[(location.bucket, location.key)] = (b"video", "video/mp4")
        return location

    @pytest.mark.asyncio
    async def test_republish_is_idempotent(
        self, make_orchestrator, draft, owner_id, stored_location, video_store
    ):
        orchestrator = make_orchestrator()

        first = await orchestrator.republish(owner_id, draft.id, stored_location)
        second = await orchestrator.republish(owner_id, draft.id, stored_location)

        assert first.record.video_location == second.record.video_location
        assert video_store.updates == 1

    @pytest.mark.asyncio
    async def test_rejects_other_bucket(self, make_orchestrator, draft, owner_id):
        orchestrator = make_orchestrator()
        location = VideoLocation(bucket="someone-else", key="portrait/" + "ab" * 32 + ".mp4")

        with pytest.raises(InvalidIdentifierError):
            await orchestrator.republish(owner_id, draft.id, location)

    @pytest.mark.asyncio
    async def test_rejects_malformed_key(self, make_orchestrator, draft, owner_id):
        orchestrator = make_orchestrator()
        location = VideoLocation(bucket=TEST_BUCKET, key="uploads/anything.mp4")

        with pytest.raises(InvalidIdentifierError):
            await orchestrator.republish(owner_id, draft.id, location)

    @pytest.mark.asyncio
    async def test_missing_object_is_not_found(
        self, make_orchestrator, draft, owner_id, video_store
    ):
        orchestrator = make_orchestrator()
        location = VideoLocation(bucket=TEST_BUCKET, key="other/" + "cd" * 32 + ".mp4")

        with pytest.raises(VideoNotFoundError, match="Stored video not found"):
            await orchestrator.republish(owner_id, draft.id, location)

        assert video_store.records[draft.id].is_draft

    @pytest.mark.asyncio
    async def test_non_owner_is_forbidden(self, make_orchestrator, draft, stored_location):
        orchestrator = make_orchestrator()

        with pytest.raises(ForbiddenError):
            await orchestrator.republish(uuid4(), draft.id, stored_location)
