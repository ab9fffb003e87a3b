"""
Shared fixtures.

Fixtures build an UploadOrchestrator from the fakes in tests.fakes and a
per-test staging directory, so tests can assert that nothing is left
behind on disk.
"""

from uuid import UUID, uuid4

import pytest

from src.core.media.models import VideoRecord
from src.core.media.pipeline import UploadOrchestrator
from src.core.media.processing import FastStartRemuxer, StreamInspector
from src.core.media.signing import AccessSigner
from src.infrastructure.storage.client import MockStorageClient

from tests.fakes import TEST_BUCKET, FakeMediaToolkit, FakeVideoStore


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def toolkit() -> FakeMediaToolkit:
    return FakeMediaToolkit()


@pytest.fixture
def video_store() -> FakeVideoStore:
    return FakeVideoStore()


@pytest.fixture
def storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def draft(video_store, owner_id) -> VideoRecord:
    return video_store.add(VideoRecord(user_id=owner_id, title="Boots"))


@pytest.fixture
def make_orchestrator(video_store, storage, toolkit, staging_dir):
    """Build an orchestrator; keyword overrides replace the default collaborators."""

    def _make(**overrides) -> UploadOrchestrator:
        used_toolkit = overrides.pop("toolkit", toolkit)
        used_storage = overrides.pop("storage", storage)
        kwargs = dict(
            videos=video_store,
            store=used_storage,
            inspector=StreamInspector(used_toolkit),
            remuxer=FastStartRemuxer(used_toolkit, staging_dir=str(staging_dir)),
            signer=AccessSigner(used_storage, ttl_seconds=300),
            bucket=TEST_BUCKET,
            allowed_content_types=["video/mp4"],
            max_upload_bytes=1024 * 1024,
            staging_dir=str(staging_dir),
        )
        kwargs.update(overrides)
        return UploadOrchestrator(**kwargs)

    return _make
