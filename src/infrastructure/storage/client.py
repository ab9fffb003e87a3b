"""
Object storage client for processed videos.

Supports AWS S3 and S3-compatible stores (Cloudflare R2, MinIO) through
boto3, plus an in-memory mock for local development.

Mock mode stores objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import BinaryIO, Optional, Protocol
from urllib.parse import quote

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    Empty credentials mean "use the boto3 credential chain" (env vars,
    instance profile, ~/.aws).
    """
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_id: str = ""
    secret_access_key: str = ""


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> None:
        """Store `body` under bucket/key."""
        ...

    async def generate_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 300,
    ) -> str:
        """Generate temporary download URL."""
        ...

    async def object_exists(self, bucket: str, key: str) -> bool:
        """True if bucket/key is stored."""
        ...


class S3StorageClient:
    """
    S3 object storage client.

    Methods are async to match the Protocol. Uploads can be large, so
    put_object hands the blocking boto3 call to a worker thread.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize S3 client with boto3.

        boto3 is imported here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config

        boto_config = Config(signature_version="s3v4")

        client_kwargs = {
            "region_name": config.region,
            "config": boto_config,
        }
        if config.endpoint_url:
            client_kwargs["endpoint_url"] = config.endpoint_url
        if config.access_key_id and config.secret_access_key:
            client_kwargs["aws_access_key_id"] = config.access_key_id
            client_kwargs["aws_secret_access_key"] = config.secret_access_key

        self._s3_client = boto3.client("s3", **client_kwargs)

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> None:
        """Upload a processed video."""
        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )

            logger.info(
                "Uploaded object",
                extra={"bucket": bucket, "key": key, "content_type": content_type},
            )

        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise StorageError(f"Upload failed: {e}")

    async def generate_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 300,
    ) -> str:
        """
        Generate a temporary download URL.

        Presigned URLs let clients stream directly from storage for a
        limited time without routing bytes through the API.
        """
        try:
            return self._s3_client.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": bucket,
                    "Key": key,
                },
                ExpiresIn=expiry_seconds,
            )

        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise StorageError(f"Presigned URL generation failed: {e}")

    async def object_exists(self, bucket: str, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            await asyncio.to_thread(self._s3_client.head_object, Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.error(
                "Failed to check object",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise StorageError(f"Head object failed: {e}")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Objects live in a dict keyed by (bucket, key) and guarded by a lock,
    since concurrent requests share one instance. "URLs" are mock URIs
    carrying an expiry and a nonce, so every signing call yields a new URL.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self._lock = threading.Lock()
        logger.info("Initialized mock storage client (in-memory)")

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> None:
        """Store object in memory."""
        data = body.read()
        with self._lock:
            self._objects[(bucket, key)] = (data, content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(data)},
        )

    async def generate_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 300,
    ) -> str:
        """Return a mock URL for the object."""
        with self._lock:
            if (bucket, key) not in self._objects:
                raise StorageError(f"Object not found: {bucket}/{key}")

        expires = int(time.time()) + expiry_seconds
        return (
            f"mock://storage/{quote(bucket, safe='')}/{quote(key)}"
            f"?expires={expires}&signature={secrets.token_hex(16)}"
        )

    async def object_exists(self, bucket: str, key: str) -> bool:
        with self._lock:
            return (bucket, key) in self._objects

    def get_object(self, bucket: str, key: str) -> tuple[bytes, str]:
        """Fetch stored bytes and content type (for test assertions)."""
        with self._lock:
            if (bucket, key) not in self._objects:
                raise StorageError(f"Object not found: {bucket}/{key}")
            return self._objects[(bucket, key)]

    def keys(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._objects.keys())


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
