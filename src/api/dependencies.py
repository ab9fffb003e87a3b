"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be swapped via app.dependency_overrides in tests
- Configuration is centralized
- Resource lifecycle (connections, clients) is managed properly

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Generator, Optional
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.media.errors import UnauthenticatedError
from ..core.media.pipeline import UploadOrchestrator
from ..core.media.processing import FastStartRemuxer, MediaToolkit, StreamInspector
from ..core.media.signing import AccessSigner
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    SnowflakeConfig,
    get_snowflake_connection,
)
from ..infrastructure.snowflake.repositories.videos import VideoRepository
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from ..infrastructure.video.processor import create_media_toolkit

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Shared instances (mock stores must persist across requests)
_mock_storage_client = None
_mock_snowflake_connection = None
_media_toolkit = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_user_id(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> UUID:
    """
    Resolve the caller's user ID from an `Authorization: Bearer` JWT.

    Tokens are HS256, signed with JWT_SECRET, with the user ID in `sub`.
    Only the resulting ID flows into the pipeline.
    """
    if credentials is None or not credentials.credentials:
        logger.warning("Request missing bearer token")
        raise UnauthenticatedError("Couldn't find JWT")

    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=["HS256"],
            options={"require": ["sub"]},
        )
        return UUID(str(claims["sub"]))
    except (jwt.PyJWTError, ValueError) as e:
        logger.warning("Invalid bearer token", extra={"error": str(e)})
        raise UnauthenticatedError("Couldn't validate JWT", diagnostics=str(e))


# ---------------------------------------------------------------------------
# Infrastructure Dependencies
# ---------------------------------------------------------------------------

def get_video_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[VideoRepository, None, None]:
    """
    Provide VideoRepository with database connection.

    This is a generator so the connection is closed after the request.
    In mock mode, we reuse the same connection across requests so that
    records persist during the session.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection")

        yield VideoRepository(_mock_snowflake_connection)
    else:
        config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            warehouse=settings.snowflake_warehouse,
            role=settings.snowflake_role,
        )

        with get_snowflake_connection(config=config) as conn:
            logger.debug("Created VideoRepository with Snowflake connection")
            yield VideoRepository(conn)


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Provide storage client for processed videos.

    In mock mode, we reuse the same client across requests so that
    uploaded objects persist during the session.
    """
    global _mock_storage_client

    if settings.storage_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client")
        return _mock_storage_client

    config = StorageConfig(
        bucket_name=settings.s3_bucket,
        region=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
    )
    return create_storage_client(config=config)


def get_media_toolkit(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MediaToolkit:
    """
    Provide the media toolkit.

    The toolkit holds no per-request state, so one instance is shared;
    this also avoids re-running the ffmpeg availability check per request.
    """
    global _media_toolkit

    if _media_toolkit is None:
        _media_toolkit = create_media_toolkit(
            mock_mode=settings.media_mock_mode,
            ffmpeg_path=settings.ffmpeg_path,
            ffprobe_path=settings.ffprobe_path,
            probe_timeout=settings.probe_timeout_seconds,
            remux_timeout=settings.remux_timeout_seconds,
        )
    return _media_toolkit


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_access_signer(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
) -> AccessSigner:
    return AccessSigner(storage, ttl_seconds=settings.presigned_url_ttl_seconds)


def get_upload_orchestrator(
    settings: Annotated[Settings, Depends(get_settings)],
    repository: Annotated[VideoRepository, Depends(get_video_repository)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
    toolkit: Annotated[MediaToolkit, Depends(get_media_toolkit)],
    signer: Annotated[AccessSigner, Depends(get_access_signer)],
) -> UploadOrchestrator:
    """Wire the ingestion pipeline for one request."""
    return UploadOrchestrator(
        videos=repository,
        store=storage,
        inspector=StreamInspector(toolkit),
        remuxer=FastStartRemuxer(toolkit, staging_dir=settings.staging_dir),
        signer=signer,
        bucket=settings.s3_bucket,
        allowed_content_types=settings.allowed_content_types_list,
        max_upload_bytes=settings.max_upload_bytes,
        staging_dir=settings.staging_dir,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
VideoRepositoryDep = Annotated[VideoRepository, Depends(get_video_repository)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
MediaToolkitDep = Annotated[MediaToolkit, Depends(get_media_toolkit)]
AccessSignerDep = Annotated[AccessSigner, Depends(get_access_signer)]
UploadOrchestratorDep = Annotated[UploadOrchestrator, Depends(get_upload_orchestrator)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
