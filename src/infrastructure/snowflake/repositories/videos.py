"""
Snowflake repository for video records.

This module implements the repository pattern for video metadata:
1. Translates between VideoRecord and database rows
2. Encapsulates all SQL queries
3. Provides a clean interface for the application layer

The location is stored as two columns (video_bucket, video_key). Both
are NULL for drafts; they are always written together.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from src.core.media.errors import VideoNotFoundError
from src.core.media.models import VideoLocation, VideoRecord

from ..client import SnowflakeConnection

logger = logging.getLogger(__name__)


VIDEOS_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS videos (
        video_id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(36) NOT NULL,
        title VARCHAR NOT NULL DEFAULT '',
        description VARCHAR NOT NULL DEFAULT '',
        video_bucket VARCHAR,
        video_key VARCHAR,
        created_at TIMESTAMP_TZ NOT NULL,
        updated_at TIMESTAMP_TZ NOT NULL
    )
"""

_SELECT_COLUMNS = """
    SELECT
        video_id,
        user_id,
        title,
        description,
        video_bucket,
        video_key,
        created_at,
        updated_at
    FROM videos
"""


class VideoRepository:
    """
    Repository for video record persistence.

    Each method corresponds to a use case the application needs:
    - create_video: Persist a new draft
    - get_video: Load a record by ID
    - list_videos: All records for one owner
    - update_video: Persist title/description/location changes
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def ensure_schema(self) -> None:
        """Create the videos table if it doesn't exist."""
        cursor = self._conn.cursor()
        try:
            cursor.execute(VIDEOS_TABLE_DDL)
            self._conn.commit()
        finally:
            cursor.close()

    def create_video(self, record: VideoRecord) -> VideoRecord:
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO videos (
                    video_id, user_id, title, description,
                    video_bucket, video_key, created_at, updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """, (
                str(record.id),
                str(record.user_id),
                record.title,
                record.description,
                record.video_location.bucket if record.video_location else None,
                record.video_location.key if record.video_location else None,
                record.created_at,
                record.updated_at,
            ))
            self._conn.commit()

            logger.info(
                "Created video record",
                extra={"video_id": str(record.id), "user_id": str(record.user_id)}
            )
            return record

        except Exception as e:
            logger.error(
                "Failed to create video record",
                extra={"video_id": str(record.id), "error": str(e)}
            )
            self._conn.rollback()
            raise
        finally:
            cursor.close()

    def get_video(self, video_id: UUID) -> VideoRecord:
        """Load a record. Raises VideoNotFoundError if there is none."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                _SELECT_COLUMNS + " WHERE video_id = %s",
                (str(video_id),),
            )
            row = cursor.fetchone()
            if not row:
                raise VideoNotFoundError(diagnostics=f"video {video_id} not found")
            return self._build_record(row)
        finally:
            cursor.close()

    def list_videos(self, user_id: UUID) -> list[VideoRecord]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                _SELECT_COLUMNS + " WHERE user_id = %s ORDER BY created_at DESC",
                (str(user_id),),
            )
            return [self._build_record(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def update_video(self, record: VideoRecord) -> None:
        """
        Persist a record's mutable fields.

        Last write wins: there is no version check, so two concurrent
        uploads for one video leave whichever update lands last.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                UPDATE videos SET
                    title = %s,
                    description = %s,
                    video_bucket = %s,
                    video_key = %s,
                    updated_at = %s
                WHERE video_id = %s
            """, (
                record.title,
                record.description,
                record.video_location.bucket if record.video_location else None,
                record.video_location.key if record.video_location else None,
                record.updated_at,
                str(record.id),
            ))

            if cursor.rowcount == 0:
                self._conn.rollback()
                raise VideoNotFoundError(diagnostics=f"video {record.id} not found on update")

            self._conn.commit()

        except VideoNotFoundError:
            raise
        except Exception as e:
            logger.error(
                "Failed to update video record",
                extra={"video_id": str(record.id), "error": str(e)}
            )
            self._conn.rollback()
            raise
        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _build_record(self, row) -> VideoRecord:
        """Construct a VideoRecord from a row in _SELECT_COLUMNS order."""
        bucket, key = row[4], row[5]
        location: Optional[VideoLocation] = None
        if bucket and key:
            location = VideoLocation(bucket=bucket, key=key)

        return VideoRecord(
            id=UUID(str(row[0])),
            user_id=UUID(str(row[1])),
            title=row[2] or "",
            description=row[3] or "",
            video_location=location,
            created_at=self._as_utc(row[6]),
            updated_at=self._as_utc(row[7]),
        )

    def _as_utc(self, value) -> datetime:
        if value is None:
            return datetime.now(timezone.utc)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
