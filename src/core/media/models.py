"""
Domain models for video ingestion.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs - the domain should be
expressible without knowing how it's stored or transmitted.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AspectClass(Enum):
    """
    Geometry buckets for uploaded videos.

    The value is also the top-level directory of the storage key, so
    browsing the bucket groups videos by orientation.
    """
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"  # measured fine, just not 16:9 or 9:16


# Exclusive bands, in hundredths of width/height, around 9:16 (0.5625) and
# 16:9 (1.7778). Wider than the exact ratios to absorb integer-rounding
# noise in real encodes.
PORTRAIT_BAND = (54, 58)
LANDSCAPE_BAND = (174, 178)


def classify_aspect_ratio(width: int, height: int) -> AspectClass:
    """
    Classify a frame size into an AspectClass.

    The ratio is truncated (floored) to two decimals before comparison,
    so 1920x1080 -> 1.77 -> LANDSCAPE and 1080x1920 -> 0.56 -> PORTRAIT.
    Integer division keeps exact ratios exact: 58x100 is 0.58, not 0.5799.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Dimensions must be positive, got {width}x{height}")

    hundredths = (width * 100) // height

    if PORTRAIT_BAND[0] < hundredths < PORTRAIT_BAND[1]:
        return AspectClass.PORTRAIT
    if LANDSCAPE_BAND[0] < hundredths < LANDSCAPE_BAND[1]:
        return AspectClass.LANDSCAPE
    return AspectClass.OTHER


@dataclass(frozen=True)
class StreamGeometry:
    """Pixel size of the primary video stream as reported by the probe."""
    width: int
    height: int
    codec: str = "unknown"

    @property
    def aspect_class(self) -> AspectClass:
        return classify_aspect_ratio(self.width, self.height)


@dataclass(frozen=True)
class VideoLocation:
    """
    Durable reference to a stored object.

    Frozen because a location is a value: two locations with the same
    bucket and key are the same location. Serialized as a JSON object,
    never as a delimited string, so either field may contain any character.
    """
    bucket: str
    key: str

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ValueError("Location bucket cannot be empty")
        if not self.key:
            raise ValueError("Location key cannot be empty")

    def to_dict(self) -> dict[str, str]:
        return {"bucket": self.bucket, "key": self.key}

    def serialize(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def deserialize(cls, raw: str) -> "VideoLocation":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Serialized location must be a JSON object")
        return cls(bucket=data["bucket"], key=data["key"])


@dataclass
class VideoRecord:
    """
    A video owned by exactly one user.

    `video_location` is None until the first successful upload (draft).
    It only ever holds the durable (bucket, key) pair - signed URLs are
    minted per response and never stored here.
    """
    user_id: UUID
    id: UUID = field(default_factory=uuid4)
    title: str = ""
    description: str = ""
    video_location: Optional[VideoLocation] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def is_draft(self) -> bool:
        return self.video_location is None

    def with_location(self, location: VideoLocation) -> "VideoRecord":
        """Return a copy pointing at `location`. The original is untouched."""
        return replace(self, video_location=location, updated_at=_utcnow())


@dataclass(frozen=True)
class SignedVideo:
    """
    A VideoRecord prepared for a response.

    `video_url` is a short-lived signed URL, or None for drafts.
    """
    record: VideoRecord
    video_url: Optional[str] = None
