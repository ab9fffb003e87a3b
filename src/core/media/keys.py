"""
Storage key derivation.

Keys look like `landscape/<64 hex chars>.mp4`: the aspect class picks the
directory, 32 random bytes make the name unique without any coordination
between requests.
"""

import re
import secrets

from .errors import InvalidIdentifierError, UnsupportedMediaTypeError
from .models import AspectClass

TOKEN_BYTES = 32

_KEY_PATTERN = re.compile(
    r"^(?P<directory>[a-z]+)/(?P<token>[0-9a-f]{%d})\.(?P<ext>[a-z0-9.+-]+)$"
    % (TOKEN_BYTES * 2)
)


def parse_media_type(content_type: str) -> str:
    """Strip parameters and normalize case: `Video/MP4; codecs=x` -> `video/mp4`."""
    return content_type.split(";", 1)[0].strip().lower()


def extension_for_content_type(content_type: str) -> str:
    """
    File extension implied by a content type: the subtype after '/'.

    Parameters (`; codecs=...`) are ignored. `video/mp4` -> `mp4`.
    """
    _, sep, subtype = parse_media_type(content_type).partition("/")
    if not sep or not subtype or "/" in subtype:
        raise UnsupportedMediaTypeError(
            diagnostics=f"no usable subtype in content type {content_type!r}"
        )
    return subtype


def derive_storage_key(content_type: str, aspect_class: AspectClass) -> str:
    """Build a fresh, collision-free key for a processed video."""
    ext = extension_for_content_type(content_type)
    token = secrets.token_hex(TOKEN_BYTES)
    return f"{aspect_class.value}/{token}.{ext}"


def aspect_class_from_key(key: str) -> AspectClass:
    """Read the aspect class back out of a derived key."""
    match = _KEY_PATTERN.match(key)
    if not match:
        raise InvalidIdentifierError(
            "Invalid storage key",
            diagnostics=f"key {key!r} is not a derived storage key",
        )
    try:
        return AspectClass(match.group("directory"))
    except ValueError:
        raise InvalidIdentifierError(
            "Invalid storage key",
            diagnostics=f"unknown aspect directory in key {key!r}",
        )
