"""S3 location parsing and error classification helpers."""
from __future__ import annotations

import re
from typing import Optional, Tuple

from botocore.exceptions import ClientError

from .errors import ConfigurationError

__all__ = [
    "format_s3_uri",
    "is_not_found",
    "resolve_state_location",
    "split_s3_uri",
]

_S3_URI_RE = re.compile(r"\As3://([^/]+)(?:/(.*))?\Z", re.DOTALL)
_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
# Two or more characters before ":" so Windows drive letters stay local paths.
_SCHEME_RE = re.compile(r"\A[A-Za-z][A-Za-z0-9+.-]+:")


def split_s3_uri(uri: str) -> Tuple[str, str]:
    """Split ``s3://bucket/key...`` into ``(bucket, key)``.

    The first path segment is the bucket, the remainder (possibly empty) is the
    key. Anything that is not an ``s3://`` URI with a bucket raises
    `ConfigurationError`.
    """
    match = _S3_URI_RE.match(uri or "")
    if not match:
        raise ConfigurationError(f"Invalid S3 URI: {uri!r} (expected s3://bucket/key)")
    return match.group(1), match.group(2) or ""


def resolve_state_location(uri: str) -> Optional[Tuple[str, str]]:
    """Classify a checkpoint location.

    Returns ``(bucket, key)`` for ``s3://bucket/key`` and None for a plain
    filesystem path. Any other scheme, a wrongly cased ``S3://`` or a
    malformed ``s3:`` prefix raises `ConfigurationError`.
    """
    if not _SCHEME_RE.match(uri):
        return None
    bucket, key = split_s3_uri(uri)
    if not key:
        raise ConfigurationError(f"State URI has no object key: {uri!r}")
    return bucket, key


def format_s3_uri(bucket: str, key: str) -> str:
    return f"s3://{bucket}/{key}"


def is_not_found(error: BaseException) -> bool:
    """Return True when a botocore error means the object does not exist."""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        return code in _NOT_FOUND_CODES
    return False
