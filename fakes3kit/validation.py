"""Validation of bucket names and ETags."""

from __future__ import annotations

import ipaddress
import re

from .errors import ErrorCode, S3Error

# Matches a whole bucket name and each period-separated label of one.
_BUCKET_NAME_RE = re.compile(r"[a-z0-9]([a-z0-9.\-]+)[a-z0-9]")
_ETAG_RE = re.compile(r'"[a-z0-9]+"')


def _is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def validate_bucket_name(name: str) -> str:
    """Check ``name`` against the S3 bucket naming rules and return it.

    Raises an InvalidBucketName error when a rule is broken.
    """
    if not 3 <= len(name.encode("utf-8")) <= 63:
        raise S3Error(
            ErrorCode.INVALID_BUCKET_NAME,
            "bucket name must be >= 3 characters and <= 63",
        )
    if not _BUCKET_NAME_RE.fullmatch(name):
        raise S3Error(
            ErrorCode.INVALID_BUCKET_NAME,
            "bucket must start and end with 'a-z, 0-9', and contain only 'a-z, 0-9, -' in between",
        )
    if _is_ip_address(name):
        raise S3Error(
            ErrorCode.INVALID_BUCKET_NAME,
            "bucket names must not be formatted as an IP address",
        )
    if not all(_BUCKET_NAME_RE.fullmatch(label) for label in name.split(".")):
        raise S3Error(
            ErrorCode.INVALID_BUCKET_NAME,
            "label must start and end with 'a-z, 0-9', and contain only 'a-z, 0-9, -' in between",
        )
    return name


def valid_etag(value: str) -> bool:
    """Report whether ``value`` is a quoted lower-case alphanumeric ETag."""
    return _ETAG_RE.fullmatch(value) is not None