"""Small helpers for query parsing and body reading."""

from __future__ import annotations

import re
from typing import BinaryIO

from .errors import ErrorCode, S3Error

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


def parse_clamped_int(value: str, default: int, minimum: int, maximum: int) -> int:
    """Parse an integer, falling back to ``default`` when empty, clamped to bounds."""
    if value == "":
        result = default
    else:
        if not _INT_RE.fullmatch(value):
            raise S3Error(ErrorCode.INVALID_ARGUMENT)
        result = int(value)
        if not _INT64_MIN <= result <= _INT64_MAX:
            raise S3Error(ErrorCode.INVALID_ARGUMENT)

    if result < minimum:
        return minimum
    if result > maximum:
        return maximum
    return result


def read_all(stream: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes and nothing more from ``stream``.

    Raises an IncompleteBody error if the stream is shorter or longer.
    """
    if size < 0:
        raise ValueError("size must not be negative")

    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)

    data = b"".join(chunks)
    if len(data) != size:
        raise S3Error(ErrorCode.INCOMPLETE_BODY)
    if stream.read():
        raise S3Error(ErrorCode.INCOMPLETE_BODY)
    return data