"""Byte ranges for partial object reads."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .errors import ErrorCode, S3Error

RANGE_NO_END = -1

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


def _parse_int64(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(text)
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(text)
    return value


@dataclass(frozen=True)
class ObjectRange:
    """A resolved range within an object of known size."""

    start: int
    length: int


@dataclass(frozen=True)
class ObjectRangeRequest:
    """A requested range, not yet resolved against an object size."""

    start: int = 0
    end: int = 0
    from_end: bool = False

    def range(self, size: int) -> ObjectRange:
        """Resolve the request against an object of ``size`` bytes."""
        if not self.from_end:
            start = self.start
            if self.end == RANGE_NO_END:
                length = size - start
            else:
                length = self.end - start + 1
        else:
            start = size - self.end
            length = size - start

        if start < 0 or length < 0 or start >= size:
            raise S3Error(ErrorCode.INVALID_RANGE)

        return ObjectRange(start=start, length=min(length, size - start))


def content_headers(object_range: Optional[ObjectRange], size: int) -> dict[str, str]:
    """Headers describing the content returned for a possibly ranged read."""
    if object_range is None:
        return {"Content-Length": str(size)}
    last = object_range.start + object_range.length - 1
    return {
        "Content-Range": f"bytes {object_range.start}-{last}/{size}",
        "Content-Length": str(object_range.length),
    }


def parse_range_header(value: str) -> Optional[ObjectRangeRequest]:
    """Parse a single byte range from a Range header; None if the header is empty."""
    if value == "":
        return None

    marker = "bytes="
    if not value.startswith(marker):
        raise S3Error(ErrorCode.INVALID_RANGE)

    ranges = value[len(marker):].split(",")
    if len(ranges) > 1:
        raise S3Error(ErrorCode.NOT_IMPLEMENTED, "multiple ranges not supported")

    spec = ranges[0].strip()
    if not spec or "-" not in spec:
        raise S3Error(ErrorCode.INVALID_RANGE)

    start_text, _, end_text = spec.partition("-")
    start_text, end_text = start_text.strip(), end_text.strip()

    try:
        if start_text == "":
            return ObjectRangeRequest(end=_parse_int64(end_text), from_end=True)

        start = _parse_int64(start_text)
        if start < 0:
            raise ValueError(start_text)
        if end_text == "":
            return ObjectRangeRequest(start=start, end=RANGE_NO_END)
        end = _parse_int64(end_text)
        if start > end:
            raise ValueError(end_text)
        return ObjectRangeRequest(start=start, end=end)
    except ValueError:
        raise S3Error(ErrorCode.INVALID_RANGE) from None