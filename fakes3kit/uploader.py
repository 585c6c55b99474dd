"""In-memory multipart uploads.

Uploads live only in memory and do not survive a restart. Parts are kept in
memory until the upload is completed or aborted.
"""

from __future__ import annotations

import hashlib
import io
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Iterator, Mapping, Optional, Protocol, Sequence, Union

from sortedcontainers import SortedDict

from .errors import ErrorCode, S3Error
from .prefix import CommonPrefix, Prefix
from .timesource import DefaultTimeSource, TimeSource

MAX_UPLOAD_PART_NUMBER = 10000

_STORAGE_CLASS = "STANDARD"


class ObjectStorage(Protocol):
    """The part of a backend that completed uploads are written to."""

    def put_object(self, bucket: str, key: str, meta: Mapping[str, str], body: BinaryIO, size: int) -> Any:
        """Store an object; the result carries a ``version_id``."""


@dataclass
class MultipartUploadPart:
    """One uploaded part of a multipart upload."""

    part_number: int
    etag: str
    body: bytes
    last_modified: datetime


@dataclass
class MultipartUpload:
    """A multipart upload in progress.

    ``parts`` is indexed by part number and grows to fit the highest part
    uploaded; slots for parts not uploaded hold None.
    """

    id: str
    bucket: str
    key: str
    meta: dict[str, str]
    initiated: datetime
    parts: list[Optional[MultipartUploadPart]] = field(default_factory=list)


@dataclass(frozen=True)
class CompletedPart:
    """A part named in a request to complete an upload."""

    part_number: int
    etag: str


@dataclass
class CompleteMultipartUploadRequest:
    """The list of parts that make up a completed upload."""

    parts: list[CompletedPart] = field(default_factory=list)

    def parts_are_sorted(self) -> bool:
        """Report whether the parts are in ascending part-number order."""
        return all(a.part_number <= b.part_number for a, b in zip(self.parts, self.parts[1:]))


@dataclass(frozen=True)
class UploadListMarker:
    """Where a page of a multipart upload listing starts.

    When ``upload_id`` is empty, listing starts at ``key``. Otherwise it
    starts at the upload with that ID under ``key``.
    """

    key: str
    upload_id: str = ""


@dataclass(frozen=True)
class ListMultipartUploadItem:
    key: str
    upload_id: str
    initiated: datetime
    storage_class: str = _STORAGE_CLASS


@dataclass
class ListMultipartUploadsResult:
    bucket: str
    max_uploads: int
    prefix: str = ""
    delimiter: str = ""
    key_marker: str = ""
    upload_id_marker: str = ""
    next_key_marker: str = ""
    next_upload_id_marker: str = ""
    is_truncated: bool = False
    uploads: list[ListMultipartUploadItem] = field(default_factory=list)
    common_prefixes: list[CommonPrefix] = field(default_factory=list)


@dataclass(frozen=True)
class ListMultipartUploadPartItem:
    part_number: int
    etag: str
    size: int
    last_modified: datetime


@dataclass
class ListMultipartUploadPartsResult:
    bucket: str
    key: str
    upload_id: str
    max_parts: int
    part_number_marker: int
    storage_class: str = _STORAGE_CLASS
    next_part_number_marker: int = 0
    is_truncated: bool = False
    parts: list[ListMultipartUploadPartItem] = field(default_factory=list)


class _BucketUploads:
    """Uploads of one bucket, indexed by ID and in object-key order.

    Within a key, uploads are kept in the order they were initiated.
    """

    def __init__(self) -> None:
        self.uploads: dict[str, MultipartUpload] = {}
        self.by_key: SortedDict = SortedDict()

    def add(self, upload: MultipartUpload) -> None:
        self.uploads[upload.id] = upload
        self.by_key.setdefault(upload.key, []).append(upload)

    def remove(self, upload_id: str) -> None:
        upload = self.uploads.pop(upload_id)
        same_key = self.by_key.get(upload.key)
        if not same_key:
            return
        remaining = [u for u in same_key if u.id != upload_id]
        if remaining:
            self.by_key[upload.key] = remaining
        else:
            del self.by_key[upload.key]

    def entries_from(self, key: Optional[str]) -> Iterator[tuple[str, list[MultipartUpload]]]:
        keys = list(self.by_key.irange(minimum=key) if key is not None else self.by_key.keys())
        return iter([(k, self.by_key[k]) for k in keys])


def _read_body(body: Union[bytes, bytearray, BinaryIO]) -> bytes:
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    return body.read()


class Uploader:
    """Manages multipart uploads and writes completed ones to storage."""

    def __init__(self, storage: ObjectStorage, time_source: Optional[TimeSource] = None):
        self._storage = storage
        self._time_source = time_source if time_source is not None else DefaultTimeSource()
        self._last_id = 0
        self._buckets: dict[str, _BucketUploads] = {}
        self._lock = threading.Lock()

    def create_multipart_upload(self, bucket: str, key: str, meta: Optional[Mapping[str, str]] = None) -> str:
        """Start an upload and return its ID."""
        with self._lock:
            self._last_id += 1
            upload = MultipartUpload(
                id=str(self._last_id),
                bucket=bucket,
                key=key,
                meta=dict(meta or {}),
                initiated=self._time_source.now(),
            )
            self._buckets.setdefault(bucket, _BucketUploads()).add(upload)
            return upload.id

    def list_parts(self, bucket: str, key: str, upload_id: str, marker: int, limit: int) -> ListMultipartUploadPartsResult:
        """List the parts uploaded so far, starting at slot ``marker``."""
        with self._lock:
            upload = self._get(bucket, key, upload_id)
            result = ListMultipartUploadPartsResult(
                bucket=bucket,
                key=key,
                upload_id=upload_id,
                max_parts=limit,
                part_number_marker=marker,
            )
            count = 0
            for part_number, part in enumerate(upload.parts[marker:]):
                if part is None:
                    continue
                if count >= limit:
                    result.is_truncated = True
                    result.next_part_number_marker = part_number
                    break
                result.parts.append(
                    ListMultipartUploadPartItem(
                        part_number=part_number,
                        etag=part.etag,
                        size=len(part.body),
                        last_modified=part.last_modified,
                    )
                )
                count += 1
            return result

    def list_multipart_uploads(
        self,
        bucket: str,
        marker: Optional[UploadListMarker],
        prefix: Prefix,
        limit: int,
    ) -> ListMultipartUploadsResult:
        """List uploads in object-key order, then initiation order within a key."""
        with self._lock:
            bucket_uploads = self._buckets.get(bucket)
            if bucket_uploads is None:
                raise S3Error(ErrorCode.NO_SUCH_UPLOAD)

            result = ListMultipartUploadsResult(
                bucket=bucket,
                max_uploads=limit,
                prefix=prefix.prefix,
                delimiter=prefix.delimiter,
            )

            first_found = True
            if marker is not None:
                entries = bucket_uploads.entries_from(marker.key)
                first_found = marker.upload_id == ""
                result.upload_id_marker = marker.upload_id
                result.key_marker = marker.key
            else:
                entries = bucket_uploads.entries_from(None)

            truncated = False
            count = 0
            seen_prefixes: set[str] = set()

            for key, uploads in entries:
                match = prefix.match(key)
                if match is None:
                    continue

                if not first_found:
                    start = next((i for i, u in enumerate(uploads) if u.id == marker.upload_id), None)
                    if start is None:
                        continue
                    first_found = True
                    uploads = uploads[start:]

                if match.common_prefix:
                    if match.matched_part not in seen_prefixes:
                        result.common_prefixes.append(match.as_common_prefix())
                        seen_prefixes.add(match.matched_part)
                    continue

                done = False
                for idx, upload in enumerate(uploads):
                    result.uploads.append(
                        ListMultipartUploadItem(key=key, upload_id=upload.id, initiated=upload.initiated)
                    )
                    count += 1
                    if count >= limit:
                        if idx != len(uploads) - 1:
                            truncated = True
                            result.next_upload_id_marker = uploads[idx + 1].id
                            result.next_key_marker = key
                        done = True
                        break
                if done:
                    break

            if not truncated:
                for key, uploads in entries:
                    match = prefix.match(key)
                    if match is not None and not match.common_prefix:
                        truncated = True
                        result.next_upload_id_marker = uploads[0].id
                        result.next_key_marker = key
                        break

            result.is_truncated = truncated
            return result

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Discard an upload and its parts."""
        with self._lock:
            self._get(bucket, key, upload_id)
            self._buckets[bucket].remove(upload_id)

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        content_length: int,
        body: Union[bytes, bytearray, BinaryIO],
    ) -> str:
        """Store one part and return its ETag."""
        if part_number > MAX_UPLOAD_PART_NUMBER or part_number < 0:
            raise S3Error(ErrorCode.INVALID_PART)
        data = _read_body(body)
        if len(data) != content_length:
            raise S3Error(ErrorCode.INCOMPLETE_BODY)

        with self._lock:
            upload = self._get(bucket, key, upload_id)
            etag = f'"{hashlib.md5(data).hexdigest()}"'
            part = MultipartUploadPart(
                part_number=part_number,
                etag=etag,
                body=data,
                last_modified=self._time_source.now(),
            )
            if part_number >= len(upload.parts):
                upload.parts.extend([None] * (part_number - len(upload.parts) + 1))
            upload.parts[part_number] = part
            return etag

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        request: CompleteMultipartUploadRequest,
    ) -> tuple[str, str]:
        """Assemble the named parts into an object; return its version ID and ETag."""
        with self._lock:
            upload = self._get(bucket, key, upload_id)
            slots = len(upload.parts)

            if len(request.parts) > slots:
                raise S3Error(ErrorCode.INVALID_PART)
            if not request.parts_are_sorted():
                raise S3Error(ErrorCode.INVALID_PART_ORDER)

            chosen: list[MultipartUploadPart] = []
            for wanted in request.parts:
                number = wanted.part_number
                stored = upload.parts[number] if 0 <= number < slots else None
                if stored is None:
                    raise S3Error(
                        ErrorCode.INVALID_PART,
                        f"unexpected part number {number} in complete request",
                    )
                if wanted.etag.strip('"') != stored.etag.strip('"'):
                    raise S3Error(
                        ErrorCode.INVALID_PART,
                        f"unexpected part etag for number {number} in complete request",
                    )
                chosen.append(stored)

            digest = hashlib.md5()
            for wanted, stored in zip(request.parts, chosen):
                try:
                    digest.update(bytes.fromhex(stored.etag.strip('"')))
                except ValueError as exc:
                    raise S3Error(
                        ErrorCode.INTERNAL,
                        f"invalid etag for number {wanted.part_number} is stored: {exc}",
                    ) from None

            data = b"".join(part.body for part in chosen)
            etag = f'"{digest.hexdigest()}-{len(request.parts)}"'

            stored_object = self._storage.put_object(bucket, key, upload.meta, io.BytesIO(data), len(data))
            self._buckets[bucket].remove(upload_id)
            return getattr(stored_object, "version_id", ""), etag

    def _get(self, bucket: str, key: str, upload_id: str) -> MultipartUpload:
        bucket_uploads = self._buckets.get(bucket)
        if bucket_uploads is None:
            raise S3Error(ErrorCode.NO_SUCH_UPLOAD)
        upload = bucket_uploads.uploads.get(upload_id)
        if upload is None or upload.bucket != bucket or upload.key != key:
            raise S3Error(ErrorCode.NO_SUCH_UPLOAD)
        return upload


def upload_list_marker_from_query(query: Mapping[str, Sequence[str]]) -> Optional[UploadListMarker]:
    """Build a listing marker from key-marker and upload-id-marker query values."""
    key = (query.get("key-marker") or [""])[0]
    if key == "":
        return None
    return UploadListMarker(key=key, upload_id=(query.get("upload-id-marker") or [""])[0])