import hashlib
import os
from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from fakes3kit.errors import ErrorCode, S3Error
from fakes3kit.prefix import Prefix, new_folder_prefix
from fakes3kit.timesource import FixedTimeSource
from fakes3kit.uploader import (
    CompletedPart,
    CompleteMultipartUploadRequest,
    Uploader,
    UploadListMarker,
    upload_list_marker_from_query,
)

BUCKET = "mybucket"
START = datetime(2018, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@dataclass
class _PutResult:
    version_id: str


class _MemoryStorage:
    def __init__(self):
        self.objects = {}
        self.version = 0

    def put_object(self, bucket, key, meta, body, size):
        self.version += 1
        self.objects[(bucket, key)] = (dict(meta), body.read(), size)
        return _PutResult(version_id=f"v{self.version}")


@pytest.fixture
def storage():
    return _MemoryStorage()


@pytest.fixture
def uploader(storage):
    return Uploader(storage, FixedTimeSource(START))


def _listing(uploader, marker=None, prefix=None, limit=1000):
    if marker:
        key, _, upload_id = marker.partition("/")
        marker_obj = UploadListMarker(key=key, upload_id=upload_id)
    else:
        marker_obj = None
    result = uploader.list_multipart_uploads(BUCKET, marker_obj, prefix or Prefix(), limit)
    uploads = [f"{u.key}/{u.upload_id}" for u in result.uploads]
    prefixes = [p.prefix for p in result.common_prefixes]
    return result, uploads, prefixes


def test_abort_multipart_upload(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "obj", None)
    assert upload_id == "1"
    _, uploads, _ = _listing(uploader)
    assert uploads == ["obj/1"]

    uploader.abort_multipart_upload(BUCKET, "obj", "1")
    with pytest.raises(S3Error) as info:
        uploader.list_parts(BUCKET, "obj", "1", 0, 1000)
    assert info.value.code is ErrorCode.NO_SUCH_UPLOAD
    _, uploads, _ = _listing(uploader)
    assert uploads == []


def test_list_uploads_same_object_key(uploader):
    for _ in range(3):
        uploader.create_multipart_upload(BUCKET, "obj", None)

    assert _listing(uploader)[1] == ["obj/1", "obj/2", "obj/3"]
    assert _listing(uploader, limit=1)[1] == ["obj/1"]
    assert _listing(uploader, limit=2)[1] == ["obj/1", "obj/2"]
    assert _listing(uploader, marker="obj/2", limit=1)[1] == ["obj/2"]
    assert _listing(uploader, marker="obj/2", limit=2)[1] == ["obj/2", "obj/3"]


def test_list_uploads_marker_fields(uploader):
    for _ in range(3):
        uploader.create_multipart_upload(BUCKET, "obj", None)
    result, _, _ = _listing(uploader, marker="obj/2", limit=1)
    assert result.key_marker == "obj"
    assert result.upload_id_marker == "2"
    assert result.max_uploads == 1
    assert result.is_truncated is True
    assert result.next_key_marker == "obj"
    assert result.next_upload_id_marker == "3"


def test_list_uploads_different_object_keys(uploader):
    uploader.create_multipart_upload(BUCKET, "foo", None)
    uploader.create_multipart_upload(BUCKET, "bar", None)
    uploader.create_multipart_upload(BUCKET, "baz", None)

    assert _listing(uploader)[1] == ["bar/2", "baz/3", "foo/1"]
    assert _listing(uploader, limit=1)[1] == ["bar/2"]
    assert _listing(uploader, limit=2)[1] == ["bar/2", "baz/3"]
    assert _listing(uploader, marker="baz/3", limit=1)[1] == ["baz/3"]
    assert _listing(uploader, marker="baz/3", limit=2)[1] == ["baz/3", "foo/1"]


def test_list_uploads_not_truncated_at_end(uploader):
    uploader.create_multipart_upload(BUCKET, "foo", None)
    uploader.create_multipart_upload(BUCKET, "bar", None)
    result, uploads, _ = _listing(uploader, limit=2)
    assert uploads == ["bar/2", "foo/1"]
    assert result.is_truncated is False


def test_list_uploads_prefix(uploader):
    for key in ["foo/bar", "foo/bar", "foo/baz", "foo/nested/yep", "food/bar", "food/baz", "yep/qux"]:
        uploader.create_multipart_upload(BUCKET, key, None)

    result, uploads, prefixes = _listing(uploader, prefix=new_folder_prefix("/"))
    assert prefixes == ["foo/", "food/", "yep/"]
    assert uploads == []
    assert result.prefix == "/"
    assert result.delimiter == "/"

    _, uploads, prefixes = _listing(uploader, prefix=new_folder_prefix("fo"))
    assert prefixes == ["foo/", "food/"]
    assert uploads == []

    _, uploads, prefixes = _listing(uploader)
    assert prefixes == []
    assert uploads == [
        "foo/bar/1", "foo/bar/2", "foo/baz/3", "foo/nested/yep/4",
        "food/bar/5", "food/baz/6", "yep/qux/7",
    ]

    result, uploads, _ = _listing(uploader, limit=3)
    assert uploads == ["foo/bar/1", "foo/bar/2", "foo/baz/3"]
    assert result.is_truncated is True
    assert result.next_key_marker == "foo/nested/yep"
    assert result.next_upload_id_marker == "4"

    _, uploads, prefixes = _listing(uploader, prefix=new_folder_prefix("foo/"))
    assert prefixes == ["foo/nested/"]
    assert uploads == ["foo/bar/1", "foo/bar/2", "foo/baz/3"]


def test_list_uploads_unknown_bucket(uploader):
    with pytest.raises(S3Error) as info:
        uploader.list_multipart_uploads("autobucket", None, Prefix(), 1000)
    assert info.value.code is ErrorCode.NO_SUCH_UPLOAD


def test_list_parts_and_complete(uploader, storage):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", {"x": "y"})
    parts = [
        CompletedPart(n, uploader.upload_part(BUCKET, "foo", upload_id, n, 3, body))
        for n, body in [(1, b"abc"), (2, b"def"), (3, b"ghi")]
    ]
    assert parts[0].etag == '"900150983cd24fb0d6963f7d28e17f72"'

    listed = uploader.list_parts(BUCKET, "foo", upload_id, 0, 1000)
    assert listed.bucket == BUCKET
    assert listed.key == "foo"
    assert listed.upload_id == upload_id
    assert [(p.part_number, p.etag, p.size) for p in listed.parts] == [
        (1, parts[0].etag, 3), (2, parts[1].etag, 3), (3, parts[2].etag, 3)
    ]
    assert listed.parts[0].last_modified == START
    assert listed.is_truncated is False

    version, etag = uploader.complete_multipart_upload(
        BUCKET, "foo", upload_id, CompleteMultipartUploadRequest(parts)
    )
    digest = hashlib.md5()
    for part in parts:
        digest.update(bytes.fromhex(part.etag.strip('"')))
    assert etag == f'"{digest.hexdigest()}-3"'
    assert version == "v1"
    assert storage.objects[(BUCKET, "foo")] == ({"x": "y"}, b"abcdefghi", 9)

    with pytest.raises(S3Error) as info:
        uploader.list_parts(BUCKET, "foo", upload_id, 0, 1000)
    assert info.value.code is ErrorCode.NO_SUCH_UPLOAD


def test_list_parts_truncated(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    for n in (1, 2, 3):
        uploader.upload_part(BUCKET, "foo", upload_id, n, 1, b"x")
    listed = uploader.list_parts(BUCKET, "foo", upload_id, 0, 2)
    assert [p.part_number for p in listed.parts] == [1, 2]
    assert listed.is_truncated is True
    assert listed.next_part_number_marker == 3
    assert listed.max_parts == 2


@pytest.mark.parametrize("part_count,part_size,last", [(1, 1000, 0), (10, 1000, 1), (2, 4000, 3999)])
def test_multipart_upload_assembles_body(uploader, storage, part_count, part_size, last):
    sizes = [part_size] * part_count
    if last:
        sizes[-1] = last
    bodies = [os.urandom(size) for size in sizes]
    upload_id = uploader.create_multipart_upload(BUCKET, "uploadtest", None)
    parts = [
        CompletedPart(n, uploader.upload_part(BUCKET, "uploadtest", upload_id, n, len(body), body))
        for n, body in enumerate(bodies, start=1)
    ]
    _, etag = uploader.complete_multipart_upload(
        BUCKET, "uploadtest", upload_id, CompleteMultipartUploadRequest(parts)
    )
    assert storage.objects[(BUCKET, "uploadtest")][1] == b"".join(bodies)
    assert etag.endswith(f'-{part_count}"')


def test_upload_part_accepts_stream(uploader):
    import io

    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    etag = uploader.upload_part(BUCKET, "foo", upload_id, 1, 3, io.BytesIO(b"abc"))
    assert etag == '"900150983cd24fb0d6963f7d28e17f72"'


def test_upload_part_number_too_large(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    with pytest.raises(S3Error) as info:
        uploader.upload_part(BUCKET, "foo", upload_id, 10001, 1, b"x")
    assert info.value.code is ErrorCode.INVALID_PART


def test_upload_part_incomplete_body(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    with pytest.raises(S3Error) as info:
        uploader.upload_part(BUCKET, "foo", upload_id, 1, 5, b"abc")
    assert info.value.code is ErrorCode.INCOMPLETE_BODY


@pytest.mark.parametrize("bucket,key,upload_id", [("other", "foo", "1"), (BUCKET, "bar", "1"), (BUCKET, "foo", "99")])
def test_upload_part_unknown_upload(uploader, bucket, key, upload_id):
    uploader.create_multipart_upload(BUCKET, "foo", None)
    with pytest.raises(S3Error) as info:
        uploader.upload_part(bucket, key, upload_id, 1, 1, b"x")
    assert info.value.code is ErrorCode.NO_SUCH_UPLOAD


def _two_part_upload(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    parts = [
        CompletedPart(1, uploader.upload_part(BUCKET, "foo", upload_id, 1, 1, b"a")),
        CompletedPart(2, uploader.upload_part(BUCKET, "foo", upload_id, 2, 1, b"b")),
    ]
    return upload_id, parts


def test_complete_out_of_order(uploader):
    upload_id, parts = _two_part_upload(uploader)
    with pytest.raises(S3Error) as info:
        uploader.complete_multipart_upload(
            BUCKET, "foo", upload_id, CompleteMultipartUploadRequest(list(reversed(parts)))
        )
    assert info.value.code is ErrorCode.INVALID_PART_ORDER


def test_complete_wrong_etag(uploader):
    upload_id, parts = _two_part_upload(uploader)
    bad = [parts[0], CompletedPart(2, '"00"')]
    with pytest.raises(S3Error) as info:
        uploader.complete_multipart_upload(BUCKET, "foo", upload_id, CompleteMultipartUploadRequest(bad))
    assert info.value.code is ErrorCode.INVALID_PART


def test_complete_missing_part(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    etag = uploader.upload_part(BUCKET, "foo", upload_id, 2, 1, b"b")
    request = CompleteMultipartUploadRequest([CompletedPart(1, etag), CompletedPart(2, etag)])
    with pytest.raises(S3Error) as info:
        uploader.complete_multipart_upload(BUCKET, "foo", upload_id, request)
    assert info.value.code is ErrorCode.INVALID_PART


def test_complete_too_many_parts(uploader):
    upload_id = uploader.create_multipart_upload(BUCKET, "foo", None)
    etag = uploader.upload_part(BUCKET, "foo", upload_id, 1, 1, b"a")
    request = CompleteMultipartUploadRequest([CompletedPart(1, etag)] * 3)
    with pytest.raises(S3Error) as info:
        uploader.complete_multipart_upload(BUCKET, "foo", upload_id, request)
    assert info.value.code is ErrorCode.INVALID_PART


def test_completed_upload_not_listed(uploader):
    upload_id, parts = _two_part_upload(uploader)
    uploader.complete_multipart_upload(BUCKET, "foo", upload_id, CompleteMultipartUploadRequest(parts))
    assert _listing(uploader)[1] == []


def test_upload_ids_increase_across_buckets(uploader):
    assert uploader.create_multipart_upload("a-bucket", "k", None) == "1"
    assert uploader.create_multipart_upload("b-bucket", "k", None) == "2"


def test_initiated_time_recorded(uploader):
    uploader.create_multipart_upload(BUCKET, "foo", None)
    result, _, _ = _listing(uploader)
    assert result.uploads[0].initiated == START
    assert result.uploads[0].storage_class == "STANDARD"


@pytest.mark.parametrize(
    "numbers,expected",
    [([], True), ([1], True), ([1, 2, 3], True), ([1, 1, 2], True), ([2, 1], False), ([1, 3, 2], False)],
)
def test_parts_are_sorted(numbers, expected):
    request = CompleteMultipartUploadRequest([CompletedPart(n, '"a"') for n in numbers])
    assert request.parts_are_sorted() is expected


def test_upload_list_marker_from_query():
    assert upload_list_marker_from_query({}) is None
    assert upload_list_marker_from_query({"key-marker": [""], "upload-id-marker": ["3"]}) is None
    assert upload_list_marker_from_query({"key-marker": ["obj"]}) == UploadListMarker("obj", "")
    assert upload_list_marker_from_query(
        {"key-marker": ["obj"], "upload-id-marker": ["2"]}
    ) == UploadListMarker("obj", "2")