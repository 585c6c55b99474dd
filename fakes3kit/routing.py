"""Dispatch of S3 requests to the operations they ask for."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Sequence

from .errors import ErrorCode, S3Error


class Operation(Enum):
    """An S3 operation a request resolves to."""

    LIST_BUCKETS = "ListBuckets"
    GET_OBJECT = "GetObject"
    HEAD_OBJECT = "HeadObject"
    CREATE_OBJECT = "CreateObject"
    DELETE_OBJECT = "DeleteObject"
    GET_BUCKET_LOCATION = "GetBucketLocation"
    LIST_BUCKET = "ListBucket"
    CREATE_BUCKET = "CreateBucket"
    DELETE_BUCKET = "DeleteBucket"
    HEAD_BUCKET = "HeadBucket"
    DELETE_MULTI = "DeleteMulti"
    CREATE_OBJECT_BROWSER_UPLOAD = "CreateObjectBrowserUpload"
    LIST_MULTIPART_UPLOADS = "ListMultipartUploads"
    INITIATE_MULTIPART_UPLOAD = "InitiateMultipartUpload"
    GET_BUCKET_VERSIONING = "GetBucketVersioning"
    PUT_BUCKET_VERSIONING = "PutBucketVersioning"
    LIST_BUCKET_VERSIONS = "ListBucketVersions"
    DELETE_OBJECT_VERSION = "DeleteObjectVersion"
    LIST_MULTIPART_UPLOAD_PARTS = "ListMultipartUploadParts"
    PUT_MULTIPART_UPLOAD_PART = "PutMultipartUploadPart"
    ABORT_MULTIPART_UPLOAD = "AbortMultipartUpload"
    COMPLETE_MULTIPART_UPLOAD = "CompleteMultipartUpload"
    NOT_FOUND = "NotFound"


@dataclass(frozen=True)
class Route:
    """A resolved request: the operation and the resources it names."""

    operation: Operation
    bucket: str = ""
    key: str = ""
    version_id: str = ""
    upload_id: str = ""


_OBJECT = {
    "GET": Operation.GET_OBJECT,
    "HEAD": Operation.HEAD_OBJECT,
    "PUT": Operation.CREATE_OBJECT,
    "DELETE": Operation.DELETE_OBJECT,
}
_MULTIPART_BASE = {
    "GET": Operation.LIST_MULTIPART_UPLOADS,
    "POST": Operation.INITIATE_MULTIPART_UPLOAD,
}
_VERSIONING = {
    "GET": Operation.GET_BUCKET_VERSIONING,
    "PUT": Operation.PUT_BUCKET_VERSIONING,
}
_VERSIONS = {"GET": Operation.LIST_BUCKET_VERSIONS}
_VERSION = {
    "GET": Operation.GET_OBJECT,
    "HEAD": Operation.HEAD_OBJECT,
    "DELETE": Operation.DELETE_OBJECT_VERSION,
}
_MULTIPART = {
    "GET": Operation.LIST_MULTIPART_UPLOAD_PARTS,
    "PUT": Operation.PUT_MULTIPART_UPLOAD_PART,
    "DELETE": Operation.ABORT_MULTIPART_UPLOAD,
    "POST": Operation.COMPLETE_MULTIPART_UPLOAD,
}


def _pick(table: Mapping[str, Operation], method: str) -> Operation:
    try:
        return table[method]
    except KeyError:
        raise S3Error(ErrorCode.METHOD_NOT_ALLOWED) from None


def _bucket_operation(method: str, query: Mapping[str, Sequence[str]]) -> Operation:
    if method == "GET":
        return Operation.GET_BUCKET_LOCATION if "location" in query else Operation.LIST_BUCKET
    if method == "POST":
        return Operation.DELETE_MULTI if "delete" in query else Operation.CREATE_OBJECT_BROWSER_UPLOAD
    return _pick(
        {
            "PUT": Operation.CREATE_BUCKET,
            "DELETE": Operation.DELETE_BUCKET,
            "HEAD": Operation.HEAD_BUCKET,
        },
        method,
    )


def version_from_query(values: Sequence[str]) -> str:
    """The versionId query value, with an empty or "null" version treated as none."""
    if values and values[0] not in ("", "null"):
        return values[0]
    return ""


def resolve_route(method: str, path: str, query: Mapping[str, Sequence[str]]) -> Route:
    """Resolve a request to the operation it asks for.

    ``path`` has the form /<bucket>/<object>; ``query`` maps each query
    parameter to its list of values. Raises a MethodNotAllowed error when
    the method does not apply to the resource.
    """
    bucket, _, key = path.strip("/").partition("/")

    upload_values = query.get("uploadId") or [""]
    upload_id = upload_values[0]
    version_id = version_from_query(query.get("versionId") or [])

    if upload_id:
        return Route(_pick(_MULTIPART, method), bucket, key, upload_id=upload_id)
    if "uploads" in query:
        return Route(_pick(_MULTIPART_BASE, method), bucket, key)
    if "versioning" in query:
        return Route(_pick(_VERSIONING, method), bucket)
    if "versions" in query:
        return Route(_pick(_VERSIONS, method), bucket)
    if version_id:
        return Route(_pick(_VERSION, method), bucket, key, version_id=version_id)
    if bucket and key:
        return Route(_pick(_OBJECT, method), bucket, key)
    if bucket:
        return Route(_bucket_operation(method, query), bucket)
    if method == "GET":
        return Route(Operation.LIST_BUCKETS)
    return Route(Operation.NOT_FOUND)


def response_headers(request_id: int) -> dict[str, str]:
    """Headers S3 sends with every response for the given request number."""
    rid = f"{request_id:016X}"
    return {
        "x-amz-id-2": base64.b64encode((rid * 4).encode("ascii")).decode("ascii"),
        "x-amz-request-id": rid,
        "Server": "AmazonS3",
    }