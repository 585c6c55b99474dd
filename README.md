# fakes3kit

Building blocks for a fake S3 service that tests can run against instead of
the real thing. The package holds the pieces that decide how an S3 request is
understood and answered. It is independent of any particular HTTP server or
storage backend.

## What is inside

- `fakes3kit.errors`: `S3Error` carries an `ErrorCode`, along with an
  optional message. Every failure in the package is raised as this exception.
  `ErrorCode.status` gives the HTTP status that goes with a code.
  `has_error_code(err, code)` checks which code an exception carries. It
  treats `None` as matching `ErrorCode.NONE`.
- `fakes3kit.prefix`: `Prefix` and `PrefixMatch` implement S3's
  prefix/delimiter matching. The match decides whether a key belongs in a
  listing's contents or in its common prefixes.
  - `Prefix.from_query` builds a prefix from parsed query parameters.
  - `new_prefix` and `new_folder_prefix` build a prefix directly.
  - `Prefix.file_prefix` splits a "/"-delimited prefix into a path and a
    remainder.
- `fakes3kit.byterange`: byte ranges for partial reads.
  - `parse_range_header` reads a single `Range: bytes=...` header. Multiple
    ranges raise `NotImplemented`.
  - `ObjectRangeRequest.range` resolves the request against an object's size.
  - `content_headers` produces the matching `Content-Range` and
    `Content-Length` values.
- `fakes3kit.routing`: `resolve_route` maps a method, a path and a query to
  a `Route`. The route holds the `Operation` the request stands for and the
  bucket, key, version ID and upload ID it names. A method that does not
  apply to the resource raises `MethodNotAllowed`.
  - `version_from_query` treats an empty or `"null"` versionId as no version.
  - `response_headers` builds the `x-amz-id-2`, `x-amz-request-id` and
    `Server` headers for a request number.
- `fakes3kit.timesource`: clocks built on the abstract `TimeSource`.
  - `DefaultTimeSource` reports the wall clock in GMT.
  - `FixedTimeSource` stands still until `advance` is called, which makes it
    a controllable clock for tests.
- `fakes3kit.validation`: `validate_bucket_name` applies S3's bucket naming
  rules: length, characters, labels, and no IP addresses. `valid_etag`
  checks ETag syntax.
- `fakes3kit.util`: two small helpers.
  - `parse_clamped_int` reads an integer query value with a default and
    clamps it to bounds.
  - `read_all` reads a body of exactly a known size. It raises
    `IncompleteBody` if the stream is shorter or longer.
- `fakes3kit.uploader`: `Uploader` keeps multipart uploads in memory.
  - Upload IDs are assigned in sequence: `"1"`, `"2"`, and so on.
  - It lists uploads in object-key order, with S3-style markers and common
    prefixes.
  - It lists the parts of an upload, with a limit and a marker.
  - When an upload is completed, it hands the assembled object to a storage
    object.

## Installing

```
pip install fakes3kit
```

For development, install the test extra and run the suite:

```
pip install -e ".[test]"
pytest
```

## Examples

Prefix matching:

```python
from fakes3kit.prefix import new_prefix

p = new_prefix("foo", "/")
match = p.match("foo/bar")
print(match.matched_part, match.common_prefix)   # foo/ True
```

Byte ranges:

```python
from fakes3kit.byterange import parse_range_header, content_headers

request = parse_range_header("bytes=0-4")
rng = request.range(10)
print(content_headers(rng, 10))
# {'Content-Range': 'bytes 0-4/10', 'Content-Length': '5'}
```

Routing:

```python
from fakes3kit.routing import Operation, resolve_route

route = resolve_route("GET", "/mybucket/obj", {"versionId": ["3"]})
assert route.operation is Operation.GET_OBJECT
assert route.version_id == "3"
```

Bucket names:

```python
from fakes3kit.errors import S3Error
from fakes3kit.validation import validate_bucket_name

try:
    validate_bucket_name("192.168.111.111")
except S3Error as err:
    print(err.code.value)   # InvalidBucketName
```

Multipart uploads work with any storage object that provides
`put_object(bucket, key, meta, body, size)`. If the object it returns has a
`version_id`, that version ID is passed back.

```python
import io
from dataclasses import dataclass
from datetime import datetime, timezone

from fakes3kit.timesource import FixedTimeSource
from fakes3kit.uploader import (
    CompleteMultipartUploadRequest, CompletedPart, Uploader,
)

@dataclass
class Stored:
    version_id: str = ""

class MemoryStorage:
    def __init__(self):
        self.objects = {}

    def put_object(self, bucket, key, meta, body, size):
        self.objects[(bucket, key)] = body.read()
        return Stored()

storage = MemoryStorage()
uploader = Uploader(storage, FixedTimeSource(datetime(2018, 1, 1, tzinfo=timezone.utc)))
upload_id = uploader.create_multipart_upload("mybucket", "obj", {})
etag = uploader.upload_part("mybucket", "obj", upload_id, 1, 3, io.BytesIO(b"abc"))
request = CompleteMultipartUploadRequest(parts=[CompletedPart(part_number=1, etag=etag)])
version, final_etag = uploader.complete_multipart_upload("mybucket", "obj", upload_id, request)
print(storage.objects[("mybucket", "obj")])   # b'abc'
```

The ETag of a completed upload has the form `"<md5 of the part digests>-<part count>"`.

## What it does not do

fakes3kit is a set of building blocks, not a running service.

- **No server.** It has no HTTP server and no command to start one.
  `resolve_route` tells you which operation a request names, but it does not
  carry out that operation.
- **No object storage.** It has no storage backend for buckets or objects.
  `Uploader` needs a storage object from you.
- **Uploads live in memory.** Multipart uploads and their parts are held in
  memory only. They do not survive a restart.
- **No request authentication.** Request signatures are not checked.