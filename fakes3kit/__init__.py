"""Building blocks for a fake S3 service: errors, prefix matching, byte ranges, routing, clocks, validation and in-memory multipart uploads."""

__version__ = "0.1.0"

__all__ = [
    "byterange",
    "errors",
    "prefix",
    "routing",
    "timesource",
    "uploader",
    "util",
    "validation",
]