"""S3 error codes and the exception that carries them."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes reported in S3 error responses."""

    NONE = ""
    INVALID_RANGE = "InvalidRange"
    NOT_IMPLEMENTED = "NotImplemented"
    INVALID_ARGUMENT = "InvalidArgument"
    INCOMPLETE_BODY = "IncompleteBody"
    INVALID_BUCKET_NAME = "InvalidBucketName"
    NO_SUCH_UPLOAD = "NoSuchUpload"
    INVALID_PART = "InvalidPart"
    INVALID_PART_ORDER = "InvalidPartOrder"
    INTERNAL = "InternalError"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    NO_SUCH_BUCKET = "NoSuchBucket"
    NO_SUCH_KEY = "NoSuchKey"

    @property
    def status(self) -> int:
        """HTTP status code that accompanies this error."""
        return _STATUS.get(self, 500)


_STATUS = {
    ErrorCode.NONE: 200,
    ErrorCode.INVALID_RANGE: 416,
    ErrorCode.NOT_IMPLEMENTED: 501,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.INCOMPLETE_BODY: 400,
    ErrorCode.INVALID_BUCKET_NAME: 400,
    ErrorCode.NO_SUCH_UPLOAD: 404,
    ErrorCode.INVALID_PART: 400,
    ErrorCode.INVALID_PART_ORDER: 400,
    ErrorCode.INTERNAL: 500,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.NO_SUCH_BUCKET: 404,
    ErrorCode.NO_SUCH_KEY: 404,
}


class S3Error(Exception):
    """An error with an S3 error code and an optional message."""

    def __init__(self, code, message=None):
        self.code = ErrorCode(code)
        self.message = message
        super().__init__(self.message or self.code.value)

    def __str__(self) -> str:
        return self.message if self.message else self.code.value


def has_error_code(err, code) -> bool:
    """Report whether ``err`` carries ``code``; no error matches ``ErrorCode.NONE``."""
    code = ErrorCode(code)
    if err is None:
        return code is ErrorCode.NONE
    return isinstance(err, S3Error) and err.code is code