from enum import Enum
from typing import Optional

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    DUPLICATE_TITLE = "DuplicateTitle"
    EMPTY_FIELD = "EmptyField"
    INVALID_TITLE_CHARS = "InvalidTitleChars"
    QUERY_TOO_SHORT = "QueryTooShort"
    ABUSE_CHECK_FAILED = "AbuseCheckFailed"


class ForumError(Exception):
    """Base class for every per-operation failure the forum core reports."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(ForumError):
    def __init__(self, code: ErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code


class PermissionDenied(ForumError):
    pass


class NotFoundError(ForumError):
    def __init__(self, kind: str, key: object):
        super().__init__(f"{kind} {key!r} not found")
        self.kind = kind
        self.key = key


class StateError(ForumError):
    pass


class StorageError(ForumError):
    pass


class Exceptions:
    UNAUTHORIZED = HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid credentials")
    FORBIDDEN = HTTPException(status.HTTP_403_FORBIDDEN, "Insufficient permissions")
    NOT_FOUND = HTTPException(status.HTTP_404_NOT_FOUND, "Resource not found")
    THREAD_CLOSED = HTTPException(status.HTTP_409_CONFLICT, "Thread is closed")
    STORAGE_FAILURE = HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage failure")


def to_http_exception(exc: ForumError) -> HTTPException:
    detail: Optional[str] = exc.message or None
    if isinstance(exc, ValidationError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, f"{exc.code.value}: {exc.message}")
    if isinstance(exc, PermissionDenied):
        return HTTPException(Exceptions.FORBIDDEN.status_code, detail or Exceptions.FORBIDDEN.detail)
    if isinstance(exc, NotFoundError):
        return HTTPException(Exceptions.NOT_FOUND.status_code, detail or Exceptions.NOT_FOUND.detail)
    if isinstance(exc, StateError):
        return HTTPException(Exceptions.THREAD_CLOSED.status_code, detail or Exceptions.THREAD_CLOSED.detail)
    return Exceptions.STORAGE_FAILURE
