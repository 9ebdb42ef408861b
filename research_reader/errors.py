from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    NO_ACTIVE_SESSION = "no_active_session"
    UNSUPPORTED_FORMAT = "unsupported_format"
    ARCHIVE_CORRUPT = "archive_corrupt"
    FILESYSTEM_FAILURE = "filesystem_failure"
    STORE_FAILURE = "store_failure"
    INVALID_RECORD_ENCODING = "invalid_record_encoding"
    VALIDATION_FAILURE = "validation_failure"


class ReaderError(Exception):
    """Base exception for container and store operations.

    Carries a machine-readable ``kind`` and, where one applies, the path the
    failure relates to. The underlying exception is chained as ``__cause__``.
    """

    kind: ErrorKind

    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        text = self.message
        if self.path is not None:
            text = f"{text} ({self.path})"
        cause = self.__cause__
        if cause is not None:
            text = f"{text}: {cause}"
        return text


class NoActiveSession(ReaderError):
    kind = ErrorKind.NO_ACTIVE_SESSION

    def __init__(self, message: str = "No file is open") -> None:
        super().__init__(message)


class UnsupportedFormat(ReaderError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class ArchiveCorrupt(ReaderError):
    kind = ErrorKind.ARCHIVE_CORRUPT


class FilesystemFailure(ReaderError):
    kind = ErrorKind.FILESYSTEM_FAILURE


class StoreFailure(ReaderError):
    kind = ErrorKind.STORE_FAILURE


class InvalidRecordEncoding(ReaderError):
    kind = ErrorKind.INVALID_RECORD_ENCODING


class ValidationFailure(ReaderError):
    kind = ErrorKind.VALIDATION_FAILURE
