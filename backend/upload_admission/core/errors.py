"""Admission error taxonomy. The kind is stable; the message is human-readable and may be localized upstream."""
from enum import Enum


class ErrorKind(str, Enum):
    FILE_TOO_LARGE = "file_too_large"
    FILE_TYPE_NOT_SUPPORTED = "file_type_not_supported"
    FOLDER_NOT_FOUND = "folder_not_found"
    DB_QUERY_FAILED = "db_query_failed"
    INVALID_PARAMETER = "invalid_parameter"
    UPLOAD_LIMIT_EXCEEDED = "upload_limit_exceeded"


class AdmissionError(Exception):
    """Raised when an upload must not proceed. Terminal for the validation call."""

    def __init__(self, kind: ErrorKind, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"AdmissionError({self.kind.value!r}, {self.message!r})"


class SettingsSourceError(Exception):
    """The settings store could not be read (transport failure, not a bad value)."""


class StorageConfigError(Exception):
    """A storage-duration configuration could not be built from settings."""


class StorageDurationError(ValueError):
    """A storage duration token is not permitted by the storage configuration."""
