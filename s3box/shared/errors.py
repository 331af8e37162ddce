"""Error codes and exceptions for s3box."""
from enum import Enum, auto


class ErrorCode(Enum):
    """Enumeration of all possible error codes in the application."""

    NOT_FOUND = auto()
    TECHNICAL = auto()
    NOT_LOADED = auto()
    INVALID_STATE = auto()
    ALREADY_EXISTS = auto()
    NO_CONNECTION_SELECTED = auto()
    EDITOR_ALREADY_OPENED = auto()
    INVALID_SETTINGS = auto()
    VALIDATION_FAILED = auto()
    READ_ONLY = auto()
    FILE_TOO_LARGE = auto()
    CANCELLED = auto()
    UNKNOWN_ERROR = auto()


class S3BoxError(Exception):
    """Base exception for s3box errors."""

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code.name}] {message}")


class NotFoundError(S3BoxError):
    """Raised when a connection, directory, file, bucket or key is absent."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.NOT_FOUND, message)


class TechnicalError(S3BoxError):
    """Raised on transport, serialization or I/O failures."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.TECHNICAL, message)


class NotLoadedError(S3BoxError):
    """Raised when directory children are requested before loading."""

    def __init__(self, message: str = "directory not loaded"):
        super().__init__(ErrorCode.NOT_LOADED, message)


class InvalidStateError(S3BoxError):
    """Raised on an illegal directory state transition."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.INVALID_STATE, message)


class AlreadyExistsError(S3BoxError):
    """Raised when a child with the same name already exists."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.ALREADY_EXISTS, message)


class NoConnectionSelectedError(S3BoxError):
    """Raised when an operation requires a selected connection."""

    def __init__(self, message: str = "no connection selected"):
        super().__init__(ErrorCode.NO_CONNECTION_SELECTED, message)


class EditorAlreadyOpenedError(S3BoxError):
    """Raised when opening a file that already has an editor."""

    def __init__(self, message: str = "editor already opened"):
        super().__init__(ErrorCode.EDITOR_ALREADY_OPENED, message)


class InvalidSettingsError(S3BoxError):
    """Raised when a settings value is rejected."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.INVALID_SETTINGS, message)


class InvalidTimeoutError(InvalidSettingsError):
    """Raised when the timeout is not strictly positive."""

    def __init__(self, message: str = "invalid timeout"):
        super().__init__(message)


class ValidationError(S3BoxError):
    """Raised when validation fails (e.g., a file name containing a slash)."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.VALIDATION_FAILED, message)


class ReadOnlyError(S3BoxError):
    """Raised when a mutation targets a read-only connection."""

    def __init__(self, message: str = "connection is read-only"):
        super().__init__(ErrorCode.READ_ONLY, message)


class FileTooLargeError(S3BoxError):
    """Raised when a file exceeds the configured preview size."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.FILE_TOO_LARGE, message)


class CancelledError(S3BoxError):
    """Raised when an operation's context was cancelled or timed out."""

    def __init__(self, message: str = "operation cancelled"):
        super().__init__(ErrorCode.CANCELLED, message)
