"""
Typed failures raised by the canonical store and its services.

Every failure carries a wire ``kind``. The command dispatcher turns these
into ``CommandFailure`` results; they never cross the command channel as
exceptions.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure taxonomy shared by backend and UI core."""

    PARSE_ERROR = "ParseError"
    IO_ERROR = "IoError"
    ENTITY_NOT_FOUND = "EntityNotFound"
    VALIDATION_ERROR = "ValidationError"
    NO_DATASET_LOADED = "NoDatasetLoaded"
    UNSUPPORTED_FORMAT = "UnsupportedFormat"


class CommandError(Exception):
    """Base class for failures reported back through the command channel."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ParseError(CommandError):
    """Content is not a valid dataset."""

    kind = ErrorKind.PARSE_ERROR

    def __init__(self, message: str, line: int | None = None):
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class StorageIoError(CommandError):
    """A file location could not be read or written."""

    kind = ErrorKind.IO_ERROR


class EntityNotFoundError(CommandError):
    kind = ErrorKind.ENTITY_NOT_FOUND


class EntityValidationError(CommandError):
    """Submitted data fails store-side constraints."""

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, problems: list[str] | None = None):
        super().__init__(message)
        self.problems = problems or []


class NoDatasetLoadedError(CommandError):
    kind = ErrorKind.NO_DATASET_LOADED

    def __init__(self, message: str = "No dataset loaded"):
        super().__init__(message)


class UnsupportedFormatError(CommandError):
    """Binary inspection cannot interpret the file."""

    kind = ErrorKind.UNSUPPORTED_FORMAT
