"""
Shared utilities for the calibration database editor backend.

Logging setup and the typed failure hierarchy used across the store,
projection, merge and command modules.
"""
from .errors import (
    CommandError,
    EntityNotFoundError,
    EntityValidationError,
    ErrorKind,
    NoDatasetLoadedError,
    ParseError,
    StorageIoError,
    UnsupportedFormatError,
)
from .logger import get_logger, setup_logging

__all__ = [
    "CommandError",
    "EntityNotFoundError",
    "EntityValidationError",
    "ErrorKind",
    "NoDatasetLoadedError",
    "ParseError",
    "StorageIoError",
    "UnsupportedFormatError",
    "get_logger",
    "setup_logging",
]
