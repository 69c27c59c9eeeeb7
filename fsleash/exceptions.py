"""Shared exception types for fsleash."""

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class FsleashError(Exception):
    """Base exception for all fsleash errors.

    ``context`` holds the paths and values known at the point of failure.
    """

    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ConfigError(FsleashError):
    """Configuration is invalid or missing."""


class InvalidInputError(FsleashError):
    """Caller input rejected before any I/O took place."""

    code = ErrorCode.VALIDATION_ERROR


class PathValidationError(InvalidInputError):
    """Malformed or unsafe path input, or a path of the wrong kind."""


class ForbiddenPathError(FsleashError):
    """A resolved path falls outside the sandbox boundary."""

    code = ErrorCode.FORBIDDEN


class PathNotFoundError(FsleashError):
    code = ErrorCode.NOT_FOUND


class InternalFsError(FsleashError):
    """Unexpected filesystem failure."""


class RateLimitedError(FsleashError):
    code = ErrorCode.RATE_LIMITED
