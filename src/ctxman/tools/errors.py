"""Error types for the tool facade and their wire representation."""

from typing import Any

from ctxman.store.exceptions import (
    NotFoundError,
    StorageError,
    ValidationError,
)


class ToolError(Exception):
    """Base error for tool failures."""

    pass


class ParameterError(ToolError):
    """A tool argument is missing, unexpected or of the wrong shape."""

    pass


def error_type(exc: BaseException) -> str:
    """Map an exception to the error type reported to callers."""
    if isinstance(exc, ParameterError):
        return "parameter_error"
    if isinstance(exc, ValidationError):
        return "validation_error"
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, StorageError):
        return "storage_error"
    return "internal_error"


def error_response(exc: BaseException) -> dict[str, Any]:
    """Create a standardized error response for ``exc``."""
    return {"error": {"type": error_type(exc), "message": str(exc)}}
