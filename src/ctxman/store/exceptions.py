"""Exceptions for context store operations."""


class ContextStoreError(Exception):
    """Base exception for context store operations."""

    pass


class ValidationError(ContextStoreError):
    """Raised when caller-supplied context fields fail validation."""

    pass


class NotFoundError(ContextStoreError):
    """Raised when an update or delete references an unknown id."""

    pass


class CorruptDataError(ContextStoreError):
    """Raised internally when the store file cannot be decoded.

    Never propagated past the codec: decoding degrades to an empty
    context list instead.
    """

    pass


class StorageError(ContextStoreError):
    """Raised when the store file cannot be read or written."""

    pass
