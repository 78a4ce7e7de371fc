"""Project-local context store: models, file codec, query engine and store."""

from .codec import STORE_FORMAT_VERSION, decode, encode
from .exceptions import (
    ContextStoreError,
    CorruptDataError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .models import (
    CONTEXT_TYPES,
    DEFAULT_IMPORTANCE,
    MAX_IMPORTANCE,
    MIN_IMPORTANCE,
    UNSET,
    Container,
    Context,
    ContextPatch,
    ContextType,
    StoreFormat,
    StoreStats,
)
from .query import DATE_RANGES, DateRange, SearchFilters
from .store import DEFAULT_MAX_CONTEXTS, ContextStore

__all__ = [
    # Models
    "Context",
    "ContextType",
    "ContextPatch",
    "Container",
    "StoreFormat",
    "StoreStats",
    "UNSET",
    "CONTEXT_TYPES",
    "DEFAULT_IMPORTANCE",
    "MIN_IMPORTANCE",
    "MAX_IMPORTANCE",
    # Codec
    "STORE_FORMAT_VERSION",
    "decode",
    "encode",
    # Query
    "DateRange",
    "DATE_RANGES",
    "SearchFilters",
    # Store
    "ContextStore",
    "DEFAULT_MAX_CONTEXTS",
    # Exceptions
    "ContextStoreError",
    "ValidationError",
    "NotFoundError",
    "CorruptDataError",
    "StorageError",
]
