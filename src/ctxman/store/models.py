"""Data models for context entries and the persisted store container."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .exceptions import ValidationError

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 10
DEFAULT_IMPORTANCE = 5
# In-memory stand-in for a stored timestamp that cannot be parsed
UNKNOWN_TIMESTAMP = datetime.fromtimestamp(0, UTC)

# Keys owned by Context; anything else on a stored entry is carried in extra
_CONTEXT_KEYS = frozenset(
    {"id", "timestamp", "content", "type", "importance", "tags", "projectPath"}
)


class ContextType(Enum):
    """Closed set of context entry kinds."""

    CONVERSATION = "conversation"
    DECISION = "decision"
    CODE = "code"
    ISSUE = "issue"


CONTEXT_TYPES = [t.value for t in ContextType]


class StoreFormat(Enum):
    """Shape the store file had when it was decoded."""

    MISSING = "missing"  # No file yet (first run)
    LEGACY_LIST = "legacy_list"  # Bare JSON array of contexts
    ENVELOPE = "envelope"  # {"contexts": [...], "agents": [...], "metadata": {...}}
    CORRUPT = "corrupt"  # Unreadable; contexts dropped for this load


class _Unset(Enum):
    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset.UNSET


def format_timestamp(dt: datetime) -> str:
    """Serialize a timestamp as ISO 8601 UTC with a ``Z`` suffix.

    Millisecond precision is used unless the value carries sub-millisecond
    detail, in which case microseconds are kept.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    timespec = "milliseconds" if dt.microsecond % 1000 == 0 else "microseconds"
    return dt.isoformat(timespec=timespec).replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 string (``Z`` or offset suffix) into aware UTC.

    Raises:
        ValueError: If value is not a parseable ISO string
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be an ISO 8601 string, got {value!r}")
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def validate_content(content: Any) -> str:
    """Validate entry content.

    Raises:
        ValidationError: If content is not a string or is blank
    """
    if not isinstance(content, str):
        raise ValidationError("Content must be a string")
    if not content.strip():
        raise ValidationError("Content is required and cannot be empty")
    return content


def validate_type(value: Any) -> ContextType:
    """Coerce a type name (or ContextType) to ContextType.

    Raises:
        ValidationError: If value is not one of the known types
    """
    if isinstance(value, ContextType):
        return value
    try:
        return ContextType(value)
    except ValueError:
        raise ValidationError(
            f"Invalid type '{value}'. Valid options: {', '.join(CONTEXT_TYPES)}"
        ) from None


def validate_importance(value: Any) -> int:
    """Validate importance is an integer in [1, 10].

    Raises:
        ValidationError: If value is not an int or is out of range
    """
    # bool is an int subclass; True must not pass as importance 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Importance must be an integer, got {value!r}")
    if not MIN_IMPORTANCE <= value <= MAX_IMPORTANCE:
        raise ValidationError(
            f"Importance {value} out of range. "
            f"Must be between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}."
        )
    return value


def validate_tags(tags: Any) -> list[str]:
    """Validate tags are a sequence of non-empty strings.

    Order and duplicates are preserved.

    Raises:
        ValidationError: If tags is not a list or holds a blank/non-str tag
    """
    if not isinstance(tags, (list, tuple)):
        raise ValidationError("Tags must be a list of strings")
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError(f"Invalid tag type: {type(tag).__name__}")
        if not tag.strip():
            raise ValidationError("Tags cannot be empty strings")
    return list(tags)


@dataclass
class Context:
    """A single captured knowledge unit.

    Entries created here always hold a ContextType and an integer
    importance. Entries loaded from disk may have been written by another
    tool with a type outside the known set or a fractional importance;
    those values are kept as found.
    """

    id: str
    timestamp: datetime  # UTC, timezone-aware
    content: str
    type: ContextType | str
    importance: int | float
    tags: list[str]
    project_path: str
    # Unknown keys found on disk, written back untouched
    extra: dict[str, Any] = field(default_factory=dict)
    # Stored values of core keys the typed fields would not reproduce,
    # written back verbatim; UNSET marks a key the entry lacked
    raw_fields: dict[str, Any] = field(default_factory=dict)

    @property
    def type_name(self) -> str:
        """Type as stored: the enum value, or the foreign type string."""
        if isinstance(self.type, ContextType):
            return self.type.value
        return self.type

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk JSON shape."""
        result: dict[str, Any] = {
            "id": self.id,
            "timestamp": format_timestamp(self.timestamp),
            "content": self.content,
            "type": self.type_name,
            "importance": self.importance,
            "tags": list(self.tags),
            "projectPath": self.project_path,
        }
        for key, value in self.raw_fields.items():
            if value is UNSET:
                result.pop(key, None)
            else:
                result[key] = value
        for key, value in self.extra.items():
            result.setdefault(key, value)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Context":
        """Parse a stored entry.

        Only ``id`` is required. Other core keys are read leniently: a
        foreign type string or a non-integer importance is kept as is, and
        a value that cannot be read at all (or a missing key) falls back to
        a placeholder in memory while the stored form goes to
        ``raw_fields``. Missing ``importance``, ``tags`` and
        ``projectPath`` read as 5, ``[]`` and ``"unknown"``.

        Raises:
            KeyError: If id is missing
            ValueError: If id is not a non-empty string
        """
        context_id = data["id"]
        if not isinstance(context_id, str) or not context_id:
            raise ValueError(f"Invalid context id: {context_id!r}")

        raw_fields: dict[str, Any] = {}

        def keep_raw(key: str, fallback: Any) -> Any:
            raw_fields[key] = data.get(key, UNSET)
            return fallback

        try:
            timestamp = parse_timestamp(data.get("timestamp"))
        except ValueError:
            timestamp = keep_raw("timestamp", UNKNOWN_TIMESTAMP)
        else:
            # Same instant written differently (offset, no milliseconds)
            if format_timestamp(timestamp) != data["timestamp"]:
                keep_raw("timestamp", timestamp)

        content = data.get("content")
        if not isinstance(content, str):
            content = keep_raw("content", "")

        type_value = data.get("type")
        if isinstance(type_value, str):
            try:
                context_type: ContextType | str = ContextType(type_value)
            except ValueError:
                context_type = type_value
        else:
            context_type = keep_raw("type", "")

        importance = data.get("importance", UNSET)
        if isinstance(importance, bool) or not isinstance(importance, (int, float)):
            importance = keep_raw("importance", DEFAULT_IMPORTANCE)

        tags = data.get("tags", UNSET)
        if isinstance(tags, list) and all(isinstance(t, str) for t in tags):
            tags = list(tags)
        else:
            tags = keep_raw("tags", [])

        project_path = data.get("projectPath")
        if not isinstance(project_path, str):
            project_path = keep_raw("projectPath", "unknown")

        return cls(
            id=context_id,
            timestamp=timestamp,
            content=content,
            type=context_type,
            importance=importance,
            tags=tags,
            project_path=project_path,
            extra={k: v for k, v in data.items() if k not in _CONTEXT_KEYS},
            raw_fields=raw_fields,
        )


@dataclass(frozen=True)
class ContextPatch:
    """Partial update for a context entry.

    Each field defaults to UNSET, meaning "leave as is". Passing None
    explicitly clears the field: tags become ``[]`` and importance falls
    back to the default. Content and type cannot be cleared.
    """

    content: str | None | _Unset = UNSET
    type: ContextType | str | None | _Unset = UNSET
    importance: int | None | _Unset = UNSET
    tags: list[str] | None | _Unset = UNSET

    def is_empty(self) -> bool:
        """True when no field is supplied."""
        return all(
            value is UNSET
            for value in (self.content, self.type, self.importance, self.tags)
        )

    def apply(self, context: Context) -> dict[str, Any]:
        """Validate supplied fields and return the changes for ``context``.

        Identity fields (id, timestamp, project_path) are never part of
        the result.

        Raises:
            ValidationError: If a supplied field is invalid
        """
        changes: dict[str, Any] = {}
        if self.content is not UNSET:
            changes["content"] = validate_content(self.content)
        if self.type is not UNSET:
            if self.type is None:
                raise ValidationError("Type cannot be cleared")
            changes["type"] = validate_type(self.type)
        if self.importance is not UNSET:
            changes["importance"] = (
                DEFAULT_IMPORTANCE
                if self.importance is None
                else validate_importance(self.importance)
            )
        if self.tags is not UNSET:
            changes["tags"] = [] if self.tags is None else validate_tags(self.tags)
        # A replaced field no longer writes back its unreadable stored form
        if any(key in context.raw_fields for key in changes):
            changes["raw_fields"] = {
                key: value
                for key, value in context.raw_fields.items()
                if key not in changes
            }
        return changes


@dataclass
class Container:
    """Full persisted structure: contexts plus collaborator data."""

    contexts: list[Context] = field(default_factory=list)
    # Owned by another collaborator sharing the file; never inspected
    agents: Any = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    # Unknown top-level keys, preserved verbatim
    extra: dict[str, Any] = field(default_factory=dict)
    source_format: StoreFormat = StoreFormat.MISSING


@dataclass
class StoreStats:
    """Aggregate statistics over the current store contents."""

    total_contexts: int
    by_type: dict[str, int]
    by_project: dict[str, int]
    storage_size: int | None
    max_contexts: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "totalContexts": self.total_contexts,
            "byType": self.by_type,
            "byProject": self.by_project,
            "storageSize": self.storage_size,
            "maxContexts": self.max_contexts,
        }
