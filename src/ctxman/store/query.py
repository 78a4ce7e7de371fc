"""Query engine: substring search and filters over context entries.

Search is read-only and order-preserving: results come back in container
order (newest first), never re-ranked.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from .exceptions import ValidationError
from .models import Context, ContextType, validate_type

# Sentinel accepted by type and date-range filters meaning "no restriction"
ALL = "all"


class DateRange(Enum):
    """Relative creation-time windows."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


DATE_RANGES = [r.value for r in DateRange]

_WINDOWS = {
    DateRange.WEEK: timedelta(days=7),
    DateRange.MONTH: timedelta(days=30),
}


@dataclass(frozen=True)
class SearchFilters:
    """Filters combined (AND) with the text query."""

    type: ContextType | None = None
    date_range: DateRange = DateRange.ALL
    min_importance: int | None = None
    tags: tuple[str, ...] = ()  # any-of
    project_path: str | None = None


def parse_type_filter(value: str | ContextType | None) -> ContextType | None:
    """Turn a type filter value into a ContextType, or None for ``all``.

    Raises:
        ValidationError: If the value is not a known type or ``all``
    """
    if value is None or value == ALL:
        return None
    return validate_type(value)


def parse_date_range(value: str | DateRange | None) -> DateRange:
    """Turn a date-range name into a DateRange (None means ``all``).

    Raises:
        ValidationError: If the value is not a known range
    """
    if value is None:
        return DateRange.ALL
    if isinstance(value, DateRange):
        return value
    try:
        return DateRange(value)
    except ValueError:
        raise ValidationError(
            f"Invalid date range '{value}'. Valid options: {', '.join(DATE_RANGES)}"
        ) from None


def window_start(
    date_range: DateRange, now: datetime | None = None
) -> datetime | None:
    """Earliest timestamp admitted by ``date_range``.

    ``today`` starts at local midnight; ``week`` and ``month`` are rolling
    7 and 30 day windows. Returns None for ``all``.
    """
    if date_range is DateRange.ALL:
        return None
    now = now or datetime.now(UTC)
    if date_range is DateRange.TODAY:
        local_now = now.astimezone()
        return local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return now - _WINDOWS[date_range]


def matches_query(context: Context, query: str) -> bool:
    """Case-insensitive substring match on content or type.

    An empty or whitespace-only query matches everything.
    """
    needle = query.strip().casefold()
    if not needle:
        return True
    return (
        needle in context.content.casefold()
        or needle in context.type_name.casefold()
    )


def matches_filters(
    context: Context,
    filters: SearchFilters,
    since: datetime | None = None,
) -> bool:
    """Check a context against structured filters.

    Args:
        context: Entry to check
        filters: Filters to apply
        since: Precomputed window start for ``filters.date_range``
    """
    if filters.type is not None and context.type is not filters.type:
        return False
    if since is not None and context.timestamp < since:
        return False
    if (
        filters.min_importance is not None
        and context.importance < filters.min_importance
    ):
        return False
    if filters.tags and not any(tag in context.tags for tag in filters.tags):
        return False
    if (
        filters.project_path is not None
        and context.project_path != filters.project_path
    ):
        return False
    return True


def search(
    contexts: Iterable[Context],
    query: str = "",
    filters: SearchFilters | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[Context]:
    """Return contexts matching query and filters, in input order.

    Args:
        contexts: Entries to scan (newest first)
        query: Substring to look for; empty matches all
        filters: Optional structured filters
        limit: Maximum results (None for no limit)
        now: Reference time for date-range windows

    Returns:
        Up to ``limit`` matching entries
    """
    filters = filters or SearchFilters()
    since = window_start(filters.date_range, now)

    results: list[Context] = []
    if limit is not None and limit <= 0:
        return results
    for context in contexts:
        if not matches_filters(context, filters, since):
            continue
        if not matches_query(context, query):
            continue
        results.append(context)
        if limit is not None and len(results) >= limit:
            break
    return results
