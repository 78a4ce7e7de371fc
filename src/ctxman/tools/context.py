"""Context tools: the per-command facade over ContextStore.

Each tool checks its own argument shapes (ParameterError) and then
delegates to the store, whose ValidationError, NotFoundError and
StorageError propagate unchanged to the dispatcher.
"""

from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

import structlog

from ctxman.config import CtxmanSettings
from ctxman.store import UNSET, ContextPatch, ContextStore, SearchFilters
from ctxman.store.query import parse_date_range, parse_type_filter

from .errors import ParameterError
from .validation import (
    require_string,
    validate_content_length,
    validate_id,
    validate_id_list,
    validate_limit_range,
    validate_tag_list,
)

logger = structlog.get_logger()

# Type alias for async tool function
ToolFunc = Callable[..., Coroutine[Any, Any, dict[str, Any]]]


def get_context_tools(
    store: ContextStore,
    settings: CtxmanSettings,
) -> dict[str, ToolFunc]:
    """Get context tool implementations.

    Args:
        store: Store the tools operate on
        settings: Limits and defaults for tool arguments

    Returns:
        Dictionary mapping tool names to async implementations
    """

    def _limit(value: Any) -> int:
        if value is None:
            return settings.default_limit
        return validate_limit_range(value, min_val=1, max_val=settings.max_limit)

    def _content(value: Any) -> Any:
        if isinstance(value, str):
            validate_content_length(value, settings.max_content_length)
        return value

    async def get_context(
        limit: int | None = None,
        type: str | None = None,
    ) -> dict[str, Any]:
        """List the most recent contexts, optionally of one type.

        The type filter is applied before the limit, so ``limit`` entries of
        the requested type come back when that many exist.
        """
        limit = _limit(limit)
        filters = SearchFilters(type=parse_type_filter(type))
        logger.info("context.get", limit=limit, type=type)

        contexts = await store.search("", limit=limit, filters=filters)
        return {
            "contexts": [c.to_dict() for c in contexts],
            "count": len(contexts),
        }

    async def add_context(
        content: str,
        type: str,
        importance: int | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        """Store a new context entry and return it."""
        content = _content(require_string(content, "content"))
        type = require_string(type, "type")
        if tags is not None:
            tags = validate_tag_list(tags)
        if importance is None:
            importance = settings.default_importance

        context = await store.add(
            content=content,
            type=type,
            importance=importance,
            tags=tags,
        )
        logger.info("context.added", context_id=context.id, type=type)
        return context.to_dict()

    async def search_contexts(
        query: str,
        limit: int | None = None,
        type: str | None = None,
        date_range: str | None = None,
        min_importance: int | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        """Case-insensitive substring search over content and type.

        An empty query returns the most recent entries that pass the
        filters.
        """
        query = require_string(query, "query")
        limit = _limit(limit)
        if min_importance is not None:
            min_importance = validate_limit_range(
                min_importance, min_val=1, max_val=10, param_name="min_importance"
            )
        filters = SearchFilters(
            type=parse_type_filter(type),
            date_range=parse_date_range(date_range),
            min_importance=min_importance,
            tags=tuple(validate_tag_list(tags)) if tags is not None else (),
        )
        logger.info(
            "context.search",
            query_length=len(query),
            limit=limit,
            type=type,
            date_range=filters.date_range.value,
        )

        results = await store.search(query, limit=limit, filters=filters)
        return {
            "query": query,
            "results": [c.to_dict() for c in results],
            "count": len(results),
        }

    async def get_context_by_id(id: str) -> dict[str, Any]:
        """Return one context entry by id."""
        context = await store.get(validate_id(id))
        return context.to_dict()

    async def update_context(
        id: str,
        content: Any = UNSET,
        type: Any = UNSET,
        importance: Any = UNSET,
        tags: Any = UNSET,
    ) -> dict[str, Any]:
        """Apply a partial update and return the updated entry.

        Omitted fields are left alone. An explicit null clears tags and
        resets importance to the default; content and type cannot be
        cleared.
        """
        context_id = validate_id(id)
        if content is not UNSET:
            content = _content(content)
        if type is not UNSET and type is not None:
            type = require_string(type, "type")
        if tags is not UNSET and tags is not None:
            tags = validate_tag_list(tags)

        patch = ContextPatch(
            content=content,
            type=type,
            importance=importance,
            tags=tags,
        )
        if patch.is_empty():
            raise ParameterError(
                "Provide at least one of content, type, importance or tags"
            )

        context = await store.update(context_id, patch)
        logger.info("context.updated", context_id=context_id)
        return context.to_dict()

    async def delete_context(id: str) -> dict[str, Any]:
        """Delete one context entry."""
        context_id = validate_id(id)
        await store.delete(context_id)
        logger.info("context.deleted", context_id=context_id)
        return {"deleted": True, "id": context_id}

    async def delete_contexts(ids: list[str]) -> dict[str, Any]:
        """Delete several entries; unknown ids are skipped."""
        context_ids = validate_id_list(ids)
        removed = await store.delete_many(context_ids)
        logger.info(
            "context.bulk_deleted", requested=len(context_ids), deleted=removed
        )
        return {"deleted": removed, "requested": len(context_ids)}

    async def get_project_info() -> dict[str, Any]:
        """Workspace name, path and current context count."""
        return {
            "projectName": Path(store.project_path).name,
            "workspacePath": store.project_path,
            "contextCount": await store.count(),
        }

    async def get_stats() -> dict[str, Any]:
        """Counts by type and project plus the store file size."""
        stats = await store.stats()
        return stats.to_dict()

    return {
        "get_context": get_context,
        "add_context": add_context,
        "search_contexts": search_contexts,
        "get_context_by_id": get_context_by_id,
        "update_context": update_context,
        "delete_context": delete_context,
        "delete_contexts": delete_contexts,
        "get_project_info": get_project_info,
        "get_stats": get_stats,
    }
