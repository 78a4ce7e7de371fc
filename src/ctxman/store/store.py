"""ContextStore: in-memory context cache backed by one JSON file."""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

import structlog

from . import codec, query
from .exceptions import NotFoundError, ValidationError
from .models import (
    DEFAULT_IMPORTANCE,
    Container,
    Context,
    ContextPatch,
    ContextType,
    StoreStats,
    validate_content,
    validate_importance,
    validate_tags,
    validate_type,
)

logger = structlog.get_logger()

DEFAULT_MAX_CONTEXTS = 100


class ContextStore:
    """Durable, capacity-bounded log of context entries.

    The container is loaded lazily on the first operation and kept
    resident; changes made to the file by other processes are not picked
    up until ``reload()``. Every mutation is followed by exactly one save.

    Operations on one instance are serialized with an asyncio.Lock. Two
    processes sharing the file are NOT coordinated: concurrent
    load-mutate-save cycles can lose one side's update.
    """

    def __init__(
        self,
        path: Path,
        project_path: str,
        max_contexts: int = DEFAULT_MAX_CONTEXTS,
        format_version: str = codec.STORE_FORMAT_VERSION,
    ) -> None:
        """Initialize the store.

        Args:
            path: Store file location
            project_path: Workspace path stamped on new entries
            max_contexts: Retention cap; oldest entries beyond it are dropped
            format_version: Version written to the file metadata
        """
        if max_contexts < 1:
            raise ValueError(f"max_contexts must be >= 1, got {max_contexts}")
        self.path = Path(path).expanduser()
        self.project_path = project_path
        self.max_contexts = max_contexts
        self.format_version = format_version
        self._container: Container | None = None
        self._last_id = 0
        self._lock = asyncio.Lock()

    # === Lifecycle ===

    async def load(self) -> None:
        """Load the store file if it has not been loaded yet."""
        async with self._lock:
            await self._ensure_loaded()

    async def reload(self) -> None:
        """Discard the in-memory copy and re-read the store file."""
        async with self._lock:
            self._container = None
            await self._ensure_loaded()

    # === Mutations ===

    async def add(
        self,
        content: str,
        type: ContextType | str,
        importance: int | None = None,
        tags: list[str] | None = None,
    ) -> Context:
        """Create a new entry at the head of the log.

        Args:
            content: Non-empty entry text
            type: One of conversation, decision, code, issue
            importance: 1-10 (default 5)
            tags: Optional ordered tags

        Returns:
            The created entry

        Raises:
            ValidationError: If any field is invalid
            StorageError: If the save fails (the entry stays in memory)
        """
        content = validate_content(content)
        context_type = validate_type(type)
        importance = validate_importance(
            DEFAULT_IMPORTANCE if importance is None else importance
        )
        tags = validate_tags(tags or [])

        async with self._lock:
            container = await self._ensure_loaded()
            context = Context(
                id=self._next_id(container),
                timestamp=datetime.now(UTC),
                content=content,
                type=context_type,
                importance=importance,
                tags=tags,
                project_path=self.project_path,
            )
            container.contexts.insert(0, context)
            evicted = self._enforce_capacity(container)

            logger.info(
                "store.context_added",
                context_id=context.id,
                type=context_type.value,
                evicted=evicted,
            )
            await self._persist(container)

        return context

    async def update(self, context_id: str, patch: ContextPatch) -> Context:
        """Apply a partial update to an entry.

        Only fields supplied in ``patch`` change; id, timestamp and
        project path never do.

        Raises:
            NotFoundError: If no entry has ``context_id``
            ValidationError: If a supplied field is invalid
            StorageError: If the save fails (the change stays in memory)
        """
        async with self._lock:
            container = await self._ensure_loaded()
            index = self._index_of(container, context_id)
            current = container.contexts[index]

            changes = patch.apply(current)
            updated = replace(current, **changes)
            container.contexts[index] = updated

            logger.info(
                "store.context_updated",
                context_id=context_id,
                fields=sorted(k for k in changes if k != "raw_fields"),
            )
            await self._persist(container)

        return updated

    async def delete(self, context_id: str) -> None:
        """Delete one entry.

        Raises:
            NotFoundError: If no entry has ``context_id``
            StorageError: If the save fails (the entry stays deleted in memory)
        """
        async with self._lock:
            container = await self._ensure_loaded()
            index = self._index_of(container, context_id)
            del container.contexts[index]

            logger.info("store.context_deleted", context_id=context_id)
            await self._persist(container)

    async def delete_many(self, context_ids: Iterable[str]) -> int:
        """Delete every entry whose id is in ``context_ids``.

        Unknown ids are skipped. The file is saved once, even when nothing
        matched.

        Returns:
            Number of entries removed
        """
        wanted = set(context_ids)
        async with self._lock:
            container = await self._ensure_loaded()
            before = len(container.contexts)
            container.contexts = [c for c in container.contexts if c.id not in wanted]
            removed = before - len(container.contexts)

            logger.info(
                "store.contexts_deleted",
                requested=len(wanted),
                removed=removed,
            )
            await self._persist(container)

        return removed

    # === Queries ===

    async def list(self, limit: int | None = None) -> list[Context]:
        """Return the ``limit`` most recent entries (all if None)."""
        if limit is not None and limit < 0:
            raise ValidationError(f"Limit must be >= 0, got {limit}")
        async with self._lock:
            container = await self._ensure_loaded()
            if limit is None:
                return list(container.contexts)
            return container.contexts[:limit]

    async def get(self, context_id: str) -> Context:
        """Return the entry with ``context_id``.

        Raises:
            NotFoundError: If no entry has ``context_id``
        """
        async with self._lock:
            container = await self._ensure_loaded()
            return container.contexts[self._index_of(container, context_id)]

    async def search(
        self,
        text: str = "",
        limit: int | None = None,
        filters: query.SearchFilters | None = None,
    ) -> list[Context]:
        """Search entries by substring and filters, newest first.

        With an empty query and no filters this is the same as ``list``.
        """
        if limit is not None and limit < 0:
            raise ValidationError(f"Limit must be >= 0, got {limit}")
        async with self._lock:
            container = await self._ensure_loaded()
            return query.search(
                container.contexts, query=text, filters=filters, limit=limit
            )

    async def count(self) -> int:
        """Number of entries currently held."""
        async with self._lock:
            container = await self._ensure_loaded()
            return len(container.contexts)

    async def stats(self) -> StoreStats:
        """Counts by type and project plus the file size on disk."""
        async with self._lock:
            container = await self._ensure_loaded()
            by_type = Counter(c.type_name for c in container.contexts)
            by_project = Counter(c.project_path for c in container.contexts)
            try:
                storage_size: int | None = self.path.stat().st_size
            except OSError:
                storage_size = None

            return StoreStats(
                total_contexts=len(container.contexts),
                by_type=dict(by_type),
                by_project=dict(by_project),
                storage_size=storage_size,
                max_contexts=self.max_contexts,
            )

    # === Internal Helpers ===

    async def _ensure_loaded(self) -> Container:
        """Return the resident container, reading the file on first use.

        Must be called with the lock held.
        """
        if self._container is None:
            self._container = await codec.read_container(self.path)
            logger.info(
                "store.loaded",
                path=str(self.path),
                format=self._container.source_format.value,
                contexts=len(self._container.contexts),
            )
        return self._container

    async def _persist(self, container: Container) -> None:
        """Write the container, applying the capacity cap first."""
        self._enforce_capacity(container)
        await codec.write_container(
            self.path, container, version=self.format_version
        )

    def _enforce_capacity(self, container: Container) -> int:
        """Drop entries past the cap from the tail. Returns how many."""
        overflow = len(container.contexts) - self.max_contexts
        if overflow <= 0:
            return 0
        del container.contexts[self.max_contexts :]
        logger.debug("store.capacity_evicted", evicted=overflow)
        return overflow

    def _index_of(self, container: Container, context_id: str) -> int:
        for index, context in enumerate(container.contexts):
            if context.id == context_id:
                return index
        raise NotFoundError(f"Context with id {context_id} not found")

    def _next_id(self, container: Container) -> str:
        """Generate a unique millisecond-timestamp id.

        Ids increase monotonically within this instance and skip any id
        already present in the container.
        """
        existing = {c.id for c in container.contexts}
        candidate = max(int(time.time() * 1000), self._last_id + 1)
        while str(candidate) in existing:
            candidate += 1
        self._last_id = candidate
        return str(candidate)
