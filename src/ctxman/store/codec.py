"""Store file codec: on-disk container serialization and migration.

Two shapes are accepted on read:

- legacy: a bare JSON array of context objects
- envelope: ``{"contexts": [...], "agents": [...], "metadata": {...}}``

Writes always produce the envelope. Anything unreadable degrades to an
empty context list; it never raises past this module.
"""

import json
import os
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles
import structlog

from .exceptions import CorruptDataError, StorageError
from .models import Container, Context, StoreFormat

logger = structlog.get_logger()

STORE_FORMAT_VERSION = "1.0.0"
JSON_INDENT = 2

# Top-level keys the codec manages; others pass through in Container.extra
_ENVELOPE_KEYS = ("contexts", "agents", "metadata")


def _load_document(raw: str | bytes) -> Any:
    """Parse raw file content as JSON.

    Raises:
        CorruptDataError: If content is not valid JSON
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptDataError(f"Store file is not valid JSON: {e}") from e


def _decode_contexts(items: list[Any]) -> list[Context]:
    """Parse stored entries with entry-level error recovery.

    Entries without a usable id are skipped. Everything else is kept,
    including types and importances this store would not create itself.
    Duplicate ids keep the first occurrence (newest, since the list is
    newest first).
    """
    contexts: list[Context] = []
    seen: set[str] = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(
                "codec.corrupt_entry_skipped", index=index, reason="not an object"
            )
            continue
        try:
            context = Context.from_dict(item)
        except (KeyError, ValueError) as e:
            logger.warning("codec.corrupt_entry_skipped", index=index, error=str(e))
            continue
        if context.id in seen:
            logger.warning(
                "codec.duplicate_id_dropped", index=index, context_id=context.id
            )
            continue
        seen.add(context.id)
        contexts.append(context)
    return contexts


def decode(raw: str | bytes | None) -> Container:
    """Decode store file content into a Container.

    Args:
        raw: File content, or None when no file exists

    Returns:
        Decoded container. Its ``source_format`` records which shape the
        content had.
    """
    if raw is None:
        return Container(source_format=StoreFormat.MISSING)

    try:
        document = _load_document(raw)
        if isinstance(document, list):
            return Container(
                contexts=_decode_contexts(document),
                source_format=StoreFormat.LEGACY_LIST,
            )
        if not isinstance(document, dict):
            raise CorruptDataError(
                f"Unexpected top-level JSON type: {type(document).__name__}"
            )
    except CorruptDataError as e:
        logger.error("codec.corrupt_file", error=str(e))
        return Container(source_format=StoreFormat.CORRUPT)

    items = document.get("contexts", [])
    if not isinstance(items, list):
        logger.warning(
            "codec.contexts_not_a_list",
            actual_type=type(items).__name__,
        )
        items = []

    metadata = document.get("metadata", {})
    return Container(
        contexts=_decode_contexts(items),
        agents=document.get("agents", []),
        metadata=metadata if isinstance(metadata, dict) else {},
        extra={k: v for k, v in document.items() if k not in _ENVELOPE_KEYS},
        source_format=StoreFormat.ENVELOPE,
    )


def encode(
    container: Container,
    version: str = STORE_FORMAT_VERSION,
    now: datetime | None = None,
) -> str:
    """Encode a Container as indented envelope JSON.

    Rewrites ``container.metadata`` with the format version and the save
    time.
    """
    saved_at = now or datetime.now(UTC)
    container.metadata = {
        "version": version,
        "lastUpdated": saved_at.isoformat(timespec="milliseconds").replace(
            "+00:00", "Z"
        ),
    }

    document: dict[str, Any] = {
        "contexts": [c.to_dict() for c in container.contexts],
        "agents": container.agents,
    }
    document.update(container.extra)
    document["metadata"] = container.metadata

    return json.dumps(document, indent=JSON_INDENT, ensure_ascii=False) + "\n"


async def atomic_write(path: Path, content: str) -> None:
    """Write content to file atomically.

    Writes a temp file in the same directory, fsyncs it, then renames it
    over the target. A crash mid-write leaves the original intact.
    """
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(content)
            await f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)
    except Exception:
        if temp_path.exists():
            os.unlink(temp_path)
        raise


async def read_container(path: Path) -> Container:
    """Load the container stored at ``path``.

    A missing file yields an empty container. A corrupt file is renamed to
    ``<name>.corrupted.<unix-ts>`` and an empty container is returned.

    Raises:
        StorageError: If the file exists but cannot be read
    """
    try:
        async with aiofiles.open(path, "rb") as f:
            raw = await f.read()
    except FileNotFoundError:
        logger.debug("codec.no_store_file", path=str(path))
        return decode(None)
    except OSError as e:
        logger.error("codec.read_failed", path=str(path), error=str(e))
        raise StorageError(f"Cannot read store file {path}: {e}") from e

    container = decode(raw)

    if container.source_format is StoreFormat.CORRUPT:
        backup_path = path.with_name(f"{path.name}.corrupted.{int(time.time())}")
        try:
            os.replace(path, backup_path)
            logger.error(
                "codec.corrupt_file_backed_up",
                file=str(path),
                backup=str(backup_path),
            )
        except OSError as e:
            logger.error("codec.corrupt_backup_failed", file=str(path), error=str(e))

    return container


async def write_container(
    path: Path,
    container: Container,
    version: str = STORE_FORMAT_VERSION,
) -> None:
    """Encode and atomically write the container, creating parent dirs.

    Raises:
        StorageError: If the directory or file cannot be written
    """
    content = encode(container, version=version)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        await atomic_write(path, content)
    except OSError as e:
        logger.error("codec.write_failed", path=str(path), error=str(e))
        raise StorageError(f"Cannot write store file {path}: {e}") from e

    logger.debug("codec.saved", path=str(path), contexts=len(container.contexts))
