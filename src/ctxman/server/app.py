"""ctxman MCP server application.

Builds the MCP server around a ContextStore: tool schemas, the tool
registry and the dispatcher that turns every failure into a typed error
payload instead of crashing the process.
"""

from __future__ import annotations

import inspect
import json
from typing import TYPE_CHECKING, Any

import structlog
from mcp.server import Server
from mcp.types import TextContent, Tool

from ctxman.store import CONTEXT_TYPES, DATE_RANGES, MAX_IMPORTANCE, MIN_IMPORTANCE
from ctxman.store.exceptions import ContextStoreError
from ctxman.tools import ParameterError, ToolError, ToolFunc, error_response

if TYPE_CHECKING:
    from ctxman.config import CtxmanSettings
    from ctxman.store import ContextStore

logger = structlog.get_logger()

SERVER_NAME = "ctxman"

# Type filter values accepted by list and search
TYPE_FILTERS = [*CONTEXT_TYPES, "all"]

_IMPORTANCE_SCHEMA = {
    "type": "integer",
    "minimum": MIN_IMPORTANCE,
    "maximum": MAX_IMPORTANCE,
}

_TAGS_SCHEMA = {
    "type": "array",
    "items": {"type": "string"},
}


def _get_all_tool_definitions(max_limit: int = 1000) -> list[Tool]:
    """Get all tool definitions with their JSON schemas."""
    limit_schema = {
        "type": "integer",
        "minimum": 1,
        "maximum": max_limit,
        "description": "Maximum results (default 10)",
    }
    return [
        # === Read Tools ===
        Tool(
            name="get_context",
            description="List the most recent contexts, newest first.",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": limit_schema,
                    "type": {
                        "type": "string",
                        "enum": TYPE_FILTERS,
                        "description": "Only return contexts of this type",
                    },
                },
                "required": [],
            },
        ),
        Tool(
            name="search_contexts",
            description=(
                "Case-insensitive substring search over context content and "
                "type. An empty query lists recent contexts."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Text to look for",
                    },
                    "limit": limit_schema,
                    "type": {
                        "type": "string",
                        "enum": TYPE_FILTERS,
                        "description": "Only match contexts of this type",
                    },
                    "date_range": {
                        "type": "string",
                        "enum": DATE_RANGES,
                        "description": (
                            "today (since local midnight), week (7 days), "
                            "month (30 days) or all"
                        ),
                    },
                    "min_importance": {
                        **_IMPORTANCE_SCHEMA,
                        "description": "Only match contexts at least this important",
                    },
                    "tags": {
                        **_TAGS_SCHEMA,
                        "description": "Only match contexts with any of these tags",
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="get_context_by_id",
            description="Get one context by id.",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Context id"},
                },
                "required": ["id"],
            },
        ),
        Tool(
            name="get_project_info",
            description="Workspace name, path and number of stored contexts.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="get_stats",
            description="Context counts by type and project, and store file size.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        # === Write Tools ===
        Tool(
            name="add_context",
            description="Store a new context entry.",
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {
                        "type": "string",
                        "description": "Context content (max 10,000 chars)",
                    },
                    "type": {
                        "type": "string",
                        "enum": CONTEXT_TYPES,
                        "description": "Kind of context",
                    },
                    "importance": {
                        **_IMPORTANCE_SCHEMA,
                        "description": "Importance 1-10 (default 5)",
                    },
                    "tags": {**_TAGS_SCHEMA, "description": "Optional tags"},
                },
                "required": ["content", "type"],
            },
        ),
        Tool(
            name="update_context",
            description=(
                "Update fields of a context. Omitted fields are unchanged; "
                "null clears tags and resets importance."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Context id"},
                    "content": {"type": "string", "description": "New content"},
                    "type": {
                        "type": "string",
                        "enum": CONTEXT_TYPES,
                        "description": "New type",
                    },
                    "importance": {
                        "type": ["integer", "null"],
                        "minimum": MIN_IMPORTANCE,
                        "maximum": MAX_IMPORTANCE,
                        "description": "New importance, null for the default",
                    },
                    "tags": {
                        "type": ["array", "null"],
                        "items": {"type": "string"},
                        "description": "Replacement tags, null to clear",
                    },
                },
                "required": ["id"],
            },
        ),
        Tool(
            name="delete_context",
            description="Delete one context by id.",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Context id"},
                },
                "required": ["id"],
            },
        ),
        Tool(
            name="delete_contexts",
            description="Delete several contexts. Unknown ids are skipped.",
            inputSchema={
                "type": "object",
                "properties": {
                    "ids": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Context ids to delete",
                    },
                },
                "required": ["ids"],
            },
        ),
        # === Health Check ===
        Tool(
            name="ping",
            description="Health check endpoint.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
    ]


async def dispatch(
    tool_registry: dict[str, ToolFunc],
    name: str,
    arguments: dict[str, Any] | None,
) -> dict[str, Any]:
    """Call a registered tool and return its result or an error payload.

    Never raises: unknown tools, bad arguments and tool failures all come
    back as ``{"error": {"type": ..., "message": ...}}``.
    """
    arguments = arguments or {}
    try:
        if name not in tool_registry:
            raise ParameterError(f"Unknown tool: {name}")
        tool_func = tool_registry[name]
        try:
            inspect.signature(tool_func).bind(**arguments)
        except TypeError as e:
            raise ParameterError(f"Invalid arguments for {name}: {e}") from e
        return await tool_func(**arguments)
    except (ToolError, ContextStoreError) as e:
        logger.warning("tool.call_rejected", tool=name, error=str(e))
        return error_response(e)
    except Exception as e:
        logger.error("tool.call_failed", tool=name, error=str(e), exc_info=True)
        return error_response(e)


def create_server(
    store: ContextStore,
    settings: CtxmanSettings,
) -> tuple[Server, dict[str, ToolFunc]]:
    """Create the ctxman MCP server with all tools registered.

    Args:
        store: Store the tools operate on
        settings: Tool limits and defaults

    Returns:
        Tuple of (Server, tool_registry). tool_registry maps tool names
        to their async implementation functions.
    """
    from ctxman import __version__
    from ctxman.tools import get_context_tools

    server = Server(SERVER_NAME, version=__version__)

    tool_registry: dict[str, ToolFunc] = {}
    tool_registry.update(get_context_tools(store, settings))

    async def ping() -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "server": SERVER_NAME,
            "version": __version__,
        }

    tool_registry["ping"] = ping

    tool_definitions = _get_all_tool_definitions(max_limit=settings.max_limit)

    @server.call_tool()  # type: ignore[misc]
    async def handle_call_tool(name: str, arguments: dict[str, Any]) -> list[Any]:
        """Dispatch tool calls to the appropriate implementation."""
        result = await dispatch(tool_registry, name, arguments)
        return [TextContent(type="text", text=json.dumps(result, default=str))]

    @server.list_tools()  # type: ignore[misc, no-untyped-call]
    async def handle_list_tools() -> list[Tool]:
        """Return all available tools with their schemas."""
        return tool_definitions

    logger.info("server.created", tool_count=len(tool_registry))

    return server, tool_registry
