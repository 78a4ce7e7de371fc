"""Tests for the context tool facade."""

import json
from pathlib import Path
from typing import Any

import pytest

from ctxman.config import CtxmanSettings
from ctxman.store import ContextStore, NotFoundError, ValidationError
from ctxman.tools import ParameterError, ToolFunc, get_context_tools


@pytest.fixture
def tools(store: ContextStore, settings: CtxmanSettings) -> dict[str, ToolFunc]:
    """Tool registry bound to the temporary store."""
    return get_context_tools(store, settings)


async def add(
    tools: dict[str, ToolFunc], content: str, type: str = "code", **kwargs: Any
) -> dict[str, Any]:
    return await tools["add_context"](content=content, type=type, **kwargs)


class TestRegistry:
    """Tests for the registered tool names."""

    def test_tool_names(self, tools: dict[str, ToolFunc]) -> None:
        assert set(tools) == {
            "get_context",
            "add_context",
            "search_contexts",
            "get_context_by_id",
            "update_context",
            "delete_context",
            "delete_contexts",
            "get_project_info",
            "get_stats",
        }


class TestAddContext:
    """Tests for add_context tool."""

    @pytest.mark.asyncio
    async def test_add_returns_context(
        self, tools: dict[str, ToolFunc], workspace: Path
    ) -> None:
        result = await tools["add_context"](content="fix bug", type="issue")

        assert result["content"] == "fix bug"
        assert result["type"] == "issue"
        assert result["importance"] == 5
        assert result["tags"] == []
        assert result["projectPath"] == str(workspace)
        assert result["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_add_with_tags_and_importance(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        result = await add(tools, "x", importance=8, tags=["a", "b"])

        assert result["importance"] == 8
        assert result["tags"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_result_is_json_serializable(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        result = await add(tools, "café")
        assert json.loads(json.dumps(result)) == result

    @pytest.mark.asyncio
    async def test_empty_content_is_validation_error(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        with pytest.raises(ValidationError):
            await add(tools, "  ")

    @pytest.mark.asyncio
    async def test_unknown_type_is_validation_error(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        with pytest.raises(ValidationError):
            await add(tools, "x", type="note")

    @pytest.mark.asyncio
    async def test_non_string_content_is_parameter_error(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        with pytest.raises(ParameterError, match="content must be a string"):
            await tools["add_context"](content=42, type="code")

    @pytest.mark.asyncio
    async def test_missing_content_is_parameter_error(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        with pytest.raises(ParameterError, match="content is required"):
            await tools["add_context"](content=None, type="code")

    @pytest.mark.asyncio
    async def test_tags_must_be_list(self, tools: dict[str, ToolFunc]) -> None:
        with pytest.raises(ParameterError):
            await add(tools, "x", tags="a,b")

    @pytest.mark.asyncio
    async def test_content_too_long(
        self, store: ContextStore, workspace: Path
    ) -> None:
        settings = CtxmanSettings(workspace_path=workspace, max_content_length=10)
        tools = get_context_tools(store, settings)

        with pytest.raises(ParameterError, match="too long"):
            await add(tools, "x" * 11)


class TestGetContext:
    """Tests for get_context tool."""

    @pytest.mark.asyncio
    async def test_default_limit(self, tools: dict[str, ToolFunc]) -> None:
        for i in range(12):
            await add(tools, f"entry {i}")

        result = await tools["get_context"]()

        assert result["count"] == 10
        assert result["contexts"][0]["content"] == "entry 11"

    @pytest.mark.asyncio
    async def test_type_filter_before_limit(self, tools: dict[str, ToolFunc]) -> None:
        await add(tools, "old issue", type="issue")
        for i in range(5):
            await add(tools, f"note {i}", type="conversation")

        result = await tools["get_context"](limit=1, type="issue")

        assert [c["content"] for c in result["contexts"]] == ["old issue"]

    @pytest.mark.asyncio
    async def test_type_all(self, tools: dict[str, ToolFunc]) -> None:
        await add(tools, "a", type="issue")
        await add(tools, "b", type="decision")

        result = await tools["get_context"](type="all")

        assert result["count"] == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -5, 1001, "10", True])
    async def test_invalid_limit(
        self, tools: dict[str, ToolFunc], limit: object
    ) -> None:
        with pytest.raises(ParameterError):
            await tools["get_context"](limit=limit)


class TestSearchContexts:
    """Tests for search_contexts tool."""

    @pytest.mark.asyncio
    async def test_case_insensitive(self, tools: dict[str, ToolFunc]) -> None:
        await add(tools, "Hello World", type="conversation")
        await add(tools, "Something else", type="conversation")

        for query in ("world", "WORLD"):
            result = await tools["search_contexts"](query=query)
            assert [c["content"] for c in result["results"]] == ["Hello World"]
            assert result["query"] == query

    @pytest.mark.asyncio
    async def test_empty_query_lists(self, tools: dict[str, ToolFunc]) -> None:
        await add(tools, "a")
        await add(tools, "b")

        result = await tools["search_contexts"](query="")

        assert [c["content"] for c in result["results"]] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_filters(self, tools: dict[str, ToolFunc]) -> None:
        await add(tools, "db decision", type="decision", importance=9, tags=["db"])
        await add(tools, "db issue", type="issue", importance=4, tags=["db"])
        await add(tools, "db code", type="code", importance=9)

        result = await tools["search_contexts"](
            query="db",
            date_range="today",
            min_importance=8,
            tags=["db"],
        )

        assert [c["content"] for c in result["results"]] == ["db decision"]

    @pytest.mark.asyncio
    async def test_type_filter(self, tools: dict[str, ToolFunc]) -> None:
        await add(tools, "db decision", type="decision")
        await add(tools, "db issue", type="issue")

        result = await tools["search_contexts"](query="db", type="decision")

        assert result["count"] == 1

    @pytest.mark.asyncio
    async def test_unknown_date_range(self, tools: dict[str, ToolFunc]) -> None:
        with pytest.raises(ValidationError, match="Invalid date range"):
            await tools["search_contexts"](query="x", date_range="year")

    @pytest.mark.asyncio
    async def test_query_must_be_string(self, tools: dict[str, ToolFunc]) -> None:
        with pytest.raises(ParameterError):
            await tools["search_contexts"](query=None)


class TestUpdateContext:
    """Tests for update_context tool."""

    @pytest.mark.asyncio
    async def test_partial_update(self, tools: dict[str, ToolFunc]) -> None:
        created = await add(tools, "draft", type="conversation", tags=["t"])

        updated = await tools["update_context"](id=created["id"], importance=9)

        assert updated["importance"] == 9
        assert updated["content"] == "draft"
        assert updated["tags"] == ["t"]
        assert updated["id"] == created["id"]
        assert updated["timestamp"] == created["timestamp"]
        assert updated["projectPath"] == created["projectPath"]

    @pytest.mark.asyncio
    async def test_null_clears_tags(self, tools: dict[str, ToolFunc]) -> None:
        created = await add(tools, "x", tags=["a"], importance=7)

        updated = await tools["update_context"](
            id=created["id"], tags=None, importance=None
        )

        assert updated["tags"] == []
        assert updated["importance"] == 5

    @pytest.mark.asyncio
    async def test_null_content_is_validation_error(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        created = await add(tools, "x")

        with pytest.raises(ValidationError):
            await tools["update_context"](id=created["id"], content=None)

    @pytest.mark.asyncio
    async def test_nothing_to_update(self, tools: dict[str, ToolFunc]) -> None:
        created = await add(tools, "x")

        with pytest.raises(ParameterError, match="at least one"):
            await tools["update_context"](id=created["id"])

    @pytest.mark.asyncio
    async def test_unknown_id(self, tools: dict[str, ToolFunc]) -> None:
        with pytest.raises(NotFoundError):
            await tools["update_context"](id="missing", content="x")

    @pytest.mark.asyncio
    async def test_empty_id(self, tools: dict[str, ToolFunc]) -> None:
        with pytest.raises(ParameterError):
            await tools["update_context"](id="", content="x")


class TestDeleteTools:
    """Tests for delete_context and delete_contexts tools."""

    @pytest.mark.asyncio
    async def test_delete_context(self, tools: dict[str, ToolFunc]) -> None:
        created = await add(tools, "x")

        result = await tools["delete_context"](id=created["id"])

        assert result == {"deleted": True, "id": created["id"]}
        assert (await tools["get_context"]())["count"] == 0

    @pytest.mark.asyncio
    async def test_delete_unknown(self, tools: dict[str, ToolFunc]) -> None:
        with pytest.raises(NotFoundError):
            await tools["delete_context"](id="missing")

    @pytest.mark.asyncio
    async def test_delete_contexts_partial_match(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        created = await add(tools, "x")

        result = await tools["delete_contexts"](ids=[created["id"], "nonexistent"])

        assert result == {"deleted": 1, "requested": 2}

    @pytest.mark.asyncio
    async def test_delete_contexts_requires_list(
        self, tools: dict[str, ToolFunc]
    ) -> None:
        with pytest.raises(ParameterError):
            await tools["delete_contexts"](ids="123")


class TestInfoTools:
    """Tests for get_context_by_id, get_project_info and get_stats."""

    @pytest.mark.asyncio
    async def test_get_context_by_id(self, tools: dict[str, ToolFunc]) -> None:
        created = await add(tools, "find me")
        assert await tools["get_context_by_id"](id=created["id"]) == created

    @pytest.mark.asyncio
    async def test_get_context_by_id_unknown(self, tools: dict[str, ToolFunc]) -> None:
        with pytest.raises(NotFoundError):
            await tools["get_context_by_id"](id="missing")

    @pytest.mark.asyncio
    async def test_project_info(
        self, tools: dict[str, ToolFunc], workspace: Path
    ) -> None:
        await add(tools, "x")

        result = await tools["get_project_info"]()

        assert result == {
            "projectName": "my-project",
            "workspacePath": str(workspace),
            "contextCount": 1,
        }

    @pytest.mark.asyncio
    async def test_stats(self, tools: dict[str, ToolFunc]) -> None:
        await add(tools, "a", type="code")
        await add(tools, "b", type="issue")

        result = await tools["get_stats"]()

        assert result["totalContexts"] == 2
        assert result["byType"] == {"code": 1, "issue": 1}
        assert result["maxContexts"] == 100
        assert result["storageSize"] > 0


class TestEndToEnd:
    """Full lifecycle through the tool facade."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, tools: dict[str, ToolFunc]) -> None:
        created = await tools["add_context"](content="fix bug", type="issue")

        listed = (await tools["get_context"]())["contexts"]
        assert len(listed) == 1
        assert listed[0]["importance"] == 5
        assert listed[0]["tags"] == []

        updated = await tools["update_context"](id=created["id"], importance=9)
        assert updated["importance"] == 9

        await tools["delete_context"](id=created["id"])
        assert (await tools["get_context"]())["contexts"] == []


class TestRelativeWorkspace:
    """Tools built from a relative workspace report the absolute one."""

    @pytest.mark.asyncio
    async def test_project_info_and_entries_use_resolved_path(
        self, workspace: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(workspace)
        settings = CtxmanSettings(workspace_path=Path("."))
        store = ContextStore(
            path=settings.store_path,
            project_path=str(settings.workspace_path),
        )
        tools = get_context_tools(store, settings)

        created = await add(tools, "x")
        info = await tools["get_project_info"]()

        assert created["projectPath"] == str(workspace)
        assert info["projectName"] == "my-project"
        assert info["workspacePath"] == str(workspace)
