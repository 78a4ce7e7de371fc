"""Tests for context store data models."""

from datetime import UTC, datetime

import pytest

from ctxman.store import UNSET, Context, ContextPatch, ContextType, ValidationError
from ctxman.store.models import (
    format_timestamp,
    parse_timestamp,
    validate_content,
    validate_importance,
    validate_tags,
    validate_type,
)


def make_context(**overrides: object) -> Context:
    fields: dict[str, object] = {
        "id": "1700000000000",
        "timestamp": datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=UTC),
        "content": "Hello World",
        "type": ContextType.CONVERSATION,
        "importance": 5,
        "tags": [],
        "project_path": "/work/project",
    }
    fields.update(overrides)
    return Context(**fields)  # type: ignore[arg-type]


class TestContextType:
    """Tests for the closed context type set."""

    def test_values(self) -> None:
        assert [t.value for t in ContextType] == [
            "conversation",
            "decision",
            "code",
            "issue",
        ]

    def test_validate_type_accepts_names_and_members(self) -> None:
        assert validate_type("code") is ContextType.CODE
        assert validate_type(ContextType.ISSUE) is ContextType.ISSUE

    def test_validate_type_rejects_unknown(self) -> None:
        with pytest.raises(ValidationError, match="Invalid type 'note'"):
            validate_type("note")

    def test_validate_type_is_case_sensitive(self) -> None:
        with pytest.raises(ValidationError):
            validate_type("Code")


class TestFieldValidation:
    """Tests for field validators."""

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_content_rejected(self, content: str) -> None:
        with pytest.raises(ValidationError, match="cannot be empty"):
            validate_content(content)

    def test_content_kept_verbatim(self) -> None:
        assert validate_content("  padded  ") == "  padded  "

    def test_non_string_content_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_content(42)

    @pytest.mark.parametrize("value", [1, 5, 10])
    def test_importance_in_range(self, value: int) -> None:
        assert validate_importance(value) == value

    @pytest.mark.parametrize("value", [0, 11, -1])
    def test_importance_out_of_range(self, value: int) -> None:
        with pytest.raises(ValidationError, match="out of range"):
            validate_importance(value)

    @pytest.mark.parametrize("value", [True, 5.0, "5", None])
    def test_importance_must_be_int(self, value: object) -> None:
        with pytest.raises(ValidationError, match="must be an integer"):
            validate_importance(value)

    def test_tags_keep_order_and_duplicates(self) -> None:
        assert validate_tags(["b", "a", "b"]) == ["b", "a", "b"]

    def test_tags_tuple_becomes_list(self) -> None:
        assert validate_tags(("x",)) == ["x"]

    @pytest.mark.parametrize("tags", [["ok", ""], ["  "], ["ok", 3], "a,b"])
    def test_invalid_tags_rejected(self, tags: object) -> None:
        with pytest.raises(ValidationError):
            validate_tags(tags)


class TestTimestamps:
    """Tests for timestamp formatting and parsing."""

    def test_format_uses_milliseconds_and_z(self) -> None:
        dt = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)
        assert format_timestamp(dt) == "2024-01-02T03:04:05.678Z"

    def test_format_keeps_sub_millisecond_detail(self) -> None:
        dt = datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=UTC)
        assert format_timestamp(dt) == "2024-01-02T03:04:05.678901Z"

    def test_parse_z_suffix(self) -> None:
        dt = parse_timestamp("2024-01-02T03:04:05.678Z")
        assert dt == datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)

    def test_parse_offset_normalized_to_utc(self) -> None:
        dt = parse_timestamp("2024-01-02T05:04:05+02:00")
        assert dt == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, 1700000000, "yesterday"])
    def test_parse_rejects_garbage(self, value: object) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(value)


class TestContextSerialization:
    """Tests for Context.to_dict and Context.from_dict."""

    def test_to_dict_uses_stored_keys(self) -> None:
        data = make_context(tags=["a"]).to_dict()

        assert data == {
            "id": "1700000000000",
            "timestamp": "2024-01-02T03:04:05.678Z",
            "content": "Hello World",
            "type": "conversation",
            "importance": 5,
            "tags": ["a"],
            "projectPath": "/work/project",
        }

    def test_from_dict_round_trip(self) -> None:
        original = make_context(tags=["x", "y"], type=ContextType.DECISION)
        assert Context.from_dict(original.to_dict()) == original

    def test_from_dict_defaults_optional_fields(self) -> None:
        context = Context.from_dict({
            "id": "1",
            "timestamp": "2024-01-02T03:04:05.000Z",
            "content": "legacy",
            "type": "issue",
        })

        assert context.importance == 5
        assert context.tags == []
        assert context.project_path == "unknown"

    def test_from_dict_carries_unknown_keys(self) -> None:
        data = make_context().to_dict()
        data["source"] = "git"

        context = Context.from_dict(data)

        assert context.extra == {"source": "git"}
        assert context.to_dict()["source"] == "git"

    def test_from_dict_requires_id(self) -> None:
        data = make_context().to_dict()
        del data["id"]

        with pytest.raises(KeyError):
            Context.from_dict(data)

    @pytest.mark.parametrize("missing", ["timestamp", "content", "type", "tags"])
    def test_from_dict_keeps_entry_missing_other_fields(self, missing: str) -> None:
        data = make_context().to_dict()
        del data[missing]

        context = Context.from_dict(data)

        assert context.to_dict() == data

    def test_from_dict_keeps_foreign_type_and_importance(self) -> None:
        data = make_context().to_dict()
        data.update(type="custom", importance=6.5)

        context = Context.from_dict(data)

        assert context.type == "custom"
        assert context.type_name == "custom"
        assert context.importance == 6.5
        assert context.to_dict() == data

    def test_from_dict_rejects_non_string_id(self) -> None:
        data = make_context().to_dict()
        data["id"] = 17

        with pytest.raises(ValueError):
            Context.from_dict(data)


class TestContextPatch:
    """Tests for partial updates."""

    def test_default_patch_is_empty(self) -> None:
        patch = ContextPatch()
        assert patch.is_empty()
        assert patch.apply(make_context()) == {}

    def test_unset_differs_from_none(self) -> None:
        assert ContextPatch(tags=UNSET).is_empty()
        assert not ContextPatch(tags=None).is_empty()

    def test_apply_validates_supplied_fields(self) -> None:
        changes = ContextPatch(type="code", importance=9).apply(make_context())
        assert changes == {"type": ContextType.CODE, "importance": 9}

    def test_none_clears_tags_and_resets_importance(self) -> None:
        context = make_context(tags=["a"], importance=8)
        changes = ContextPatch(tags=None, importance=None).apply(context)
        assert changes == {"tags": [], "importance": 5}

    def test_content_cannot_be_cleared(self) -> None:
        with pytest.raises(ValidationError):
            ContextPatch(content=None).apply(make_context())

    def test_type_cannot_be_cleared(self) -> None:
        with pytest.raises(ValidationError, match="cannot be cleared"):
            ContextPatch(type=None).apply(make_context())

    def test_invalid_importance_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ContextPatch(importance=42).apply(make_context())

    def test_replacing_unreadable_field_drops_its_stored_form(self) -> None:
        context = Context.from_dict(
            {"id": "1", "content": "x", "type": "note", "tags": "a,b"}
        )

        changes = ContextPatch(tags=["a"]).apply(context)

        assert changes["tags"] == ["a"]
        assert "tags" not in changes["raw_fields"]
        assert changes["raw_fields"]["timestamp"] is UNSET
