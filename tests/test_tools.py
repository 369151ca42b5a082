"""Tests for the tool registry: schema validation, containment and each handler."""

import json

import pytest

from moles.errors import ToolValidationError
from moles.memory import DocCategory
from moles.tools import (
    MAX_SEARCH_FILES,
    MAX_SEARCH_RESULTS,
    ToolName,
    ToolRegistry,
    ToolResult,
    validate_params,
)


# ---------------------------------------------------------------------------
# Catalog and dispatch
# ---------------------------------------------------------------------------

class TestCatalog:

    def test_definitions_cover_closed_tool_set(self, registry):
        names = {d["function"]["name"] for d in registry.definitions()}
        assert names == {t.value for t in ToolName}

    def test_definition_shape(self, registry):
        for definition in registry.definitions():
            assert definition["type"] == "function"
            assert definition["function"]["parameters"]["type"] == "object"

    def test_unknown_tool(self, registry):
        result = registry.execute("delete_everything", {})
        assert result.success is False
        assert result.error == "Unknown tool: delete_everything"


class TestValidation:

    def test_unknown_field_rejected(self, registry):
        result = registry.execute("read_file", {"path": "index.ts", "encoding": "latin-1"})
        assert result.success is False
        assert "Unknown parameters: encoding" in result.error

    def test_missing_required_rejected(self, registry):
        result = registry.execute("write_doc", {"title": "T", "content": "C"})
        assert result.success is False
        assert "category" in result.error

    def test_wrong_type_rejected(self, registry):
        result = registry.execute("read_file", {"path": "index.ts", "start_line": "1"})
        assert result.success is False
        assert "start_line" in result.error

    def test_bool_is_not_integer(self):
        schema = {"type": "object", "properties": {"n": {"type": "integer"}}}
        with pytest.raises(ToolValidationError):
            validate_params(schema, {"n": True})

    def test_enum_violation_rejected(self, registry, memory):
        result = registry.execute("write_doc", {"title": "T", "content": "C", "category": "blog"})
        assert result.success is False
        assert "category" in result.error
        assert memory.document_sections == []

    def test_array_item_type_checked(self, registry):
        result = registry.execute("mark_file_analyzed", {
            "path": "index.ts", "summary": "s", "exports": ["ok", 3],
        })
        assert result.success is False

    def test_non_object_params_rejected(self, registry):
        result = registry.execute("list_files", ["."])
        assert result.success is False


class TestRender:

    def test_success_renders_indented_json(self):
        assert ToolResult(success=True, data={"a": 1}).render() == json.dumps({"a": 1}, indent=2)

    def test_error_render(self):
        assert ToolResult(success=False, error="boom").render() == "Error: boom"


# ---------------------------------------------------------------------------
# File tools
# ---------------------------------------------------------------------------

class TestListFiles:

    def test_lists_top_level(self, registry):
        result = registry.execute("list_files", {"path": "."})
        assert result.success
        assert "index.ts" in result.data
        assert "lib/" in result.data
        assert "node_modules/" not in result.data

    def test_recursive_glob_skips_ignored_dirs(self, registry):
        result = registry.execute("list_files", {"path": ".", "pattern": "**/*.ts"})
        assert result.success
        assert "lib/parse.ts" in result.data
        assert all(not p.startswith("node_modules") for p in result.data)

    def test_path_escape_rejected(self, registry):
        result = registry.execute("list_files", {"path": "../"})
        assert result.success is False
        assert "escapes" in result.error

    def test_glob_escape_rejected(self, registry):
        result = registry.execute("list_files", {"path": ".", "pattern": "../*"})
        assert result.success is False

    def test_not_a_directory(self, registry):
        result = registry.execute("list_files", {"path": "index.ts"})
        assert result.success is False

    def test_symlink_outside_root_not_listed(self, registry, target_repo, tmp_path):
        outside = tmp_path / "outside_secret.txt"
        outside.write_text("TOPSECRET=hunter2")
        (target_repo / "leak.ts").symlink_to(outside)

        result = registry.execute("list_files", {"path": ".", "pattern": "**/*"})
        assert result.success
        assert "leak.ts" not in result.data
        assert "index.ts" in result.data


class TestReadFile:

    def test_full_content(self, registry, target_repo):
        result = registry.execute("read_file", {"path": "lib/parse.ts"})
        assert result.success
        assert result.data == (target_repo / "lib/parse.ts").read_text()

    def test_line_range_inclusive(self, registry):
        result = registry.execute("read_file", {"path": "index.ts", "start_line": 3, "end_line": 4})
        assert result.data == "export function main(input: string) {\n  return parse(input);"

    def test_missing_file_is_error(self, registry):
        result = registry.execute("read_file", {"path": "nope.ts"})
        assert result.success is False
        assert result.error

    def test_absolute_path_outside_rejected(self, registry):
        result = registry.execute("read_file", {"path": "/etc/passwd"})
        assert result.success is False

    def test_traversal_rejected(self, registry):
        result = registry.execute("read_file", {"path": "lib/../../secret.txt"})
        assert result.success is False


class TestSearchCode:

    def test_case_insensitive_matches(self, registry):
        result = registry.execute("search_code", {"pattern": "EXPORT FUNCTION"})
        assert result.success
        files = {hit["file"] for hit in result.data}
        assert files == {"index.ts", "lib/parse.ts"}
        assert all({"file", "line", "content"} <= set(hit) for hit in result.data)

    def test_file_pattern_filter(self, registry):
        result = registry.execute("search_code", {"pattern": "parse", "file_pattern": "lib/*.ts"})
        assert {hit["file"] for hit in result.data} == {"lib/parse.ts"}

    def test_result_cap(self, registry, target_repo):
        (target_repo / "many.ts").write_text("\n".join("const hit = 1;" for _ in range(50)))
        result = registry.execute("search_code", {"pattern": "hit"})
        assert len(result.data) == MAX_SEARCH_RESULTS

    def test_invalid_regex_is_error(self, registry):
        result = registry.execute("search_code", {"pattern": "("})
        assert result.success is False

    def test_unreadable_files_skipped(self, registry, target_repo):
        (target_repo / "blob.bin").write_bytes(b"\xff\xfe\x00parse")
        result = registry.execute("search_code", {"pattern": "parse"})
        assert result.success
        assert "blob.bin" not in {hit["file"] for hit in result.data}

    def test_symlink_outside_root_not_searched(self, registry, target_repo, tmp_path):
        outside = tmp_path / "outside_secret.txt"
        outside.write_text("TOPSECRET=hunter2")
        (target_repo / "leak.ts").symlink_to(outside)

        assert registry.execute("read_file", {"path": "leak.ts"}).success is False
        result = registry.execute("search_code", {"pattern": "TOPSECRET"})
        assert result.success
        assert result.data == []

    def test_symlink_inside_root_still_searched(self, registry, target_repo):
        (target_repo / "alias.ts").symlink_to(target_repo / "lib" / "parse.ts")
        result = registry.execute("search_code", {"pattern": "export function", "file_pattern": "*.ts"})
        assert "alias.ts" in {hit["file"] for hit in result.data}

    def test_file_cap(self, tmp_path, memory):
        # Only files past the cap (in sorted order) contain the pattern
        big = tmp_path / "big"
        big.mkdir()
        for index in range(MAX_SEARCH_FILES + 5):
            body = "needle" if index >= MAX_SEARCH_FILES else "nothing here"
            (big / f"f{index:03d}.ts").write_text(body)

        result = ToolRegistry(big, memory).execute("search_code", {"pattern": "needle"})
        assert result.success
        assert result.data == []


# ---------------------------------------------------------------------------
# Memory tools
# ---------------------------------------------------------------------------

class TestMemoryTools:

    def test_write_doc(self, registry, memory):
        result = registry.execute("write_doc", {
            "title": "Parser", "content": "Splits input.", "category": "module",
        })
        assert result.success
        assert result.data == 'Documentation section "Parser" saved to memory'
        assert memory.get_sections_by_category(DocCategory.MODULE)[0].content == "Splits input."

    def test_add_insight_dedup(self, registry, memory):
        first = registry.execute("add_insight", {"insight": "Pure functions"})
        second = registry.execute("add_insight", {"insight": "Pure functions"})
        assert first.data == "Insight recorded: Pure functions"
        assert second.data == "Insight already recorded: Pure functions"
        assert memory.insights == ["Pure functions"]

    def test_mark_file_analyzed(self, registry, memory):
        result = registry.execute("mark_file_analyzed", {
            "path": "./lib/parse.ts",
            "summary": "Parser",
            "exports": ["parse"],
        })
        assert result.data == "File lib/parse.ts marked as analyzed"
        assert memory.get_analyzed_file("lib/parse.ts").exports == ["parse"]

    def test_optional_fields_may_be_null(self, registry, memory):
        result = registry.execute("mark_file_analyzed", {
            "path": "index.ts", "summary": "Entry", "exports": None,
        })
        assert result.success
        assert memory.get_analyzed_file("index.ts").exports is None
