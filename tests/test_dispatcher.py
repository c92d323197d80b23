"""Tests for tool dispatch, argument validation and code-intelligence fallback."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from plnr.config.schema import ToolsConfig
from plnr.tools.dispatcher import (
    ToolDispatcher,
    format_locations,
    format_symbols,
    identifier_at,
)
from plnr.tools.todos import TodoStatus, TodoStore
from tests.utils import FakeRunner


class FakeLSP:
    """Stands in for a ready LSPClient, recording query positions."""

    def __init__(self, result: Any = None) -> None:
        self.result = result
        self.queries: list[tuple[str, tuple[Any, ...]]] = []

    async def definition(self, path: str, line: int, character: int) -> Any:
        self.queries.append(("definition", (path, line, character)))
        return self.result

    async def references(self, path: str, line: int, character: int) -> Any:
        self.queries.append(("references", (path, line, character)))
        return self.result

    async def document_symbols(self, path: str) -> Any:
        self.queries.append(("document_symbols", (path,)))
        return self.result

    async def workspace_symbols(self, query: str) -> Any:
        self.queries.append(("workspace_symbols", (query,)))
        return self.result


class FakeCodeIntel:
    def __init__(self, client: Any = None, error: Exception | None = None) -> None:
        self.client = client
        self.error = error

    async def get_client(self, project_root: str) -> Any:
        if self.error is not None:
            raise self.error
        return self.client


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "src" / "app.py").write_text("from lib import foo\n\nresult = foo(1)\n")
    (root / "src" / "lib.py").write_text("def foo(x):\n    return x\n")
    (root / "README.md").write_text("# Demo\n")
    (root / "node_modules" / "dep" / "index.js").write_text("module.exports = 1\n")
    return root


def make_dispatcher(root: Path, **kwargs: Any) -> ToolDispatcher:
    kwargs.setdefault("runner", FakeRunner(exit_code=1))
    kwargs.setdefault("search_backend", "grep")
    return ToolDispatcher(str(root), **kwargs)


class TestValidation:
    """Argument validation at the dispatch boundary."""

    async def test_unknown_tool(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("delete_everything", {})
        assert not result.success
        assert result.error == "Unknown tool: delete_everything"

    async def test_missing_parameter(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("read_file", {})
        assert not result.success
        assert result.error == "Missing required parameter: file_path"

    async def test_empty_parameter_counts_as_missing(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("search_files", {"pattern": ""})
        assert result.error == "Missing required parameter: pattern"

    async def test_wrong_type(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch(
            "goto_definition", {"file": "src/app.py", "line": "first", "character": 1}
        )
        assert not result.success
        assert result.error.startswith("Invalid arguments for goto_definition")

    async def test_non_object_arguments(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("read_file", ["src/app.py"])
        assert result.error == "Invalid arguments for read_file: expected an object"

    async def test_unexpected_exception_becomes_failure(self, project: Path) -> None:
        dispatcher = make_dispatcher(project, code_intel=FakeCodeIntel(error=RuntimeError("socket gone")))
        result = await dispatcher.dispatch("workspace_symbols", {"query": "foo"})
        assert not result.success
        assert result.error == "workspace_symbols failed: socket gone"


class TestFileTools:
    """read_file and list_files."""

    async def test_read_file(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("read_file", {"file_path": "src/lib.py"})
        assert result.success
        assert result.result == "File: src/lib.py\n\ndef foo(x):\n    return x\n"

    async def test_read_missing_file(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("read_file", {"file_path": "nope.py"})
        assert not result.success
        assert "not found" in result.error.lower()

    async def test_read_directory(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("read_file", {"file_path": "src"})
        assert result.error == "Failed to read file: src is a directory"

    async def test_read_outside_root(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("read_file", {"file_path": "../secret.txt"})
        assert not result.success
        assert "Path not allowed" in result.error

    async def test_read_truncates(self, project: Path) -> None:
        dispatcher = make_dispatcher(project, config=ToolsConfig(max_file_chars=5))
        result = await dispatcher.dispatch("read_file", {"file_path": "src/lib.py"})
        assert result.result == "File: src/lib.py\n\ndef f\n\n[Content truncated...]"

    async def test_list_directory_skips_ignored(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("list_files", {"path": "."})
        assert result.success
        assert result.result == 'Files matching ".":\n\nREADME.md\nsrc/app.py\nsrc/lib.py'

    async def test_list_glob(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("list_files", {"path": "**/*.py"})
        assert result.result == 'Files matching "**/*.py":\n\nsrc/app.py\nsrc/lib.py'

    async def test_list_star_stays_in_one_directory(self, project: Path) -> None:
        (project / "src" / "deep").mkdir()
        (project / "src" / "deep" / "NOTES.md").write_text("nested\n")
        dispatcher = make_dispatcher(project)

        top = await dispatcher.dispatch("list_files", {"path": "*.md"})
        one_level = await dispatcher.dispatch("list_files", {"path": "src/*"})
        anywhere = await dispatcher.dispatch("list_files", {"path": "**/*.md"})

        assert top.result == 'Files matching "*.md":\n\nREADME.md'
        assert one_level.result == 'Files matching "src/*":\n\nsrc/app.py\nsrc/lib.py'
        assert anywhere.result.endswith("README.md\nsrc/deep/NOTES.md")

    async def test_list_cap(self, project: Path) -> None:
        dispatcher = make_dispatcher(project, config=ToolsConfig(max_list_results=1))
        result = await dispatcher.dispatch("list_files", {"path": "src"})
        assert result.result.endswith("src/app.py\n\n[1 more files not shown]")

    async def test_list_no_matches(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("list_files", {"path": "*.rs"})
        assert result.result.endswith("No files found")

    async def test_list_missing_path(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("list_files", {"path": "lib"})
        assert result.error == "File not found: lib"


class TestCommandAndSearch:
    """execute_command and search_files with a fake subprocess runner."""

    async def test_disallowed_command_never_runs(self, project: Path) -> None:
        runner = FakeRunner()
        result = await make_dispatcher(project, runner=runner).dispatch(
            "execute_command", {"command": "rm -rf /"}
        )
        assert not result.success
        assert result.error.startswith('Command "rm" is not allowed')
        assert runner.calls == []

    async def test_allowed_command(self, project: Path) -> None:
        runner = FakeRunner(output="src\nREADME.md\n")
        result = await make_dispatcher(project, runner=runner).dispatch("execute_command", {"command": "ls -a"})
        assert result.result == "src\nREADME.md"
        assert runner.calls[0]["argv"] == ["ls", "-a"]
        assert runner.calls[0]["cwd"] == str(project.resolve())

    async def test_search_formats_matches(self, project: Path) -> None:
        runner = FakeRunner(output="./src/lib.py:1:def foo(x):\n./src/app.py:3:result = foo(1)\n")
        result = await make_dispatcher(project, runner=runner).dispatch("search_files", {"pattern": "foo"})
        assert result.result.startswith('Search results for "foo" (2 matches in 2 files):')
        assert "src/app.py\n  3: result = foo(1)" in result.result

    async def test_search_no_matches(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("search_files", {"pattern": "zzz"})
        assert result.result == 'No matches found for "zzz"'


class TestCodeIntelligence:
    """Language-server queries and their text-search fallback."""

    async def test_definition_via_lsp(self, project: Path) -> None:
        target = (project / "src" / "lib.py").resolve()
        lsp = FakeLSP([{"uri": target.as_uri(), "range": {"start": {"line": 0, "character": 4}}}])
        dispatcher = make_dispatcher(project, code_intel=FakeCodeIntel(lsp))

        result = await dispatcher.dispatch("goto_definition", {"file": "src/app.py", "line": 3, "character": 10})

        assert result.success
        assert result.result == "Definition of symbol at src/app.py:3:10:\n\nsrc/lib.py:1:5"
        # 1-based positions go out 0-based
        assert lsp.queries == [("definition", (str(project.resolve() / "src" / "app.py"), 2, 9))]

    async def test_definition_falls_back_to_search(self, project: Path) -> None:
        """No language server: the identifier at the position is searched for."""
        runner = FakeRunner(output="./src/lib.py:1:def foo(x):\n")
        dispatcher = make_dispatcher(project, runner=runner)

        result = await dispatcher.dispatch("goto_definition", {"file": "src/app.py", "line": 3, "character": 10})

        assert result.success
        assert result.result.startswith('Code intelligence unavailable, text search for "foo":')
        assert "src/lib.py\n  1: def foo(x):" in result.result
        argv = runner.calls[0]["argv"]
        assert argv[argv.index("-e") + 1] == r"\bfoo\b"
        assert "-i" not in argv

    async def test_empty_lsp_result_falls_back(self, project: Path) -> None:
        runner = FakeRunner(output="./src/app.py:3:result = foo(1)\n")
        dispatcher = make_dispatcher(project, runner=runner, code_intel=FakeCodeIntel(FakeLSP([])))

        result = await dispatcher.dispatch("find_references", {"file": "src/app.py", "line": 1, "character": 18})

        assert result.result.startswith('Code intelligence unavailable, text search for "foo":')

    async def test_fallback_without_identifier_reads_file(self, project: Path) -> None:
        dispatcher = make_dispatcher(project)
        result = await dispatcher.dispatch("goto_definition", {"file": "src/app.py", "line": 2, "character": 1})
        assert result.result.startswith("File: src/app.py")

    async def test_position_in_missing_file(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch(
            "goto_definition", {"file": "src/gone.py", "line": 1, "character": 1}
        )
        assert result.error == "File not found: src/gone.py"

    async def test_document_symbols_via_lsp(self, project: Path) -> None:
        symbols = [
            {
                "name": "foo",
                "kind": 12,
                "range": {"start": {"line": 0, "character": 0}},
                "selectionRange": {"start": {"line": 0, "character": 4}},
                "children": [{"name": "x", "kind": 13, "range": {"start": {"line": 0, "character": 8}}}],
            }
        ]
        dispatcher = make_dispatcher(project, code_intel=FakeCodeIntel(FakeLSP(symbols)))

        result = await dispatcher.dispatch("document_symbols", {"file": "src/lib.py"})

        assert result.result == (
            "Symbols in src/lib.py:\n\n"
            "function foo (src/lib.py:1:5)\n"
            "  variable x (src/lib.py:1:9)"
        )

    async def test_document_symbols_fallback_reads_file(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("document_symbols", {"file": "src/lib.py"})
        assert result.result.startswith("File: src/lib.py")

    async def test_workspace_symbols_fallback_searches(self, project: Path) -> None:
        runner = FakeRunner(output="./src/lib.py:1:def foo(x):\n")
        dispatcher = make_dispatcher(project, runner=runner)

        result = await dispatcher.dispatch("workspace_symbols", {"query": "foo("})

        assert result.success
        argv = runner.calls[0]["argv"]
        assert argv[argv.index("-e") + 1] == r"foo\("


class TestTodos:
    """create_todos / update_todo through the dispatcher."""

    async def test_create_and_update(self, project: Path) -> None:
        store = TodoStore()
        dispatcher = make_dispatcher(project, todo_store=store, session_id="s1")

        created = await dispatcher.dispatch(
            "create_todos",
            {"todos": [{"id": "1", "title": "Read code"}, {"id": "2", "title": "Write plan"}]},
        )
        updated = await dispatcher.dispatch("update_todo", {"todo_id": "1", "status": "completed"})

        assert created.result == "Created 2 todos:\n[ ] 1. Read code\n[ ] 2. Write plan"
        assert updated.result == "Todo 1 marked completed"
        assert [t.status for t in store.get_todos("s1")] == [TodoStatus.COMPLETED, TodoStatus.PENDING]

    async def test_update_unknown_todo(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("update_todo", {"todo_id": "9", "status": "completed"})
        assert result.error == "Todo not found: 9"

    async def test_invalid_status(self, project: Path) -> None:
        result = await make_dispatcher(project).dispatch("update_todo", {"todo_id": "1", "status": "done"})
        assert result.error.startswith("Invalid arguments for update_todo")


class TestFormatting:
    def test_identifier_at(self) -> None:
        assert identifier_at("result = foo(1)", 9) == "foo"
        assert identifier_at("result = foo(1)", 6) is None
        assert identifier_at("$el.value", 0) == "$el"

    def test_location_link(self, tmp_path: Path) -> None:
        uri = (tmp_path / "a.ts").as_uri()
        result = {"targetUri": uri, "targetSelectionRange": {"start": {"line": 4, "character": 2}}}
        assert format_locations(result, str(tmp_path)) == ["a.ts:5:3"]

    def test_symbol_information(self, tmp_path: Path) -> None:
        uri = (tmp_path / "m.py").as_uri()
        symbols = [
            {
                "name": "run",
                "kind": 6,
                "containerName": "Server",
                "location": {"uri": uri, "range": {"start": {"line": 9, "character": 4}}},
            }
        ]
        assert format_symbols(symbols, str(tmp_path)) == ["method Server.run (m.py:10:5)"]
