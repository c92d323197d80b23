"""Route tool calls from the model to their handlers.

Every call returns a ToolResult. Argument problems, unknown tools, missing
files, unavailable language servers and unexpected handler exceptions all
come back as failure results so the agent loop can keep going.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from plnr.config.schema import ToolsConfig
from plnr.lsp.client import LSPClient, uri_to_path
from plnr.lsp.manager import CodeIntelligenceService
from plnr.tools import files, search, shell
from plnr.tools.arguments import (
    CreateTodosArgs,
    ExecuteCommandArgs,
    FileArgs,
    ListFilesArgs,
    PositionArgs,
    QueryArgs,
    ReadFileArgs,
    SearchFilesArgs,
    ToolArgumentError,
    UnknownToolError,
    UpdateTodoArgs,
    validate_arguments,
)
from plnr.tools.result import ToolResult
from plnr.tools.todos import Todo, TodoStore, format_todos
from plnr.tools.web import ExaClient

_log = logging.getLogger("plnr.tools.dispatcher")

_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")

# LSP SymbolKind values
SYMBOL_KINDS = {
    1: "file", 2: "module", 3: "namespace", 4: "package", 5: "class", 6: "method",
    7: "property", 8: "field", 9: "constructor", 10: "enum", 11: "interface",
    12: "function", 13: "variable", 14: "constant", 15: "string", 16: "number",
    17: "boolean", 18: "array", 19: "object", 20: "key", 21: "null",
    22: "enum member", 23: "struct", 24: "event", 25: "operator", 26: "type parameter",
}

Handler = Callable[[Any], Awaitable[ToolResult]]


def identifier_at(line_text: str, character: int) -> str | None:
    """Return the identifier covering a 0-based column, if any."""
    for match in _IDENTIFIER.finditer(line_text):
        if match.start() <= character < match.end():
            return match.group()
    return None


def _relative(path: str, project_root: str) -> str:
    rel = os.path.relpath(path, project_root)
    return path if rel.startswith("..") else Path(rel).as_posix()


def _location_parts(item: dict[str, Any]) -> tuple[str, dict[str, Any]] | None:
    """Extract (uri, start position) from a Location or LocationLink."""
    if "targetUri" in item:
        rng = item.get("targetSelectionRange") or item.get("targetRange") or {}
        return item["targetUri"], rng.get("start", {})
    if "uri" in item:
        return item["uri"], (item.get("range") or {}).get("start", {})
    return None


def format_location(uri: str, start: dict[str, Any], project_root: str) -> str:
    """Render an LSP uri + 0-based position as a 1-based path:line:col string."""
    path = _relative(uri_to_path(uri), project_root)
    return f"{path}:{start.get('line', 0) + 1}:{start.get('character', 0) + 1}"


def format_locations(result: Any, project_root: str) -> list[str]:
    if not result:
        return []
    items = result if isinstance(result, list) else [result]
    lines = []
    for item in items:
        if not isinstance(item, dict):
            continue
        parts = _location_parts(item)
        if parts is not None:
            lines.append(format_location(parts[0], parts[1], project_root))
    return lines


def format_symbols(result: Any, project_root: str, file_uri: str | None = None) -> list[str]:
    """Render DocumentSymbol trees or flat SymbolInformation lists."""
    if not result or not isinstance(result, list):
        return []

    lines: list[str] = []

    def visit(symbol: dict[str, Any], depth: int) -> None:
        kind = SYMBOL_KINDS.get(symbol.get("kind", 0), "symbol")
        if "location" in symbol:
            location = symbol["location"]
            start = (location.get("range") or {}).get("start", {})
            where = format_location(location.get("uri", ""), start, project_root)
        elif file_uri is not None:
            start = (symbol.get("selectionRange") or symbol.get("range") or {}).get("start", {})
            where = format_location(file_uri, start, project_root)
        else:
            where = ""
        container = symbol.get("containerName")
        name = f"{container}.{symbol.get('name')}" if container else symbol.get("name", "?")
        lines.append(f"{'  ' * depth}{kind} {name}" + (f" ({where})" if where else ""))
        for child in symbol.get("children") or ():
            visit(child, depth + 1)

    for symbol in result:
        if isinstance(symbol, dict):
            visit(symbol, 0)
    return lines


class ToolDispatcher:
    """Validates tool arguments and runs the matching handler.

    One dispatcher serves one agent session: it carries the project root and
    the session id used for todo lists. The code-intelligence service and
    todo store are process-wide and injected.
    """

    def __init__(
        self,
        project_root: str,
        *,
        session_id: str = "default",
        config: ToolsConfig | None = None,
        todo_store: TodoStore | None = None,
        code_intel: CodeIntelligenceService | None = None,
        runner: shell.SubprocessRunner | None = None,
        web: ExaClient | None = None,
        search_backend: str | None = None,
    ) -> None:
        self.project_root = str(Path(project_root).resolve())
        self.session_id = session_id
        self.config = config or ToolsConfig()
        self.todo_store = todo_store or TodoStore()
        self._code_intel = code_intel
        self._runner = runner or shell.SubprocessRunner(self.project_root)
        self._web = web or ExaClient(timeout=self.config.web_timeout, num_results=self.config.web_results)
        self._search_backend = search_backend

        self._handlers: dict[str, Handler] = {
            "read_file": self._read_file,
            "search_files": self._search_files,
            "list_files": self._list_files,
            "execute_command": self._execute_command,
            "web_search": self._web_search,
            "get_code_context": self._get_code_context,
            "goto_definition": self._goto_definition,
            "find_references": self._find_references,
            "document_symbols": self._document_symbols,
            "workspace_symbols": self._workspace_symbols,
            "create_todos": self._create_todos,
            "update_todo": self._update_todo,
        }

    async def dispatch(self, name: str, arguments: Any) -> ToolResult:
        try:
            args = validate_arguments(name, arguments)
        except (UnknownToolError, ToolArgumentError) as e:
            _log.debug("Rejected %s call: %s", name, e)
            return ToolResult.fail(str(e))

        handler = self._handlers[name]
        try:
            result = await handler(args)
        except Exception as e:
            _log.warning("Tool %s raised: %s", name, e, exc_info=True)
            return ToolResult.fail(f"{name} failed: {e}")

        _log.debug("%s -> %r", name, result)
        return result

    # -- filesystem, search, shell, web --------------------------------------

    async def _read_file(self, args: ReadFileArgs) -> ToolResult:
        return files.read_file(args.file_path, self.project_root, max_chars=self.config.max_file_chars)

    async def _search(self, pattern: str, *, file_pattern: str | None = None, case_sensitive: bool = False) -> ToolResult:
        return await search.search_files(
            pattern,
            self.project_root,
            config=self.config,
            file_pattern=file_pattern,
            case_sensitive=case_sensitive,
            runner=self._runner,
            backend=self._search_backend,
        )

    async def _search_files(self, args: SearchFilesArgs) -> ToolResult:
        return await self._search(args.pattern, file_pattern=args.file_pattern, case_sensitive=args.case_sensitive)

    async def _list_files(self, args: ListFilesArgs) -> ToolResult:
        return files.list_files(
            args.path,
            self.project_root,
            ignore_dirs=self.config.ignore_dirs,
            limit=self.config.max_list_results,
        )

    async def _execute_command(self, args: ExecuteCommandArgs) -> ToolResult:
        return await shell.execute_command(args.command, self.project_root, config=self.config, runner=self._runner)

    async def _web_search(self, args: QueryArgs) -> ToolResult:
        return await self._web.search(args.query)

    async def _get_code_context(self, args: QueryArgs) -> ToolResult:
        return await self._web.code_context(args.query)

    # -- code intelligence ---------------------------------------------------

    async def _lsp(self) -> LSPClient | None:
        if self._code_intel is None:
            return None
        return await self._code_intel.get_client(self.project_root)

    def _resolve_file(self, file: str) -> Path | ToolResult:
        try:
            path = files.resolve_project_path(self.project_root, file)
        except files.PathNotAllowed as e:
            return ToolResult.fail(str(e))
        if not path.is_file():
            return ToolResult.fail(f"File not found: {file}")
        return path

    async def _position_query(self, method: str, args: PositionArgs, title: str) -> ToolResult:
        path = self._resolve_file(args.file)
        if isinstance(path, ToolResult):
            return path

        client = await self._lsp()
        if client is not None:
            query = client.definition if method == "definition" else client.references
            # Model positions are 1-based, LSP positions 0-based
            raw = await query(str(path), args.line - 1, args.character - 1)
            locations = format_locations(raw, self.project_root)
            if locations:
                header = f"{title} of symbol at {args.file}:{args.line}:{args.character}:"
                return ToolResult.ok(header + "\n\n" + "\n".join(locations))

        return await self._position_fallback(path, args)

    async def _position_fallback(self, path: Path, args: PositionArgs) -> ToolResult:
        """Text search for the identifier at the position, or read the file."""
        try:
            lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            return ToolResult.fail(f"Failed to read file: {e.strerror or e}")

        ident = None
        if args.line <= len(lines):
            ident = identifier_at(lines[args.line - 1], args.character - 1)

        if ident is None:
            _log.debug("No identifier at %s:%d:%d, reading file", args.file, args.line, args.character)
            return files.read_file(args.file, self.project_root, max_chars=self.config.max_file_chars)

        _log.debug("Falling back to text search for %r", ident)
        result = await self._search(rf"\b{re.escape(ident)}\b", case_sensitive=True)
        if not result.success:
            return result
        return ToolResult.ok(f'Code intelligence unavailable, text search for "{ident}":\n\n{result.result}')

    async def _goto_definition(self, args: PositionArgs) -> ToolResult:
        return await self._position_query("definition", args, "Definition")

    async def _find_references(self, args: PositionArgs) -> ToolResult:
        return await self._position_query("references", args, "References")

    async def _document_symbols(self, args: FileArgs) -> ToolResult:
        path = self._resolve_file(args.file)
        if isinstance(path, ToolResult):
            return path

        client = await self._lsp()
        if client is not None:
            raw = await client.document_symbols(str(path))
            symbols = format_symbols(raw, self.project_root, file_uri=path.as_uri())
            if symbols:
                return ToolResult.ok(f"Symbols in {args.file}:\n\n" + "\n".join(symbols))

        return files.read_file(args.file, self.project_root, max_chars=self.config.max_file_chars)

    async def _workspace_symbols(self, args: QueryArgs) -> ToolResult:
        client = await self._lsp()
        if client is not None:
            raw = await client.workspace_symbols(args.query)
            symbols = format_symbols(raw, self.project_root)[: self.config.max_search_results]
            if symbols:
                return ToolResult.ok(f'Symbols matching "{args.query}":\n\n' + "\n".join(symbols))

        return await self._search(re.escape(args.query))

    # -- todos ---------------------------------------------------------------

    async def _create_todos(self, args: CreateTodosArgs) -> ToolResult:
        todos = self.todo_store.create_todos(
            self.session_id,
            [Todo(id=t.id, title=t.title, status=t.status) for t in args.todos],
        )
        return ToolResult.ok(f"Created {len(todos)} todos:\n{format_todos(todos)}")

    async def _update_todo(self, args: UpdateTodoArgs) -> ToolResult:
        if not self.todo_store.update_todo(self.session_id, args.todo_id, args.status):
            return ToolResult.fail(f"Todo not found: {args.todo_id}")
        return ToolResult.ok(f"Todo {args.todo_id} marked {args.status.value}")

