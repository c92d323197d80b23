"""Function-tool schemas advertised to the model."""

from __future__ import annotations

from typing import Any


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


_FILE = {
    "type": "string",
    "description": 'Path relative to the project root (e.g. "src/index.ts")',
}
_LINE = {"type": "integer", "description": "1-based line number"}
_CHARACTER = {"type": "integer", "description": "1-based column of a character inside the symbol"}
_QUERY = {"type": "string", "description": "The search query"}


TOOLS: list[dict[str, Any]] = [
    _tool(
        "read_file",
        "Read a file from THIS PROJECT to examine implementation details and existing patterns.",
        {"file_path": _FILE},
        ["file_path"],
    ),
    _tool(
        "search_files",
        "Search THIS PROJECT for a text pattern or regex. Results are grouped by file, "
        "source files first.",
        {
            "pattern": {"type": "string", "description": "The text pattern or regex to search for"},
            "file_pattern": {
                "type": "string",
                "description": 'Optional glob to restrict which files are searched (e.g. "*.py")',
            },
            "case_sensitive": {
                "type": "boolean",
                "description": "Whether the search is case sensitive. Default false.",
            },
        },
        ["pattern"],
    ),
    _tool(
        "list_files",
        "List files in a directory of THIS PROJECT, or files matching a glob pattern.",
        {
            "path": {
                "type": "string",
                "description": 'Directory or glob pattern (e.g. "src", "**/*.ts")',
            }
        },
        ["path"],
    ),
    _tool(
        "execute_command",
        "Run a read-only shell command (ls, pwd, find, cat, grep, head, tail, wc, file, stat). "
        "Pipes, redirects and write operations are not allowed.",
        {"command": {"type": "string", "description": "The command line to run"}},
        ["command"],
    ),
    _tool(
        "web_search",
        "Search the web for current documentation, best practices, security advisories "
        "and framework changes.",
        {"query": _QUERY},
        ["query"],
    ),
    _tool(
        "get_code_context",
        "Get real-world code examples and API usage for a library or framework feature.",
        {
            "query": {
                "type": "string",
                "description": 'The API or pattern to find examples for (e.g. "httpx AsyncClient retries")',
            }
        },
        ["query"],
    ),
    _tool(
        "goto_definition",
        "Find where the symbol at a position is defined. Uses the language server when "
        "available, otherwise a text search for the identifier.",
        {"file": _FILE, "line": _LINE, "character": _CHARACTER},
        ["file", "line", "character"],
    ),
    _tool(
        "find_references",
        "Find all references to the symbol at a position.",
        {"file": _FILE, "line": _LINE, "character": _CHARACTER},
        ["file", "line", "character"],
    ),
    _tool(
        "document_symbols",
        "List the classes, functions and other symbols declared in a file.",
        {"file": _FILE},
        ["file"],
    ),
    _tool(
        "workspace_symbols",
        "Search symbol names across the whole project.",
        {"query": {"type": "string", "description": "Symbol name or prefix"}},
        ["query"],
    ),
    _tool(
        "create_todos",
        "Create a task list to track progress on a multi-step request. Call it at the start; "
        "it replaces any previous list.",
        {
            "todos": {
                "type": "array",
                "description": "Tasks you will perform",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": 'Sequential id: "1", "2", ...'},
                        "title": {"type": "string", "description": "Short description of the task"},
                        "status": {
                            "type": "string",
                            "enum": ["pending"],
                            "description": "Always start with pending",
                        },
                    },
                    "required": ["id", "title", "status"],
                },
            }
        },
        ["todos"],
    ),
    _tool(
        "update_todo",
        "Update a todo: mark it in_progress right before starting it and completed right after.",
        {
            "todo_id": {"type": "string", "description": "ID of the todo to update"},
            "status": {"type": "string", "enum": ["in_progress", "completed"]},
        },
        ["todo_id", "status"],
    ),
]


def tool_names() -> list[str]:
    return [t["function"]["name"] for t in TOOLS]
