"""Typed argument payloads for each tool.

The model supplies arguments as an untyped JSON object. Each tool name maps
to one pydantic model; validation happens once, at the dispatch boundary,
and handlers only ever see validated instances.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from plnr.tools.todos import TodoStatus


class ToolArgs(BaseModel):
    """Base model for tool arguments; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")


class ReadFileArgs(ToolArgs):
    file_path: str = Field(min_length=1)


class SearchFilesArgs(ToolArgs):
    pattern: str = Field(min_length=1)
    file_pattern: str | None = None
    case_sensitive: bool = False


class ListFilesArgs(ToolArgs):
    path: str = Field(min_length=1)


class ExecuteCommandArgs(ToolArgs):
    command: str = Field(min_length=1)


class QueryArgs(ToolArgs):
    query: str = Field(min_length=1)


class PositionArgs(ToolArgs):
    """A 1-based line/character position in a project file."""

    file: str = Field(min_length=1)
    line: int = Field(ge=1)
    character: int = Field(ge=1)


class FileArgs(ToolArgs):
    file: str = Field(min_length=1)


class TodoItemArgs(ToolArgs):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    status: TodoStatus = TodoStatus.PENDING


class CreateTodosArgs(ToolArgs):
    todos: list[TodoItemArgs]


class UpdateTodoArgs(ToolArgs):
    todo_id: str = Field(min_length=1)
    status: TodoStatus


# Tool name -> argument model
TOOL_ARGUMENTS: dict[str, type[ToolArgs]] = {
    "read_file": ReadFileArgs,
    "search_files": SearchFilesArgs,
    "list_files": ListFilesArgs,
    "execute_command": ExecuteCommandArgs,
    "web_search": QueryArgs,
    "get_code_context": QueryArgs,
    "goto_definition": PositionArgs,
    "find_references": PositionArgs,
    "document_symbols": FileArgs,
    "workspace_symbols": QueryArgs,
    "create_todos": CreateTodosArgs,
    "update_todo": UpdateTodoArgs,
}

_MISSING_ERRORS = {"missing", "string_too_short"}


class UnknownToolError(Exception):
    """The model asked for a tool that does not exist."""


class ToolArgumentError(Exception):
    """The argument payload does not fit the tool's model."""


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc)


def validate_arguments(tool_name: str, payload: Any) -> ToolArgs:
    """Validate a raw payload against the tool's argument model.

    Raises:
        UnknownToolError: tool_name is not a known tool.
        ToolArgumentError: a parameter is missing or has the wrong shape.
    """
    model = TOOL_ARGUMENTS.get(tool_name)
    if model is None:
        raise UnknownToolError(f"Unknown tool: {tool_name}")

    if not isinstance(payload, dict):
        raise ToolArgumentError(f"Invalid arguments for {tool_name}: expected an object")

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        errors = e.errors()
        missing = [_field_path(err["loc"]) for err in errors if err["type"] in _MISSING_ERRORS]
        if missing:
            raise ToolArgumentError(f"Missing required parameter: {', '.join(missing)}") from e
        details = "; ".join(f"{_field_path(err['loc'])}: {err['msg']}" for err in errors)
        raise ToolArgumentError(f"Invalid arguments for {tool_name}: {details}") from e
