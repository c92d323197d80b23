"""Local tools the model can call, and the dispatcher that runs them."""

from plnr.tools.arguments import (
    TOOL_ARGUMENTS,
    ToolArgs,
    ToolArgumentError,
    UnknownToolError,
    validate_arguments,
)
from plnr.tools.definitions import TOOLS, tool_names
from plnr.tools.dispatcher import ToolDispatcher
from plnr.tools.result import ToolResult
from plnr.tools.shell import ShellResult, SubprocessRunner
from plnr.tools.todos import Todo, TodoStatus, TodoStore

__all__ = [
    "TOOLS",
    "tool_names",
    "TOOL_ARGUMENTS",
    "ToolArgs",
    "ToolArgumentError",
    "UnknownToolError",
    "validate_arguments",
    "ToolDispatcher",
    "ToolResult",
    "ShellResult",
    "SubprocessRunner",
    "Todo",
    "TodoStatus",
    "TodoStore",
]
