"""plnr: plan before implementation.

An agentic planning assistant: the model explores the codebase through
local tools (files, search, shell, web, language server) and answers
with an implementation plan or a chat reply.
"""

__version__ = "0.3.0"

# Public API
from plnr.agent import (
    AgentLoop,
    AgentOutcome,
    AgentResult,
    Plan,
    Planner,
    PlanningCancelled,
    PlanningFailed,
    prune_transcript,
)
from plnr.config import Config, get_config, load_config
from plnr.context import CodebaseContext, gather_context
from plnr.core import LiteLLMProvider, LLMProvider, Message, Role
from plnr.lsp import CodeIntelligenceService, LSPClient
from plnr.tools import ToolDispatcher, ToolResult, TodoStore

__all__ = [
    "__version__",
    # Agent
    "AgentLoop",
    "AgentOutcome",
    "AgentResult",
    "Planner",
    "Plan",
    "PlanningCancelled",
    "PlanningFailed",
    "prune_transcript",
    # Config
    "Config",
    "get_config",
    "load_config",
    # Context
    "CodebaseContext",
    "gather_context",
    # LLM
    "LLMProvider",
    "LiteLLMProvider",
    "Message",
    "Role",
    # Tools and code intelligence
    "ToolDispatcher",
    "ToolResult",
    "TodoStore",
    "CodeIntelligenceService",
    "LSPClient",
]
