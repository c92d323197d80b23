"""LLM provider abstraction."""

from plnr.core.llm.litellm_provider import LiteLLMProvider, create_provider
from plnr.core.llm.provider import (
    CompletionResult,
    LLMProvider,
    Message,
    Role,
    ToolCallRequest,
)

__all__ = [
    "LLMProvider",
    "LiteLLMProvider",
    "create_provider",
    "CompletionResult",
    "Message",
    "Role",
    "ToolCallRequest",
]
