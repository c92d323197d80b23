"""Core runtime modules."""

from plnr.core.llm import LiteLLMProvider, LLMProvider, Message, Role, ToolCallRequest
from plnr.core.tokens import (
    MediaType,
    count_tokens,
    count_tokens_heuristic,
    detect_media_type,
    estimate_transcript_tokens,
)

__all__ = [
    "LLMProvider",
    "LiteLLMProvider",
    "Message",
    "Role",
    "ToolCallRequest",
    "MediaType",
    "count_tokens",
    "count_tokens_heuristic",
    "detect_media_type",
    "estimate_transcript_tokens",
]
