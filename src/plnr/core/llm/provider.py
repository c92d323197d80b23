"""LLM provider protocol and transcript types."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class Role(Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ToolCallRequest:
    """A model-issued request to invoke a named local tool.

    Attributes:
        id: Identifier, unique within the transcript
        name: Tool name from the tool schema
        arguments: Decoded argument payload (interpreted by the dispatcher)
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": json.dumps(self.arguments)},
        }


@dataclass(frozen=True, slots=True)
class Message:
    """One transcript entry.

    Attributes:
        role: The role (system, user, assistant, tool)
        content: Text content; may be None for assistant messages that only
            carry tool calls
        tool_calls: Tool-call requests (assistant messages only)
        tool_call_id: The request this message answers (tool messages only)
    """

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_call_id: str | None = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(Role.USER, content)

    @classmethod
    def assistant(
        cls, content: str | None = None, tool_calls: tuple[ToolCallRequest, ...] = ()
    ) -> Message:
        return cls(Role.ASSISTANT, content, tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> Message:
        return cls(Role.TOOL, content, tool_call_id=tool_call_id)

    @property
    def has_tool_calls(self) -> bool:
        return self.role == Role.ASSISTANT and bool(self.tool_calls)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the OpenAI-style chat message shape."""
        d: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            d["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            d["tool_call_id"] = self.tool_call_id
        return d


@dataclass(slots=True)
class CompletionResult:
    """Result from one model call: assistant text and/or tool-call requests."""

    content: str | None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)

    def to_message(self) -> Message:
        return Message.assistant(self.content, tuple(self.tool_calls))


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for model endpoints.

    Implementations accept a transcript plus tool schema and return either
    assistant text or tool-call requests, with token usage counters.
    """

    @property
    def model(self) -> str:
        """The model identifier being used."""
        ...

    async def complete(
        self,
        messages: list[Message],
        *,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 4096,
        on_text: Callable[[str], None] | None = None,
    ) -> CompletionResult:
        """Generate a completion.

        Args:
            messages: Conversation history
            tools: Tool schema offered to the model
            max_tokens: Maximum tokens to generate
            on_text: When given, the response is streamed and each text
                delta is passed to this callback as it arrives

        Returns:
            CompletionResult with content, tool calls and usage
        """
        ...
