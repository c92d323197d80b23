"""LiteLLM provider implementation.

Supports any litellm model string, for example:
- OpenRouter: "openrouter/x-ai/grok-code-fast-1"
- Anthropic: "anthropic/claude-sonnet-4-5"
- OpenAI: "gpt-4o"
- Local: "ollama/qwen2.5-coder"

See https://docs.litellm.ai/docs/providers for full list.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

import litellm

from plnr.core.llm.provider import (
    CompletionResult,
    Message,
    ToolCallRequest,
)

_log = logging.getLogger("plnr.llm")

OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/cyberboyayush/plnr",
    "X-Title": "Plnr (Planner)",
}


def _decode_arguments(raw: str | None, tool_name: str) -> dict[str, Any]:
    """Decode a tool-call argument string.

    Undecodable payloads become an empty dict so the dispatcher reports
    the missing parameters back to the model.
    """
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        _log.warning("Malformed arguments for %s: %s", tool_name, e)
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _usage_dict(usage: Any) -> dict[str, int]:
    if not usage:
        return {}
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
        "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
        "total_tokens": getattr(usage, "total_tokens", 0) or 0,
    }


class LiteLLMProvider:
    """LLM provider using litellm for multi-provider support.

    Usage:
        provider = LiteLLMProvider("openrouter/x-ai/grok-code-fast-1")

        # With custom base URL
        provider = LiteLLMProvider("gpt-4o", api_base="http://localhost:8000/v1")
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._api_base = api_base
        self._temperature = temperature
        self._kwargs = kwargs

    @property
    def model(self) -> str:
        return self._model

    def _build_kwargs(
        self,
        messages: list[Message],
        *,
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
        stream: bool,
    ) -> dict[str, Any]:
        """Build kwargs for litellm call."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [m.to_dict() for m in messages],
            "max_tokens": max_tokens,
            "stream": stream,
            **self._kwargs,
        }

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        if stream:
            kwargs["stream_options"] = {"include_usage": True}
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._api_base:
            kwargs["api_base"] = self._api_base
        if self._model.startswith("openrouter/"):
            kwargs.setdefault("extra_headers", OPENROUTER_HEADERS)

        return kwargs

    async def complete(
        self,
        messages: list[Message],
        *,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 4096,
        on_text: Callable[[str], None] | None = None,
    ) -> CompletionResult:
        """Generate a completion, optionally streaming text deltas to on_text."""
        if on_text is not None:
            return await self._complete_streaming(
                messages, tools=tools, max_tokens=max_tokens, on_text=on_text
            )

        kwargs = self._build_kwargs(messages, tools=tools, max_tokens=max_tokens, stream=False)
        response = await litellm.acompletion(**kwargs)

        choice = response.choices[0]
        message = choice.message
        tool_calls = [
            ToolCallRequest(
                id=tc.id,
                name=tc.function.name,
                arguments=_decode_arguments(tc.function.arguments, tc.function.name),
            )
            for tc in (getattr(message, "tool_calls", None) or [])
        ]

        _log.debug(
            "Completion received: finish_reason=%s tool_calls=%d",
            choice.finish_reason,
            len(tool_calls),
        )
        return CompletionResult(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            usage=_usage_dict(getattr(response, "usage", None)),
        )

    async def _complete_streaming(
        self,
        messages: list[Message],
        *,
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
        on_text: Callable[[str], None],
    ) -> CompletionResult:
        """Stream a completion, reassembling tool-call deltas by index."""
        kwargs = self._build_kwargs(messages, tools=tools, max_tokens=max_tokens, stream=True)
        response = await litellm.acompletion(**kwargs)

        text_parts: list[str] = []
        calls: dict[int, dict[str, str]] = {}
        finish_reason: str | None = None
        usage: dict[str, int] = {}

        async for chunk in response:
            if getattr(chunk, "usage", None):
                usage = _usage_dict(chunk.usage)
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            if choice.finish_reason:
                finish_reason = choice.finish_reason
            delta = choice.delta
            if delta is None:
                continue

            if delta.content:
                text_parts.append(delta.content)
                on_text(delta.content)

            for tc in getattr(delta, "tool_calls", None) or []:
                slot = calls.setdefault(tc.index or 0, {"id": "", "name": "", "arguments": ""})
                if tc.id:
                    slot["id"] = tc.id
                if tc.function is not None:
                    if tc.function.name:
                        slot["name"] = tc.function.name
                    if tc.function.arguments:
                        slot["arguments"] += tc.function.arguments

        tool_calls = [
            ToolCallRequest(
                id=slot["id"] or f"call_{index}",
                name=slot["name"],
                arguments=_decode_arguments(slot["arguments"], slot["name"]),
            )
            for index, slot in sorted(calls.items())
        ]
        return CompletionResult(
            content="".join(text_parts) or None,
            tool_calls=tool_calls,
            finish_reason=finish_reason,
            usage=usage,
        )


def create_provider(
    model: str,
    *,
    api_key: str | None = None,
    api_base: str | None = None,
    temperature: float | None = None,
) -> LiteLLMProvider:
    """Create an LLM provider from config values."""
    return LiteLLMProvider(
        model, api_key=api_key, api_base=api_base, temperature=temperature
    )
