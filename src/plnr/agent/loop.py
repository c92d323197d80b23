"""The agentic tool-calling loop.

Each iteration sends the transcript to the model. Tool-call requests are
dispatched one at a time in the order the model listed them, their results
are appended, and the transcript is pruned before the next call. A reply
without tool calls ends the loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from plnr.agent.pruner import budget_for_window, find_pairing_violations, prune_transcript
from plnr.core.llm.provider import CompletionResult, LLMProvider, Message, ToolCallRequest
from plnr.core.tokens import estimate_transcript_tokens
from plnr.tools.definitions import TOOLS
from plnr.tools.dispatcher import ToolDispatcher
from plnr.tools.result import ToolResult

_log = logging.getLogger("plnr.agent")

DEFAULT_MAX_ITERATIONS = 25


class AgentOutcome(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class AgentResult:
    """What a finished run produced.

    Attributes:
        outcome: COMPLETED, CANCELLED or FAILED.
        content: Final answer text. On hitting the iteration cap this is the
            last assistant text seen, possibly empty.
        tokens_used: Sum of total_tokens reported across all model calls.
        iterations: Number of model calls made.
        hit_iteration_cap: True when the loop stopped at max_iterations.
        transcript: Copy of the transcript at the end of the run.
        error: Failure description for FAILED runs.
    """

    outcome: AgentOutcome
    content: str = ""
    tokens_used: int = 0
    iterations: int = 0
    hit_iteration_cap: bool = False
    transcript: list[Message] = field(default_factory=list)
    error: str | None = None


@dataclass
class AgentCallbacks:
    """Optional progress hooks, all called synchronously."""

    on_tool_call: Callable[[ToolCallRequest], None] | None = None
    on_tool_result: Callable[[ToolCallRequest, ToolResult], None] | None = None
    on_text: Callable[[str], None] | None = None
    on_usage: Callable[[int], None] | None = None


class _Cancelled(Exception):
    pass


class AgentLoop:
    def __init__(
        self,
        provider: LLMProvider,
        dispatcher: ToolDispatcher,
        *,
        tools: list[dict[str, Any]] | None = None,
        context_window: int = 256_000,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        max_tokens: int = 4000,
        stream: bool = False,
        callbacks: AgentCallbacks | None = None,
    ) -> None:
        self._provider = provider
        self._dispatcher = dispatcher
        self._tools = TOOLS if tools is None else tools
        self._budget = budget_for_window(context_window)
        self._max_iterations = max_iterations
        self._max_tokens = max_tokens
        self._stream = stream
        self._callbacks = callbacks or AgentCallbacks()

    async def _call_model(self, transcript: list[Message], cancel_event: asyncio.Event | None) -> CompletionResult:
        """Run one model call, racing it against the cancel event."""
        on_text = self._callbacks.on_text if self._stream else None
        call = asyncio.ensure_future(
            self._provider.complete(
                list(transcript),
                tools=self._tools,
                max_tokens=self._max_tokens,
                on_text=on_text,
            )
        )
        if cancel_event is None:
            return await call

        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            waiter.cancel()

        if call in done:
            return call.result()

        call.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await call
        raise _Cancelled()

    async def run(
        self,
        system_prompt: str,
        user_prompt: str,
        cancel_event: asyncio.Event | None = None,
    ) -> AgentResult:
        transcript = [Message.system(system_prompt), Message.user(user_prompt)]
        tokens_used = 0
        last_content = ""

        def finish(outcome: AgentOutcome, iterations: int, **kwargs: Any) -> AgentResult:
            return AgentResult(
                outcome=outcome,
                tokens_used=tokens_used,
                iterations=iterations,
                transcript=list(transcript),
                **kwargs,
            )

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        for iteration in range(1, self._max_iterations + 1):
            _log.debug("Tool calling iteration %d/%d", iteration, self._max_iterations)
            if cancelled():
                return finish(AgentOutcome.CANCELLED, iteration - 1, content=last_content)

            try:
                completion = await self._call_model(transcript, cancel_event)
            except _Cancelled:
                _log.info("Run cancelled during model call")
                return finish(AgentOutcome.CANCELLED, iteration, content=last_content)
            except Exception as e:
                _log.error("Model call failed: %s", e)
                return finish(AgentOutcome.FAILED, iteration, content=last_content, error=str(e))

            tokens_used += completion.total_tokens
            if self._callbacks.on_usage and completion.total_tokens:
                self._callbacks.on_usage(tokens_used)
            if completion.content:
                last_content = completion.content

            message = completion.to_message()
            transcript.append(message)

            if not message.has_tool_calls:
                return finish(AgentOutcome.COMPLETED, iteration, content=completion.content or "")

            for call in message.tool_calls:
                if cancelled():
                    _log.info("Run cancelled before dispatching %s", call.name)
                    return finish(AgentOutcome.CANCELLED, iteration, content=last_content)
                if self._callbacks.on_tool_call:
                    self._callbacks.on_tool_call(call)
                result = await self._dispatcher.dispatch(call.name, call.arguments)
                if self._callbacks.on_tool_result:
                    self._callbacks.on_tool_result(call, result)
                transcript.append(Message.tool(call.id, result.to_content()))

            transcript = prune_transcript(transcript, self._budget)
            if _log.isEnabledFor(logging.DEBUG):
                _log.debug(
                    "Transcript: %d messages, ~%d tokens",
                    len(transcript),
                    estimate_transcript_tokens(transcript),
                )
                for problem in find_pairing_violations(transcript):
                    _log.debug("Transcript pairing problem: %s", problem)

        _log.warning("Max tool calling iterations reached (%d)", self._max_iterations)
        return finish(
            AgentOutcome.COMPLETED,
            self._max_iterations,
            content=last_content,
            hit_iteration_cap=True,
        )
