"""Plan and chat turns on top of the agent loop."""

from __future__ import annotations

import asyncio
import logging

from plnr.agent.loop import AgentCallbacks, AgentLoop, AgentOutcome, AgentResult
from plnr.agent.plan import Plan, PlanParseError, parse_plan
from plnr.config.schema import LLMConfig
from plnr.context.gatherer import CodebaseContext
from plnr.core.llm.provider import LLMProvider, Message
from plnr.prompts import (
    build_chat_prompt,
    build_enhance_prompt,
    build_plan_prompt,
    build_security_prompt,
    load_prompt,
    system_prompt,
)
from plnr.tools.dispatcher import ToolDispatcher

_log = logging.getLogger("plnr.planner")

ENHANCE_MAX_TOKENS = 500


class PlanningCancelled(Exception):
    """The user interrupted the turn."""


class PlanningFailed(Exception):
    """The model call failed or produced no answer."""


class Planner:
    """Runs one agent loop per user turn and keeps the conversation history.

    History is a list of (task, summary) pairs fed back into later prompts.
    """

    def __init__(
        self,
        provider: LLMProvider,
        dispatcher: ToolDispatcher,
        *,
        config: LLMConfig | None = None,
        callbacks: AgentCallbacks | None = None,
    ) -> None:
        self._provider = provider
        self._dispatcher = dispatcher
        self._config = config or LLMConfig()
        self._callbacks = callbacks
        self.history: list[tuple[str, str]] = []
        self.last_result: AgentResult | None = None

    def clear_history(self) -> None:
        self.history.clear()

    async def _run(
        self,
        system: str,
        user_prompt: str,
        *,
        max_tokens: int,
        stream: bool,
        cancel_event: asyncio.Event | None,
    ) -> AgentResult:
        _log.debug("Prompt size: %d characters", len(user_prompt))
        loop = AgentLoop(
            self._provider,
            self._dispatcher,
            context_window=self._config.context_window,
            max_iterations=self._config.max_iterations,
            max_tokens=max_tokens,
            stream=stream,
            callbacks=self._callbacks,
        )
        result = await loop.run(system, user_prompt, cancel_event)
        self.last_result = result

        if result.outcome is AgentOutcome.CANCELLED:
            raise PlanningCancelled("Cancelled by user")
        if result.outcome is AgentOutcome.FAILED:
            raise PlanningFailed(result.error or "Model call failed")
        if not result.content.strip():
            raise PlanningFailed("No final response from model")
        return result

    async def generate(
        self,
        context: CodebaseContext,
        task: str,
        *,
        planning: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> Plan:
        """Run one turn.

        Raises:
            PlanningCancelled: cancel_event was set during the turn.
            PlanningFailed: the model call failed or returned nothing.
            PlanParseError: plan mode answer is not a valid JSON plan.
        """
        if planning:
            user_prompt = build_plan_prompt(context, task, self.history)
        else:
            user_prompt = build_chat_prompt(context, task, self.history)

        result = await self._run(
            system_prompt(planning),
            user_prompt,
            max_tokens=self._config.plan_max_tokens if planning else self._config.chat_max_tokens,
            stream=not planning,
            cancel_event=cancel_event,
        )

        if planning:
            try:
                plan = parse_plan(result.content, result.tokens_used)
            except PlanParseError:
                _log.error("Failed to parse plan from model response")
                raise
        else:
            plan = Plan(summary=result.content, tokens_used=result.tokens_used)

        self.history.append((task, plan.summary))
        return plan

    async def audit(
        self,
        context: CodebaseContext,
        focus: str = "",
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Plan:
        """Run a security audit; the report is returned in `summary`.

        Audits start without conversation history and do not add to it.
        """
        result = await self._run(
            load_prompt("security_system"),
            build_security_prompt(context, focus),
            max_tokens=self._config.plan_max_tokens,
            stream=False,
            cancel_event=cancel_event,
        )
        return Plan(summary=result.content, tokens_used=result.tokens_used)

    async def enhance(self, text: str) -> str:
        """Rewrite a short request into a more specific prompt.

        Returns the input unchanged for commands, very short input, or
        when the model call fails.
        """
        stripped = text.strip()
        if len(stripped) < 3 or stripped.startswith("/"):
            return text

        messages = [Message.system(load_prompt("enhance_system")), Message.user(build_enhance_prompt(stripped))]
        try:
            completion = await self._provider.complete(messages, max_tokens=ENHANCE_MAX_TOKENS)
        except Exception as e:
            _log.error("Prompt enhancement failed: %s", e)
            return text

        enhanced = (completion.content or "").strip()
        if not enhanced:
            _log.warning("No enhancement received, using original")
            return text
        if len(enhanced) > 1 and enhanced[0] == enhanced[-1] and enhanced[0] in "\"'":
            enhanced = enhanced[1:-1].strip()
        return enhanced
