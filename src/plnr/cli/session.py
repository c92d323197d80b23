"""One interactive planning session: wiring, context and turn execution."""

from __future__ import annotations

import asyncio
import logging
import signal
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path

from plnr.agent.loop import AgentCallbacks
from plnr.agent.plan import Plan, PlanParseError, plan_to_markdown
from plnr.agent.planner import Planner, PlanningCancelled, PlanningFailed
from plnr.agent.security import parse_findings
from plnr.cli import output
from plnr.config.schema import Config
from plnr.context.gatherer import CodebaseContext, gather_context, parse_mentions
from plnr.core.llm.litellm_provider import create_provider
from plnr.core.llm.provider import LLMProvider
from plnr.core.tokens import count_tokens, detect_media_type
from plnr.lsp.manager import CodeIntelligenceService
from plnr.tools.dispatcher import ToolDispatcher
from plnr.tools.todos import TodoStore

_log = logging.getLogger("plnr.cli")


class PlannerSession:
    """State for one CLI run: the planner, its tools and the gathered context."""

    def __init__(
        self,
        project_root: str,
        config: Config,
        *,
        provider: LLMProvider | None = None,
        code_intel: CodeIntelligenceService | None = None,
        todo_store: TodoStore | None = None,
    ) -> None:
        self.project_root = project_root
        self.config = config
        self.session_id = uuid.uuid4().hex[:8]
        self.todo_store = todo_store or TodoStore()
        self.code_intel = code_intel or CodeIntelligenceService(config.lsp)
        self.provider = provider or create_provider(
            config.llm.model,
            api_base=config.llm.api_base,
            temperature=config.llm.temperature,
        )
        self.dispatcher = ToolDispatcher(
            project_root,
            session_id=self.session_id,
            config=config.tools,
            todo_store=self.todo_store,
            code_intel=self.code_intel,
        )
        self.renderer = output.TurnRenderer()
        self.planner = Planner(
            self.provider,
            self.dispatcher,
            config=config.llm,
            callbacks=AgentCallbacks(
                on_tool_call=self.renderer.on_tool_call,
                on_tool_result=self._on_tool_result,
                on_text=self.renderer.on_text,
                on_usage=self.renderer.on_usage,
            ),
        )
        self.context: CodebaseContext | None = None
        self.last_task: str | None = None
        self.last_plan: Plan | None = None
        # last plan-mode result, kept across chat turns for /export
        self.plan_task: str | None = None
        self.current_plan: Plan | None = None

    def _on_tool_result(self, call, result) -> None:
        self.renderer.on_tool_result(call, result)
        if call.name in ("create_todos", "update_todo") and result.success:
            output.print_todos(self.todo_store.get_todos(self.session_id))

    def _ensure_context(self, mentions: list[str]) -> CodebaseContext:
        known = {f.path for f in self.context.relevant_files} if self.context else set()
        if self.context is None or any(m not in known for m in mentions):
            self.context = gather_context(self.project_root, mentions, config=self.config.tools)
            tokens = count_tokens("\n".join(self.context.file_tree)) + sum(
                count_tokens(f.content, detect_media_type(f.path)) for f in self.context.relevant_files
            )
            output.print_context(self.context, tokens)
        return self.context

    def clear(self) -> None:
        self.planner.clear_history()
        self.todo_store.clear(self.session_id)
        self.context = None
        self.last_task = None
        self.last_plan = None
        self.plan_task = None
        self.current_plan = None

    async def _run_cancellable(self, turn: Callable[[asyncio.Event], Awaitable[Plan]]) -> Plan | None:
        """Await one model turn with Ctrl+C bound to its cancel event.

        Cancellation and failures are printed; None is returned for both.
        """
        self.renderer.streamed = False
        cancel_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, cancel_event.set)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handlers; KeyboardInterrupt is caught below
            handler_installed = False

        try:
            plan = await turn(cancel_event)
        except (PlanningCancelled, KeyboardInterrupt):
            output.print_warning("\nCancelled.")
            return None
        except (PlanningFailed, PlanParseError) as e:
            output.print_error(str(e))
            return None
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

        result = self.planner.last_result
        if result is not None and result.hit_iteration_cap:
            output.print_warning("Stopped at the tool-call limit; the answer may be incomplete.")
        return plan

    async def run_turn(self, task: str, *, planning: bool) -> Plan | None:
        """Run one plan or chat turn; Ctrl+C cancels it. Errors are printed."""
        _log.debug("Starting %s turn", "plan" if planning else "chat")
        context = self._ensure_context(parse_mentions(task))
        self.last_task = task

        output.print_info("Generating implementation plan..." if planning else "Thinking...")
        plan = await self._run_cancellable(
            lambda cancel_event: self.planner.generate(context, task, planning=planning, cancel_event=cancel_event)
        )
        if plan is None:
            return None

        self.last_plan = plan
        model = self.config.llm.model
        if planning:
            self.plan_task = task
            self.current_plan = plan
            output.print_plan(plan, model)
        else:
            output.print_answer(plan, model, streamed=self.renderer.streamed)
        return plan

    async def run_security_check(self, focus: str = "") -> Plan | None:
        """Audit the project for vulnerabilities and print the findings."""
        _log.debug("Starting security audit (focus: %r)", focus)
        context = self._ensure_context([])

        output.print_info("Scanning for security vulnerabilities...")
        report = await self._run_cancellable(
            lambda cancel_event: self.planner.audit(context, focus, cancel_event=cancel_event)
        )
        if report is not None:
            findings, notes = parse_findings(report.summary)
            output.print_security_report(findings, notes, self.config.llm.model, report.tokens_used)
        return report

    def export_plan(self, path: str | None = None) -> Path | None:
        """Write the current plan as markdown; relative paths resolve against the project root."""
        if self.current_plan is None or self.plan_task is None:
            output.print_error("No plan to export. Generate a plan first.")
            return None

        target = Path(path).expanduser() if path else Path(f"plan-{datetime.now():%Y%m%d-%H%M%S}.md")
        if not target.is_absolute():
            target = Path(self.project_root) / target
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(plan_to_markdown(self.current_plan, self.plan_task), encoding="utf-8")
        except OSError as e:
            output.print_error(f"Failed to export plan: {e}")
            return None

        _log.info("Exported plan to %s", target)
        output.print_success(f"Plan exported to: {target}")
        return target

    async def enhance_prompt(self, text: str) -> str:
        output.print_info("Enhancing prompt...")
        return await self.planner.enhance(text)

    async def close(self) -> None:
        await self.code_intel.stop()
