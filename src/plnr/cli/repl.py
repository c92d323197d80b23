"""Interactive REPL with slash commands."""

from __future__ import annotations

from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory

from plnr.cli import output
from plnr.cli.session import PlannerSession

COMMANDS: list[tuple[str, str]] = [
    ("/plan [task]", "Generate an implementation plan (defaults to the last task)"),
    ("/chat [message]", "Ask a question; without a message, switch to chat mode"),
    ("/export [path]", "Save the current plan as markdown (default: plan-<timestamp>.md)"),
    ("/security-check [focus]", "Audit the project for security vulnerabilities"),
    ("/enhance <prompt>", "Rewrite a prompt to be more specific, then edit and send it"),
    ("/todos", "Show the model's current todo list"),
    ("/clear", "Clear conversation, todos and gathered context"),
    ("/help", "Show this help message"),
    ("/exit", "Exit plnr"),
]


class InteractiveRepl:
    def __init__(self, session: PlannerSession, *, planning: bool = False, history_file: Path | None = None) -> None:
        self.session = session
        self.planning = planning
        self._running = False
        # enhanced prompt pre-filled into the next input line
        self._pending_input = ""

        history = FileHistory(str(history_file)) if history_file else None
        self.prompt: PromptSession[str] = PromptSession(
            history=history,
            auto_suggest=AutoSuggestFromHistory(),
            completer=WordCompleter([name.split()[0] for name, _ in COMMANDS], sentence=True),
        )

    @property
    def mode(self) -> str:
        return "plan" if self.planning else "chat"

    async def run(self) -> None:
        self._running = True
        output.print_welcome(self.session.project_root, self.session.config.llm.model, self.mode)

        while self._running:
            try:
                line = await self.prompt.prompt_async(f"{self.mode}> ", default=self._pending_input)
            except KeyboardInterrupt:
                continue
            except EOFError:
                break
            finally:
                self._pending_input = ""

            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                await self.handle_command(line)
            else:
                await self.session.run_turn(line, planning=self.planning)

        self._running = False

    async def handle_command(self, line: str) -> None:
        cmd, _, rest = line.partition(" ")
        rest = rest.strip()
        cmd = cmd.lower()

        if cmd in ("/exit", "/quit"):
            self._running = False
        elif cmd == "/help":
            output.print_help(COMMANDS)
        elif cmd == "/todos":
            output.print_todos(self.session.todo_store.get_todos(self.session.session_id))
        elif cmd == "/clear":
            self.session.clear()
            output.print_info("Conversation cleared.")
        elif cmd == "/export":
            self.session.export_plan(rest or None)
        elif cmd == "/security-check":
            await self.session.run_security_check(rest)
        elif cmd == "/enhance":
            await self._cmd_enhance(rest)
        elif cmd == "/plan":
            await self._cmd_plan(rest)
        elif cmd == "/chat":
            if rest:
                await self.session.run_turn(rest, planning=False)
            else:
                self.planning = False
                output.print_info("Switched to chat mode.")
        else:
            output.print_error(f"Unknown command: {cmd}. Type /help for available commands.")

    async def _cmd_plan(self, task: str) -> None:
        if not task:
            if self.session.last_task is None:
                self.planning = True
                output.print_info("Switched to plan mode. Describe a task to plan.")
                return
            task = self.session.last_task
            output.print_info(f"Planning from previous task: {task}")
        await self.session.run_turn(task, planning=True)

    async def _cmd_enhance(self, text: str) -> None:
        if not text:
            output.print_error("Usage: /enhance <prompt>")
            return
        enhanced = await self.session.enhance_prompt(text)
        output.print_enhanced(enhanced)
        self._pending_input = enhanced

    def stop(self) -> None:
        self._running = False


async def run_repl(session: PlannerSession, *, planning: bool = False) -> None:
    history_file = Path.home() / ".plnr_history"
    repl = InteractiveRepl(session, planning=planning, history_file=history_file)
    try:
        await repl.run()
    finally:
        await session.close()

