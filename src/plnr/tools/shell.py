"""Subprocess execution for the command and search tools."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import time
from collections.abc import Sequence
from dataclasses import dataclass

from plnr.config.schema import ToolsConfig
from plnr.tools.result import ToolResult

_log = logging.getLogger("plnr.tools.shell")


@dataclass
class ShellResult:
    """Result of one subprocess run.

    Attributes:
        command: The command line that was executed.
        exit_code: Process exit code, or None if killed on timeout.
        output: Captured stdout, with stderr merged unless merge_stderr is False.
        truncated: True if output was cut at the output limit.
        status: "ok", "error" or "timeout".
        duration_ms: Wall-clock duration in milliseconds.
    """

    command: str
    exit_code: int | None
    output: str
    truncated: bool
    status: str
    duration_ms: float

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def __repr__(self) -> str:
        if self.success:
            lines = self.output.count("\n") + 1 if self.output else 0
            return f"<ShellResult ok, {lines} lines>"
        return f"<ShellResult {self.status}, exit={self.exit_code}>"


class SubprocessRunner:
    """Run argv lists with asyncio subprocesses. No shell is involved."""

    def __init__(self, default_cwd: str = ".") -> None:
        self._default_cwd = default_cwd

    async def run(
        self,
        argv: Sequence[str],
        cwd: str | None = None,
        timeout: float | None = 30.0,
        output_limit: int = 50000,
        merge_stderr: bool = True,
    ) -> ShellResult:
        start_time = time.perf_counter()
        full_command = shlex.join(argv)

        def elapsed() -> float:
            return (time.perf_counter() - start_time) * 1000

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=cwd or self._default_cwd,
                env=os.environ.copy(),
            )
        except FileNotFoundError:
            return ShellResult(full_command, 127, f"Command not found: {argv[0]}", False, "error", elapsed())
        except PermissionError:
            return ShellResult(full_command, 126, f"Permission denied: {argv[0]}", False, "error", elapsed())
        except OSError as e:
            return ShellResult(full_command, 1, f"OS error: {e}", False, "error", elapsed())

        try:
            stdout_data, stderr_data = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            return ShellResult(
                full_command, None, f"Command timed out after {timeout:g}s", False, "timeout", elapsed()
            )

        output = stdout_data.decode("utf-8", errors="replace")
        if not output and stderr_data:
            output = stderr_data.decode("utf-8", errors="replace")

        truncated = len(output) > output_limit
        if truncated:
            output = output[:output_limit]

        exit_code = process.returncode
        return ShellResult(
            command=full_command,
            exit_code=exit_code,
            output=output,
            truncated=truncated,
            status="ok" if exit_code == 0 else "error",
            duration_ms=elapsed(),
        )


class CommandNotAllowed(ValueError):
    """The command's leading token is not on the allow-list."""


# find actions that write, delete or run other programs
UNSAFE_FIND_ACTIONS = frozenset(
    {"-delete", "-exec", "-execdir", "-ok", "-okdir", "-fls", "-fprint", "-fprint0", "-fprintf"}
)


def parse_safe_command(command: str, safe_commands: Sequence[str]) -> list[str]:
    """Split a command line and check its program against the allow-list.

    Raises:
        CommandNotAllowed: empty command, program not in safe_commands,
            or a find action that writes, deletes or executes.
    """
    try:
        argv = shlex.split(command)
    except ValueError as e:
        raise CommandNotAllowed(f"Could not parse command: {e}") from e

    if not argv:
        raise CommandNotAllowed("Empty command")

    program = argv[0]
    if program not in safe_commands:
        raise CommandNotAllowed(
            f'Command "{program}" is not allowed. Only safe read-only commands '
            f"are permitted: {', '.join(safe_commands)}"
        )
    if program == "find":
        for arg in argv[1:]:
            if arg in UNSAFE_FIND_ACTIONS or arg.startswith("-fprint"):
                raise CommandNotAllowed(f"find {arg} is not allowed. Only read-only find expressions are permitted")
    return argv


async def execute_command(
    command: str,
    project_root: str,
    *,
    config: ToolsConfig,
    runner: SubprocessRunner | None = None,
) -> ToolResult:
    """Run an allow-listed, read-only command in the project root."""
    try:
        argv = parse_safe_command(command, config.safe_commands)
    except CommandNotAllowed as e:
        return ToolResult.fail(str(e))

    runner = runner or SubprocessRunner(project_root)
    result = await runner.run(
        argv,
        cwd=project_root,
        timeout=config.command_timeout,
        output_limit=config.max_command_output,
    )
    _log.debug("Executed %s -> %r", result.command, result)

    if result.status == "timeout":
        return ToolResult.fail(result.output)

    output = result.output.strip()
    if result.truncated:
        output += "\n\n[Output truncated...]"

    if not result.success:
        detail = f": {output}" if output else ""
        return ToolResult.fail(f"Command failed (exit {result.exit_code}){detail}")

    return ToolResult.ok(output or "Command executed (no output)")
