"""Terminal rendering with rich."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from plnr.agent.plan import Plan
from plnr.agent.security import Finding, severity_rank
from plnr.context.gatherer import CodebaseContext
from plnr.core.llm.provider import ToolCallRequest
from plnr.tools.result import ToolResult
from plnr.tools.todos import Todo, TodoStatus

console = Console()

# Argument shown next to a tool name in progress lines
_DISPLAY_KEYS = ("file_path", "file", "pattern", "path", "command", "query", "todo_id")

_TODO_STYLES = {
    TodoStatus.PENDING: ("○", "dim"),
    TodoStatus.IN_PROGRESS: ("◐", "yellow"),
    TodoStatus.COMPLETED: ("●", "green"),
}


def display_arg(arguments: dict[str, Any]) -> str:
    for key in _DISPLAY_KEYS:
        value = arguments.get(key)
        if value:
            return str(value)
    return ""


def print_welcome(project_root: str, model: str, mode: str) -> None:
    console.print(f"[bold cyan]plnr[/bold cyan] - plan before you implement  [dim]{model}[/dim]")
    console.print(f"[dim]{project_root}[/dim]")
    console.print(f"Mode: [bold]{mode}[/bold]. Type [bold]/help[/bold] for commands, [bold]/exit[/bold] to quit.\n")


def print_context(context: CodebaseContext, token_estimate: int) -> None:
    console.print("[blue]Detected:[/blue]")
    console.print(f"  [dim]Language: {context.language}[/dim]")
    console.print(f"  [dim]Framework: {context.framework or 'None'}[/dim]")
    console.print(f"  [dim]Dependencies: {len(context.dependencies)} packages[/dim]")
    console.print(f"  [dim]Files scanned: {len(context.file_tree)}[/dim]")
    for f in context.relevant_files:
        console.print(f"  [dim]✓ {f.path}[/dim]")
    console.print(f"  [dim]Context: ~{token_estimate / 1000:.1f}k tokens[/dim]\n")


class TurnRenderer:
    """Progress output for one agent run, wired in as AgentCallbacks."""

    def __init__(self) -> None:
        self.streamed = False

    def on_tool_call(self, call: ToolCallRequest) -> None:
        console.print(f"  [dim]{call.name}({display_arg(call.arguments)})[/dim]", end=" ")

    def on_tool_result(self, call: ToolCallRequest, result: ToolResult) -> None:
        console.print("[green]✓[/green]" if result.success else "[red]✗[/red]")

    def on_text(self, text: str) -> None:
        self.streamed = True
        console.print(text, end="", markup=False, highlight=False)

    def on_usage(self, tokens: int) -> None:
        console.print(f"  [dim]Tokens: {tokens / 1000:.1f}k[/dim]")


def print_plan(plan: Plan, model: str) -> None:
    console.print(Panel(Markdown(plan.summary or "_No summary_"), title="Plan", border_style="cyan"))

    for i, step in enumerate(plan.steps, 1):
        console.print(f"\n[bold]{i}. {step.title}[/bold]")
        if step.description:
            console.print(Markdown(step.description))
        if step.files_to_modify:
            console.print(f"  [yellow]Modify:[/yellow] {', '.join(step.files_to_modify)}")
        if step.files_to_create:
            console.print(f"  [green]Create:[/green] {', '.join(step.files_to_create)}")
        if step.code_changes:
            console.print(Markdown(step.code_changes))

    if plan.dependencies_to_add:
        console.print("\n[bold]Dependencies to add[/bold]")
        for dep in plan.dependencies_to_add:
            console.print(f"  • {dep}")
    if plan.risks:
        console.print("\n[bold]Risks[/bold]")
        for risk in plan.risks:
            console.print(f"  • {risk}")

    print_footer(model, plan.tokens_used)


def print_answer(plan: Plan, model: str, *, streamed: bool = False) -> None:
    if streamed:
        console.print()
    else:
        console.print(Markdown(plan.summary))
    print_footer(model, plan.tokens_used)


_SEVERITY_STYLES = {
    "CRITICAL": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "blue",
}


def print_security_report(findings: Sequence[Finding], notes: Sequence[str], model: str, tokens_used: int) -> None:
    console.rule("[bold red]Security Report[/bold red]", style="red")
    for i, finding in enumerate(sorted(findings, key=severity_rank), 1):
        style = _SEVERITY_STYLES.get(finding.severity, "yellow")
        console.print(f"\n[cyan]{i}. {escape(finding.location)}[/cyan]")
        console.print(f"   Issue: {escape(finding.issue)}")
        console.print(f"   [{style}]Risk:  {escape(finding.severity)}[/{style}]  {escape(finding.description)}")
        if finding.remediation:
            console.print(f"   [dim]Fix:   {escape(finding.remediation)}[/dim]")
    if notes:
        console.print()
        console.print(Markdown("\n".join(notes)))
    elif not findings:
        console.print("[green]No security issues reported.[/green]")
    print_footer(model, tokens_used)


def print_footer(model: str, tokens_used: int) -> None:
    tokens = f"  Tokens: {tokens_used / 1000:.1f}k" if tokens_used else ""
    console.rule(style="dim")
    console.print(f"[dim]Model: {model}{tokens}[/dim]\n")


def print_todos(todos: Sequence[Todo]) -> None:
    if not todos:
        console.print("[dim]No todos for this session.[/dim]")
        return
    table = Table(title="Todos")
    table.add_column("", width=2)
    table.add_column("ID", style="dim")
    table.add_column("Task")
    for todo in todos:
        icon, style = _TODO_STYLES[todo.status]
        table.add_row(f"[{style}]{icon}[/{style}]", todo.id, f"[{style}]{escape(todo.title)}[/{style}]")
    console.print(table)


def print_help(commands: Sequence[tuple[str, str]]) -> None:
    table = Table(title="Available Commands")
    table.add_column("Command", style="bold")
    table.add_column("Description")
    for name, description in commands:
        table.add_row(escape(name), description)
    console.print(table)
    console.print("[dim]Mention files with @path to include them in the prompt. Ctrl+C cancels a running turn.[/dim]")


def print_info(message: str) -> None:
    console.print(f"[cyan]{escape(message)}[/cyan]")


def print_enhanced(prompt: str) -> None:
    console.print(Panel(escape(prompt), title="Enhanced prompt", border_style="magenta"))
    console.print("[dim]Edit it below and press Enter to send.[/dim]")


def print_success(message: str) -> None:
    console.print(f"[green]✓ {escape(message)}[/green]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]{escape(message)}[/yellow]")


def print_error(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")
