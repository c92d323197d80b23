"""Plan data model and parsing of the model's JSON plan."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

# ```json ... ``` or bare ``` ... ```
_FENCED_JSON = re.compile(r"```(?:json)?[ \t]*\n(.*?)\n[ \t]*```", re.DOTALL)


class PlanParseError(Exception):
    """The final answer in plan mode is not a usable JSON plan."""


@dataclass
class Step:
    title: str
    description: str = ""
    files_to_modify: list[str] = field(default_factory=list)
    files_to_create: list[str] = field(default_factory=list)
    code_changes: str = ""


@dataclass
class Plan:
    """An implementation plan, or a chat answer carried in `summary`."""

    summary: str
    steps: list[Step] = field(default_factory=list)
    dependencies_to_add: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    tokens_used: int = 0


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _step(data: Any) -> Step:
    if not isinstance(data, dict):
        raise PlanParseError(f"Plan step is not an object: {data!r}")
    return Step(
        title=str(data.get("title", "")),
        description=str(data.get("description", "")),
        files_to_modify=_str_list(data.get("files_to_modify")),
        files_to_create=_str_list(data.get("files_to_create")),
        code_changes=str(data.get("code_changes") or ""),
    )


def extract_json(text: str) -> str:
    """Strip a surrounding markdown code fence, if the text has one."""
    match = _FENCED_JSON.search(text)
    return (match.group(1) if match else text).strip()


def parse_plan(text: str, tokens_used: int = 0) -> Plan:
    """Parse a plan from the model's final answer.

    Raises:
        PlanParseError: the text is not a JSON object of the plan shape.
    """
    try:
        data = json.loads(extract_json(text))
    except json.JSONDecodeError as e:
        raise PlanParseError(f"Invalid JSON response from model: {e}") from e

    if not isinstance(data, dict):
        raise PlanParseError("Plan must be a JSON object")

    steps = data.get("steps") or []
    if not isinstance(steps, list):
        raise PlanParseError("Plan steps must be a list")

    return Plan(
        summary=str(data.get("summary") or ""),
        steps=[_step(s) for s in steps],
        dependencies_to_add=_str_list(data.get("dependencies_to_add")),
        risks=_str_list(data.get("risks")),
        tokens_used=tokens_used,
    )


def plan_to_markdown(plan: Plan, task: str) -> str:
    """Render a plan as a standalone markdown document."""
    lines = [f"# {task}", "", "## Summary", "", plan.summary or "_No summary_", ""]

    if plan.steps:
        lines += ["## Implementation Steps", ""]
        for i, step in enumerate(plan.steps, 1):
            lines += [f"### {i}. {step.title}", ""]
            if step.description:
                lines += [step.description, ""]
            if step.files_to_modify:
                lines.append("**Files to modify:**")
                lines += [f"- `{path}`" for path in step.files_to_modify]
                lines.append("")
            if step.files_to_create:
                lines.append("**Files to create:**")
                lines += [f"- `{path}`" for path in step.files_to_create]
                lines.append("")
            if step.code_changes:
                lines += [step.code_changes, ""]

    if plan.dependencies_to_add:
        lines += ["## Dependencies to Add", ""]
        lines += [f"- {dep}" for dep in plan.dependencies_to_add]
        lines.append("")
    if plan.risks:
        lines += ["## Risks", ""]
        lines += [f"- {risk}" for risk in plan.risks]
        lines.append("")

    lines += ["---", "*Generated by plnr - Plan before implementation*", ""]
    return "\n".join(lines)
