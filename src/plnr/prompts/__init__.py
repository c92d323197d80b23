"""System prompts and user-prompt builders.

System prompts are markdown files in this package.
"""

from __future__ import annotations

from collections.abc import Sequence
from importlib.resources import files

from plnr.context.gatherer import DOC_FILES, CodebaseContext

_PROMPTS_PKG = files("plnr.prompts")

FILE_EXCERPT_CHARS = 1500
TREE_PROMPT_LINES = 60
DEPENDENCY_PROMPT_COUNT = 15


def load_prompt(name: str) -> str:
    """Load a prompt by name (without .md extension)."""
    return _PROMPTS_PKG.joinpath(f"{name}.md").read_text(encoding="utf-8")


def system_prompt(planning: bool) -> str:
    return load_prompt("plan_system" if planning else "chat_system")


def _history_section(history: Sequence[tuple[str, str]]) -> str:
    if not history:
        return ""
    exchanges = "\n\n".join(
        f"### Exchange {i}\n**User:** {task}\n**Summary:** {summary}"
        for i, (task, summary) in enumerate(history, 1)
    )
    return f"\n## Previous Conversation\n\n{exchanges}\n"


def _files_section(context: CodebaseContext) -> str:
    return "\n".join(
        f"\n### {f.path}\n```\n{f.content[:FILE_EXCERPT_CHARS]}\n```" for f in context.relevant_files
    )


def build_plan_prompt(context: CodebaseContext, task: str, history: Sequence[tuple[str, str]] = ()) -> str:
    deps = ", ".join(context.dependencies[:DEPENDENCY_PROMPT_COUNT]) or "None"
    framework = context.framework or f"Vanilla {context.language}"
    tree = "\n".join(context.file_tree[:TREE_PROMPT_LINES])
    return f"""# Task
{task}
{_history_section(history)}
# Codebase Analysis

## Technology Stack
- **Primary Language**: {context.language}
- **Framework/Runtime**: {framework}
- **Key Dependencies**: {deps}

## Project Structure
```
{tree}
```

## Relevant Files
{_files_section(context) or "None"}

Create a detailed, actionable implementation plan for the task. Reply with the JSON plan only.
"""


def build_chat_prompt(context: CodebaseContext, task: str, history: Sequence[tuple[str, str]] = ()) -> str:
    """Chat prompts stay small: history and @-mentioned files only.

    Doc files are left for the model to read on demand.
    """
    mentioned = [f for f in context.relevant_files if f.path not in DOC_FILES]
    parts = [_history_section(history).strip()]
    if mentioned:
        parts.append(
            "## Mentioned Files\n"
            + "\n".join(f"\n### {f.path}\n```\n{f.content}\n```" for f in mentioned)
        )
    parts.append(task)
    return "\n\n".join(p for p in parts if p)


def build_security_prompt(context: CodebaseContext, focus: str = "") -> str:
    """Audit prompt: stack and project layout only, no file contents.

    The model finds suspicious files itself with the search tools.
    """
    deps = ", ".join(context.dependencies[:DEPENDENCY_PROMPT_COUNT]) or "None"
    tree = "\n".join(context.file_tree[:TREE_PROMPT_LINES])
    scope = f"Focus the audit on: {focus}" if focus else "Audit the whole project."
    return f"""# Security Audit
{scope}

## Technology Stack
- **Primary Language**: {context.language}
- **Framework/Runtime**: {context.framework or 'Unknown'}
- **Key Dependencies**: {deps}

## Project Structure
```
{tree}
```

Scan for exploitable vulnerabilities and reply with the findings report.
"""


def build_enhance_prompt(text: str) -> str:
    return f'Enhance this prompt:\n\n"{text}"'


__all__ = [
    "load_prompt",
    "system_prompt",
    "build_plan_prompt",
    "build_chat_prompt",
    "build_security_prompt",
    "build_enhance_prompt",
]
