"""Configuration schema dataclasses for plnr.

Defines the structure of configuration at all levels (user, project, env).
Defaults live here so partial YAML files only need the keys they change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_MODEL = "openrouter/x-ai/grok-code-fast-1"


@dataclass
class LLMConfig:
    """Model endpoint configuration."""

    model: str = DEFAULT_MODEL
    api_base: str | None = None  # Custom endpoint (litellm api_base)
    context_window: int = 256_000  # Declared window, drives pruning budget
    plan_max_tokens: int = 4000
    chat_max_tokens: int = 8000
    temperature: float | None = 0.7
    max_iterations: int = 25  # Hard cap on tool-calling rounds


@dataclass
class LSPConfig:
    """Code-intelligence subprocess configuration.

    Example config.yaml:
        lsp:
          command: ["pyright-langserver", "--stdio"]
          request_timeout: 5.0
    """

    enabled: bool = True
    command: list[str] | None = None  # None = autodetect from candidates
    handshake_timeout: float = 5.0
    request_timeout: float = 5.0


@dataclass
class ToolsConfig:
    """Limits and allow-lists for local tools."""

    max_file_chars: int = 50_000
    max_search_results: int = 100
    max_list_results: int = 100
    search_timeout: float = 30.0
    command_timeout: float = 30.0
    max_command_output: int = 50_000
    web_results: int = 5
    web_timeout: float = 20.0
    safe_commands: list[str] = field(
        default_factory=lambda: [
            "ls", "pwd", "find", "cat", "grep", "head", "tail", "wc", "file", "stat",
        ]
    )
    ignore_dirs: list[str] = field(
        default_factory=lambda: [
            "node_modules", ".git", "dist", "build", ".next", "coverage",
            "__pycache__", ".venv", "venv", "target",
        ]
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    lsp: LSPConfig = field(default_factory=LSPConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown top-level keys
