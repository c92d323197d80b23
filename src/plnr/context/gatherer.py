"""Lightweight project context collected before the first model call."""

from __future__ import annotations

import json
import logging
import re
import tomllib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from plnr.config.schema import ToolsConfig
from plnr.tools.files import PathNotAllowed, iter_project_files, resolve_project_path

_log = logging.getLogger("plnr.context")

TREE_MAX_DEPTH = 3
TREE_MAX_ENTRIES = 500
DOC_MAX_CHARS = 50_000

DOC_FILES: tuple[str, ...] = (
    "README.md",
    "ARCHITECTURE.md",
    "CLAUDE.md",
    ".cursorrules",
    ".clauderules",
    ".clinerules",
    "CONTRIBUTING.md",
)

# First match wins, so more specific frameworks come first.
FRAMEWORK_INDICATORS: dict[str, tuple[str, ...]] = {
    "Next.js": ("next",),
    "NestJS": ("@nestjs/core",),
    "Angular": ("@angular/core",),
    "Express": ("express",),
    "React": ("react", "react-dom"),
    "Vue": ("vue",),
    "Fastify": ("fastify",),
    "Koa": ("koa",),
    "Django": ("django",),
    "FastAPI": ("fastapi",),
    "Flask": ("flask",),
}

# Extension -> language, checked in this order
LANGUAGE_EXTENSIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("TypeScript", (".ts", ".tsx")),
    ("JavaScript", (".js", ".jsx")),
    ("Python", (".py",)),
    ("Go", (".go",)),
    ("Rust", (".rs",)),
)

_MENTION = re.compile(r"@([^\s@]+)")
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


@dataclass
class FileInfo:
    path: str
    content: str
    size: int


@dataclass
class CodebaseContext:
    project_root: str
    language: str
    framework: str | None = None
    dependencies: list[str] = field(default_factory=list)
    file_tree: list[str] = field(default_factory=list)
    relevant_files: list[FileInfo] = field(default_factory=list)


def parse_mentions(text: str) -> list[str]:
    """Extract `@path` mentions from user input, in order."""
    return _MENTION.findall(text)


def detect_framework(dependencies: Iterable[str]) -> str | None:
    names = {d.lower() for d in dependencies}
    for framework, indicators in FRAMEWORK_INDICATORS.items():
        if any(i in names for i in indicators):
            _log.debug("Detected framework: %s", framework)
            return framework
    return None


def detect_language(file_tree: Sequence[str]) -> str:
    suffixes = {Path(p).suffix.lower() for p in file_tree}
    for language, extensions in LANGUAGE_EXTENSIONS:
        if suffixes.intersection(extensions):
            return language
    return "Unknown"


def _requirement_name(spec: str) -> str | None:
    match = _REQUIREMENT_NAME.match(spec)
    return match.group(1) if match else None


def read_dependencies(root: Path) -> list[str]:
    """Collect dependency names from package.json, pyproject.toml or requirements.txt."""
    deps: list[str] = []

    package_json = root / "package.json"
    if package_json.is_file():
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            _log.warning("Could not read %s: %s", package_json, e)
        else:
            for key in ("dependencies", "devDependencies"):
                deps.extend((data.get(key) or {}).keys())

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        try:
            with open(pyproject, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            _log.warning("Could not read %s: %s", pyproject, e)
        else:
            for spec in data.get("project", {}).get("dependencies", []):
                name = _requirement_name(spec)
                if name:
                    deps.append(name)
            poetry = data.get("tool", {}).get("poetry", {}).get("dependencies", {})
            deps.extend(name for name in poetry if name != "python")

    requirements = root / "requirements.txt"
    if requirements.is_file():
        try:
            lines = requirements.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            _log.warning("Could not read %s: %s", requirements, e)
        else:
            for line in lines:
                if line.strip().startswith(("#", "-")):
                    continue
                name = _requirement_name(line)
                if name:
                    deps.append(name)

    # Keep first occurrence order
    return list(dict.fromkeys(deps))


def _read_capped(path: Path, max_chars: int) -> str:
    with open(path, encoding="utf-8", errors="replace") as f:
        content = f.read(max_chars + 1)
    if len(content) > max_chars:
        content = content[:max_chars] + "\n\n[...truncated]"
    return content


def gather_context(
    project_root: str,
    mentioned_files: Sequence[str] = (),
    *,
    config: ToolsConfig | None = None,
) -> CodebaseContext:
    config = config or ToolsConfig()
    root = Path(project_root).resolve()

    file_tree = []
    for rel in iter_project_files(root, config.ignore_dirs, max_depth=TREE_MAX_DEPTH):
        file_tree.append(rel)
        if len(file_tree) >= TREE_MAX_ENTRIES:
            break

    dependencies = read_dependencies(root)
    context = CodebaseContext(
        project_root=str(root),
        language=detect_language(file_tree),
        framework=detect_framework(dependencies),
        dependencies=dependencies,
        file_tree=file_tree,
    )

    for rel in mentioned_files:
        try:
            path = resolve_project_path(root, rel)
            context.relevant_files.append(FileInfo(rel, _read_capped(path, config.max_file_chars), path.stat().st_size))
        except (PathNotAllowed, OSError) as e:
            _log.warning("Failed to read mentioned file %s: %s", rel, e)

    for name in DOC_FILES:
        path = root / name
        if not path.is_file():
            continue
        try:
            context.relevant_files.append(FileInfo(name, _read_capped(path, DOC_MAX_CHARS), path.stat().st_size))
        except OSError as e:
            _log.debug("Skipping %s: %s", name, e)

    _log.debug(
        "Context: %s/%s, %d deps, %d files in tree, %d relevant",
        context.language,
        context.framework,
        len(dependencies),
        len(file_tree),
        len(context.relevant_files),
    )
    return context
