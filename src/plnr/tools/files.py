"""File read and listing tools, confined to the project root."""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterator, Sequence
from pathlib import Path

from plnr.tools.result import ToolResult

_log = logging.getLogger("plnr.tools.files")

_GLOB_CHARS = set("*?[")


class PathNotAllowed(ValueError):
    """A path resolves outside the project root."""


def resolve_project_path(project_root: str | Path, path: str) -> Path:
    """Resolve a model-supplied path against the project root.

    Absolute paths are accepted only when they point inside the root.

    Raises:
        PathNotAllowed: the resolved path escapes the project root.
    """
    root = Path(project_root).resolve()
    candidate = (root / path).resolve()
    if candidate != root and root not in candidate.parents:
        raise PathNotAllowed(f"Path not allowed: {path} is outside the project root")
    return candidate


def iter_project_files(
    root: str | Path,
    ignore_dirs: Sequence[str],
    start: str | Path | None = None,
    max_depth: int | None = None,
) -> Iterator[str]:
    """Yield file paths relative to root, in sorted order, skipping ignored directories.

    max_depth counts directory levels below start (0 = files in start only).
    """
    root = Path(root)
    top = Path(start) if start is not None else root
    ignored = set(ignore_dirs)
    base_depth = len(top.parts)

    for dirpath, dirnames, filenames in os.walk(top):
        depth = len(Path(dirpath).parts) - base_depth
        if max_depth is not None and depth >= max_depth:
            dirnames[:] = []
        else:
            dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        for name in sorted(filenames):
            yield Path(dirpath, name).relative_to(root).as_posix()


def _match_parts(parts: Sequence[str], patterns: Sequence[str]) -> bool:
    if not patterns:
        return not parts
    head, rest = patterns[0], patterns[1:]
    if head == "**":
        return any(_match_parts(parts[i:], rest) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_parts(parts[1:], rest)


def glob_match(rel_path: str, pattern: str) -> bool:
    """Match a relative posix path against a glob.

    `*`, `?` and `[...]` stay within one path segment; a `**` segment
    matches any number of directories, including none.
    """
    patterns = [p for p in pattern.removeprefix("./").split("/") if p]
    return _match_parts(rel_path.split("/"), patterns)


def read_file(file_path: str, project_root: str, *, max_chars: int = 50000) -> ToolResult:
    try:
        path = resolve_project_path(project_root, file_path)
    except PathNotAllowed as e:
        return ToolResult.fail(str(e))

    if not path.exists():
        return ToolResult.fail(f"File not found: {file_path}")
    if path.is_dir():
        return ToolResult.fail(f"Failed to read file: {file_path} is a directory")

    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            content = f.read(max_chars + 1)
    except OSError as e:
        _log.debug("Error reading %s: %s", path, e)
        return ToolResult.fail(f"Failed to read file: {e.strerror or e}")

    if len(content) > max_chars:
        content = content[:max_chars] + "\n\n[Content truncated...]"

    _log.debug("Read file: %s (%d chars)", file_path, len(content))
    return ToolResult.ok(f"File: {file_path}\n\n{content}")


def list_files(
    path: str,
    project_root: str,
    *,
    ignore_dirs: Sequence[str],
    limit: int = 100,
) -> ToolResult:
    """List files under a directory, or files matching a glob pattern."""
    root = Path(project_root).resolve()

    if _GLOB_CHARS & set(path):
        if ".." in Path(path).parts:
            return ToolResult.fail(f"Path not allowed: {path}")
        files = [f for f in iter_project_files(root, ignore_dirs) if glob_match(f, path)]
    else:
        try:
            target = resolve_project_path(root, path)
        except PathNotAllowed as e:
            return ToolResult.fail(str(e))
        if not target.exists():
            return ToolResult.fail(f"File not found: {path}")
        if target.is_file():
            files = [target.relative_to(root).as_posix()]
        else:
            files = list(iter_project_files(root, ignore_dirs, start=target))

    _log.debug("Listed %d files matching %r", len(files), path)

    if not files:
        return ToolResult.ok(f'Files matching "{path}":\n\nNo files found')

    shown = "\n".join(files[:limit])
    if len(files) > limit:
        shown += f"\n\n[{len(files) - limit} more files not shown]"
    return ToolResult.ok(f'Files matching "{path}":\n\n{shown}')
