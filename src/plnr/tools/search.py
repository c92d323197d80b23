"""Text search over the project with ripgrep, or grep when rg is missing.

The backend is a black box producing `path:line:text` lines. Everything
after that (parsing, ranking, grouping, capping) is pure and lives in the
functions below.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from plnr.config.schema import ToolsConfig
from plnr.tools.result import ToolResult
from plnr.tools.shell import SubprocessRunner

_log = logging.getLogger("plnr.tools.search")

# Earlier entries rank first; unknown extensions sort after all of these.
EXTENSION_PRIORITY: tuple[str, ...] = (
    ".ts", ".tsx", ".js", ".jsx", ".py", ".go", ".rs", ".java", ".kt",
    ".rb", ".php", ".cs", ".c", ".cc", ".cpp", ".h", ".hpp", ".swift",
    ".vue", ".svelte", ".json", ".toml", ".yaml", ".yml", ".md",
)
_PRIORITY_INDEX = {ext: i for i, ext in enumerate(EXTENSION_PRIORITY)}

# Raw backend output is parsed before capping; this bounds memory only.
_RAW_OUTPUT_LIMIT = 5 * 1024 * 1024


@dataclass(frozen=True)
class SearchMatch:
    path: str
    line: int
    text: str


def detect_backend() -> str:
    return "rg" if shutil.which("rg") else "grep"


def build_search_command(
    backend: str,
    pattern: str,
    *,
    file_pattern: str | None = None,
    case_sensitive: bool = False,
    ignore_dirs: Sequence[str] = (),
) -> list[str]:
    if backend == "rg":
        argv = ["rg", "--line-number", "--no-heading", "--color", "never", "--hidden"]
        argv.append("--case-sensitive" if case_sensitive else "--ignore-case")
        for name in ignore_dirs:
            argv += ["--glob", f"!{name}"]
        if file_pattern:
            argv += ["--glob", file_pattern]
    else:
        argv = ["grep", "-rnEI"]
        if not case_sensitive:
            argv.append("-i")
        argv += [f"--exclude-dir={name}" for name in ignore_dirs]
        if file_pattern:
            argv.append(f"--include={file_pattern}")
    argv += ["-e", pattern, "."]
    return argv


def parse_match_line(line: str) -> SearchMatch | None:
    parts = line.split(":", 2)
    if len(parts) != 3:
        return None
    path, lineno, text = parts
    try:
        number = int(lineno)
    except ValueError:
        return None
    return SearchMatch(path.removeprefix("./"), number, text.strip())


def rank_key(path: str) -> tuple[int, int, str]:
    """Sort key: extension priority, then directory depth, then path."""
    posix = PurePosixPath(path)
    priority = _PRIORITY_INDEX.get(posix.suffix.lower(), len(EXTENSION_PRIORITY))
    return (priority, len(posix.parts), path)


def rank_matches(matches: Iterable[SearchMatch]) -> list[SearchMatch]:
    return sorted(matches, key=lambda m: (rank_key(m.path), m.line))


def format_matches(pattern: str, matches: Sequence[SearchMatch], limit: int) -> str:
    """Render ranked matches grouped by file, keeping at most `limit` lines."""
    ranked = rank_matches(matches)
    shown = ranked[:limit]

    groups: dict[str, list[SearchMatch]] = {}
    for match in shown:
        groups.setdefault(match.path, []).append(match)

    file_count = len({m.path for m in ranked})
    lines = [f'Search results for "{pattern}" ({len(ranked)} matches in {file_count} files):']
    for path, file_matches in groups.items():
        lines.append("")
        lines.append(path)
        lines.extend(f"  {m.line}: {m.text}" for m in file_matches)

    omitted = len(ranked) - len(shown)
    if omitted:
        lines.append("")
        lines.append(f"[{omitted} more matches not shown]")
    return "\n".join(lines)


async def search_files(
    pattern: str,
    project_root: str,
    *,
    config: ToolsConfig,
    file_pattern: str | None = None,
    case_sensitive: bool = False,
    runner: SubprocessRunner | None = None,
    backend: str | None = None,
) -> ToolResult:
    backend = backend or detect_backend()
    argv = build_search_command(
        backend,
        pattern,
        file_pattern=file_pattern,
        case_sensitive=case_sensitive,
        ignore_dirs=config.ignore_dirs,
    )

    runner = runner or SubprocessRunner(project_root)
    result = await runner.run(
        argv,
        cwd=project_root,
        timeout=config.search_timeout,
        output_limit=_RAW_OUTPUT_LIMIT,
        merge_stderr=False,
    )

    if result.status == "timeout":
        return ToolResult.fail(f"Search failed: timed out after {config.search_timeout:g}s")
    # Both backends exit 1 for "no matches" and 2 for real errors.
    if result.exit_code not in (0, 1):
        return ToolResult.fail(f"Search failed: {result.output.strip() or result.status}")

    matches = [m for m in map(parse_match_line, result.output.splitlines()) if m is not None]
    _log.debug("Search for %r via %s found %d matches", pattern, backend, len(matches))

    if not matches:
        return ToolResult.ok(f'No matches found for "{pattern}"')
    return ToolResult.ok(format_matches(pattern, matches, config.max_search_results))
