"""Command-line interface for plnr."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path

from plnr import __version__
from plnr.cli import output
from plnr.config import ConfigError, load_config, validate_config
from plnr.logging import get_logger, setup_logging

log = get_logger("cli")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plnr",
        description="Plan before implementation: AI-powered planning for your codebase",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Project root (default: current directory)",
    )
    parser.add_argument("--model", help="Model to use, overriding config and MODEL")
    parser.add_argument(
        "--plan",
        action="store_true",
        help="Generate an implementation plan instead of a chat answer",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (can be repeated, up to -vvvv)",
    )
    parser.add_argument("task", nargs="*", help="Task to run once; omit to start the REPL")
    return parser


async def _run(parsed: argparse.Namespace, project_root: str) -> int:
    from plnr.cli.repl import run_repl
    from plnr.cli.session import PlannerSession

    config = load_config(project_root)
    if parsed.model:
        config.llm.model = parsed.model
    if parsed.verbose is not None:
        config.logging.verbose = parsed.verbose
    setup_logging(config.logging)

    try:
        validate_config(config)
    except ConfigError as e:
        output.print_error(str(e))
        return 1

    session = PlannerSession(project_root, config)
    if not parsed.task:
        await run_repl(session, planning=parsed.plan)
        return 0

    try:
        plan = await session.run_turn(" ".join(parsed.task), planning=parsed.plan)
    finally:
        await session.close()
    return 0 if plan is not None else 1


def run_cli(args: Sequence[str]) -> int:
    parser = create_parser()
    parsed = parser.parse_args(args)

    root = parsed.root.expanduser().resolve()
    if not root.is_dir():
        parser.error(f"--root is not a directory: {root}")

    log.debug("Starting in %s", root)
    try:
        return asyncio.run(_run(parsed, str(root)))
    except KeyboardInterrupt:
        return 130
