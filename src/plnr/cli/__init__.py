"""Command-line interface: argument parsing, REPL and rendering."""

from plnr.cli.main import create_parser, run_cli

__all__ = ["create_parser", "run_cli"]
