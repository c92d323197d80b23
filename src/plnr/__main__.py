"""Entry point for plnr.

Usage:
    plnr                       # interactive REPL in the current directory
    plnr --plan "add caching"  # one-shot plan
    python -m plnr --root ../other-project
"""

import sys


def main() -> int:
    from plnr.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
