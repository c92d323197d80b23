"""Project context gathering."""

from plnr.context.gatherer import (
    CodebaseContext,
    FileInfo,
    detect_framework,
    detect_language,
    gather_context,
    parse_mentions,
    read_dependencies,
)

__all__ = [
    "CodebaseContext",
    "FileInfo",
    "gather_context",
    "parse_mentions",
    "detect_framework",
    "detect_language",
    "read_dependencies",
]
