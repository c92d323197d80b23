"""Media type-aware token counting with tiktoken."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import tiktoken

if TYPE_CHECKING:
    from plnr.core.llm.provider import Message

_log = logging.getLogger("plnr.tokens")


class MediaType(Enum):
    """Content media types with token estimation ratios."""

    TEXT = "text"
    CODE = "code"
    MARKUP = "markup"  # HTML, XML, YAML, JSON
    MARKDOWN = "markdown"


# Chars per token by media type (used for budget<->char conversion)
CHARS_PER_TOKEN: dict[MediaType, float] = {
    MediaType.TEXT: 4.0,
    MediaType.CODE: 3.5,
    MediaType.MARKUP: 3.0,
    MediaType.MARKDOWN: 4.0,
}

EXTENSION_MAP: dict[str, MediaType] = {
    ".py": MediaType.CODE,
    ".js": MediaType.CODE,
    ".jsx": MediaType.CODE,
    ".ts": MediaType.CODE,
    ".tsx": MediaType.CODE,
    ".go": MediaType.CODE,
    ".rs": MediaType.CODE,
    ".json": MediaType.MARKUP,
    ".yaml": MediaType.MARKUP,
    ".yml": MediaType.MARKUP,
    ".toml": MediaType.MARKUP,
    ".html": MediaType.MARKUP,
    ".md": MediaType.MARKDOWN,
    ".mdx": MediaType.MARKDOWN,
}

_encoder: tiktoken.Encoding | None = None
_encoder_failed = False


def detect_media_type(path: str) -> MediaType:
    return EXTENSION_MAP.get(Path(path).suffix.lower(), MediaType.TEXT)


def _get_encoder() -> tiktoken.Encoding:
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("o200k_base")
    return _encoder


def count_tokens(text: str, media_type: MediaType = MediaType.TEXT) -> int:
    """Count tokens with tiktoken.

    The encoding is downloaded on first use. If that fails (offline, blocked
    proxy) the heuristic for media_type is used for the rest of the run.
    """
    global _encoder_failed
    if not _encoder_failed:
        try:
            return len(_get_encoder().encode(text))
        except Exception as e:
            _encoder_failed = True
            _log.warning("tiktoken unavailable, estimating tokens instead: %s", e)
    return count_tokens_heuristic(text, media_type)


def count_tokens_heuristic(text: str, media_type: MediaType = MediaType.TEXT) -> int:
    """Estimate tokens from character count and media type ratio."""
    return int(len(text) / CHARS_PER_TOKEN.get(media_type, 4.0))


def estimate_transcript_tokens(messages: Iterable[Message]) -> int:
    """Cheap size estimate of a transcript, tool-call payloads included."""
    total = 0
    for message in messages:
        total += count_tokens_heuristic(message.content or "")
        for call in message.tool_calls:
            total += count_tokens_heuristic(str(call.arguments), MediaType.MARKUP)
    return total
