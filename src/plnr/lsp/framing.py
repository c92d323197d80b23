"""LSP message framing with Content-Length headers.

This module implements the LSP base protocol framing:
- Header parsing (Content-Length required, Content-Type optional)
- Incremental buffering of arbitrarily chunked stdout data
- Message encoding with Content-Length framing

LSP Header Format:
    Content-Length: <length>\\r\\n
    [Content-Type: <type>]\\r\\n
    \\r\\n
    <json-rpc-message>

The Content-Length header specifies the byte count of the UTF-8 encoded
JSON body. Headers are separated from the body by a blank line.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

HEADER_ENCODING = "ascii"
CONTENT_ENCODING = "utf-8"
HEADER_SEPARATOR = b"\r\n\r\n"
DEFAULT_MAX_MESSAGE_SIZE = 10 * 1024 * 1024  # 10 MB


class LSPFramingError(Exception):
    """Error in LSP message framing.

    Raised when:
    - Content-Length header is missing, non-integer or negative
    - Header format is malformed
    - The body is not UTF-8 JSON describing an object

    The offending frame has always been consumed when this is raised, so
    the reader can log it and keep going.
    """


def parse_header(header_bytes: bytes) -> dict[str, str]:
    """Parse LSP headers from raw bytes.

    Args:
        header_bytes: Raw header bytes without the trailing blank line,
            e.g. b"Content-Length: 123\\r\\nContent-Type: ..."

    Returns:
        Dictionary mapping header names to values.

    Raises:
        LSPFramingError: If headers are malformed or Content-Length is missing/invalid.

    Example:
        >>> parse_header(b"Content-Length: 42\\r\\nContent-Type: application/json")
        {'Content-Length': '42', 'Content-Type': 'application/json'}
    """
    headers: dict[str, str] = {}

    if not header_bytes:
        raise LSPFramingError("Empty header block")

    try:
        header_text = header_bytes.decode(HEADER_ENCODING)
    except UnicodeDecodeError as e:
        raise LSPFramingError(f"Header contains non-ASCII characters: {e}") from e

    for line in header_text.split("\r\n"):
        if not line:
            continue

        colon_pos = line.find(":")
        if colon_pos == -1:
            raise LSPFramingError(f"Malformed header line (no colon): {line!r}")

        name = line[:colon_pos].strip()
        value = line[colon_pos + 1 :].strip()

        if not name:
            raise LSPFramingError(f"Empty header name in line: {line!r}")

        headers[name] = value

    if "Content-Length" not in headers:
        raise LSPFramingError("Missing required Content-Length header")

    try:
        length = int(headers["Content-Length"])
    except ValueError as e:
        raise LSPFramingError(f"Invalid Content-Length value: {headers['Content-Length']!r}") from e

    if length < 0:
        raise LSPFramingError(f"Negative Content-Length: {length}")

    return headers


def decode_body(body_bytes: bytes) -> dict[str, Any]:
    """Decode a message body into a JSON-RPC object."""
    try:
        content = body_bytes.decode(CONTENT_ENCODING)
    except UnicodeDecodeError as e:
        raise LSPFramingError(f"Invalid UTF-8 in message body: {e}") from e

    try:
        message = json.loads(content)
    except json.JSONDecodeError as e:
        raise LSPFramingError(f"Invalid JSON in message body: {e}") from e

    if not isinstance(message, dict):
        raise LSPFramingError(f"JSON-RPC message must be an object, got {type(message).__name__}")

    return message


class MessageBuffer:
    """Accumulates raw stdout bytes and yields complete messages.

    The child process may deliver data in arbitrary chunks: a header can be
    split across reads and several messages can arrive in one read. Feed
    every chunk, then call pop_message() until it returns None.

    Example:
        >>> buf = MessageBuffer()
        >>> buf.feed(chunk)
        >>> while (msg := buf.pop_message()) is not None:
        ...     handle(msg)
    """

    def __init__(self, *, max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE) -> None:
        self._buffer = bytearray()
        self._max_message_size = max_message_size

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        self._buffer.extend(data)

    def pop_message(self) -> dict[str, Any] | None:
        """Extract exactly one complete message.

        Returns:
            The decoded message, or None when no complete message is buffered.

        Raises:
            LSPFramingError: The next frame was malformed; it has been dropped
                from the buffer.
        """
        header_end = self._buffer.find(HEADER_SEPARATOR)
        if header_end == -1:
            return None

        body_start = header_end + len(HEADER_SEPARATOR)
        try:
            headers = parse_header(bytes(self._buffer[:header_end]))
        except LSPFramingError:
            del self._buffer[:body_start]
            raise

        content_length = int(headers["Content-Length"])
        if content_length > self._max_message_size:
            del self._buffer[:body_start]
            raise LSPFramingError(
                f"Message size {content_length} exceeds maximum {self._max_message_size}"
            )

        body_end = body_start + content_length
        if len(self._buffer) < body_end:
            return None

        body_bytes = bytes(self._buffer[body_start:body_end])
        del self._buffer[:body_end]
        return decode_body(body_bytes)


def encode_message(msg: dict[str, Any]) -> bytes:
    """Frame a JSON-RPC message with its Content-Length header.

    Raises:
        LSPFramingError: If the message cannot be serialized to JSON.
    """
    try:
        body_bytes = json.dumps(msg, separators=(",", ":")).encode(CONTENT_ENCODING)
    except (TypeError, ValueError) as e:
        raise LSPFramingError(f"Message cannot be serialized to JSON: {e}") from e

    header = f"Content-Length: {len(body_bytes)}\r\n\r\n".encode(HEADER_ENCODING)
    return header + body_bytes


async def write_message(
    writer: asyncio.StreamWriter,
    msg: dict[str, Any],
    *,
    drain: bool = True,
) -> None:
    """Write a JSON-RPC message with Content-Length framing.

    Header and body are written in one call so concurrent writers never
    interleave partial frames.
    """
    writer.write(encode_message(msg))
    if drain:
        await writer.drain()
