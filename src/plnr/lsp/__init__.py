"""Code intelligence over the Language Server Protocol.

A JSON-RPC client for a language server subprocess, with Content-Length
framing, request correlation, timeouts and a per-root availability cache.
"""

from plnr.lsp.client import (
    LSPClient,
    path_to_uri,
    spawn_stdio_process,
    to_absolute_path,
    uri_to_path,
)
from plnr.lsp.framing import (
    LSPFramingError,
    MessageBuffer,
    encode_message,
    parse_header,
    write_message,
)
from plnr.lsp.manager import (
    DEFAULT_SERVER_CANDIDATES,
    CodeIntelligenceService,
    ServerCandidate,
    detect_language_server,
)
from plnr.lsp.types import (
    LSPClientStopped,
    LSPError,
    LSPResponseError,
    LSPSessionState,
    LSPTimeoutError,
    PendingRequest,
)

__all__ = [
    "LSPClient",
    "CodeIntelligenceService",
    "ServerCandidate",
    "DEFAULT_SERVER_CANDIDATES",
    "detect_language_server",
    "spawn_stdio_process",
    "LSPSessionState",
    "PendingRequest",
    "LSPError",
    "LSPTimeoutError",
    "LSPResponseError",
    "LSPClientStopped",
    "LSPFramingError",
    "MessageBuffer",
    "parse_header",
    "encode_message",
    "write_message",
    "to_absolute_path",
    "path_to_uri",
    "uri_to_path",
]
