"""JSON-RPC client for a language server running as a child process.

The client owns the subprocess lifecycle (spawn, handshake, shutdown),
correlates responses to requests by id, and enforces per-request
timeouts. Query methods never raise: on timeout, error, or when the
server is not ready they return None so callers can fall back to text
search.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from plnr.logging import TRACE
from plnr.lsp.framing import LSPFramingError, MessageBuffer, write_message
from plnr.lsp.types import (
    LSPClientStopped,
    LSPError,
    LSPResponseError,
    LSPSessionState,
    LSPTimeoutError,
    PendingRequest,
)

_log = logging.getLogger("plnr.lsp.client")

READ_CHUNK_SIZE = 65536
TERMINATE_TIMEOUT = 2.0

LANGUAGE_IDS = {
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".go": "go",
    ".rs": "rust",
}

SpawnFn = Callable[[str, Sequence[str], str], Awaitable[asyncio.subprocess.Process]]


async def spawn_stdio_process(
    command: str, args: Sequence[str], cwd: str
) -> asyncio.subprocess.Process:
    """Spawn a language server with piped stdin/stdout."""
    return await asyncio.create_subprocess_exec(
        command,
        *args,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
        cwd=cwd,
    )


def to_absolute_path(file_path: str, project_root: str) -> str:
    """Resolve a project-relative path; absolute paths pass through."""
    if os.path.isabs(file_path):
        return file_path
    return os.path.join(project_root, file_path)


def path_to_uri(path: str) -> str:
    return Path(path).resolve().as_uri()


def uri_to_path(uri: str) -> str:
    """Convert a file:// URI back to a filesystem path."""
    if not uri.startswith("file://"):
        return uri
    path = unquote(urlparse(uri).path)
    # file:///C:/x -> C:/x on Windows
    if os.name == "nt" and path.startswith("/") and len(path) > 2 and path[2] == ":":
        path = path[1:]
    return path


class LSPClient:
    """Client for one language-server subprocess.

    Usage:
        client = LSPClient("typescript-language-server", ["--stdio"], "/repo")
        if await client.start():
            locations = await client.definition("/repo/src/a.ts", 10, 4)
        await client.stop()

    Positions passed to the query methods are 0-based, as in LSP.
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        root_path: str,
        *,
        handshake_timeout: float = 5.0,
        request_timeout: float = 5.0,
        spawn: SpawnFn | None = None,
    ) -> None:
        self._command = command
        self._args = list(args)
        self._root_path = root_path
        self._handshake_timeout = handshake_timeout
        self._request_timeout = request_timeout
        self._spawn = spawn or spawn_stdio_process

        self._state = LSPSessionState.NOT_STARTED
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._buffer = MessageBuffer()
        self._pending: dict[int, PendingRequest] = {}
        self._next_id = 0
        self._opened: set[str] = set()
        self._start_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    @property
    def state(self) -> LSPSessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is LSPSessionState.READY

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def root_path(self) -> str:
        return self._root_path

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> bool:
        """Spawn the server and perform the initialize handshake.

        Returns:
            True once the session is READY. False on any spawn or handshake
            failure, in which case the session is STOPPED.
        """
        async with self._start_lock:
            if self._state is not LSPSessionState.NOT_STARTED:
                return self.is_ready

            self._state = LSPSessionState.INITIALIZING
            try:
                self._process = await self._spawn(self._command, self._args, self._root_path)
            except OSError as e:
                _log.debug("Failed to spawn %s: %s", self._command, e)
                self._cleanup("LSP failed to start")
                return False

            if self._process.stdin is None or self._process.stdout is None:
                _log.debug("LSP process has no stdio pipes")
                await self.stop()
                return False

            self._reader_task = asyncio.create_task(self._read_loop())

            try:
                await self._initialize()
            except (LSPError, OSError) as e:
                _log.debug("LSP handshake failed: %s", e)
                await self.stop()
                return False

            if self._state is not LSPSessionState.INITIALIZING:
                # Process exited between handshake and now
                return False

            self._state = LSPSessionState.READY
            _log.debug("LSP client initialized (%s)", self._command)
            return True

    async def _initialize(self) -> None:
        await self.request(
            "initialize",
            {
                "processId": os.getpid(),
                "rootUri": path_to_uri(self._root_path),
                "capabilities": {
                    "textDocument": {
                        "definition": {"dynamicRegistration": False},
                        "references": {"dynamicRegistration": False},
                        "documentSymbol": {
                            "dynamicRegistration": False,
                            "hierarchicalDocumentSymbolSupport": True,
                        },
                    },
                    "workspace": {"symbol": {"dynamicRegistration": False}},
                },
            },
            timeout=self._handshake_timeout,
        )
        await self.notify("initialized", {})

    async def stop(self) -> None:
        """Shut the server down and reject every pending request."""
        process = self._process
        if process is not None and process.returncode is None:
            for method in ("shutdown", "exit"):
                try:
                    await self.notify(method, {})
                except (OSError, LSPClientStopped):
                    break

        self._cleanup("LSP client stopped")

        task = self._reader_task
        self._reader_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if process is not None and process.returncode is None:
            await self._terminate(process)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """terminate -> wait -> kill."""
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_TIMEOUT)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    def _cleanup(self, reason: str) -> None:
        self._state = LSPSessionState.STOPPED
        pending = list(self._pending.values())
        self._pending.clear()
        for entry in pending:
            entry.reject(LSPClientStopped(reason))
        self._process = None
        self._opened.clear()

    # -- wire --------------------------------------------------------------

    async def _send(self, msg: dict[str, Any]) -> None:
        process = self._process
        if process is None or process.stdin is None:
            raise LSPClientStopped("LSP not started")
        async with self._write_lock:
            try:
                await write_message(process.stdin, msg)
            except OSError as e:
                raise LSPClientStopped(f"LSP pipe closed: {e}") from e

    async def request(self, method: str, params: Any, timeout: float | None = None) -> Any:
        """Send a request and wait for its correlated response.

        Returns:
            The response's result.

        Raises:
            LSPTimeoutError: No response within the timeout.
            LSPResponseError: The server returned an error object.
            LSPClientStopped: The client is not running or was stopped.
        """
        if self._process is None or self._state is LSPSessionState.STOPPED:
            raise LSPClientStopped("LSP not started")

        self._next_id += 1
        request_id = self._next_id
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        timer = loop.call_later(
            self._request_timeout if timeout is None else timeout,
            self._expire,
            request_id,
        )
        self._pending[request_id] = PendingRequest(request_id, method, future, timer)

        try:
            await self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
            return await future
        finally:
            entry = self._pending.pop(request_id, None)
            if entry is not None:
                entry.timer.cancel()

    async def notify(self, method: str, params: Any = None) -> None:
        """Send a fire-and-forget notification."""
        if self._process is None or self._state is LSPSessionState.STOPPED:
            raise LSPClientStopped("LSP not started")
        msg: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            msg["params"] = params
        await self._send(msg)

    def _expire(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is not None:
            _log.debug("LSP request %d (%s) timed out", request_id, entry.method)
            entry.reject(LSPTimeoutError(f"LSP request timeout: {entry.method}"))

    async def _read_loop(self) -> None:
        process = self._process
        if process is None or process.stdout is None:
            return
        stdout = process.stdout
        try:
            while True:
                chunk = await stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    _log.debug("LSP process closed stdout")
                    break
                self._buffer.feed(chunk)
                await self._drain_buffer()
        except OSError as e:
            _log.debug("LSP read error: %s", e)
        except Exception:
            _log.exception("LSP reader crashed")
        finally:
            if self._state is not LSPSessionState.STOPPED and self._process is process:
                self._cleanup("LSP process exited")

    async def _drain_buffer(self) -> None:
        while True:
            try:
                message = self._buffer.pop_message()
            except LSPFramingError as e:
                _log.warning("Discarding malformed LSP message: %s", e)
                continue
            if message is None:
                return
            await self._handle_message(message)

    async def _handle_message(self, message: dict[str, Any]) -> None:
        msg_id = message.get("id")
        method = message.get("method")

        if method is None:
            # Response
            entry = self._pending.pop(msg_id, None) if isinstance(msg_id, int) else None
            if entry is None:
                _log.debug("Ignoring response for unknown request id %r", msg_id)
                return
            error = message.get("error")
            if error:
                entry.reject(
                    LSPResponseError(
                        str(error.get("message", "unknown error")) if isinstance(error, dict) else str(error),
                        code=error.get("code") if isinstance(error, dict) else None,
                    )
                )
            else:
                entry.resolve(message.get("result"))
        elif msg_id is not None:
            # Server -> client request; answer so the server does not block
            _log.log(TRACE, "LSP server request %s", method)
            try:
                await self._send({"jsonrpc": "2.0", "id": msg_id, "result": None})
            except (OSError, LSPClientStopped) as e:
                _log.debug("Could not answer server request %s: %s", method, e)
        else:
            _log.log(TRACE, "LSP notification %s: %s", method, message.get("params"))

    # -- queries -----------------------------------------------------------

    async def _open_document(self, file_path: str) -> str:
        """Send didOpen once per document so servers can answer queries on it."""
        uri = path_to_uri(file_path)
        if uri in self._opened:
            return uri
        try:
            text = Path(file_path).read_text(encoding="utf-8", errors="replace")
        except OSError:
            return uri
        language_id = LANGUAGE_IDS.get(Path(file_path).suffix.lower(), "plaintext")
        await self.notify(
            "textDocument/didOpen",
            {"textDocument": {"uri": uri, "languageId": language_id, "version": 1, "text": text}},
        )
        self._opened.add(uri)
        return uri

    async def _query(self, method: str, params: dict[str, Any], file_path: str | None = None) -> Any:
        if not self.is_ready:
            return None
        try:
            if file_path is not None:
                params = {"textDocument": {"uri": await self._open_document(file_path)}, **params}
            return await self.request(method, params, timeout=self._request_timeout)
        except LSPError as e:
            _log.debug("%s failed: %s", method, e)
            return None

    async def definition(self, file_path: str, line: int, character: int) -> Any:
        return await self._query(
            "textDocument/definition",
            {"position": {"line": line, "character": character}},
            file_path,
        )

    async def references(self, file_path: str, line: int, character: int) -> Any:
        return await self._query(
            "textDocument/references",
            {
                "position": {"line": line, "character": character},
                "context": {"includeDeclaration": True},
            },
            file_path,
        )

    async def document_symbols(self, file_path: str) -> Any:
        return await self._query("textDocument/documentSymbol", {}, file_path)

    async def workspace_symbols(self, query: str) -> Any:
        return await self._query("workspace/symbol", {"query": query})
