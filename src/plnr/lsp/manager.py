"""Process-wide language-server availability cache.

The first start attempt for a project root, successful or not, is
remembered for the rest of the run so a missing server binary is
detected once instead of on every tool call.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from plnr.config.schema import LSPConfig
from plnr.lsp.client import LSPClient

_log = logging.getLogger("plnr.lsp.manager")

VERSION_PROBE_TIMEOUT = 2.0


@dataclass(frozen=True)
class ServerCandidate:
    """A language server to look for on PATH."""

    command: str
    args: tuple[str, ...] = ()
    version_probe: bool = True  # Run `<command> --version` before trusting it


DEFAULT_SERVER_CANDIDATES: tuple[ServerCandidate, ...] = (
    ServerCandidate("typescript-language-server", ("--stdio",)),
    ServerCandidate("pyright-langserver", ("--stdio",), version_probe=False),
    ServerCandidate("pylsp"),
)

ClientFactory = Callable[[str, Sequence[str], str], LSPClient]
Detector = Callable[[], Awaitable[list[str] | None]]


async def _responds_to_version(path: str, timeout: float) -> bool:
    try:
        process = await asyncio.create_subprocess_exec(
            path,
            "--version",
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return False
    try:
        await asyncio.wait_for(process.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return False
    return process.returncode == 0


async def detect_language_server(
    candidates: Sequence[ServerCandidate] = DEFAULT_SERVER_CANDIDATES,
) -> list[str] | None:
    """Return the command line of the first usable language server, if any."""
    for candidate in candidates:
        path = shutil.which(candidate.command)
        if path is None:
            continue
        if candidate.version_probe and not await _responds_to_version(path, VERSION_PROBE_TIMEOUT):
            _log.debug("%s found but did not answer --version", path)
            continue
        _log.debug("Found language server: %s", path)
        return [path, *candidate.args]
    return None


class CodeIntelligenceService:
    """Memoized, lazily started language-server clients keyed by project root.

    Inject one instance per process (the CLI creates it) rather than using
    module globals; tests pass a client_factory that builds clients around
    a fake subprocess.
    """

    def __init__(
        self,
        config: LSPConfig | None = None,
        *,
        client_factory: ClientFactory | None = None,
        detector: Detector | None = None,
    ) -> None:
        self._config = config or LSPConfig()
        self._client_factory = client_factory or self._default_factory
        self._detector = detector or detect_language_server
        self._clients: dict[str, LSPClient | None] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _default_factory(self, command: str, args: Sequence[str], root: str) -> LSPClient:
        return LSPClient(
            command,
            args,
            root,
            handshake_timeout=self._config.handshake_timeout,
            request_timeout=self._config.request_timeout,
        )

    @staticmethod
    def _key(project_root: str) -> str:
        return str(Path(project_root).resolve())

    async def get_client(self, project_root: str) -> LSPClient | None:
        """Return the ready client for a root, starting it on first use.

        Returns None when code intelligence is disabled or unavailable.
        """
        if not self._config.enabled:
            return None

        key = self._key(project_root)
        if key in self._clients:
            return self._clients[key]

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key not in self._clients:
                self._clients[key] = await self._start_client(key)
            return self._clients[key]

    async def _start_client(self, root: str) -> LSPClient | None:
        command = list(self._config.command) if self._config.command else await self._detector()
        if not command:
            _log.debug("No language server found, code intelligence disabled")
            return None

        client = self._client_factory(command[0], command[1:], root)
        if await client.start():
            _log.debug("Language server started for %s", root)
            return client

        _log.debug("Language server failed to start for %s", root)
        return None

    async def stop(self) -> None:
        """Stop every started client and forget cached availability."""
        clients = [c for c in self._clients.values() if c is not None]
        self._clients.clear()
        self._locks.clear()
        for client in clients:
            await client.stop()
