"""Code-intelligence client type definitions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any


class LSPSessionState(Enum):
    """Lifecycle of one language-server subprocess.

    NOT_STARTED -> INITIALIZING -> READY; any state -> STOPPED.
    Nothing leaves STOPPED.
    """

    NOT_STARTED = "not_started"
    INITIALIZING = "initializing"
    READY = "ready"
    STOPPED = "stopped"


class LSPError(Exception):
    """Base class for request-level failures. Never escapes the client's query API."""


class LSPTimeoutError(LSPError):
    """No response arrived before the request's deadline."""


class LSPResponseError(LSPError):
    """The server answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class LSPClientStopped(LSPError):
    """The client was stopped (or never started) while a request was outstanding."""


@dataclass
class PendingRequest:
    """An outstanding request awaiting its correlated response or timeout."""

    id: int
    method: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle

    def resolve(self, result: Any) -> None:
        self.timer.cancel()
        if not self.future.done():
            self.future.set_result(result)

    def reject(self, error: LSPError) -> None:
        self.timer.cancel()
        if not self.future.done():
            self.future.set_exception(error)
