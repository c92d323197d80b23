"""Shared test utilities and fakes for plnr tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

from plnr.core.llm.provider import CompletionResult, Message, ToolCallRequest
from plnr.lsp.framing import MessageBuffer, encode_message
from plnr.tools.result import ToolResult
from plnr.tools.shell import ShellResult

# Handler sentinel: record the request but never answer it
NO_REPLY = object()


class FakeStdin:
    """Write side of a fake language server: parses the client's frames."""

    def __init__(self, process: FakeLSPProcess) -> None:
        self._process = process
        self._buffer = MessageBuffer()
        self.closed = False

    def write(self, data: bytes) -> None:
        if self.closed:
            raise BrokenPipeError("stdin closed")
        self._buffer.feed(data)
        while (message := self._buffer.pop_message()) is not None:
            self._process.handle_client_message(message)

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed


class FakeLSPProcess:
    """In-memory stand-in for a language-server subprocess.

    Requests are answered by per-method handlers: a callable receiving the
    params and returning the result, or NO_REPLY to hold the request so the
    test can answer it later (in any order) with respond().

    Must be created inside a running event loop.
    """

    def __init__(self, handlers: dict[str, Any] | None = None) -> None:
        self.handlers: dict[str, Any] = {"initialize": lambda params: {"capabilities": {}}}
        self.handlers.update(handlers or {})
        self.stdin = FakeStdin(self)
        self.stdout = asyncio.StreamReader()
        self.returncode: int | None = None
        self.received: list[dict[str, Any]] = []
        self.held: list[dict[str, Any]] = []

    @property
    def methods(self) -> list[str]:
        """Methods of every request and notification received, in order."""
        return [m["method"] for m in self.received if "method" in m]

    def handle_client_message(self, message: dict[str, Any]) -> None:
        self.received.append(message)
        if "method" not in message or "id" not in message:
            return
        handler = self.handlers.get(message["method"], NO_REPLY)
        if handler is NO_REPLY:
            self.held.append(message)
            return
        self.respond(message["id"], handler(message.get("params")))

    def respond(self, request_id: int, result: Any = None, *, error: dict[str, Any] | None = None) -> None:
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
        if error is not None:
            message["error"] = error
        else:
            message["result"] = result
        self.send_raw(encode_message(message))

    def send_raw(self, data: bytes) -> None:
        if self.returncode is None:
            self.stdout.feed_data(data)

    def exit(self, code: int = 0) -> None:
        """Simulate the server process exiting."""
        if self.returncode is None:
            self.returncode = code
            self.stdout.feed_eof()

    def terminate(self) -> None:
        self.exit(-15)

    def kill(self) -> None:
        self.exit(-9)

    async def wait(self) -> int:
        await asyncio.sleep(0)
        return self.returncode if self.returncode is not None else 0


class FakeSpawner:
    """Spawn function returning FakeLSPProcess instances, counting calls."""

    def __init__(self, handlers: dict[str, Any] | None = None, *, error: OSError | None = None) -> None:
        self.handlers = handlers
        self.error = error
        self.calls: list[tuple[str, list[str], str]] = []
        self.processes: list[FakeLSPProcess] = []

    async def __call__(self, command: str, args: Sequence[str], cwd: str) -> FakeLSPProcess:
        self.calls.append((command, list(args), cwd))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        process = FakeLSPProcess(self.handlers)
        self.processes.append(process)
        return process

    @property
    def process(self) -> FakeLSPProcess:
        return self.processes[-1]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


# -- model fakes -------------------------------------------------------------


def text_result(content: str, tokens: int = 0) -> CompletionResult:
    """A final assistant reply."""
    return CompletionResult(content=content, usage={"total_tokens": tokens} if tokens else {})


def tool_call_result(
    *calls: tuple[str, str, dict[str, Any]],
    content: str | None = None,
    tokens: int = 0,
) -> CompletionResult:
    """An assistant reply requesting tools; each call is (id, name, arguments)."""
    return CompletionResult(
        content=content,
        tool_calls=[ToolCallRequest(call_id, name, args) for call_id, name, args in calls],
        finish_reason="tool_calls",
        usage={"total_tokens": tokens} if tokens else {},
    )


class ScriptedProvider:
    """LLMProvider fake that replays queued responses.

    Each entry is a CompletionResult to return or an exception to raise.
    Pass a callable instead of a list to generate the nth response
    (1-based) on demand.
    """

    def __init__(
        self,
        responses: Sequence[CompletionResult | Exception] | Callable[[int], CompletionResult],
        *,
        model: str = "scripted/model",
    ) -> None:
        self._responses = responses
        self._model = model
        self.calls: list[list[Message]] = []
        self.max_tokens: list[int] = []

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[Message],
        *,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 4096,
        on_text: Callable[[str], None] | None = None,
    ) -> CompletionResult:
        self.calls.append(list(messages))
        self.max_tokens.append(max_tokens)
        if callable(self._responses):
            item: CompletionResult | Exception = self._responses(len(self.calls))
        else:
            item = self._responses[len(self.calls) - 1]
        if isinstance(item, Exception):
            raise item
        if on_text is not None and item.content:
            on_text(item.content)
        return item


class BlockingProvider:
    """LLMProvider fake whose complete() never returns on its own."""

    model = "blocking/model"

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.was_cancelled = False

    async def complete(self, messages: list[Message], **kwargs: Any) -> CompletionResult:
        self.started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.was_cancelled = True
            raise
        return text_result("unreachable")


class RecordingDispatcher:
    """Dispatcher fake returning canned results and recording call order."""

    def __init__(self, results: dict[str, ToolResult] | None = None) -> None:
        self.results = results or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def dispatch(self, name: str, arguments: Any) -> ToolResult:
        self.calls.append((name, arguments))
        return self.results.get(name, ToolResult.ok(f"{name} output"))


class FakeRunner:
    """SubprocessRunner fake: records argv and returns a scripted ShellResult."""

    def __init__(self, output: str = "", exit_code: int | None = 0, status: str | None = None) -> None:
        self.output = output
        self.exit_code = exit_code
        self.status = status or ("ok" if exit_code == 0 else "error")
        self.calls: list[dict[str, Any]] = []

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | None = None,
        timeout: float = 30.0,
        output_limit: int = 50_000,
        merge_stderr: bool = True,
    ) -> ShellResult:
        self.calls.append({"argv": list(argv), "cwd": cwd, "timeout": timeout})
        return ShellResult(
            command=" ".join(argv),
            exit_code=self.exit_code,
            output=self.output,
            truncated=False,
            status=self.status,
            duration_ms=1,
        )


# -- transcript builders -----------------------------------------------------


def tool_group(
    call_ids: Sequence[str],
    results: Sequence[str] | None = None,
    name: str = "read_file",
) -> list[Message]:
    """An assistant message with tool calls followed by one result per id."""
    calls = tuple(ToolCallRequest(call_id, name, {}) for call_id in call_ids)
    contents = results if results is not None else [f"output of {c}" for c in call_ids]
    return [Message.assistant(None, calls)] + [
        Message.tool(call_id, content) for call_id, content in zip(call_ids, contents)
    ]


def base_transcript() -> list[Message]:
    return [Message.system("system prompt"), Message.user("user prompt")]


# -- litellm response mocks --------------------------------------------------


def create_mock_llm_response(
    content: str | None = "Test response",
    tool_calls: Sequence[tuple[str, str, str]] = (),
) -> Any:
    """Create a mock non-streaming litellm response.

    Args:
        content: Assistant text
        tool_calls: (id, name, raw JSON arguments) triples

    Returns:
        Mock mimicking the litellm ModelResponse structure
    """
    from unittest.mock import Mock

    response = Mock()
    response.choices = [Mock()]
    message = response.choices[0].message
    message.content = content
    message.tool_calls = [_mock_tool_call(None, *tc) for tc in tool_calls] or None
    response.choices[0].finish_reason = "tool_calls" if tool_calls else "stop"

    response.usage = Mock()
    response.usage.prompt_tokens = 10
    response.usage.completion_tokens = 20
    response.usage.total_tokens = 30
    return response


def _mock_tool_call(index: int | None, call_id: str | None, name: str | None, arguments: str | None) -> Any:
    from unittest.mock import Mock

    tc = Mock()
    tc.index = index
    tc.id = call_id
    tc.function = Mock()
    tc.function.name = name
    tc.function.arguments = arguments
    return tc


def create_mock_llm_stream_chunk(
    text: str | None = "chunk",
    *,
    tool_call: tuple[int, str | None, str | None, str | None] | None = None,
    finish_reason: str | None = None,
    total_tokens: int | None = None,
) -> Any:
    """Create a mock streaming chunk from litellm.

    Args:
        text: Text delta
        tool_call: (index, id, name, argument fragment) delta
        finish_reason: Set on the final content chunk
        total_tokens: When given, the chunk carries usage

    Returns:
        Mock mimicking a litellm streaming chunk
    """
    from unittest.mock import Mock

    chunk = Mock()
    chunk.choices = [Mock()]
    chunk.choices[0].finish_reason = finish_reason
    delta = chunk.choices[0].delta
    delta.content = text
    delta.tool_calls = [_mock_tool_call(*tool_call)] if tool_call else None

    if total_tokens is None:
        chunk.usage = None
    else:
        chunk.usage = Mock(prompt_tokens=0, completion_tokens=0, total_tokens=total_tokens)
    return chunk


async def stream_of(*chunks: Any) -> Any:
    for chunk in chunks:
        yield chunk
