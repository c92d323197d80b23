"""Tests for the agentic tool-calling loop."""

from __future__ import annotations

import asyncio

from plnr.agent.loop import AgentCallbacks, AgentLoop, AgentOutcome
from plnr.agent.pruner import find_pairing_violations
from plnr.core.llm.provider import CompletionResult, Role
from plnr.tools.result import ToolResult
from tests.utils import (
    BlockingProvider,
    RecordingDispatcher,
    ScriptedProvider,
    text_result,
    tool_call_result,
)


def read_call(n: int) -> CompletionResult:
    return tool_call_result((f"call_{n}", "read_file", {"file_path": f"f{n}.py"}), content=f"step {n}")


class TestAgentLoop:
    """Loop termination, ordering and accounting."""

    async def test_text_reply_completes(self) -> None:
        provider = ScriptedProvider([text_result("All done", tokens=12)])
        loop = AgentLoop(provider, RecordingDispatcher())

        result = await loop.run("system", "task")

        assert result.outcome is AgentOutcome.COMPLETED
        assert result.content == "All done"
        assert result.iterations == 1
        assert result.tokens_used == 12
        assert not result.hit_iteration_cap
        assert [m.role for m in result.transcript] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]

    async def test_tool_calls_dispatched_in_order(self) -> None:
        """Results are appended in the order the model listed the calls."""
        provider = ScriptedProvider(
            [
                tool_call_result(
                    ("a", "read_file", {"file_path": "a.py"}),
                    ("b", "search_files", {"pattern": "foo"}),
                    ("c", "list_files", {"path": "src"}),
                ),
                text_result("done"),
            ]
        )
        dispatcher = RecordingDispatcher()
        loop = AgentLoop(provider, dispatcher)

        result = await loop.run("system", "task")

        assert [name for name, _ in dispatcher.calls] == ["read_file", "search_files", "list_files"]
        tool_messages = [m for m in result.transcript if m.role == Role.TOOL]
        assert [m.tool_call_id for m in tool_messages] == ["a", "b", "c"]
        assert tool_messages[0].content == "read_file output"
        assert find_pairing_violations(result.transcript) == []

    async def test_failed_tool_result_is_sent_to_model(self) -> None:
        provider = ScriptedProvider(
            [tool_call_result(("a", "read_file", {"file_path": "x"})), text_result("ok")]
        )
        dispatcher = RecordingDispatcher({"read_file": ToolResult.fail("File not found: x")})

        await AgentLoop(provider, dispatcher).run("system", "task")

        second_call = provider.calls[1]
        assert second_call[-1].role == Role.TOOL
        assert second_call[-1].content == "Error: File not found: x"

    async def test_usage_accumulates(self) -> None:
        provider = ScriptedProvider(
            [
                tool_call_result(("a", "read_file", {}), tokens=10),
                tool_call_result(("b", "read_file", {}), tokens=20),
                text_result("done", tokens=5),
            ]
        )
        seen: list[int] = []
        loop = AgentLoop(provider, RecordingDispatcher(), callbacks=AgentCallbacks(on_usage=seen.append))

        result = await loop.run("system", "task")

        assert result.tokens_used == 35
        assert seen == [10, 30, 35]

    async def test_iteration_cap_returns_last_content(self) -> None:
        """A model that never stops calling tools is cut off at max_iterations."""
        provider = ScriptedProvider(read_call)
        loop = AgentLoop(provider, RecordingDispatcher(), max_iterations=3)

        result = await loop.run("system", "task")

        assert result.outcome is AgentOutcome.COMPLETED
        assert result.hit_iteration_cap
        assert result.iterations == 3
        assert result.content == "step 3"
        assert len(provider.calls) == 3

    async def test_iteration_cap_without_text(self) -> None:
        provider = ScriptedProvider(lambda n: tool_call_result((f"c{n}", "read_file", {})))
        result = await AgentLoop(provider, RecordingDispatcher(), max_iterations=2).run("s", "t")

        assert result.hit_iteration_cap
        assert result.content == ""

    async def test_model_error_fails_run(self) -> None:
        provider = ScriptedProvider([RuntimeError("rate limited")])

        result = await AgentLoop(provider, RecordingDispatcher()).run("system", "task")

        assert result.outcome is AgentOutcome.FAILED
        assert result.error == "rate limited"

    async def test_transcript_stays_paired_while_pruning(self) -> None:
        """Every model call sees a transcript with intact call/result pairing."""
        provider = ScriptedProvider(
            lambda n: tool_call_result(
                (f"c{n}a", "read_file", {}), (f"c{n}b", "search_files", {"pattern": "x"})
            )
        )
        dispatcher = RecordingDispatcher(
            {
                "read_file": ToolResult.fail("File not found: a.py"),
                "search_files": ToolResult.ok('No matches found for "x"'),
            }
        )
        loop = AgentLoop(provider, dispatcher, max_iterations=20, context_window=128_000)

        result = await loop.run("system", "task")

        for messages in provider.calls:
            assert find_pairing_violations(messages) == []
            assert messages[0].role == Role.SYSTEM
            assert messages[1].role == Role.USER
        assert max(len(m) for m in provider.calls) < 20
        assert find_pairing_violations(result.transcript) == []

    async def test_callbacks_fire(self) -> None:
        provider = ScriptedProvider([tool_call_result(("a", "read_file", {})), text_result("done")])
        calls: list[str] = []
        results: list[bool] = []
        callbacks = AgentCallbacks(
            on_tool_call=lambda call: calls.append(call.name),
            on_tool_result=lambda call, r: results.append(r.success),
        )

        await AgentLoop(provider, RecordingDispatcher(), callbacks=callbacks).run("s", "t")

        assert calls == ["read_file"]
        assert results == [True]

    async def test_stream_passes_text_callback(self) -> None:
        provider = ScriptedProvider([text_result("streamed answer")])
        chunks: list[str] = []
        loop = AgentLoop(
            provider, RecordingDispatcher(), stream=True, callbacks=AgentCallbacks(on_text=chunks.append)
        )

        await loop.run("s", "t")

        assert chunks == ["streamed answer"]


class TestCancellation:
    """Cancellation through the shared event."""

    async def test_cancel_during_model_call(self) -> None:
        """Setting the event abandons an in-flight model call promptly."""
        provider = BlockingProvider()
        dispatcher = RecordingDispatcher()
        cancel = asyncio.Event()
        loop = AgentLoop(provider, dispatcher)

        task = asyncio.create_task(loop.run("system", "task", cancel))
        await asyncio.wait_for(provider.started.wait(), timeout=1)
        cancel.set()
        result = await asyncio.wait_for(task, timeout=1)

        assert result.outcome is AgentOutcome.CANCELLED
        assert provider.was_cancelled
        assert dispatcher.calls == []

    async def test_cancel_before_start(self) -> None:
        provider = ScriptedProvider([text_result("never")])
        cancel = asyncio.Event()
        cancel.set()

        result = await AgentLoop(provider, RecordingDispatcher()).run("s", "t", cancel)

        assert result.outcome is AgentOutcome.CANCELLED
        assert provider.calls == []

    async def test_cancel_skips_remaining_dispatches(self) -> None:
        """Once cancelled, no further tool is dispatched."""
        provider = ScriptedProvider(
            [tool_call_result(("a", "read_file", {}), ("b", "read_file", {}), ("c", "read_file", {}))]
        )
        cancel = asyncio.Event()

        class CancellingDispatcher(RecordingDispatcher):
            async def dispatch(self, name, arguments):
                result = await super().dispatch(name, arguments)
                cancel.set()
                return result

        dispatcher = CancellingDispatcher()
        result = await AgentLoop(provider, dispatcher).run("s", "t", cancel)

        assert result.outcome is AgentOutcome.CANCELLED
        assert len(dispatcher.calls) == 1
