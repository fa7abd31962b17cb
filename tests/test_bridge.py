"""
EventBridge Tests - agentstream

Covers envelope translation, the close-exactly-once guarantee and
cancellation handling of the bridge.
"""

import json

import pytest

from agentstream.agents.core.bridge import BridgeState, EventBridge
from agentstream.agents.core.cancellation import CancellationToken
from agentstream.agents.core.events import (
    DoneEvent,
    ErrorEvent,
    EventChannel,
    TokenEvent,
    ToolCallStartedEvent,
)

from conftest import ClosedStream, RecordingStream


def channel_with(*events) -> EventChannel:
    channel = EventChannel()
    for event in events:
        channel.send(event)
    return channel


class TestEnvelopes:

    @pytest.mark.asyncio
    async def test_tokens_become_success_envelopes(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken())
        await bridge.run(channel_with(TokenEvent("Hel"), TokenEvent("lo"), DoneEvent()))

        assert recording_stream.envelopes == [
            {"isSuccess": True, "message": "Hel", "isToolMessage": False},
            {"isSuccess": True, "message": "lo", "isToolMessage": False},
        ]
        assert recording_stream.close_calls == 1
        assert bridge.state is BridgeState.CLOSED

    @pytest.mark.asyncio
    async def test_empty_tokens_are_not_written(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken())
        await bridge.run(channel_with(TokenEvent(""), TokenEvent("x"), DoneEvent()))

        assert [e["message"] for e in recording_stream.envelopes] == ["x"]

    @pytest.mark.asyncio
    async def test_frames_are_sse_data_lines(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken())
        await bridge.run(channel_with(TokenEvent("hi"), DoneEvent()))

        frame = recording_stream.frames[0]
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert "toolName" not in frame

    @pytest.mark.asyncio
    async def test_tool_envelope_when_intermediate_steps_requested(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken(), return_intermediate_steps=True)
        await bridge.run(channel_with(
            ToolCallStartedEvent("calculator", {"input": "2+2"}, "call_1"),
            TokenEvent("4"),
            DoneEvent(),
        ))

        tool_envelope, token_envelope = recording_stream.envelopes
        assert tool_envelope == {
            "isSuccess": True,
            "message": json.dumps({"input": "2+2"}),
            "isToolMessage": True,
            "toolName": "calculator",
        }
        assert token_envelope["message"] == "4"

    @pytest.mark.asyncio
    async def test_no_tool_envelopes_when_intermediate_steps_off(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken(), return_intermediate_steps=False)
        await bridge.run(channel_with(
            ToolCallStartedEvent("calculator", {"input": "2+2"}),
            TokenEvent("4"),
            DoneEvent(),
        ))

        assert all(not e["isToolMessage"] for e in recording_stream.envelopes)
        assert len(recording_stream.envelopes) == 1

    @pytest.mark.asyncio
    async def test_error_event_writes_failure_then_closes(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken())
        await bridge.run(channel_with(
            TokenEvent("partial"),
            ErrorEvent("model exploded"),
            TokenEvent("never written"),
        ))

        assert recording_stream.envelopes == [
            {"isSuccess": True, "message": "partial", "isToolMessage": False},
            {"isSuccess": False, "message": "model exploded", "isToolMessage": False},
        ]
        assert recording_stream.close_calls == 1

    @pytest.mark.asyncio
    async def test_done_writes_nothing(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken())
        await bridge.run(channel_with(DoneEvent(reason="max_iterations", iterations=3)))

        assert recording_stream.frames == []
        assert recording_stream.close_calls == 1


class TestCloseAndCancellation:

    @pytest.mark.asyncio
    async def test_cancelled_before_start_writes_nothing(self, recording_stream):
        cancel = CancellationToken()
        cancel.cancel("client disconnected")
        bridge = EventBridge(recording_stream, cancel)

        await bridge.run(channel_with(TokenEvent("hello"), DoneEvent()))

        assert recording_stream.frames == []
        assert recording_stream.close_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_for_readiness_blocks_the_write(self):
        cancel = CancellationToken()
        stream = RecordingStream(on_ready=lambda: cancel.cancel("client disconnected"))
        bridge = EventBridge(stream, cancel)

        await bridge.run(channel_with(TokenEvent("hello"), TokenEvent("again"), DoneEvent()))

        assert stream.frames == []
        assert stream.close_calls == 1

    @pytest.mark.asyncio
    async def test_transport_gone_closes_silently(self):
        stream = ClosedStream()
        bridge = EventBridge(stream, CancellationToken())

        await bridge.run(channel_with(TokenEvent("hello"), DoneEvent()))

        assert stream.frames == []
        assert stream.close_calls == 1

    @pytest.mark.asyncio
    async def test_unexpected_failure_becomes_error_envelope(self):
        stream = RecordingStream(fail_on_write=RuntimeError("encoder broke"))
        bridge = EventBridge(stream, CancellationToken())

        await bridge.run(channel_with(TokenEvent("hello"), DoneEvent()))

        assert stream.envelopes == [
            {"isSuccess": False, "message": "encoder broke", "isToolMessage": False},
        ]
        assert stream.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken())
        bridge.close()
        bridge.close()
        await bridge.run(channel_with(TokenEvent("late")))

        assert recording_stream.close_calls == 1
        assert recording_stream.frames == []

    @pytest.mark.asyncio
    async def test_state_moves_to_streaming_on_first_write(self, recording_stream):
        bridge = EventBridge(recording_stream, CancellationToken())
        assert bridge.state is BridgeState.IDLE

        await bridge.handle(TokenEvent("a"))
        assert bridge.state is BridgeState.STREAMING
        assert bridge.envelopes_written == 1

        await bridge.handle(DoneEvent())
        assert bridge.state is BridgeState.CLOSED
