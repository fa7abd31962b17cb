"""
Test Fixtures - agentstream

Shared helpers for agentstream tests:
- Scripted chat model standing in for LiteLLM
- Recording output stream for bridge tests
- Environment-independent settings
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from agentstream.agents.core.bridge import StreamClosedError
from agentstream.config import Settings


def make_settings(**overrides) -> Settings:
    """Settings that ignore the process environment and any .env file"""
    values = dict(
        openai_api_key="sk-server",
        base_url="",
        azure_url="",
        azure_api_key="",
        choose_search_engine="",
        bing_search_api_key="",
        serpapi_api_key="",
        google_cse_id="",
        google_search_api_key="",
        wp_post_api_url="",
        wp_user="",
        wp_password="",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def text_chunk(text: str) -> Dict[str, Any]:
    return {
        "object": "chat.completion.chunk",
        "choices": [{"index": 0, "delta": {"content": text}, "finish_reason": None}],
    }


def tool_call_chunk(name: Optional[str] = None, arguments: str = "", index: int = 0,
                    call_id: Optional[str] = None) -> Dict[str, Any]:
    fragment: Dict[str, Any] = {"index": index, "function": {}}
    if call_id:
        fragment["id"] = call_id
        fragment["type"] = "function"
    if name:
        fragment["function"]["name"] = name
    if arguments:
        fragment["function"]["arguments"] = arguments
    return {
        "object": "chat.completion.chunk",
        "choices": [{"index": 0, "delta": {"tool_calls": [fragment]}, "finish_reason": None}],
    }


def tool_call_turn(name: str, tool_input: Any, call_id: str = "call_1") -> List[Dict[str, Any]]:
    """One model turn requesting a single tool call"""
    return [tool_call_chunk(name=name, arguments=json.dumps(tool_input), call_id=call_id)]


def answer_turn(*parts: str) -> List[Dict[str, Any]]:
    """One model turn streaming a final answer"""
    return [text_chunk(part) for part in parts]


Turn = Union[Sequence[Dict[str, Any]], BaseException]


class FakeChatModel:
    """Chat model that replays scripted turns and records every call.

    Each turn is a list of chunks, or an exception raised when the turn is
    requested. Once the script is exhausted the last turn repeats.
    """

    def __init__(self, turns: Sequence[Turn], hang_after: Optional[int] = None):
        self.turns = list(turns)
        self.calls: List[Dict[str, Any]] = []
        self.hang_after = hang_after
        self.released = asyncio.Event()

    async def stream(self, messages, tools=None):
        index = min(len(self.calls), len(self.turns) - 1)
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})

        turn = self.turns[index]
        if isinstance(turn, BaseException):
            raise turn

        for position, chunk in enumerate(turn):
            if self.hang_after is not None and position == self.hang_after:
                await self.released.wait()
            yield chunk

    @property
    def tool_names(self) -> List[List[str]]:
        return [[t["function"]["name"] for t in (call["tools"] or [])] for call in self.calls]


class RecordingStream:
    """Output stream that records frames and close calls"""

    def __init__(self, fail_on_write: Optional[BaseException] = None, on_ready=None):
        self.frames: List[str] = []
        self.close_calls = 0
        self.fail_on_write = fail_on_write
        self.on_ready = on_ready

    async def ready(self) -> None:
        if self.on_ready is not None:
            self.on_ready()

    def write_nowait(self, frame: str) -> None:
        if self.fail_on_write is not None:
            error, self.fail_on_write = self.fail_on_write, None
            raise error
        self.frames.append(frame)

    def close(self) -> None:
        self.close_calls += 1

    @property
    def envelopes(self) -> List[Dict[str, Any]]:
        return parse_sse(''.join(self.frames))


class ClosedStream(RecordingStream):
    """Stream whose transport is already gone"""

    async def ready(self) -> None:
        raise StreamClosedError("stream was aborted")


def parse_sse(body: str) -> List[Dict[str, Any]]:
    """Parse `data: <json>` frames from an SSE body"""
    envelopes = []
    for block in body.split("\n\n"):
        block = block.strip()
        if block.startswith("data: "):
            envelopes.append(json.loads(block[len("data: "):]))
    return envelopes


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def recording_stream() -> RecordingStream:
    return RecordingStream()
