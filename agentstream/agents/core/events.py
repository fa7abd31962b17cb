"""
Lifecycle events of one agent run and the channel that carries them from
the pipeline to the event bridge.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .cancellation import CancellationToken


@dataclass(frozen=True)
class TokenEvent:
    """A piece of answer text produced by the model"""
    text: str


@dataclass(frozen=True)
class ToolCallStartedEvent:
    """The agent is about to invoke a tool"""
    tool_name: str
    tool_input: Any = field(default_factory=dict)
    tool_call_id: Optional[str] = None


@dataclass(frozen=True)
class ErrorEvent:
    """The model call or the loop failed; terminal"""
    message: str


@dataclass(frozen=True)
class DoneEvent:
    """The loop finished normally (final answer or iteration cap); terminal"""
    reason: str = "final_answer"
    iterations: int = 0


LifecycleEvent = Union[TokenEvent, ToolCallStartedEvent, ErrorEvent, DoneEvent]


def event_to_dict(event: LifecycleEvent) -> Dict[str, Any]:
    """Debug representation of an event"""
    return {"type": type(event).__name__, **event.__dict__}


class EventChannel:
    """Ordered single-producer / single-consumer event channel.

    The queue is unbounded so the producer never blocks on a consumer that
    has already stopped; backpressure is applied at the transport instead.
    """

    def __init__(self):
        self._queue: "asyncio.Queue[LifecycleEvent]" = asyncio.Queue()

    def send(self, event: LifecycleEvent) -> None:
        self._queue.put_nowait(event)

    async def receive(self, cancel: CancellationToken) -> Optional[LifecycleEvent]:
        """Next event in order, or None once the cancellation signal fires"""
        if cancel.cancelled:
            return None

        if not self._queue.empty():
            return self._queue.get_nowait()

        getter = asyncio.ensure_future(self._queue.get())
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not getter.done():
                getter.cancel()

        if cancel.cancelled:
            return None
        return getter.result()
