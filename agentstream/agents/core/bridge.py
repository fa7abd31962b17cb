"""
EventBridge - agentstream

Translates the pipeline's lifecycle events into response envelopes on the
output stream. The bridge is the only writer of the stream and owns its
close.

States: IDLE -> STREAMING -> CLOSED. CLOSED is terminal, reachable from any
state and entered exactly once per run.
"""

import json
from enum import Enum
from typing import Optional, Protocol

from .cancellation import CancellationToken
from .events import (
    DoneEvent,
    ErrorEvent,
    EventChannel,
    LifecycleEvent,
    TokenEvent,
    ToolCallStartedEvent,
    event_to_dict,
)
from ...server.core.models import ResponseEnvelope
from ...utils.logging import get_logger


class StreamClosedError(RuntimeError):
    """Write attempted on an output stream whose transport has gone away"""


class OutputStream(Protocol):
    """Writable side of a response body with a readiness signal"""

    async def ready(self) -> None:
        """Resolve once the previous frame has been taken by the transport"""
        ...

    def write_nowait(self, frame: str) -> None:
        ...

    def close(self) -> None:
        ...


class BridgeState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    CLOSED = "closed"


class EventBridge:
    """Writes envelopes for lifecycle events until the run closes"""

    def __init__(self, stream: OutputStream, cancel: CancellationToken,
                 return_intermediate_steps: bool = False, agent_name: Optional[str] = None):
        self.stream = stream
        self.cancel = cancel
        self.return_intermediate_steps = return_intermediate_steps
        self.state = BridgeState.IDLE
        self.envelopes_written = 0
        self.logger = get_logger('agent.bridge', agent_name)

    @property
    def closed(self) -> bool:
        return self.state is BridgeState.CLOSED

    async def run(self, channel: EventChannel) -> None:
        """Consume the channel until a terminal event, cancellation or failure"""
        try:
            while not self.closed:
                event = await channel.receive(self.cancel)
                if event is None:
                    self.logger.warning(f"Run cancelled: {self.cancel.reason or 'client disconnected'}")
                    break
                await self.handle(event)
        except StreamClosedError:
            self.logger.debug("Output stream closed by transport")
        except Exception as e:
            self.logger.error(f"Event bridge failed: {e}")
            if not self.cancel.cancelled and not self.closed:
                try:
                    await self._write(ResponseEnvelope(is_success=False, message=str(e)))
                except Exception as write_error:
                    self.logger.warning(f"Could not report bridge failure to client: {write_error}")
        finally:
            self.close()

    async def handle(self, event: LifecycleEvent) -> None:
        if self.cancel.cancelled:
            self.close()
            return

        if isinstance(event, TokenEvent):
            if event.text:
                await self._write(ResponseEnvelope(message=event.text))

        elif isinstance(event, ToolCallStartedEvent):
            self.logger.debug(f"Tool call started: {event_to_dict(event)}")
            if self.return_intermediate_steps:
                await self._write(ResponseEnvelope(
                    message=json.dumps(event.tool_input, ensure_ascii=False),
                    is_tool_message=True,
                    tool_name=event.tool_name,
                ))

        elif isinstance(event, ErrorEvent):
            self.logger.error(f"Agent run failed: {event.message}")
            await self._write(ResponseEnvelope(is_success=False, message=event.message))
            self.close()

        elif isinstance(event, DoneEvent):
            self.logger.debug(f"Agent run done reason={event.reason} iterations={event.iterations}")
            self.close()

    async def _write(self, envelope: ResponseEnvelope) -> bool:
        if self.closed:
            return False

        await self.stream.ready()
        # No new write may start once the signal has fired
        if self.cancel.cancelled:
            self.close()
            return False

        self.stream.write_nowait(envelope.to_sse())
        self.state = BridgeState.STREAMING
        self.envelopes_written += 1
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.state = BridgeState.CLOSED
        self.stream.close()
