"""
Core agent run machinery
"""

from .cancellation import CancellationToken
from .events import (
    DoneEvent,
    ErrorEvent,
    EventChannel,
    LifecycleEvent,
    TokenEvent,
    ToolCallStartedEvent,
)
from .messages import Message
from .memory import MemoryBuilder
from .bridge import BridgeState, EventBridge, StreamClosedError
from .pipeline import AgentAction, AgentPipeline, AgentStep, AgentTurn, ToolCallParseError

__all__ = [
    "CancellationToken",
    "DoneEvent",
    "ErrorEvent",
    "EventChannel",
    "LifecycleEvent",
    "TokenEvent",
    "ToolCallStartedEvent",
    "Message",
    "MemoryBuilder",
    "BridgeState",
    "EventBridge",
    "StreamClosedError",
    "AgentAction",
    "AgentPipeline",
    "AgentStep",
    "AgentTurn",
    "ToolCallParseError",
]
