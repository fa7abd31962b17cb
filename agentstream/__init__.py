"""
agentstream - streamed tool-using LLM agents over HTTP

Runs a reason/act agent loop per request and streams its answer tokens and
tool calls to the client as Server-Sent Events, with mid-flight
cancellation on client disconnect.
"""

__version__ = "0.1.0"

from .agents.tools.decorators import ToolDescriptor, tool

__all__ = [
    "ToolDescriptor",
    "tool",
    "__version__",
]
