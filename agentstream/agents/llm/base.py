"""
Chat model interface used by the agent pipeline.
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Protocol


class ModelCallError(RuntimeError):
    """A completion request to the model provider failed"""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message)
        self.model = model


class ChatModel(Protocol):
    """Streams OpenAI-format chat completion chunks.

    Each chunk is a dict shaped like an OpenAI `chat.completion.chunk`:
    `choices[0].delta` may carry `content` text and/or `tool_calls`
    fragments keyed by `index`.
    """

    async def stream(self, messages: List[Dict[str, Any]],
                     tools: Optional[List[Dict[str, Any]]] = None) -> AsyncIterator[Dict[str, Any]]:
        ...
