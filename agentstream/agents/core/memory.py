"""
MemoryBuilder - rebuilds conversation memory from the request history.
"""

from typing import Any, Iterable, Optional, Sequence, Tuple

from .messages import (
    Message,
    ASSISTANT,
    SYSTEM,
    USER,
    assistant_message,
    system_message,
    user_message,
)
from ...utils.logging import get_logger


def _field(message: Any, name: str) -> Any:
    if isinstance(message, dict):
        return message.get(name)
    return getattr(message, name, None)


class MemoryBuilder:
    """Converts prior conversation turns into typed model context.

    Everything except the final message is memory; the final message is the
    live input. The full history is kept, without truncation or
    summarization.
    """

    def __init__(self):
        self.logger = get_logger('agent.memory')

    def project(self, message: Any) -> Optional[Message]:
        """Project one raw turn by role; None when the turn is not usable"""
        role = _field(message, "role")
        content = _field(message, "content")

        if role == SYSTEM and isinstance(content, str):
            return system_message(content)
        if role == USER and content is not None:
            return user_message(content)
        if role == ASSISTANT and isinstance(content, str):
            return assistant_message(content)
        return None

    def build(self, history: Sequence[Any]) -> Tuple[Message, ...]:
        memory = []
        dropped = 0
        for message in list(history)[:-1]:
            projected = self.project(message)
            if projected is None:
                dropped += 1
                continue
            memory.append(projected)

        if dropped:
            self.logger.debug(f"Dropped {dropped} history entries with unsupported role/content")
        return tuple(memory)

    def live_input(self, history: Sequence[Any]) -> Message:
        """The final turn, always presented to the model as the user's input"""
        if not history:
            raise ValueError("Conversation history is empty; nothing to answer")
        return user_message(_field(history[-1], "content") or "")


def to_openai_messages(messages: Iterable[Message]) -> list:
    return [message.to_openai() for message in messages]
