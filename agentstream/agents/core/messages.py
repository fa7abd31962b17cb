"""
Typed chat messages used as model context.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"

Content = Union[str, Tuple[Dict[str, Any], ...]]


@dataclass(frozen=True)
class Message:
    """A single immutable chat message.

    Content is either plain text or an ordered tuple of content parts
    (OpenAI multimodal format); parts are only meaningful for user messages.
    """
    role: str
    content: Content

    @property
    def is_multimodal(self) -> bool:
        return not isinstance(self.content, str)

    def to_openai(self) -> Dict[str, Any]:
        """Project into the OpenAI chat message format"""
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {"role": self.role, "content": [dict(part) for part in self.content]}


def system_message(content: str) -> Message:
    return Message(SYSTEM, content)


def user_message(content: Union[str, list, tuple]) -> Message:
    if isinstance(content, str):
        return Message(USER, content)
    return Message(USER, tuple(dict(part) for part in content))


def assistant_message(content: str) -> Message:
    return Message(ASSISTANT, content)
