"""
Tool descriptors and the @tool decorator - agentstream

Every tool the agent can call takes a single string input and returns a
string. The decorator turns a plain (sync or async) function into a
ToolDescriptor with an OpenAI-compatible schema.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

ToolFunc = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class ToolDescriptor:
    """A named tool the agent can invoke.

    The descriptor only references the callable; whoever constructed it owns
    any resources behind it.
    """
    name: str
    description: str
    invoke: ToolFunc

    def to_openai_tool(self) -> Dict[str, Any]:
        """OpenAI function-calling schema with a single string argument"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        "input": {
                            "type": "string",
                            "description": "Input for the tool",
                        }
                    },
                    "required": ["input"],
                },
            },
        }


def _as_coroutine(f: Callable[[str], Union[str, Awaitable[str]]]) -> ToolFunc:
    if inspect.iscoroutinefunction(f):
        return f

    async def invoke(tool_input: str) -> str:
        return f(tool_input)

    invoke.__name__ = getattr(f, "__name__", "invoke")
    invoke.__doc__ = getattr(f, "__doc__", None)
    return invoke


def tool(func: Optional[Callable] = None, *, name: Optional[str] = None, description: Optional[str] = None):
    """Decorator that turns a single-argument function into a ToolDescriptor

    Can be used as:
        @tool
        async def calculator(expression: str) -> str: ...

    Or:
        @tool(name="wikipedia-api", description="Look up a Wikipedia summary")
        async def wikipedia(query: str) -> str: ...

    The function must accept exactly one positional argument, the raw tool
    input string.
    """
    def decorator(f: Callable) -> ToolDescriptor:
        params = [
            p for p in inspect.signature(f).parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if len(params) != 1:
            raise TypeError(f"Tool function '{f.__name__}' must take exactly one input argument")

        tool_description = description or inspect.getdoc(f) or f"Tool: {f.__name__}"
        return ToolDescriptor(
            name=name or f.__name__,
            description=tool_description,
            invoke=_as_coroutine(f),
        )

    if func is not None:
        return decorator(func)
    return decorator
