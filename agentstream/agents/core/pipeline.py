"""
AgentPipeline - agentstream reason/act loop

Drives a tool-calling agent over a streaming chat model:

- Prompt context is memory, then the live input, then the scratchpad of
  prior tool calls and observations, in that fixed order
- Answer text is emitted as TokenEvents while the model streams
- Tool calls are executed server-side and their observations fed back to
  the model on the next iteration
- Tool failures are observations, never loop failures; tool-call
  arguments that are not JSON are a loop failure
- The cancellation signal is checked before every model call and before
  every tool invocation
"""

import json
import time
import uuid
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence, Tuple

from .cancellation import CancellationToken
from .events import DoneEvent, LifecycleEvent, ToolCallStartedEvent, TokenEvent
from .memory import to_openai_messages
from .messages import Message
from ..llm.base import ChatModel
from ..tools.decorators import ToolDescriptor
from ...utils.logging import get_logger, log_tool_execution


@dataclass(frozen=True)
class AgentAction:
    """A tool call requested by the model"""
    tool_name: str
    tool_input: Any
    tool_call_id: str
    arguments: str = ""


@dataclass(frozen=True)
class AgentStep:
    """One executed tool call and what it returned"""
    action: AgentAction
    observation: str


@dataclass(frozen=True)
class AgentTurn:
    """A model turn that requested tools: its text and the executed calls"""
    content: str
    steps: Tuple[AgentStep, ...]


class ToolCallParseError(ValueError):
    """The model produced tool-call arguments that are not valid JSON"""

    def __init__(self, tool_name: str, error: json.JSONDecodeError):
        super().__init__(f"Could not parse arguments for tool '{tool_name}': {error}")
        self.tool_name = tool_name


def tool_input_text(tool_input: Any) -> str:
    """The raw string handed to a tool's invoke()"""
    if isinstance(tool_input, str):
        return tool_input
    if isinstance(tool_input, dict):
        for key in ("input", "__arg1"):
            if key in tool_input:
                value = tool_input[key]
                return value if isinstance(value, str) else json.dumps(value)
    return json.dumps(tool_input)


def format_scratchpad(turns: Sequence[AgentTurn]) -> List[Dict[str, Any]]:
    """Replay each turn as one assistant message with all its tool calls,
    followed by one tool message per call"""
    messages: List[Dict[str, Any]] = []
    for turn in turns:
        messages.append({
            "role": "assistant",
            "content": turn.content,
            "tool_calls": [{
                "id": step.action.tool_call_id,
                "type": "function",
                "function": {"name": step.action.tool_name, "arguments": step.action.arguments},
            } for step in turn.steps],
        })
        for step in turn.steps:
            messages.append({
                "role": "tool",
                "tool_call_id": step.action.tool_call_id,
                "content": step.observation,
            })
    return messages


class AgentPipeline:
    """Bounded reason/act loop producing lifecycle events"""

    def __init__(self, model: ChatModel, agent_name: Optional[str] = None):
        self.model = model
        self.agent_name = agent_name or "agent"
        self.logger = get_logger('agent.pipeline', self.agent_name)

    def build_prompt(self, memory: Sequence[Message], live_input: Message,
                     turns: Sequence[AgentTurn]) -> List[Dict[str, Any]]:
        return to_openai_messages(memory) + [live_input.to_openai()] + format_scratchpad(turns)

    async def run(self, live_input: Message, memory: Sequence[Message],
                  tools: Sequence[ToolDescriptor], cancel: CancellationToken,
                  max_iterations: int) -> AsyncGenerator[LifecycleEvent, None]:
        """Run the loop, yielding Token / ToolCallStarted events and a final Done.

        Cancellation ends the generator without a Done event. Model errors
        and ToolCallParseError propagate to the caller.
        """
        if max_iterations <= 0:
            self.logger.debug("max_iterations is 0; skipping model calls")
            yield DoneEvent(reason="max_iterations", iterations=0)
            return

        tools_by_name = {t.name: t for t in tools}
        tool_schemas = [t.to_openai_tool() for t in tools] or None
        turns: List[AgentTurn] = []
        iterations = 0

        while iterations < max_iterations:
            if cancel.cancelled:
                self.logger.debug(f"Cancelled before model call (iteration {iterations + 1})")
                return
            iterations += 1

            messages = self.build_prompt(memory, live_input, turns)
            self.logger.debug(
                f"Iteration {iterations}/{max_iterations}: {len(messages)} messages, {len(tools_by_name)} tools"
            )

            text_parts: List[str] = []
            tool_calls: Dict[int, Dict[str, Any]] = {}
            stream = self.model.stream(messages, tool_schemas)
            try:
                async for chunk in stream:
                    if cancel.cancelled:
                        self.logger.debug("Cancelled while streaming model output")
                        return
                    delta = self._delta(chunk)
                    content = delta.get("content")
                    if content:
                        text_parts.append(content)
                        yield TokenEvent(content)
                    for fragment in delta.get("tool_calls") or []:
                        self._accumulate_tool_call(tool_calls, fragment)
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()

            if not tool_calls:
                self.logger.debug(f"Final answer after {iterations} iteration(s)")
                yield DoneEvent(reason="final_answer", iterations=iterations)
                return

            actions = [self._parse_action(tool_calls[index]) for index in sorted(tool_calls)]
            steps: List[AgentStep] = []
            for action in actions:
                if cancel.cancelled:
                    self.logger.debug("Cancelled before tool invocation")
                    return

                yield ToolCallStartedEvent(action.tool_name, action.tool_input, action.tool_call_id)

                if cancel.cancelled:
                    self.logger.debug(f"Cancelled before invoking '{action.tool_name}'")
                    return

                observation = await self._invoke(action, tools_by_name)
                steps.append(AgentStep(action, observation))

            turns.append(AgentTurn("".join(text_parts), tuple(steps)))

        self.logger.info(f"Stopped after reaching max_iterations={max_iterations}")
        yield DoneEvent(reason="max_iterations", iterations=iterations)

    @staticmethod
    def _delta(chunk: Dict[str, Any]) -> Dict[str, Any]:
        choices = chunk.get("choices") or [{}]
        choice = choices[0] if isinstance(choices[0], dict) else {}
        return choice.get("delta") or choice.get("message") or {}

    @staticmethod
    def _accumulate_tool_call(tool_calls: Dict[int, Dict[str, Any]], fragment: Dict[str, Any]) -> None:
        """Merge a streamed tool-call fragment into the call at its index"""
        index = fragment.get("index") or 0
        call = tool_calls.setdefault(index, {"id": None, "name": None, "arguments": ""})

        if fragment.get("id"):
            call["id"] = fragment["id"]
        function = fragment.get("function") or {}
        if function.get("name"):
            call["name"] = function["name"]
        if function.get("arguments"):
            call["arguments"] += function["arguments"]

    def _parse_action(self, call: Dict[str, Any]) -> AgentAction:
        tool_call_id = call.get("id") or f"call_{uuid.uuid4().hex[:8]}"
        name = call.get("name") or ""
        arguments = call.get("arguments") or "{}"

        try:
            tool_input = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise ToolCallParseError(name, e) from e

        return AgentAction(name, tool_input, tool_call_id, arguments)

    async def _invoke(self, action: AgentAction, tools_by_name: Dict[str, ToolDescriptor]) -> str:
        tool = tools_by_name.get(action.tool_name)
        if tool is None:
            self.logger.warning(f"Model requested unknown tool '{action.tool_name}'")
            return f"{action.tool_name} is not a valid tool, try another one."

        start = time.time()
        try:
            observation = await tool.invoke(tool_input_text(action.tool_input))
        except Exception as e:
            duration_ms = int((time.time() - start) * 1000)
            log_tool_execution(self.agent_name, action.tool_name, duration_ms, success=False)
            self.logger.error(f"Tool execution error name='{action.tool_name}' call_id='{action.tool_call_id}' error='{e}'")
            return f"Tool execution error: {e}"

        duration_ms = int((time.time() - start) * 1000)
        log_tool_execution(self.agent_name, action.tool_name, duration_ms)

        result = observation if isinstance(observation, str) else str(observation)
        self.logger.debug(f"Tool '{action.tool_name}' returned {len(result)} chars")
        return result
