"""
Agent Orchestrator - agentstream

Entry point for one streamed agent run. Assembly (configuration, tools,
memory, model binding) happens synchronously in the request handler so
errors can still be reported as a plain HTTP error; the run itself is a
held background task that feeds the response stream.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set, Tuple

from .bridge import EventBridge
from .cancellation import CancellationToken
from .events import DoneEvent, ErrorEvent, EventChannel
from .memory import MemoryBuilder
from .messages import Message
from .pipeline import AgentPipeline
from ..llm.base import ChatModel
from ..llm.litellm_model import LiteLLMChatModel
from ..tools.decorators import ToolDescriptor
from ..tools.registry import ToolRegistry
from ..tools.wordpress import WordPressPublisher
from ...config import RequestConfig, Settings, select_search_provider
from ...server.core.models import AgentRequest
from ...server.core.streaming import EventStreamResponse, SSEStream
from ...utils.logging import get_logger

ModelFactory = Callable[[RequestConfig], ChatModel]


def default_custom_tools(settings: Settings) -> List[ToolDescriptor]:
    """Project tools offered alongside the catalog"""
    return [WordPressPublisher(settings).as_tool()]


@dataclass
class AgentRun:
    """Everything one request's run needs, assembled before streaming starts"""
    config: RequestConfig
    tools: List[ToolDescriptor]
    memory: Tuple[Message, ...]
    live_input: Message
    model: ChatModel
    cancel: CancellationToken
    stream: SSEStream
    channel: EventChannel
    bridge: EventBridge


class AgentOrchestrator:
    """Assembles agent runs and drives them as held background tasks"""

    def __init__(self, settings: Settings, registry: Optional[ToolRegistry] = None,
                 custom_tools: Optional[Sequence[Optional[ToolDescriptor]]] = None,
                 model_factory: Optional[ModelFactory] = None, agent_name: str = "agent"):
        self.settings = settings
        self.registry = registry or ToolRegistry(settings)
        self.custom_tools = list(custom_tools) if custom_tools is not None else default_custom_tools(settings)
        self.model_factory = model_factory or (lambda config: LiteLLMChatModel(config, agent_name))
        self.agent_name = agent_name
        self.memory_builder = MemoryBuilder()
        self.search_provider = select_search_provider(settings)
        self._tasks: Set[asyncio.Task] = set()
        self.logger = get_logger('agent.orchestrator', agent_name)

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    def prepare(self, body: AgentRequest, auth_token: str,
                cancel: Optional[CancellationToken] = None) -> AgentRun:
        """Assemble a run; raises on configuration or input errors"""
        config = RequestConfig.from_request(body, auth_token, self.settings)
        tools = self.registry.resolve(config.use_tools, self.custom_tools, self.search_provider)
        memory = self.memory_builder.build(body.messages)
        live_input = self.memory_builder.live_input(body.messages)
        model = self.model_factory(config)

        cancel = cancel or CancellationToken()
        stream = SSEStream(on_abort=lambda: cancel.cancel("client disconnected"))
        bridge = EventBridge(stream, cancel, config.return_intermediate_steps, self.agent_name)

        self.logger.info(
            f"Prepared run model={config.model} azure={config.is_azure} "
            f"tools={[t.name for t in tools]} memory={len(memory)} max_iterations={config.max_iterations}"
        )
        return AgentRun(config, tools, memory, live_input, model, cancel, stream, EventChannel(), bridge)

    def start(self, body: AgentRequest, auth_token: str,
              cancel: Optional[CancellationToken] = None) -> EventStreamResponse:
        """Assemble a run, spawn it and return the response that streams it"""
        run = self.prepare(body, auth_token, cancel)
        self.spawn(run)
        return EventStreamResponse(run.stream)

    def spawn(self, run: AgentRun) -> asyncio.Task:
        task = asyncio.create_task(self.execute(run))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def execute(self, run: AgentRun) -> None:
        """Run the pipeline producer and the bridge until the bridge closes"""
        producer = asyncio.create_task(self._pump(run))
        try:
            await run.bridge.run(run.channel)
        finally:
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            self.logger.debug(f"Run finished: {run.bridge.envelopes_written} envelopes, cancelled={run.cancel.cancelled}")

    async def _pump(self, run: AgentRun) -> None:
        """Feed pipeline events to the channel; always ends with a terminal event"""
        pipeline = AgentPipeline(run.model, self.agent_name)
        terminated = False
        try:
            async for event in pipeline.run(run.live_input, run.memory, run.tools,
                                            run.cancel, run.config.max_iterations):
                run.channel.send(event)
                if isinstance(event, (DoneEvent, ErrorEvent)):
                    terminated = True
        except Exception as e:
            self.logger.error(f"Agent loop failed: {e}")
            run.channel.send(ErrorEvent(str(e) or type(e).__name__))
            terminated = True
        finally:
            if not terminated:
                if run.cancel.cancelled:
                    run.channel.send(DoneEvent(reason="cancelled"))
                else:
                    self.logger.error("Agent loop was interrupted before finishing")
                    run.channel.send(ErrorEvent("Agent run was interrupted"))
