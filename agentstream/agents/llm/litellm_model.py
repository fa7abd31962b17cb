"""
LiteLLM Chat Model - agentstream

Binds a request's model configuration to LiteLLM for unified access to
OpenAI-compatible endpoints and Azure OpenAI deployments.

Features:
- Streaming and non-streaming completions behind one chunk interface
- Tool calling with OpenAI-format schemas
- Per-request base URL, API key and sampling parameters
"""

from typing import Any, AsyncGenerator, Dict, List, Optional

import litellm
from litellm import acompletion

from .base import ModelCallError
from ...config import RequestConfig
from ...utils.logging import get_logger, timer

# We handle logging ourselves and let LiteLLM drop parameters a provider rejects
litellm.set_verbose = False
litellm.drop_params = True

SAMPLING_PARAMS = ("temperature", "top_p", "presence_penalty", "frequency_penalty")


def _to_dict(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, 'model_dump'):
        return obj.model_dump()
    if hasattr(obj, 'dict'):
        return obj.dict()
    return dict(obj)


class LiteLLMChatModel:
    """Chat model bound to one request's configuration"""

    def __init__(self, config: RequestConfig, agent_name: Optional[str] = None):
        self.config = config
        self.logger = get_logger('llm.litellm', agent_name)

    @property
    def model(self) -> str:
        if self.config.is_azure:
            return f"azure/{self.config.model}"
        return self.config.model

    def build_params(self, messages: List[Dict[str, Any]],
                     tools: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Assemble acompletion() keyword arguments"""
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": self.config.stream,
        }

        for name in SAMPLING_PARAMS:
            value = getattr(self.config, name)
            if value is not None:
                params[name] = value

        if self.config.api_key:
            params["api_key"] = self.config.api_key
        if self.config.base_url:
            params["api_base"] = self.config.base_url

        if self.config.is_azure:
            if self.config.azure_api_version:
                params["api_version"] = self.config.azure_api_version
        else:
            # Any model name is served by the OpenAI-compatible endpoint at api_base
            params["custom_llm_provider"] = "openai"

        if tools:
            params["tools"] = tools

        return params

    async def stream(self, messages: List[Dict[str, Any]],
                     tools: Optional[List[Dict[str, Any]]] = None) -> AsyncGenerator[Dict[str, Any], None]:
        """Yield normalized chunks; a non-streaming call yields a single chunk"""
        params = self.build_params(messages, tools)
        self.logger.debug(
            f"Completion model={params['model']} stream={params['stream']} "
            f"messages={len(messages)} tools={len(tools or [])}"
        )

        try:
            with timer(f"completion request {params['model']}"):
                response = await acompletion(**params)
        except Exception as e:
            self.logger.error(f"Completion failed for {params['model']}: {e}")
            raise ModelCallError(str(e), model=params['model']) from e

        if not self.config.stream:
            yield self._response_to_chunk(_to_dict(response))
            return

        try:
            async for chunk in response:
                yield _to_dict(chunk)
        except Exception as e:
            self.logger.error(f"Streaming completion failed for {params['model']}: {e}")
            raise ModelCallError(str(e), model=params['model']) from e

    def _response_to_chunk(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """Convert a full completion into a single delta chunk"""
        choice = (response.get("choices") or [{}])[0]
        message = choice.get("message") or {}

        delta: Dict[str, Any] = {"role": "assistant", "content": message.get("content")}
        tool_calls = message.get("tool_calls")
        if tool_calls:
            delta["tool_calls"] = [
                {**_to_dict(call), "index": index} for index, call in enumerate(tool_calls)
            ]

        return {
            "id": response.get("id"),
            "object": "chat.completion.chunk",
            "model": response.get("model"),
            "choices": [{
                "index": 0,
                "delta": delta,
                "finish_reason": choice.get("finish_reason"),
            }],
            "usage": response.get("usage"),
        }
