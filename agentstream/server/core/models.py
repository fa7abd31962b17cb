"""
FastAPI Request/Response Models - agentstream

Pydantic models for the agent endpoint, the streamed response envelope and
the server's informational endpoints.
"""

from typing import List, Dict, Any, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class RequestMessage(BaseModel):
    """One conversation turn as sent by the client"""
    role: str = Field(..., description="Message role: 'system', 'user' or 'assistant'")
    content: Union[str, List[Dict[str, Any]]] = Field(..., description="Message content (string or array of content parts for multimodal)")


class AgentRequest(BaseModel):
    """Agent run request; accepts camelCase keys as sent by the chat UI"""
    model_config = ConfigDict(populate_by_name=True)

    messages: List[RequestMessage] = Field(..., description="Conversation history; the last entry is the live input")
    chat_session_id: Optional[str] = Field(None, alias="chatSessionId", description="Client chat session id, used for log correlation")
    model: Optional[str] = Field(None, description="Model name (deployment name for Azure)")
    is_azure: bool = Field(False, alias="isAzure", description="Route the request to Azure OpenAI")
    azure_api_version: Optional[str] = Field(None, alias="azureApiVersion", description="Azure OpenAI API version")
    stream: bool = Field(True, description="Stream tokens from the model")
    temperature: Optional[float] = Field(None, ge=0, le=2, description="Sampling temperature")
    top_p: Optional[float] = Field(None, ge=0, le=1, description="Nucleus sampling parameter")
    presence_penalty: Optional[float] = Field(None, ge=-2, le=2, description="Presence penalty")
    frequency_penalty: Optional[float] = Field(None, ge=-2, le=2, description="Frequency penalty")
    base_url: Optional[str] = Field(None, alias="baseUrl", description="Provider base URL override")
    max_iterations: Optional[int] = Field(None, alias="maxIterations", ge=0, description="Maximum reason/act iterations")
    return_intermediate_steps: bool = Field(False, alias="returnIntermediateSteps", description="Surface tool calls as envelopes")
    use_tools: List[Optional[str]] = Field(default_factory=list, alias="useTools", description="Requested tool names")


class ResponseEnvelope(BaseModel):
    """One unit of the streamed output protocol (one SSE frame)"""
    model_config = ConfigDict(populate_by_name=True)

    is_success: bool = Field(True, alias="isSuccess")
    message: str = Field("", alias="message")
    is_tool_message: bool = Field(False, alias="isToolMessage")
    tool_name: Optional[str] = Field(None, alias="toolName")

    def to_sse(self) -> str:
        """Serialize as a `data: <json>` SSE frame"""
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


class ErrorResponse(BaseModel):
    """Non-streaming error body returned before a stream starts"""
    error: str = Field(..., description="Error message")


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Health status")
    version: str = Field(..., description="Server version")
    uptime_seconds: float = Field(..., description="Server uptime in seconds")
    active_runs: int = Field(..., description="Agent runs currently streaming")


class ToolListResponse(BaseModel):
    """Tools a request may name in useTools"""
    search_provider: str = Field(..., description="Backend behind the 'web-search' tool")
    custom_tools: List[str] = Field(..., description="Project tool names")
    catalog_tools: List[str] = Field(..., description="Catalog tool names")
