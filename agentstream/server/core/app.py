"""
FastAPI Server - agentstream

Serves the streaming agent endpoint plus health and tool discovery.
"""

import uuid
from datetime import datetime
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI, HTTPException, Request, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .models import AgentRequest, ErrorResponse, HealthResponse, ToolListResponse
from .middleware import RequestLoggingMiddleware
from ... import __version__
from ...agents.core.orchestrator import AgentOrchestrator, ModelFactory
from ...agents.tools.decorators import ToolDescriptor
from ...agents.tools.registry import ToolRegistry
from ...config import Settings, extract_auth_token, get_settings
from ...utils.logging import get_logger, set_request_context


class AgentStreamServer:
    """
    FastAPI server for streamed tool-using agent runs

    Endpoints:
    - POST {chat_path}: run the agent and stream envelopes as SSE
    - GET /health: liveness and active run count
    - GET /tools: tool names a request may put in useTools
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[ToolRegistry] = None,
        custom_tools: Optional[Sequence[Optional[ToolDescriptor]]] = None,
        model_factory: Optional[ModelFactory] = None,
        agent_name: str = "agent",
        title: str = "agentstream",
        version: str = __version__,
        url_prefix: str = "",
        chat_path: str = "/api/agent/chat",
        enable_cors: bool = True,
        enable_request_logging: bool = True,
    ):
        """
        Initialize the server

        Args:
            settings: Process settings (defaults to environment / .env)
            registry: Tool registry; built from settings when omitted
            custom_tools: Project tools; the WordPress publisher when omitted
            model_factory: Builds the chat model for a request configuration
            agent_name: Name used in log lines
            url_prefix: URL prefix for all routes
            chat_path: Path of the agent endpoint below the prefix
        """
        self.app = FastAPI(title=title, version=version)
        self.version = version
        self.url_prefix = url_prefix.rstrip("/")
        self.chat_path = chat_path
        self.router = APIRouter(prefix=self.url_prefix)

        self.settings = settings or get_settings()
        self.agent_name = agent_name
        self.orchestrator = AgentOrchestrator(
            self.settings,
            registry=registry,
            custom_tools=custom_tools,
            model_factory=model_factory,
            agent_name=agent_name,
        )

        self.enable_cors = enable_cors
        self.enable_request_logging = enable_request_logging
        self.startup_time = datetime.utcnow()
        self.logger = get_logger('server.app')

        self._setup_middleware()
        self._create_endpoints()

        self.logger.info(
            f"agentstream server initialized: chat={self.url_prefix}{self.chat_path} "
            f"search={self.orchestrator.search_provider.value}"
        )

    def _setup_middleware(self):
        if self.enable_cors:
            self.app.add_middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            )

        if self.enable_request_logging:
            self.app.add_middleware(RequestLoggingMiddleware)

    def _create_endpoints(self):

        @self.router.get("/health", response_model=HealthResponse)
        async def health_check():
            uptime_seconds = (datetime.utcnow() - self.startup_time).total_seconds()
            return HealthResponse(
                status="healthy",
                version=self.version,
                uptime_seconds=uptime_seconds,
                active_runs=self.orchestrator.active_runs,
            )

        @self.router.get("/tools", response_model=ToolListResponse)
        async def list_tools():
            return ToolListResponse(
                search_provider=self.orchestrator.search_provider.value,
                custom_tools=[t.name for t in self.orchestrator.custom_tools if t],
                catalog_tools=self.orchestrator.registry.catalog.names(),
            )

        @self.router.post(self.chat_path, responses={500: {"model": ErrorResponse}})
        async def agent_chat(body: AgentRequest, raw_request: Request):
            return self._handle_agent_chat(body, raw_request)

        self.app.include_router(self.router)

    def _handle_agent_chat(self, body: AgentRequest, raw_request: Request):
        if not body.messages:
            raise HTTPException(status_code=400, detail="messages must not be empty")

        request_id = getattr(raw_request.state, "request_id", None) or uuid.uuid4().hex[:8]
        set_request_context(request_id, self.agent_name, body.chat_session_id)

        header = raw_request.headers.get("api-key") if body.is_azure else raw_request.headers.get("Authorization")
        auth_token = extract_auth_token(header)

        try:
            return self.orchestrator.start(body, auth_token)
        except Exception as e:
            self.logger.error(f"Agent assembly failed: {type(e).__name__}: {e}")
            return JSONResponse(status_code=500, content=ErrorResponse(error=str(e)).model_dump())

    def run(self, host: str = "0.0.0.0", port: int = 8000, log_level: str = "info"):
        uvicorn.run(self.app, host=host, port=port, log_level=log_level)

    @property
    def fastapi_app(self) -> FastAPI:
        """Get the underlying FastAPI application"""
        return self.app


def create_server(**kwargs) -> AgentStreamServer:
    """Create an agentstream server instance; keyword arguments go to AgentStreamServer"""
    return AgentStreamServer(**kwargs)
