"""
agentstream Server Package

FastAPI server streaming agent runs as Server-Sent Events.
"""

# Import moved to avoid circular dependency
# from .core.app import AgentStreamServer, create_server
from .core.models import (
    AgentRequest,
    ResponseEnvelope,
    ErrorResponse,
    HealthResponse,
    ToolListResponse,
)

__all__ = [
    'AgentRequest',
    'ResponseEnvelope',
    'ErrorResponse',
    'HealthResponse',
    'ToolListResponse',
]
