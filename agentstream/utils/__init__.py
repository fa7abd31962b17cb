"""
agentstream utilities
"""

from .logging import get_logger, setup_logging, set_request_context, timer

__all__ = [
    "get_logger",
    "setup_logging",
    "set_request_context",
    "timer",
]
