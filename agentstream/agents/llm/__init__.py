"""
Model bindings for the agent pipeline.
"""

from .base import ChatModel, ModelCallError
from .litellm_model import LiteLLMChatModel

__all__ = ["ChatModel", "ModelCallError", "LiteLLMChatModel"]
