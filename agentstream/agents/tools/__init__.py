"""
Agent tools: descriptors, the tool catalog and the built-in tools.
"""

from .decorators import ToolDescriptor, tool
from .registry import WEB_SEARCH, ToolCatalog, ToolRegistry, default_catalog

__all__ = [
    "ToolDescriptor",
    "tool",
    "WEB_SEARCH",
    "ToolCatalog",
    "ToolRegistry",
    "default_catalog",
]
