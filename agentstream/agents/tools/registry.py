"""
Tool Registry - agentstream

Resolves the active tool set for one request from three sources:

- the single configured web search backend (the "web-search" slot)
- the caller-supplied custom tools (the project's own tools)
- the name-keyed tool catalog, populated at process start

Tool availability depends on the environment, so requested names that do
not resolve are skipped and never raise.
"""

import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .builtin import WikipediaLookup, calculator
from .decorators import ToolDescriptor
from .search import create_search_tool
from ...config import SearchProvider, Settings
from ...utils.logging import get_logger

WEB_SEARCH = "web-search"

ToolFactory = Callable[[Settings], ToolDescriptor]
SearchToolFactory = Callable[[SearchProvider, Settings], ToolDescriptor]


class ToolCatalog:
    """Capability registry mapping tool names to factories"""

    def __init__(self, factories: Optional[Dict[str, ToolFactory]] = None):
        self._factories: Dict[str, ToolFactory] = dict(factories or {})
        self._lock = threading.Lock()
        self.logger = get_logger('tools.catalog')

    def register(self, name: str, factory: ToolFactory) -> None:
        with self._lock:
            if name in self._factories:
                self.logger.warning(f"Replacing catalog tool '{name}'")
            self._factories[name] = factory

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._factories)

    def lookup(self, name: str) -> Optional[ToolFactory]:
        with self._lock:
            return self._factories.get(name)

    def create(self, name: str, settings: Settings) -> Optional[ToolDescriptor]:
        """Instantiate a catalog tool; None when the name is unknown or the factory fails"""
        factory = self.lookup(name)
        if factory is None:
            return None
        try:
            return factory(settings)
        except Exception as e:
            self.logger.warning(f"Catalog tool '{name}' unavailable: {e}")
            return None


def default_catalog() -> ToolCatalog:
    return ToolCatalog({
        "calculator": lambda settings: calculator,
        "wikipedia-api": lambda settings: WikipediaLookup(settings).as_tool(),
    })


class ToolRegistry:
    """Resolves requested tool names into ToolDescriptors"""

    def __init__(self, settings: Settings, catalog: Optional[ToolCatalog] = None,
                 search_tool_factory: SearchToolFactory = create_search_tool):
        self.settings = settings
        self.catalog = catalog if catalog is not None else default_catalog()
        self.search_tool_factory = search_tool_factory
        self.logger = get_logger('tools.registry')

    def resolve(self, requested_names: Iterable[Optional[str]],
                custom_tools: Sequence[Optional[ToolDescriptor]],
                search_provider: SearchProvider) -> List[ToolDescriptor]:
        """Resolve the active tool set.

        Order is the search tool (if requested), then custom tools in input
        order, then catalog tools in requested order. Names are unique; the
        first occurrence wins.
        """
        requested = [name for name in requested_names if name]
        wanted = set(requested)

        resolved: List[ToolDescriptor] = []
        seen = set()

        def add(descriptor: ToolDescriptor) -> None:
            if descriptor.name in seen:
                self.logger.debug(f"Skipping duplicate tool '{descriptor.name}'")
                return
            seen.add(descriptor.name)
            resolved.append(descriptor)

        if WEB_SEARCH in wanted:
            add(self.search_tool_factory(search_provider, self.settings))

        for custom_tool in custom_tools:
            if custom_tool and custom_tool.name in wanted:
                add(custom_tool)

        for name in requested:
            if name == WEB_SEARCH:
                continue
            descriptor = self.catalog.create(name, self.settings)
            if descriptor is None:
                if name not in {t.name for t in custom_tools if t}:
                    self.logger.debug(f"Requested tool '{name}' is not available; skipping")
                continue
            add(descriptor)

        self.logger.debug(f"Resolved tools: {[t.name for t in resolved]}")
        return resolved
