"""
Web Search Tools - agentstream

Backends for the "web-search" tool slot. Exactly one is active per process,
chosen by `select_search_provider`. Every backend returns a readable result
listing or a "FAIL: ..." string; none of them raise for ordinary failures.
"""

import asyncio
import html
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Type

import httpx
from ddgs import DDGS

from .decorators import ToolDescriptor
from ...config import SearchProvider, Settings
from ...utils.logging import get_logger

NO_RESULTS = "No good search result found"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass
class SearchResult:
    title: str
    url: str
    snippet: str = ""

    def format(self) -> str:
        lines = [self.title]
        if self.url:
            lines.append(self.url)
        if self.snippet:
            lines.append(self.snippet)
        return "\n".join(lines)


def format_results(results: List[SearchResult]) -> str:
    if not results:
        return NO_RESULTS
    return "\n\n".join(result.format() for result in results)


class SearchTool:
    """Base class for search backends"""

    name: str = "web_search"
    description: str = (
        "A search engine. Useful for when you need to answer questions about "
        "current events. Input should be a search query."
    )

    def __init__(self, settings: Settings, max_results: int = 5,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.max_results = max_results
        self.transport = transport
        self.logger = get_logger(f'tools.search.{self.name}')

    async def search(self, query: str) -> List[SearchResult]:
        raise NotImplementedError

    async def run(self, query: str) -> str:
        query = (query or "").strip()
        if not query:
            return "FAIL: search query is empty"

        try:
            results = await self.search(query)
        except httpx.HTTPStatusError as e:
            self.logger.warning(f"{self.name} HTTP {e.response.status_code} for query '{query[:50]}'")
            return f"FAIL: {self.name} returned HTTP {e.response.status_code}"
        except Exception as e:
            self.logger.error(f"{self.name} failed for query '{query[:50]}': {e}")
            return f"FAIL: {self.name} error: {e}"

        self.logger.debug(f"{self.name} returned {len(results)} results for '{query[:50]}'")
        return format_results(results[:self.max_results])

    def as_tool(self) -> ToolDescriptor:
        return ToolDescriptor(name=self.name, description=self.description, invoke=self.run)

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.tool_timeout, transport=self.transport, **kwargs)


class DuckDuckGoSearch(SearchTool):
    name = "duckduckgo_search"
    backend = "duckduckgo"

    def _text_search(self, query: str) -> List[Dict[str, str]]:
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=self.max_results, backend=self.backend))

    async def search(self, query: str) -> List[SearchResult]:
        hits = await asyncio.to_thread(self._text_search, query)
        return [
            SearchResult(hit.get("title", ""), hit.get("href", ""), hit.get("body", ""))
            for hit in hits
        ]


class GoogleSearch(DuckDuckGoSearch):
    """Google results through the ddgs metasearch client"""
    name = "google_search"
    backend = "google"


class BaiduSearch(SearchTool):
    name = "baidu_search"
    description = (
        "A search engine for Chinese-language content. Useful for when you need "
        "to answer questions about current events in China. Input should be a search query."
    )

    RESULT_PATTERN = re.compile(
        r'<h3[^>]*class="[^"]*\bt\b[^"]*"[^>]*>.*?<a[^>]*href="([^"]+)"[^>]*>(.*?)</a>',
        re.DOTALL,
    )
    TAG_PATTERN = re.compile(r"<[^>]+>")

    async def search(self, query: str) -> List[SearchResult]:
        async with self._client(headers={"User-Agent": BROWSER_USER_AGENT}, follow_redirects=True) as client:
            response = await client.get("https://www.baidu.com/s", params={"wd": query})
            response.raise_for_status()

        results = []
        for url, raw_title in self.RESULT_PATTERN.findall(response.text):
            title = html.unescape(self.TAG_PATTERN.sub("", raw_title)).strip()
            if title:
                results.append(SearchResult(title, html.unescape(url)))
        return results


class BingSearch(SearchTool):
    name = "bing_search"
    endpoint = "https://api.bing.microsoft.com/v7.0/search"

    async def search(self, query: str) -> List[SearchResult]:
        headers = {"Ocp-Apim-Subscription-Key": self.settings.bing_search_api_key}
        async with self._client(headers=headers) as client:
            response = await client.get(self.endpoint, params={"q": query, "count": self.max_results})
            response.raise_for_status()
            data = response.json()

        pages = data.get("webPages", {}).get("value", [])
        return [SearchResult(p.get("name", ""), p.get("url", ""), p.get("snippet", "")) for p in pages]


class SerpAPISearch(SearchTool):
    name = "google_search"
    endpoint = "https://serpapi.com/search.json"

    async def search(self, query: str) -> List[SearchResult]:
        params = {"q": query, "api_key": self.settings.serpapi_api_key, "engine": "google"}
        async with self._client() as client:
            response = await client.get(self.endpoint, params=params)
            response.raise_for_status()
            data = response.json()

        if data.get("error"):
            raise ValueError(data["error"])

        results = []
        answer_box = data.get("answer_box") or {}
        answer = answer_box.get("answer") or answer_box.get("snippet")
        if answer:
            results.append(SearchResult(answer_box.get("title", "Answer"), answer_box.get("link", ""), answer))

        for item in data.get("organic_results", []):
            results.append(SearchResult(item.get("title", ""), item.get("link", ""), item.get("snippet", "")))
        return results


class GoogleCustomSearch(SearchTool):
    name = "google_custom_search"
    endpoint = "https://www.googleapis.com/customsearch/v1"

    async def search(self, query: str) -> List[SearchResult]:
        params = {
            "key": self.settings.google_search_api_key,
            "cx": self.settings.google_cse_id,
            "q": query,
            "num": min(self.max_results, 10),
        }
        async with self._client() as client:
            response = await client.get(self.endpoint, params=params)
            response.raise_for_status()
            data = response.json()

        return [
            SearchResult(item.get("title", ""), item.get("link", ""), item.get("snippet", ""))
            for item in data.get("items", [])
        ]


SEARCH_TOOLS: Dict[SearchProvider, Type[SearchTool]] = {
    SearchProvider.DUCKDUCKGO: DuckDuckGoSearch,
    SearchProvider.GOOGLE: GoogleSearch,
    SearchProvider.BAIDU: BaiduSearch,
    SearchProvider.BING: BingSearch,
    SearchProvider.SERPAPI: SerpAPISearch,
    SearchProvider.GOOGLE_CSE: GoogleCustomSearch,
}


def create_search_tool(provider: SearchProvider, settings: Settings,
                       transport: Optional[httpx.AsyncBaseTransport] = None) -> ToolDescriptor:
    """Build the ToolDescriptor for the selected search backend"""
    return SEARCH_TOOLS[provider](settings, transport=transport).as_tool()
