"""
Configuration - agentstream

Process-wide settings loaded once from the environment (and an optional .env
file), plus the immutable per-request configuration derived from them.
Provider and credential precedence rules are plain functions over these
values so they can be tested without touching the environment.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Optional, Tuple, TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from .server.core.models import AgentRequest


DEFAULT_OPENAI_URL = "https://api.openai.com/v1"

# Tokens carrying this prefix are access codes for the deployment, not provider keys
ACCESS_CODE_PREFIX = "nk-"


class SearchProvider(str, Enum):
    """Web search backends that can fill the "web-search" tool slot"""
    DUCKDUCKGO = "duckduckgo"
    GOOGLE = "google"
    BAIDU = "baidu"
    BING = "bing"
    SERPAPI = "serpapi"
    GOOGLE_CSE = "google_cse"


class Settings(BaseSettings):
    """Server configuration read from environment variables / .env file"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Model provider
    openai_api_key: str = Field("", description="Server-side provider API key")
    base_url: str = Field("", description="Server-side OpenAI-compatible base URL")
    azure_url: str = Field("", description="Azure OpenAI endpoint; enables Azure mode when set")
    azure_api_key: str = Field("", description="Azure OpenAI key used in server-side Azure mode")
    azure_api_version: str = Field("2024-02-01", description="Azure OpenAI API version")
    default_model: str = Field("gpt-4o-mini", description="Model used when the request names none")
    default_max_iterations: int = Field(10, ge=0, description="Loop cap used when the request names none")

    # Search
    choose_search_engine: str = Field("", description="Explicit search engine: google or baidu")
    bing_search_api_key: str = Field("", description="Bing Web Search API key")
    serpapi_api_key: str = Field("", description="SerpAPI key")
    google_cse_id: str = Field("", description="Google Custom Search engine id")
    google_search_api_key: str = Field("", description="Google Custom Search API key")

    # WordPress publishing tool
    wp_post_api_url: str = Field("", description="WordPress REST posts endpoint")
    wp_user: str = Field("", description="WordPress user")
    wp_password: str = Field("", description="WordPress application password")

    # Runtime
    tool_timeout: float = Field(30.0, gt=0, description="Timeout in seconds for HTTP-backed tools")
    log_level: str = Field("INFO", description="Log level for the agentstream logger")

    @property
    def is_azure(self) -> bool:
        return bool(self.azure_url)


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process"""
    return Settings()


def select_search_provider(settings: Settings) -> SearchProvider:
    """Pick the single search backend for the "web-search" tool.

    An explicit engine choice overrides the DuckDuckGo default; a configured
    provider credential overrides the explicit choice, with later checks
    winning (Bing, then SerpAPI, then Google Custom Search).
    """
    provider = SearchProvider.DUCKDUCKGO

    choice = settings.choose_search_engine.strip().lower()
    if choice == "google":
        provider = SearchProvider.GOOGLE
    elif choice == "baidu":
        provider = SearchProvider.BAIDU

    if settings.bing_search_api_key:
        provider = SearchProvider.BING
    if settings.serpapi_api_key:
        provider = SearchProvider.SERPAPI
    if settings.google_cse_id and settings.google_search_api_key:
        provider = SearchProvider.GOOGLE_CSE

    return provider


def extract_auth_token(header_value: Optional[str]) -> str:
    """Strip the Bearer scheme from an Authorization / api-key header value"""
    return (header_value or "").strip().replace("Bearer ", "").strip()


def resolve_api_key(token: str, is_azure: bool, settings: Settings) -> str:
    """Choose the provider key for a request.

    Azure requests always use the caller's token. Otherwise a real provider
    key from the caller wins over the server key; access codes and empty
    tokens fall back to the server key.
    """
    if is_azure:
        return token

    if token and not token.startswith(ACCESS_CODE_PREFIX):
        return token

    if settings.is_azure and settings.azure_api_key:
        return settings.azure_api_key
    return settings.openai_api_key


def resolve_base_url(request_base_url: Optional[str], is_azure: bool, settings: Settings) -> str:
    """Resolve the provider base URL for a request"""
    base_url = DEFAULT_OPENAI_URL

    if settings.base_url:
        base_url = settings.base_url

    if request_base_url and request_base_url.startswith(("http://", "https://")):
        base_url = request_base_url

    if not is_azure and not base_url.endswith("/v1"):
        base_url = f"{base_url}v1" if base_url.endswith("/") else f"{base_url}/v1"

    if not is_azure and settings.is_azure:
        base_url = settings.azure_url or base_url

    return base_url


@dataclass(frozen=True)
class RequestConfig:
    """Immutable per-request settings for one agent run"""
    model: str
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    stream: bool = True
    is_azure: bool = False
    azure_api_version: Optional[str] = None
    base_url: str = DEFAULT_OPENAI_URL
    api_key: str = ""
    max_iterations: int = 10
    return_intermediate_steps: bool = False
    use_tools: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_request(cls, body: 'AgentRequest', auth_token: str, settings: Settings) -> 'RequestConfig':
        """Build the request configuration from a parsed request body"""
        is_azure = bool(body.is_azure)
        use_azure = is_azure or settings.is_azure

        azure_api_version = None
        if use_azure:
            azure_api_version = body.azure_api_version if is_azure else settings.azure_api_version

        max_iterations = body.max_iterations
        if max_iterations is None:
            max_iterations = settings.default_max_iterations

        return cls(
            model=body.model or settings.default_model,
            temperature=body.temperature,
            top_p=body.top_p,
            presence_penalty=body.presence_penalty,
            frequency_penalty=body.frequency_penalty,
            stream=body.stream,
            is_azure=use_azure,
            azure_api_version=azure_api_version,
            base_url=resolve_base_url(body.base_url, is_azure, settings),
            api_key=resolve_api_key(auth_token, is_azure, settings),
            max_iterations=max_iterations,
            return_intermediate_steps=body.return_intermediate_steps,
            use_tools=tuple(name for name in body.use_tools if name),
        )
