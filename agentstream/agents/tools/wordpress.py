"""
WordPress publishing tool - posts articles through the WordPress REST API.
"""

import json
from typing import Optional

import httpx

from .decorators import ToolDescriptor
from ...config import Settings
from ...utils.logging import get_logger

DEFAULT_TITLE = "Untitled"


class WordPressPublisher:
    """Publishes a post from a JSON input with `title` and `content`"""

    name = "post2wordpress"
    description = (
        "A tool to post articles to a WordPress site. It uses the WordPress REST API "
        "to create new posts. Input must be a JSON string with 'title' and 'content' "
        'properties, such as {"title": "My Post Title", "content": "My Post Content"}.'
    )

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = settings.wp_post_api_url
        self.user = settings.wp_user
        self.password = settings.wp_password
        self.timeout = settings.tool_timeout
        self.transport = transport
        self.logger = get_logger('tools.wordpress')

    async def run(self, tool_input: str) -> str:
        try:
            payload = json.loads(tool_input) if isinstance(tool_input, str) else dict(tool_input)
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            self.logger.warning(f"Input is not valid JSON: {e}")
            return "FAIL: input must be a JSON string with 'title' and 'content'."

        if not isinstance(payload, dict):
            return "FAIL: input must be a JSON object with 'title' and 'content'."

        content = payload.get("content") or ""
        title = payload.get("title") or DEFAULT_TITLE
        if not content:
            return "FAIL: article content must not be empty."

        return await self.publish(title, content)

    async def publish(self, title: str, content: str) -> str:
        if not (self.api_url and self.user and self.password):
            self.logger.error("WordPress is not configured (WP_POST_API_URL, WP_USER, WP_PASSWORD)")
            return "FAIL: WordPress credentials are not configured."

        post = {"title": title, "content": content, "status": "publish"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=post, auth=(self.user, self.password))
        except httpx.HTTPError as e:
            self.logger.error(f"WordPress request failed: {e}")
            return f"FAIL: {e}"

        if response.is_error:
            self.logger.warning(f"WordPress rejected post: HTTP {response.status_code}")
            return f"FAIL: unable to post to WordPress. HTTP status: {response.status_code}"

        self.logger.info(f"Published WordPress post '{title[:40]}'")
        return f"SUCCESS: published, response: {response.text}"

    def as_tool(self) -> ToolDescriptor:
        return ToolDescriptor(name=self.name, description=self.description, invoke=self.run)
