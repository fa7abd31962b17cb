"""
Catalog tools that ship with agentstream.
"""

import ast
import operator
from typing import Optional
from urllib.parse import quote

import httpx

from .decorators import ToolDescriptor, tool
from ...config import Settings

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}

MAX_EXPONENT = 1000


def _evaluate(node: ast.AST):
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left, right = _evaluate(node.left), _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BINARY_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


@tool(name="calculator", description=(
    "Useful for getting the result of a math expression. "
    "The input to this tool should be a valid arithmetic expression, such as (3 + 4) * 2."
))
def calculator(expression: str) -> str:
    try:
        result = _evaluate(ast.parse(expression.strip(), mode="eval"))
    except (SyntaxError, ValueError, ZeroDivisionError, OverflowError) as e:
        return f"FAIL: cannot evaluate '{expression}': {e}"
    return str(result)


class WikipediaLookup:
    """Page summaries from the Wikipedia REST API"""

    name = "wikipedia-api"
    description = (
        "A tool for interacting with and fetching data from the Wikipedia API. "
        "Input should be the title of the article to look up."
    )

    def __init__(self, settings: Settings, language: str = "en",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = f"https://{language}.wikipedia.org/api/rest_v1/page/summary/"
        self.timeout = settings.tool_timeout
        self.transport = transport

    async def run(self, query: str) -> str:
        title = (query or "").strip().replace(" ", "_")
        if not title:
            return "FAIL: article title is empty"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport,
                                         follow_redirects=True) as client:
                response = await client.get(self.base_url + quote(title))
        except httpx.HTTPError as e:
            return f"FAIL: {e}"

        if response.status_code == 404:
            return "No good Wikipedia Search Result was found"
        if response.is_error:
            return f"FAIL: Wikipedia returned HTTP {response.status_code}"

        data = response.json()
        return f"Page: {data.get('title', query)}\nSummary: {data.get('extract', '')}"

    def as_tool(self) -> ToolDescriptor:
        return ToolDescriptor(name=self.name, description=self.description, invoke=self.run)
