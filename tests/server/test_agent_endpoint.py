"""
Agent Endpoint Tests - agentstream

HTTP-level tests of the streaming agent endpoint and the informational
endpoints, using FastAPI's TestClient and a scripted chat model.

Run with: pytest tests/server/test_agent_endpoint.py -v
"""

from typing import List

import pytest
from fastapi.testclient import TestClient

from agentstream.agents.llm.base import ModelCallError
from agentstream.agents.tools.decorators import ToolDescriptor
from agentstream.agents.tools.registry import ToolRegistry
from agentstream.config import RequestConfig
from agentstream.server.core.app import AgentStreamServer

from conftest import FakeChatModel, answer_turn, make_settings, parse_sse, tool_call_turn

CHAT_PATH = "/api/agent/chat"


async def fake_search(query: str) -> str:
    return f"results for {query}"


def build_client(turns, configs: List[RequestConfig] = None, models: List[FakeChatModel] = None,
                 **settings_overrides) -> TestClient:
    settings = make_settings(**settings_overrides)
    registry = ToolRegistry(
        settings,
        search_tool_factory=lambda provider, s: ToolDescriptor("duckduckgo_search", "search", fake_search),
    )

    def model_factory(config: RequestConfig) -> FakeChatModel:
        model = FakeChatModel(turns)
        if configs is not None:
            configs.append(config)
        if models is not None:
            models.append(model)
        return model

    server = AgentStreamServer(settings=settings, registry=registry, custom_tools=[],
                               model_factory=model_factory)
    return TestClient(server.app)


def chat_body(text: str = "2+2?", **fields) -> dict:
    body = {
        "messages": [{"role": "user", "content": "hi"}, {"role": "user", "content": text}],
        "maxIterations": 5,
    }
    body.update(fields)
    return body


class TestStreamingEndpoint:

    def test_direct_answer_streams_token_envelopes(self):
        with build_client([answer_turn("2 + 2 ", "= 4")]) as client:
            with client.stream("POST", CHAT_PATH, json=chat_body()) as response:
                assert response.status_code == 200
                assert response.headers["content-type"].startswith("text/event-stream")
                body = "".join(response.iter_text())

        envelopes = parse_sse(body)
        assert "".join(e["message"] for e in envelopes) == "2 + 2 = 4"
        assert not any(e["isToolMessage"] for e in envelopes)
        assert all(e["isSuccess"] for e in envelopes)

    def test_tool_envelopes_when_intermediate_steps_requested(self):
        turns = [tool_call_turn("calculator", {"input": "2+2"}), answer_turn("4")]
        with build_client(turns) as client:
            response = client.post(CHAT_PATH, json=chat_body(useTools=["calculator"], returnIntermediateSteps=True))

        envelopes = parse_sse(response.text)
        assert envelopes[0] == {
            "isSuccess": True,
            "message": '{"input": "2+2"}',
            "isToolMessage": True,
            "toolName": "calculator",
        }
        assert envelopes[-1]["message"] == "4"

    def test_no_tool_envelopes_when_intermediate_steps_off(self):
        turns = [tool_call_turn("calculator", {"input": "2+2"}), answer_turn("4")]
        with build_client(turns) as client:
            response = client.post(CHAT_PATH, json=chat_body(useTools=["calculator"]))

        envelopes = parse_sse(response.text)
        assert [e["message"] for e in envelopes] == ["4"]

    def test_web_search_with_unknown_tool(self):
        models: List[FakeChatModel] = []
        turns = [tool_call_turn("duckduckgo_search", {"input": "weather"}), answer_turn("Sunny")]
        with build_client(turns, models=models) as client:
            response = client.post(CHAT_PATH, json=chat_body(useTools=["web-search", "does-not-exist"]))

        assert response.status_code == 200
        assert [e["message"] for e in parse_sse(response.text)] == ["Sunny"]
        model = models[0]
        assert model.tool_names[0] == ["duckduckgo_search"]
        assert model.calls[1]["messages"][-1]["content"] == "results for weather"

    def test_model_failure_ends_with_error_envelope(self):
        with build_client([ModelCallError("upstream unavailable")]) as client:
            response = client.post(CHAT_PATH, json=chat_body())

        assert response.status_code == 200
        assert parse_sse(response.text) == [
            {"isSuccess": False, "message": "upstream unavailable", "isToolMessage": False},
        ]

    def test_zero_iterations_streams_nothing(self):
        models: List[FakeChatModel] = []
        with build_client([answer_turn("unused")], models=models) as client:
            response = client.post(CHAT_PATH, json=chat_body(maxIterations=0))

        assert response.status_code == 200
        assert response.text == ""
        assert models[0].calls == []


class TestRequestHandling:

    def test_empty_messages_is_bad_request(self):
        with build_client([answer_turn("unused")]) as client:
            response = client.post(CHAT_PATH, json={"messages": []})

        assert response.status_code == 400

    def test_missing_messages_is_validation_error(self):
        with build_client([answer_turn("unused")]) as client:
            response = client.post(CHAT_PATH, json={"model": "gpt-4o"})

        assert response.status_code == 422

    def test_negative_iterations_is_validation_error(self):
        with build_client([answer_turn("unused")]) as client:
            response = client.post(CHAT_PATH, json=chat_body(maxIterations=-1))

        assert response.status_code == 422

    def test_assembly_failure_returns_json_error(self):
        settings = make_settings()

        def broken_factory(config):
            raise RuntimeError("no model binding")

        server = AgentStreamServer(settings=settings, custom_tools=[], model_factory=broken_factory)
        with TestClient(server.app) as client:
            response = client.post(CHAT_PATH, json=chat_body())

        assert response.status_code == 500
        assert response.json() == {"error": "no model binding"}

    def test_caller_key_from_authorization_header(self):
        configs: List[RequestConfig] = []
        with build_client([answer_turn("ok")], configs=configs) as client:
            client.post(CHAT_PATH, json=chat_body(), headers={"Authorization": "Bearer sk-caller"})
            client.post(CHAT_PATH, json=chat_body(), headers={"Authorization": "Bearer nk-access-code"})

        assert configs[0].api_key == "sk-caller"
        assert configs[1].api_key == "sk-server"

    def test_azure_request_uses_api_key_header(self):
        configs: List[RequestConfig] = []
        with build_client([answer_turn("ok")], configs=configs) as client:
            client.post(
                CHAT_PATH,
                json=chat_body(isAzure=True, azureApiVersion="2024-06-01", baseUrl="https://res.openai.azure.com"),
                headers={"api-key": "azure-key", "Authorization": "Bearer sk-ignored"},
            )

        config = configs[0]
        assert config.is_azure is True
        assert config.api_key == "azure-key"
        assert config.azure_api_version == "2024-06-01"
        assert config.base_url == "https://res.openai.azure.com"

    def test_request_id_header_is_echoed(self):
        with build_client([answer_turn("ok")]) as client:
            response = client.post(CHAT_PATH, json=chat_body(), headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestInfoEndpoints:

    def test_health(self):
        with build_client([answer_turn("ok")]) as client:
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["active_runs"] == 0
        assert data["uptime_seconds"] >= 0

    def test_tools_listing(self):
        with build_client([answer_turn("ok")], bing_search_api_key="bing-key") as client:
            response = client.get("/tools")

        data = response.json()
        assert data["search_provider"] == "bing"
        assert data["custom_tools"] == []
        assert data["catalog_tools"] == ["calculator", "wikipedia-api"]

    def test_url_prefix(self):
        server = AgentStreamServer(settings=make_settings(), custom_tools=[], url_prefix="/svc/",
                                   model_factory=lambda config: FakeChatModel([answer_turn("ok")]))
        with TestClient(server.app) as client:
            assert client.get("/svc/health").status_code == 200
            response = client.post("/svc" + CHAT_PATH, json=chat_body())

        assert [e["message"] for e in parse_sse(response.text)] == ["ok"]


@pytest.mark.parametrize("engine,expected", [("", "duckduckgo"), ("google", "google"), ("baidu", "baidu")])
def test_tools_listing_reports_engine_choice(engine, expected):
    with build_client([answer_turn("ok")], choose_search_engine=engine) as client:
        assert client.get("/tools").json()["search_provider"] == expected
