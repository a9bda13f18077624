"""
Tests for the Content Safety and Claude provider clients

Uses httpx.MockTransport so the wire format can be asserted without network.
"""

import json

import httpx
import pytest

from shared.errors import (
    GenerationAPIError,
    GenerationError,
    GenerationNetworkError,
    GenerationParseError,
    GenerationRateLimitError,
    ModerationAPIError,
    ModerationError,
    ModerationNetworkError,
    ModerationParseError,
    UpstreamError,
)
from providers import ClaudeProvider, ContentSafetyProvider


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def claude_reply(text: str = "Paris is the capital of France.") -> dict:
    return {
        "id": "msg_01",
        "type": "message",
        "role": "assistant",
        "model": "claude-3-sonnet-20240229",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 12, "output_tokens": 8},
    }


class TestContentSafetyProvider:
    """Azure AI Content Safety client"""

    def make_provider(self, handler) -> ContentSafetyProvider:
        return ContentSafetyProvider(
            api_key="cs-key",
            endpoint="https://contentsafety.test/",
            http_client=mock_client(handler),
        )

    @pytest.mark.asyncio
    async def test_analyze_text_request_and_parse(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={
                "blocklistsMatch": [],
                "categoriesAnalysis": [
                    {"category": "Hate", "severity": 2},
                    {"category": "Violence", "severity": 0},
                ],
            })

        provider = self.make_provider(handler)
        result = await provider.analyze_text("What is the capital of France?")

        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/contentsafety/text:analyze"
        assert request.url.params["api-version"] == "2023-10-01"
        assert request.headers["Ocp-Apim-Subscription-Key"] == "cs-key"
        assert json.loads(request.content) == {"text": "What is the capital of France?"}
        assert [(c.category, c.severity) for c in result] == [("Hate", 2), ("Violence", 0)]

    @pytest.mark.asyncio
    async def test_server_error_raises_moderation_error(self):
        provider = self.make_provider(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(ModerationAPIError) as exc_info:
            await provider.analyze_text("hello")

        assert isinstance(exc_info.value, ModerationError)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_unauthorized_raises_moderation_error(self):
        provider = self.make_provider(lambda request: httpx.Response(401, json={"error": {"code": "401"}}))

        with pytest.raises(ModerationError):
            await provider.analyze_text("hello")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"unexpected": True},
        {"categoriesAnalysis": [{"category": "Hate"}]},
        {"categoriesAnalysis": "nope"},
    ])
    async def test_unexpected_body_raises_parse_error(self, body):
        provider = self.make_provider(lambda request: httpx.Response(200, json=body))

        with pytest.raises(ModerationParseError):
            await provider.analyze_text("hello")

    @pytest.mark.asyncio
    async def test_non_json_body_raises_parse_error(self):
        provider = self.make_provider(lambda request: httpx.Response(200, text="<html>gateway</html>"))

        with pytest.raises(ModerationParseError):
            await provider.analyze_text("hello")

    @pytest.mark.asyncio
    async def test_transport_failure_raises_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = self.make_provider(handler)

        with pytest.raises(ModerationNetworkError):
            await provider.analyze_text("hello")


class TestClaudeProvider:
    """Claude Messages API client"""

    def make_provider(self, handler) -> ClaudeProvider:
        return ClaudeProvider(
            api_key="claude-key",
            endpoint="https://api.anthropic.test/v1/messages",
            model="claude-3-sonnet-20240229",
            http_client=mock_client(handler),
        )

    @pytest.mark.asyncio
    async def test_complete_request_and_parse(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json=claude_reply())

        provider = self.make_provider(handler)
        text = await provider.complete("What is the capital of France?", "Be concise.")

        request = seen["request"]
        assert str(request.url) == "https://api.anthropic.test/v1/messages"
        assert request.headers["x-api-key"] == "claude-key"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert json.loads(request.content) == {
            "model": "claude-3-sonnet-20240229",
            "max_tokens": 1024,
            "messages": [
                {"role": "system", "content": "Be concise."},
                {"role": "user", "content": "What is the capital of France?"},
            ],
        }
        assert text == "Paris is the capital of France."

    @pytest.mark.asyncio
    async def test_headers_are_request_scoped(self):
        provider = self.make_provider(lambda request: httpx.Response(200, json=claude_reply()))

        await provider.complete("hi", "")

        assert "x-api-key" not in provider.client.headers
        assert "anthropic-version" not in provider.client.headers

    @pytest.mark.asyncio
    async def test_model_override(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=claude_reply())

        provider = self.make_provider(handler)
        await provider.complete("hi", "", model="claude-3-haiku-20240307")

        assert seen["body"]["model"] == "claude-3-haiku-20240307"

    @pytest.mark.asyncio
    async def test_service_unavailable_raises_generation_error(self):
        provider = self.make_provider(lambda request: httpx.Response(503, text="overloaded"))

        with pytest.raises(GenerationNetworkError) as exc_info:
            await provider.complete("hi", "")

        assert isinstance(exc_info.value, GenerationError)
        assert isinstance(exc_info.value, UpstreamError)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_rate_limit_raises_generation_error(self):
        provider = self.make_provider(lambda request: httpx.Response(429, json={"type": "error"}))

        with pytest.raises(GenerationRateLimitError):
            await provider.complete("hi", "")

    @pytest.mark.asyncio
    async def test_bad_request_raises_generation_error(self):
        provider = self.make_provider(lambda request: httpx.Response(400, json={"type": "error"}))

        with pytest.raises(GenerationAPIError):
            await provider.complete("hi", "")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"content": []},
        {"content": [{"type": "tool_use", "id": "toolu_01", "name": "x", "input": {}}]},
        {"content": [{"type": "text"}]},
        {"choices": [{"message": {"content": "wrong provider shape"}}]},
    ])
    async def test_unexpected_envelope_raises_parse_error(self, body):
        provider = self.make_provider(lambda request: httpx.Response(200, json=body))

        with pytest.raises(GenerationParseError):
            await provider.complete("hi", "")

    @pytest.mark.asyncio
    async def test_empty_text_is_returned_as_is(self):
        provider = self.make_provider(lambda request: httpx.Response(200, json=claude_reply("")))

        assert await provider.complete("hi", "") == ""

    @pytest.mark.asyncio
    async def test_timeout_raises_network_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = self.make_provider(handler)

        with pytest.raises(GenerationNetworkError):
            await provider.complete("hi", "")

    @pytest.mark.asyncio
    async def test_from_settings(self, upstream_env):
        from shared.config import load_upstream_config

        provider = ClaudeProvider.from_settings(load_upstream_config())
        try:
            assert provider.url == upstream_env["CLAUDE_API_ENDPOINT"]
            assert provider.model == upstream_env["CLAUDE_API_MODEL"]
            assert provider.max_tokens == 1024
        finally:
            await provider.aclose()
