"""Tests for the vision provider clients."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.config import Settings
from src.services.errors import WorkerError
from src.services.vision_service import DRINK_ANALYSIS_PROMPT, VisionService

RealAsyncClient = httpx.AsyncClient


def glm_settings(**overrides) -> Settings:
    return Settings(vision_provider="glm", bigmodel_api_key="test-key", **overrides)


def mock_glm(handler):
    """Route VisionService's httpx client through ``handler``."""
    transport = httpx.MockTransport(handler)
    return patch(
        "src.services.vision_service.httpx.AsyncClient",
        side_effect=lambda **kwargs: RealAsyncClient(transport=transport, **kwargs),
    )


def completion(content, finish_reason="stop"):
    return {"choices": [{"message": {"content": content}, "finish_reason": finish_reason}]}


class TestGlm:
    """Tests for the GLM chat-completions client."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion('{"brand": "Luckin"}'))

        with mock_glm(handler):
            content = await VisionService(glm_settings()).analyze_image("aGVsbG8=", "image/png")

        assert content == '{"brand": "Luckin"}'
        assert captured["url"].endswith("/chat/completions")
        assert captured["auth"] == "Bearer test-key"
        body = captured["body"]
        assert body["model"] == "glm-4.6v"
        assert body["tools"][0]["type"] == "web_search"
        parts = body["messages"][0]["content"]
        assert parts[0]["text"] == DRINK_ANALYSIS_PROMPT
        assert parts[1]["image_url"]["url"] == "data:image/png;base64,aGVsbG8="

    @pytest.mark.asyncio
    async def test_api_error(self):
        with mock_glm(lambda request: httpx.Response(429, text="rate limited")):
            with pytest.raises(WorkerError, match="GLM API Error: rate limited"):
                await VisionService(glm_settings()).analyze_image("aGVsbG8=", "image/jpeg")

    @pytest.mark.asyncio
    async def test_truncated_response(self):
        response = completion('{"brand": "Lu', finish_reason="length")
        with mock_glm(lambda request: httpx.Response(200, json=response)):
            with pytest.raises(WorkerError, match="truncated"):
                await VisionService(glm_settings()).analyze_image("aGVsbG8=", "image/jpeg")

    @pytest.mark.asyncio
    async def test_empty_response(self):
        with mock_glm(lambda request: httpx.Response(200, json=completion(""))):
            with pytest.raises(WorkerError, match="empty"):
                await VisionService(glm_settings()).analyze_image("aGVsbG8=", "image/jpeg")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        service = VisionService(Settings(vision_provider="glm", bigmodel_api_key=None))
        assert not service.is_configured
        with pytest.raises(WorkerError, match="not configured"):
            await service.analyze_image("aGVsbG8=", "image/jpeg")


class TestClaude:
    """Tests for the Claude Vision client."""

    @pytest.mark.asyncio
    async def test_returns_text_blocks(self):
        message = SimpleNamespace(
            stop_reason="end_turn",
            content=[SimpleNamespace(type="text", text='{"brand": "Starbucks"}')],
        )
        settings = Settings(vision_provider="anthropic", anthropic_api_key="sk-test")

        with patch("src.services.vision_service.anthropic.AsyncAnthropic") as mock_client:
            mock_client.return_value.messages.create = AsyncMock(return_value=message)
            content = await VisionService(settings).analyze_image("aGVsbG8=", None)

        assert content == '{"brand": "Starbucks"}'
        kwargs = mock_client.return_value.messages.create.call_args.kwargs
        image = kwargs["messages"][0]["content"][0]
        assert image["source"]["media_type"] == "image/jpeg"
        assert image["source"]["data"] == "aGVsbG8="

    @pytest.mark.asyncio
    async def test_max_tokens_is_truncation(self):
        message = SimpleNamespace(
            stop_reason="max_tokens", content=[SimpleNamespace(type="text", text="{")]
        )
        settings = Settings(vision_provider="anthropic", anthropic_api_key="sk-test")

        with patch("src.services.vision_service.anthropic.AsyncAnthropic") as mock_client:
            mock_client.return_value.messages.create = AsyncMock(return_value=message)
            with pytest.raises(WorkerError, match="truncated"):
                await VisionService(settings).analyze_image("aGVsbG8=", "image/jpeg")


def test_unknown_provider_rejected():
    with pytest.raises(ValueError):
        Settings(vision_provider="openai")
