"""Tests for the Gemini client and model allow-list.

All HTTP traffic goes through httpx.MockTransport; nothing leaves the process.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json

import httpx
import pytest

from config import Settings
from llm.gemini_client import (
    GeminiClient,
    GeminiConfig,
    GenerationError,
    GenerationErrorKind,
    LLMNotConfiguredError,
)
from llm.models import DEFAULT_GEMINI_MODEL, get_validated_model, is_valid_model


def gemini_payload(text: str) -> dict:
    return {
        "candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}],
        "usageMetadata": {"promptTokenCount": 120, "candidatesTokenCount": 80},
    }


def _client(handler, **config) -> GeminiClient:
    config.setdefault("api_key", "test-key")
    return GeminiClient(GeminiConfig(**config), transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

class TestGeminiConfig:
    def test_from_settings(self):
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            GEMINI_API_KEY="abc",
            GEMINI_TIMEOUT_SECONDS=12.5,
        )
        config = GeminiConfig.from_settings(settings)
        assert config.api_key == "abc"
        assert config.timeout_seconds == 12.5
        assert config.temperature == 0.3
        assert config.max_output_tokens == 2048

    def test_is_immutable(self):
        config = GeminiConfig(api_key="abc")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.api_key = "other"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Model allow-list
# ---------------------------------------------------------------------------

class TestModelAllowList:
    def test_default_model(self):
        assert DEFAULT_GEMINI_MODEL == "gemini-2.5-flash-lite"
        assert is_valid_model(DEFAULT_GEMINI_MODEL)

    def test_known_model_kept(self):
        assert get_validated_model("gemini-2.5-flash") == "gemini-2.5-flash"

    @pytest.mark.parametrize("model", [None, "", "gpt-4o", "gemini-1.0-pro"])
    def test_unknown_model_falls_back(self, model):
        assert get_validated_model(model) == DEFAULT_GEMINI_MODEL


# ---------------------------------------------------------------------------
# generate()
# ---------------------------------------------------------------------------

class TestGenerate:
    async def test_returns_text_and_sends_expected_request(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=gemini_payload("hello"))

        client = _client(handler)
        text = await client.generate("Analyse FPT", "gemini-2.5-flash")
        await client.close()

        assert text == "hello"
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path.endswith("/models/gemini-2.5-flash:generateContent")
        assert request.headers["x-goog-api-key"] == "test-key"
        body = json.loads(request.content)
        assert body["contents"][0]["parts"][0]["text"] == "Analyse FPT"
        assert body["generationConfig"] == {
            "temperature": 0.3,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 2048,
        }

    async def test_unknown_model_uses_default(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=gemini_payload("ok"))

        client = _client(handler)
        await client.generate("prompt", "not-a-model")
        assert seen[0].url.path.endswith(f"/{DEFAULT_GEMINI_MODEL}:generateContent")

    async def test_complete_reports_usage(self):
        client = _client(lambda request: httpx.Response(200, json=gemini_payload("ok")))
        result = await client.complete("prompt")
        assert result.text == "ok"
        assert result.model == DEFAULT_GEMINI_MODEL
        assert result.input_tokens == 120
        assert result.output_tokens == 80

    @pytest.mark.parametrize("usage", ["120 tokens", [120, 80], None])
    async def test_malformed_usage_counts_as_zero(self, usage):
        payload = gemini_payload("ok")
        payload["usageMetadata"] = usage
        client = _client(lambda request: httpx.Response(200, json=payload))
        result = await client.complete("prompt")
        assert result.text == "ok"
        assert result.input_tokens == 0
        assert result.output_tokens == 0

    async def test_not_configured(self):
        client = _client(lambda request: httpx.Response(200), api_key=None)
        assert client.is_configured is False
        with pytest.raises(LLMNotConfiguredError):
            await client.generate("prompt")

    @pytest.mark.parametrize("status,kind,retryable", [
        (400, GenerationErrorKind.CLIENT_ERROR, False),
        (403, GenerationErrorKind.AUTH_ERROR, False),
        (404, GenerationErrorKind.CLIENT_ERROR, False),
        (429, GenerationErrorKind.RATE_LIMITED, True),
        (500, GenerationErrorKind.SERVER_ERROR, True),
        (503, GenerationErrorKind.SERVER_ERROR, True),
    ])
    async def test_error_statuses(self, status, kind, retryable):
        client = _client(lambda request: httpx.Response(status, json={"error": {"message": "nope"}}))
        with pytest.raises(GenerationError) as exc_info:
            await client.generate("prompt")
        assert exc_info.value.kind == kind
        assert exc_info.value.status_code == status
        assert exc_info.value.retryable is retryable

    async def test_bad_request_includes_upstream_detail(self):
        client = _client(lambda request: httpx.Response(400, json={"error": {"message": "bad field"}}))
        with pytest.raises(GenerationError) as exc_info:
            await client.generate("prompt")
        assert "bad field" in exc_info.value.message

    @pytest.mark.parametrize("payload", [
        gemini_payload(""),
        gemini_payload("   \n "),
        {"candidates": []},
        {"candidates": [{"content": {"parts": []}}]},
        {},
    ])
    async def test_empty_text(self, payload):
        client = _client(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(GenerationError) as exc_info:
            await client.generate("prompt")
        assert exc_info.value.kind == GenerationErrorKind.EMPTY_RESPONSE

    async def test_error_payload_with_ok_status(self):
        client = _client(lambda request: httpx.Response(200, json={"error": {"message": "quota"}}))
        with pytest.raises(GenerationError) as exc_info:
            await client.generate("prompt")
        assert exc_info.value.kind == GenerationErrorKind.SERVER_ERROR

    async def test_timeout(self):
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=gemini_payload("too late"))

        client = _client(slow, timeout_seconds=0.05)
        with pytest.raises(GenerationError) as exc_info:
            await client.generate("prompt")
        assert exc_info.value.kind == GenerationErrorKind.TIMEOUT
        assert exc_info.value.retryable is True

    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(GenerationError) as exc_info:
            await client.generate("prompt")
        assert exc_info.value.kind == GenerationErrorKind.NETWORK_ERROR


# ---------------------------------------------------------------------------
# health_check()
# ---------------------------------------------------------------------------

class TestHealthCheck:
    async def test_healthy(self):
        client = _client(lambda request: httpx.Response(200, json=gemini_payload("pong")))
        assert await client.health_check() is True

    async def test_unhealthy(self):
        client = _client(lambda request: httpx.Response(403, json={}))
        assert await client.health_check() is False

    async def test_not_configured(self):
        client = _client(lambda request: httpx.Response(200), api_key=None)
        assert await client.health_check() is False
