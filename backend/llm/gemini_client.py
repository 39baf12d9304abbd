"""HTTP client for the Gemini ``generateContent`` API.

One ``GeminiClient`` is created at application start-up from an immutable
``GeminiConfig`` and shared by all requests; it holds no per-request state.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from config import Settings
from llm.models import DEFAULT_GEMINI_MODEL, get_validated_model

logger = logging.getLogger(__name__)


class LLMNotConfiguredError(Exception):
    """Raised when no API key is configured for the text-generation service."""

    def __init__(self, message: str = "Gemini API key is not configured") -> None:
        self.message = message
        super().__init__(message)


class GenerationErrorKind(str, Enum):
    CLIENT_ERROR = "client_error"
    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    EMPTY_RESPONSE = "empty_response"


_RETRYABLE_KINDS = {
    GenerationErrorKind.RATE_LIMITED,
    GenerationErrorKind.SERVER_ERROR,
    GenerationErrorKind.TIMEOUT,
    GenerationErrorKind.NETWORK_ERROR,
    GenerationErrorKind.EMPTY_RESPONSE,
}


class GenerationError(Exception):
    """Raised when the text-generation call fails or returns no text."""

    def __init__(
        self,
        kind: GenerationErrorKind,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS


@dataclass(frozen=True)
class GeminiConfig:
    """Connection and sampling settings for ``GeminiClient``."""
    api_key: Optional[str]
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    timeout_seconds: float = 30.0
    temperature: float = 0.3
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 2048

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiConfig":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            base_url=settings.GEMINI_API_BASE,
            timeout_seconds=settings.GEMINI_TIMEOUT_SECONDS,
            temperature=settings.GEMINI_TEMPERATURE,
            max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
        )


@dataclass
class GenerationResult:
    """Generated text with usage metadata."""

    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: float = 0.0


def _error_for_status(status_code: int, model: str, detail: str) -> GenerationError:
    if status_code in (401, 403):
        return GenerationError(
            GenerationErrorKind.AUTH_ERROR, "Gemini API key is invalid or has been disabled", status_code
        )
    if status_code == 404:
        return GenerationError(GenerationErrorKind.CLIENT_ERROR, f"Gemini model '{model}' was not found", status_code)
    if status_code == 429:
        return GenerationError(
            GenerationErrorKind.RATE_LIMITED, "Gemini rate limit exceeded, please try again later", status_code
        )
    if status_code >= 500:
        return GenerationError(GenerationErrorKind.SERVER_ERROR, "Gemini service error, please try again later", status_code)
    message = "Invalid request to Gemini"
    if detail:
        message = f"{message}: {detail}"
    return GenerationError(GenerationErrorKind.CLIENT_ERROR, message, status_code)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return ""
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return str(payload["error"].get("message", ""))
    return ""


def _extract_text(payload: Dict[str, Any]) -> str:
    """Text of the first part of the first candidate, or an empty string."""
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return ""
    text = parts[0].get("text")
    return text if isinstance(text, str) else ""


class GeminiClient:
    """Async client for Gemini text generation.

    API Documentation: https://ai.google.dev/api/generate-content
    """

    def __init__(
        self,
        config: GeminiConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        """Check if API key is configured."""
        return bool(self.config.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def _build_body(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "topK": self.config.top_k,
                "topP": self.config.top_p,
                "maxOutputTokens": self.config.max_output_tokens,
            },
        }

    async def _post(self, model: str, prompt: str) -> httpx.Response:
        client = self._get_client()
        return await client.post(
            f"/{model}:generateContent",
            json=self._build_body(prompt),
            headers={"x-goog-api-key": self.config.api_key or ""},
        )

    async def complete(self, prompt: str, model: Optional[str] = None) -> GenerationResult:
        """Generate text for ``prompt``.

        Args:
            prompt: Full natural-language request.
            model: Model id; anything not on the allow-list falls back to the default.

        Returns:
            The generated text with token usage.

        Raises:
            LLMNotConfiguredError: No API key configured.
            GenerationError: Transport failure, timeout, error status or empty text.
        """
        if not self.is_configured:
            raise LLMNotConfiguredError()

        model_id = get_validated_model(model)
        started = time.monotonic()

        try:
            response = await asyncio.wait_for(
                self._post(model_id, prompt), timeout=self.config.timeout_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning(f"Gemini request timed out after {self.config.timeout_seconds}s (model={model_id})")
            raise GenerationError(
                GenerationErrorKind.TIMEOUT,
                f"Gemini did not respond within {self.config.timeout_seconds:g} seconds",
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Gemini request failed: {exc}")
            raise GenerationError(GenerationErrorKind.NETWORK_ERROR, "Could not reach Gemini") from exc

        if response.status_code >= 400:
            error = _error_for_status(response.status_code, model_id, _error_detail(response))
            logger.warning(f"Gemini returned HTTP {response.status_code} (model={model_id}): {error.message}")
            raise error

        try:
            payload = response.json()
        except ValueError as exc:
            raise GenerationError(GenerationErrorKind.SERVER_ERROR, "Gemini returned a non-JSON response") from exc

        if isinstance(payload, dict) and payload.get("error"):
            raise GenerationError(GenerationErrorKind.SERVER_ERROR, "Gemini returned an error payload")

        text = _extract_text(payload) if isinstance(payload, dict) else ""
        if not text.strip():
            raise GenerationError(GenerationErrorKind.EMPTY_RESPONSE, "Gemini returned an empty response")

        usage = payload.get("usageMetadata")
        if not isinstance(usage, dict):
            usage = {}
        result = GenerationResult(
            text=text,
            model=model_id,
            input_tokens=int(usage.get("promptTokenCount", 0) or 0),
            output_tokens=int(usage.get("candidatesTokenCount", 0) or 0),
            duration_ms=(time.monotonic() - started) * 1000,
        )
        logger.info(
            f"Gemini generated {len(text)} chars in {result.duration_ms:.0f}ms "
            f"(model={model_id}, tokens in={result.input_tokens} out={result.output_tokens})"
        )
        return result

    async def generate(self, prompt: str, model: Optional[str] = None) -> str:
        """Generate text for ``prompt`` and return only the text."""
        result = await self.complete(prompt, model)
        return result.text

    async def health_check(self, model: str = DEFAULT_GEMINI_MODEL) -> bool:
        """Send a minimal prompt to check the key and model are usable."""
        if not self.is_configured:
            return False
        try:
            await self.generate("ping", model)
        except GenerationError as exc:
            logger.warning(f"Gemini health check failed: {exc.kind.value} - {exc.message}")
            return False
        return True

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
