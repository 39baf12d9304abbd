"""LLM integration package for stock analysis."""

from llm.gemini_client import (
    GeminiClient,
    GeminiConfig,
    GenerationError,
    GenerationErrorKind,
    LLMNotConfiguredError,
)
from llm.models import DEFAULT_GEMINI_MODEL, GEMINI_MODELS, get_validated_model

__all__ = [
    "DEFAULT_GEMINI_MODEL",
    "GEMINI_MODELS",
    "GeminiClient",
    "GeminiConfig",
    "GenerationError",
    "GenerationErrorKind",
    "LLMNotConfiguredError",
    "get_validated_model",
]
