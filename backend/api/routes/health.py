"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter

from api.deps import AppSettings, Engine
from llm.models import DEFAULT_GEMINI_MODEL
from schemas.health import HealthResponse, LLMHealthResponse

router = APIRouter()

VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: AppSettings) -> HealthResponse:
    """Return health status of the API and whether text generation is configured."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        llm_configured=settings.llm_configured,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/health/llm", response_model=LLMHealthResponse)
async def llm_health_check(engine: Engine) -> LLMHealthResponse:
    """Send a minimal prompt to the default model and report whether it answered."""
    available = await engine.client.health_check(DEFAULT_GEMINI_MODEL)
    return LLMHealthResponse(
        configured=engine.client.is_configured,
        available=available,
        model=DEFAULT_GEMINI_MODEL,
    )
