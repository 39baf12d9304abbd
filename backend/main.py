"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import get_settings

settings = get_settings()

# Configure logging before importing other modules
# This ensures all loggers created with getLogger(__name__) use this configuration
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ],
    force=True,  # Override any existing configuration
)

# Set specific loggers to appropriate levels
logging.getLogger("uvicorn").setLevel(logging.INFO)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)  # Reduce access log noise
logging.getLogger("httpx").setLevel(logging.WARNING)  # Reduce HTTP client noise

logger = logging.getLogger(__name__)

from analysis.engine import StockAnalysisEngine  # noqa: E402
from api import api_router  # noqa: E402
from api.exceptions import (  # noqa: E402
    DataSourceError,
    GenerationError,
    LLMNotConfiguredError,
    ValidationError,
    data_source_error_handler,
    generation_error_handler,
    llm_not_configured_handler,
    validation_error_handler,
)
from api.routes.health import VERSION  # noqa: E402
from data.adapters.dnse import DNSEAdapter  # noqa: E402
from data.adapters.vndirect import VNDirectAdapter  # noqa: E402
from llm.gemini_client import GeminiClient, GeminiConfig  # noqa: E402


def create_engine() -> StockAnalysisEngine:
    """Build the analysis engine and its clients from settings."""
    return StockAnalysisEngine(
        client=GeminiClient(GeminiConfig.from_settings(settings)),
        vndirect=VNDirectAdapter(
            base_url=settings.VNDIRECT_API_BASE,
            timeout=settings.DATA_SOURCE_TIMEOUT_SECONDS,
        ),
        dnse=DNSEAdapter(
            base_url=settings.DNSE_API_BASE,
            timeout=settings.DATA_SOURCE_TIMEOUT_SECONDS,
        ),
        settings=settings,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown."""
    engine = create_engine()
    app.state.engine = engine
    if settings.llm_configured:
        logger.info(f"Text generation: Gemini ({settings.GEMINI_API_BASE})")
    else:
        logger.warning("GEMINI_API_KEY is not set; analysis endpoints will return configuration errors")
    yield
    # Shutdown: release HTTP clients
    await engine.close()


app = FastAPI(
    title="Stock Signal Pipeline API",
    description="Technical indicators and normalized AI analysis for Vietnamese equities",
    version=VERSION,
    lifespan=lifespan,
)

# Configure CORS for the dashboard frontend (any localhost port)
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^http://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(ValidationError, validation_error_handler)
app.add_exception_handler(DataSourceError, data_source_error_handler)
app.add_exception_handler(GenerationError, generation_error_handler)
app.add_exception_handler(LLMNotConfiguredError, llm_not_configured_handler)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An unexpected error occurred",
            "detail": str(exc) if settings.DEBUG else None,
        },
    )


# Include API router with version prefix
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port)
