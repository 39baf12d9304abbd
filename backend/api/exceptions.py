"""Custom exception classes and handlers for the API."""

from fastapi import Request
from fastapi.responses import JSONResponse

from data.adapters.errors import DataSourceError
from llm.gemini_client import GenerationError, GenerationErrorKind, LLMNotConfiguredError

__all__ = [
    "DataSourceError",
    "GenerationError",
    "LLMNotConfiguredError",
    "ValidationError",
    "data_source_error_handler",
    "generation_error_handler",
    "llm_not_configured_handler",
    "validation_error_handler",
]

_KIND_STATUS = {
    GenerationErrorKind.TIMEOUT: 504,
    GenerationErrorKind.EMPTY_RESPONSE: 502,
    GenerationErrorKind.NETWORK_ERROR: 503,
}


class ValidationError(Exception):
    """Raised when request validation fails."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle ValidationError exceptions."""
    content = {
        "success": False,
        "message": exc.message,
    }
    if exc.field:
        content["field"] = exc.field
    return JSONResponse(
        status_code=422,
        content=content,
    )


async def data_source_error_handler(request: Request, exc: DataSourceError) -> JSONResponse:
    """Handle DataSourceError exceptions."""
    return JSONResponse(
        status_code=503,
        content={
            "success": False,
            "message": str(exc),
            "source": exc.source,
        },
    )


def generation_error_status(exc: GenerationError) -> int:
    """HTTP status for a generation failure; upstream statuses pass through."""
    if exc.kind in _KIND_STATUS:
        return _KIND_STATUS[exc.kind]
    return exc.status_code or 502


async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    """Handle GenerationError exceptions."""
    return JSONResponse(
        status_code=generation_error_status(exc),
        content={
            "success": False,
            "message": exc.message,
            "kind": exc.kind.value,
            "retryable": exc.retryable,
        },
    )


async def llm_not_configured_handler(request: Request, exc: LLMNotConfiguredError) -> JSONResponse:
    """Handle LLMNotConfiguredError exceptions."""
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": exc.message,
            "retryable": False,
        },
    )
