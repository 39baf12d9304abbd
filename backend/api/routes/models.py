"""Text-generation model listing."""

from fastapi import APIRouter

from llm.models import DEFAULT_GEMINI_MODEL, get_active_models
from schemas.llm import ModelInfo, ModelListResponse

router = APIRouter()


@router.get("/models", response_model=ModelListResponse)
async def list_models() -> ModelListResponse:
    """List the models analysis requests may ask for."""
    return ModelListResponse(
        models=[
            ModelInfo(
                id=m.id,
                name=m.name,
                description=m.description,
                is_default=m.id == DEFAULT_GEMINI_MODEL,
            )
            for m in get_active_models()
        ],
        default_model=DEFAULT_GEMINI_MODEL,
    )
