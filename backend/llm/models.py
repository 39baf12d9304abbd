"""Allow-list of Gemini models the analysis endpoints may call."""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class GeminiModel:
    id: str
    name: str
    description: str
    active: bool = True


GEMINI_MODELS: List[GeminiModel] = [
    GeminiModel(
        id="gemini-2.5-flash",
        name="Gemini 2.5 Flash",
        description="Balanced speed and reasoning quality",
    ),
    GeminiModel(
        id="gemini-2.5-flash-lite",
        name="Gemini 2.5 Flash Lite",
        description="Fastest and cheapest, good for routine analyses",
    ),
]

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-lite"


def get_active_models() -> List[GeminiModel]:
    return [m for m in GEMINI_MODELS if m.active]


def is_valid_model(model_id: Optional[str]) -> bool:
    return any(m.id == model_id for m in get_active_models())


def get_validated_model(model_id: Optional[str]) -> str:
    """Return ``model_id`` if it is allow-listed, otherwise the default model."""
    if model_id and is_valid_model(model_id):
        return model_id
    return DEFAULT_GEMINI_MODEL
