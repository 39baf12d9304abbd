from pydantic import BaseModel


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str
    is_default: bool = False


class ModelListResponse(BaseModel):
    models: list[ModelInfo]
    default_model: str
