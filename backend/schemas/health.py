from datetime import datetime
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str
    llm_configured: bool
    timestamp: datetime


class LLMHealthResponse(BaseModel):
    configured: bool
    available: bool
    model: str
