"""Common dependencies for API routes."""

from typing import Annotated

from fastapi import Depends, Request

from analysis.engine import StockAnalysisEngine
from config import Settings, get_settings


def get_engine(request: Request) -> StockAnalysisEngine:
    """Analysis engine created in the application lifespan."""
    return request.app.state.engine


# Type aliases for dependency injection
AppSettings = Annotated[Settings, Depends(get_settings)]
Engine = Annotated[StockAnalysisEngine, Depends(get_engine)]
