"""HTTP API for indicators and stock analysis."""

from fastapi import APIRouter

from api.routes import router as routes_router

api_router = APIRouter()
api_router.include_router(routes_router)

__all__ = ["api_router"]
