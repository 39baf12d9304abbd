"""API routes package - Combines all route modules."""

from fastapi import APIRouter

from api.routes.analysis import router as analysis_router
from api.routes.health import router as health_router
from api.routes.models import router as models_router

# Combined router for all routes
router = APIRouter()

# Include route modules
router.include_router(health_router, tags=["health"])
router.include_router(analysis_router)
router.include_router(models_router, tags=["models"])

__all__ = ["router"]
