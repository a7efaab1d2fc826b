"""API Router Module"""

from fastapi import APIRouter

from .events import router as events_router
from .health import router as health_router

# Create main API router
api_router = APIRouter(prefix="/api")

# Include all sub-routers
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(events_router, tags=["Calendar"])

__all__ = ["api_router"]
