from __future__ import annotations
"""Master API router — mounts all sub-routers."""

from fastapi import APIRouter

from mediagen.api.ai_tasks import router as ai_tasks_router
from mediagen.api.credits import router as credits_router
from mediagen.api.notifications import router as notifications_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(ai_tasks_router, prefix="/ai", tags=["AI Tasks"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(credits_router, prefix="/credits", tags=["Credits"])
