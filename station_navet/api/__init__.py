"""API routes for Station-Navet."""

from fastapi import APIRouter

from .admin import router as admin_router
from .notifications import router as notifications_router
from .organizations import router as organizations_router
from .posts import router as posts_router
from .tasks import router as tasks_router
from .user import router as user_router

# Main API router
api_router = APIRouter()

# User routes (/me/*)
api_router.include_router(user_router)

# Lifecycle routes
api_router.include_router(posts_router)
api_router.include_router(tasks_router)

api_router.include_router(notifications_router)
api_router.include_router(organizations_router)
api_router.include_router(admin_router)

__all__ = ["api_router"]
