"""API routes."""

from .files import router as files_router
from .folders import router as folders_router
from .auth_routes import router as auth_router

__all__ = ["files_router", "folders_router", "auth_router"]
