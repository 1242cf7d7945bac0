"""API route modules."""

from mapreviews.api.routes.health import router as health_router
from mapreviews.api.routes.history import router as history_router
from mapreviews.api.routes.runs import router as runs_router

__all__ = [
    "health_router",
    "history_router",
    "runs_router",
]
