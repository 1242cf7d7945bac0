"""mapreviews API - Main FastAPI Application.

This module provides the FastAPI application for the mapreviews pipeline.
It includes:
- CORS middleware configuration
- API versioning (/api/v1)
- Health check endpoints
- Run and history endpoints

Usage:
    # Run with uvicorn
    uvicorn mapreviews.api.main:app --reload

    # Or run directly
    python -m mapreviews.api.main
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

import structlog
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mapreviews import __version__
from mapreviews.api.dependencies import get_registry, reset_dependencies
from mapreviews.api.models import ErrorResponse, ValidationErrorDetail, ValidationErrorResponse
from mapreviews.api.routes.health import router as health_router, set_server_start_time
from mapreviews.api.routes.history import router as history_router
from mapreviews.api.routes.runs import router as runs_router
from mapreviews.config.settings import get_settings
from mapreviews.core.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    MapReviewsError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# API metadata for OpenAPI documentation
API_TITLE = "mapreviews API"
API_DESCRIPTION = """
## Google Maps listing and review pipeline

Search Google Maps for a brand (or paste listing URLs), pick the places you
care about, scrape their reviews and optionally run AI analysis on them.

### Getting Started

1. **Start a run**: `POST /api/v1/runs` with a brand name or a URL list
2. **Poll**: `GET /api/v1/runs/{run_id}` until the stage is `SELECTING`
3. **Scrape**: `POST /api/v1/runs/{run_id}/scrape` with the chosen place ids
4. **Results**: `GET /api/v1/runs/{run_id}/results` once the stage is `DONE`
"""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Shutdown cancels in-flight runs before dropping the shared instances.
    """
    logger.info("application_starting")
    set_server_start_time()
    logger.info("application_started")

    yield

    logger.info("application_stopping")
    await get_registry().cancel_all()
    reset_dependencies()
    logger.info("application_stopped")


def _error_response(request: Request, status_code: int, error: str, exc: MapReviewsError) -> JSONResponse:
    response = ErrorResponse(
        error=error,
        message=exc.message,
        detail=exc.details or None,
        path=request.url.path,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


def create_app() -> FastAPI:
    """Build the application with middleware, exception handlers and routers."""
    settings = get_settings()

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {
                "name": "Health",
                "description": "System health and status endpoints",
            },
            {
                "name": "Runs",
                "description": "Discover places, scrape reviews and fetch results",
            },
            {
                "name": "History",
                "description": "Past run results saved on disk",
            },
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
    )

    # =========================================================================
    # Exception Handlers
    # =========================================================================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with detailed response."""
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(ValidationErrorDetail(
                field=field,
                message=error["msg"],
                value=error.get("input"),
            ))

        response = ValidationErrorResponse(
            errors=errors,
            timestamp=datetime.now(timezone.utc),
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=response.model_dump(mode="json"),
        )

    @app.exception_handler(ValidationError)
    async def input_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error_response(request, status.HTTP_400_BAD_REQUEST, "invalid_input", exc)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.warning("configuration_missing", path=request.url.path, config_key=exc.config_key)
        return _error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, "not_configured", exc)

    @app.exception_handler(InvalidTransitionError)
    async def transition_error_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error_response(request, status.HTTP_409_CONFLICT, "invalid_stage", exc)

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__,
        )

        response = ErrorResponse(
            error="internal_server_error",
            message="An unexpected error occurred",
            detail=str(exc) if get_settings().debug else None,
            path=request.url.path,
            timestamp=datetime.now(timezone.utc),
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response.model_dump(mode="json"),
        )

    # =========================================================================
    # Root Endpoints
    # =========================================================================

    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        return {
            "name": API_TITLE,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "api": "/api/v1",
        }

    @app.get("/api/v1", include_in_schema=False)
    async def api_v1_root() -> dict:
        """API v1 root - shows available endpoints."""
        return {
            "version": "v1",
            "endpoints": {
                "runs": "/api/v1/runs",
                "history": "/api/v1/history",
            },
            "documentation": "/docs",
        }

    # Health endpoints at root level
    app.include_router(health_router)

    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(runs_router)
    api_v1_router.include_router(history_router)
    app.include_router(api_v1_router)

    return app


app = create_app()


# =============================================================================
# Development Server
# =============================================================================


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "mapreviews.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
