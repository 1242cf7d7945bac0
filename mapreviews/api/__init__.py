"""
mapreviews FastAPI Application.

- main: FastAPI application entry point and configuration
- routes/: API endpoint definitions organized by domain
- models: Pydantic request/response models
- dependencies: run registry and dependency injection providers

API Structure:
- /health - Health check and liveness probes
- /api/v1/runs - Start runs, select places, fetch and export results
- /api/v1/history - Past runs saved on disk

Example:
    from mapreviews.api.main import app

    # Run with: uvicorn mapreviews.api.main:app --reload
"""

from mapreviews.api.main import app, create_app

__all__ = ["app", "create_app"]
