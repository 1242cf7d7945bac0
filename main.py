"""
mapreviews - Main Entry Point

Serves the run and history API with uvicorn.
"""

import structlog
import uvicorn

from mapreviews.config.settings import get_settings
from mapreviews.core.log_config import configure_logging

logger = structlog.get_logger(__name__)


def main():
    """Main entry point for running the application."""
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    logger.info(
        "Starting server",
        host=settings.api_host,
        port=settings.api_port,
        environment=settings.app_env,
    )

    uvicorn.run(
        "mapreviews.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
