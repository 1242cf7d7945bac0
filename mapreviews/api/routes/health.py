"""Health check endpoints for the mapreviews API.

Reports whether the credentials each pipeline step needs are configured.
"""

from datetime import datetime, timezone
import time
from typing import Optional

import structlog
from fastapi import APIRouter, Depends

from mapreviews import __version__
from mapreviews.api.models import HealthCheckResponse, HealthStatus
from mapreviews.config.settings import get_settings, Settings

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])

# Track server start time for uptime calculation
_server_start_time: Optional[float] = None


def set_server_start_time() -> None:
    """Set the server start time. Called on application startup."""
    global _server_start_time
    _server_start_time = time.time()


def get_uptime_seconds() -> Optional[float]:
    """Get server uptime in seconds."""
    if _server_start_time is None:
        return None
    return time.time() - _server_start_time


def check_apify_config(settings: Settings) -> HealthStatus:
    if settings.apify_api_token is None:
        return HealthStatus(status="unhealthy", message="APIFY_API_TOKEN not set: search and scrape unavailable")
    return HealthStatus(status="healthy", message="Apify token configured")


def check_anthropic_config(settings: Settings) -> HealthStatus:
    if settings.anthropic_api_key is None:
        return HealthStatus(status="degraded", message="ANTHROPIC_API_KEY not set: AI analysis unavailable")
    return HealthStatus(status="healthy", message=f"Claude model {settings.anthropic_model}")


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health Check",
    description="Check the health status of the API and its dependencies.",
)
async def health_check(
    settings: Settings = Depends(get_settings),
) -> HealthCheckResponse:
    """
    Report configuration health.

    Returns the status of:
    - Apify (listing search and review scraping)
    - Anthropic (optional AI analysis)
    """
    services = {
        "apify": check_apify_config(settings),
        "anthropic": check_anthropic_config(settings),
    }

    statuses = [s.status for s in services.values()]
    if all(s == "healthy" for s in statuses):
        overall_status = "healthy"
    elif any(s == "unhealthy" for s in statuses):
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    return HealthCheckResponse(
        status=overall_status,
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        services=services,
        uptime_seconds=get_uptime_seconds(),
    )


@router.get(
    "/health/live",
    summary="Liveness Check",
    description="Simple liveness check for container orchestration.",
)
async def liveness() -> dict:
    """Returns 200 if the service is alive."""
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}
