"""Pydantic models for API requests and responses.

Run payloads reuse the domain models (camelCase on the wire); the envelope
models below follow the same convention.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import Field

from mapreviews.models.schemas import CamelModel, Place, SearchMode


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Run Models
# =============================================================================


class ScrapeRequest(CamelModel):
    """Request to scrape reviews for a subset of the discovered places."""

    selected_place_ids: list[str] = Field(
        default_factory=list,
        description="Place ids chosen from the run's candidates",
    )
    max_reviews: Optional[int] = Field(
        None, ge=1, description="Reviews per place (server default if omitted)"
    )
    enrich: bool = Field(default=False, description="Run AI analysis after scraping")
    sampling: bool = Field(default=True, description="Sample reviews sent to the AI")


class RunAccepted(CamelModel):
    """Response for an accepted, asynchronously running step."""

    run_id: str
    stage: str


class ProgressResponse(CamelModel):
    percent: int
    message: str
    stage: Optional[str] = None
    timestamp: datetime


class RunStatusResponse(CamelModel):
    """Current state of a run."""

    run_id: str
    stage: str
    mode: Optional[SearchMode] = None
    progress: Optional[ProgressResponse] = None
    candidates: list[Place] = Field(default_factory=list)
    selected_count: int = 0
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# =============================================================================
# History Models
# =============================================================================


class HistorySummary(CamelModel):
    """History entry without its full results."""

    id: str
    timestamp: float
    mode: SearchMode
    brand_name: Optional[str] = None
    places_count: int = 0
    reviews_count: int = 0
    ai_enabled: bool = False


class HistoryListResponse(CamelModel):
    entries: list[HistorySummary] = Field(default_factory=list)
    total: int = 0


# =============================================================================
# Health Check Models
# =============================================================================


class HealthStatus(CamelModel):
    """Individual dependency status."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Service status"
    )
    message: Optional[str] = Field(None, description="Additional status message")


class HealthCheckResponse(CamelModel):
    """Response model for health check endpoint."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Overall system status"
    )
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(..., description="Check timestamp")
    services: dict[str, HealthStatus] = Field(
        default_factory=dict,
        description="Individual service statuses",
    )
    uptime_seconds: Optional[float] = Field(None, description="Server uptime in seconds")


# =============================================================================
# Error Models
# =============================================================================


class ErrorResponse(CamelModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[Any] = Field(None, description="Additional error details")
    path: Optional[str] = Field(None, description="Request path that caused the error")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")


class ValidationErrorDetail(CamelModel):
    """Details for validation errors."""

    field: str = Field(..., description="Field that failed validation")
    message: str = Field(..., description="Validation error message")
    value: Optional[Any] = Field(None, description="Invalid value provided")


class ValidationErrorResponse(CamelModel):
    """Response for validation errors."""

    error: str = Field(default="validation_error", description="Error type")
    message: str = Field(default="Request validation failed", description="Error message")
    errors: list[ValidationErrorDetail] = Field(..., description="List of validation errors")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")
