"""Core infrastructure: exception taxonomy and logging setup."""

from mapreviews.core.exceptions import (
    AggregateEnrichmentError,
    ConfigurationError,
    EnrichmentError,
    InvalidTransitionError,
    JobError,
    JobFailedError,
    JobStartError,
    JobStatusCheckError,
    MalformedResponseError,
    MapReviewsError,
    PermanentError,
    PollCancelledError,
    PollTimeoutError,
    RetryableError,
    ValidationError,
)
from mapreviews.core.log_config import configure_logging

__all__ = [
    "AggregateEnrichmentError",
    "ConfigurationError",
    "EnrichmentError",
    "InvalidTransitionError",
    "JobError",
    "JobFailedError",
    "JobStartError",
    "JobStatusCheckError",
    "MalformedResponseError",
    "MapReviewsError",
    "PermanentError",
    "PollCancelledError",
    "PollTimeoutError",
    "RetryableError",
    "ValidationError",
    "configure_logging",
]
