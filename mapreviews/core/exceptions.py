"""
Core exception hierarchy for mapreviews.

Provides standardized exception types with categorization for retry logic.

Run-aborting errors: ConfigurationError, ValidationError, JobFailedError,
PollTimeoutError. Enrichment errors are always contained by the caller and
never abort a run.
"""

from typing import Any, Optional


# =============================================================================
# Base Exceptions
# =============================================================================


class MapReviewsError(Exception):
    """Base exception for all mapreviews errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class RetryableError(MapReviewsError):
    """
    Transient errors that should be retried.

    Examples: Rate limits, timeouts, temporary network issues.
    """

    pass


class PermanentError(MapReviewsError):
    """
    Errors that won't be fixed by retrying.

    Examples: Invalid input, missing credentials, failed provider jobs.
    """

    pass


# =============================================================================
# Configuration / Input Errors
# =============================================================================


class ConfigurationError(PermanentError):
    """Raised when a required credential or setting is missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        details = {"config_key": config_key} if config_key else None
        super().__init__(message, details)


class ValidationError(PermanentError):
    """Raised for an empty query, URL list or selection."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        details = {"field": field} if field else None
        super().__init__(message, details)


class InvalidTransitionError(PermanentError):
    """Raised when a pipeline step is invoked from the wrong stage."""

    def __init__(self, current: str, attempted: str):
        self.current = current
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted} while pipeline is {current}",
            {"current": current, "attempted": attempted},
        )


# =============================================================================
# Job Errors
# =============================================================================


class JobError(MapReviewsError):
    """Base exception for external job errors."""

    def __init__(
        self,
        job_id: Optional[str],
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.job_id = job_id
        super().__init__(message, details)


class JobStartError(JobError, RetryableError):
    """Raised when the provider refuses or fails to start a job."""

    pass


class JobFailedError(JobError, PermanentError):
    """Raised when the provider reports a job as failed, aborted or timed out."""

    pass


class JobStatusCheckError(JobFailedError):
    """Raised when a status check itself fails (network, provider error)."""

    pass


class PollTimeoutError(JobError, PermanentError):
    """Raised when the attempt budget is exhausted before a terminal state."""

    def __init__(self, job_id: Optional[str], attempts: int, label: str = "Job"):
        self.attempts = attempts
        super().__init__(
            job_id,
            f"{label} timeout after {attempts} status checks",
            {"attempts": attempts},
        )


class PollCancelledError(JobError):
    """Raised when a poll is cancelled between ticks."""

    pass


# =============================================================================
# Enrichment Errors
# =============================================================================


class EnrichmentError(MapReviewsError):
    """Raised when analysis of a single place fails."""

    def __init__(
        self,
        place_name: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.place_name = place_name
        super().__init__(f"[{place_name}] {message}", details)


class AggregateEnrichmentError(MapReviewsError):
    """Raised when the brand-level aggregate analysis fails."""

    pass


class MalformedResponseError(MapReviewsError):
    """Raised when the analysis service returns non-parseable structured output."""

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message, {"preview": raw_text[:200]} if raw_text else None)
