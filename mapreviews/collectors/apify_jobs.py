"""Apify job client for listing search and review scraping.

Both jobs run as Apify actors. Starting an actor returns immediately; the
run is then polled by ``JobPoller`` through ``get_job_status`` and its dataset
read with ``fetch_job_results`` once it succeeds.
"""

import asyncio
import math
from typing import Any, Iterable

import structlog
from apify_client import ApifyClient
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from mapreviews.config import get_settings
from mapreviews.core.exceptions import (
    ConfigurationError,
    JobFailedError,
    JobStartError,
)
from mapreviews.models.schemas import (
    DiscoveryQuery,
    JobHandle,
    JobKind,
    JobState,
    JobStatus,
    Place,
)

logger = structlog.get_logger(__name__)

RUNNING_STATUSES = frozenset({"READY", "RUNNING"})
FAILED_STATUSES = frozenset({"FAILED", "ABORTED", "ABORTING", "TIMED-OUT", "TIMING-OUT"})
SUCCEEDED_STATUS = "SUCCEEDED"

AGGRESSIVE_MULTIPLIER = 1.5

JOB_LABELS = {
    JobKind.DISCOVERY: "Search",
    JobKind.SCRAPE: "Scrape",
}


# =============================================================================
# Actor Input Builders
# =============================================================================


def build_search_string(query: str, location: str | None) -> str:
    """Build the free-text search for the listing actor.

    "world" or no location searches globally; "italy" is spelled out.
    """
    if not location or location == "world":
        return query
    if location == "italy":
        return f"{query} in Italy"
    return f"{query} in {location}"


def build_discovery_input(query: DiscoveryQuery, language: str = "it") -> dict[str, Any]:
    max_places = query.max_results
    if query.mode == "aggressive":
        max_places = int(math.floor(max_places * AGGRESSIVE_MULTIPLIER + 0.5))

    run_input: dict[str, Any] = {
        "searchStringsArray": [build_search_string(query.query, query.location)],
        "maxCrawledPlaces": max_places,
        "language": language,
        "maxReviews": 0,
        "includeWebsiteUrl": True,
        "includeReviews": False,
        "skipClosedPlaces": query.skip_closed,
    }
    if query.location == "italy":
        run_input["countryCode"] = "it"
    return run_input


def start_url_for(place: Place) -> str:
    """Pick the URL the review actor should open for a place."""
    return (
        place.url
        or place.original_url
        or f"https://www.google.com/maps/place/?q=place_id:{place.place_id}"
    )


def build_scrape_input(
    places: Iterable[Place], max_reviews: int, language: str = "it"
) -> dict[str, Any]:
    return {
        "startUrls": [{"url": start_url_for(place)} for place in places],
        "maxReviews": int(max_reviews),
        "reviewsSort": "newest",
        "language": language,
    }


def map_run_status(run: dict[str, Any] | None, kind: JobKind) -> JobStatus:
    """Map an Apify run record to a provider-agnostic JobStatus.

    Unknown statuses are treated as still running so the poller keeps checking.
    """
    label = JOB_LABELS[kind]
    if run is None:
        return JobStatus(state=JobState.FAILED, error=f"{label} run not found")

    status = str(run.get("status") or "")
    dataset_id = run.get("defaultDatasetId")

    if status == SUCCEEDED_STATUS:
        return JobStatus(state=JobState.SUCCEEDED, dataset_id=dataset_id, provider_status=status)
    if status in FAILED_STATUSES:
        return JobStatus(
            state=JobState.FAILED,
            error=f"{label} {status.lower()}",
            dataset_id=dataset_id,
            provider_status=status,
        )
    if status not in RUNNING_STATUSES:
        logger.warning("apify_unknown_run_status", status=status, kind=kind.value)
    return JobStatus(state=JobState.RUNNING, dataset_id=dataset_id, provider_status=status)


# =============================================================================
# Client
# =============================================================================


def start_retry_wait():
    """Backoff between start attempts: 2s, 4s, 8s... capped at 30s, plus up to 1s jitter."""
    return wait_exponential(multiplier=2, max=30) + wait_random(0, 1)


def _log_start_retry(retry_state) -> None:
    logger.warning(
        "apify_start_retry",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


class ApifyJobClient:
    """Async wrapper around the Apify actors used by the pipeline.

    The Apify client is synchronous; calls run in the default executor.

    Example:
        client = ApifyJobClient()
        handle = await client.start_discovery_job(DiscoveryQuery(query="Acme"))
        status = await client.get_job_status(handle.job_id, JobKind.DISCOVERY)
    """

    def __init__(
        self,
        api_token: str | None = None,
        client: ApifyClient | None = None,
        discovery_actor_id: str | None = None,
        reviews_actor_id: str | None = None,
        language: str | None = None,
    ):
        """Initialize the job client.

        Args:
            api_token: Apify API token. If None, read from settings.
            client: Pre-built ApifyClient (tests inject a mock here).
            discovery_actor_id: Listing search actor, defaults to settings.
            reviews_actor_id: Review scraper actor, defaults to settings.
            language: Language passed to both actors, defaults to settings.

        Raises:
            ConfigurationError: If no client is given and no token is configured.
        """
        settings = get_settings()
        if client is None:
            token = api_token
            if token is None and settings.apify_api_token is not None:
                token = settings.apify_api_token.get_secret_value()
            if not token:
                raise ConfigurationError(
                    "Apify API token required. Set APIFY_API_TOKEN or pass api_token.",
                    config_key="apify_api_token",
                )
            client = ApifyClient(token)

        self.client = client
        self.discovery_actor_id = discovery_actor_id or settings.discovery_actor_id
        self.reviews_actor_id = reviews_actor_id or settings.reviews_actor_id
        self.language = language or settings.scrape_language
        logger.info("apify_job_client_initialized")

    # -------------------------------------------------------------------------
    # Sync primitives (run in executor)
    # -------------------------------------------------------------------------

    def _start_actor_sync(self, actor_id: str, run_input: dict) -> dict:
        return self.client.actor(actor_id).start(run_input=run_input)

    def _get_run_sync(self, run_id: str) -> dict | None:
        return self.client.run(run_id).get()

    def _list_items_sync(self, dataset_id: str) -> list[dict]:
        return list(self.client.dataset(dataset_id).iterate_items())

    async def _in_executor(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def _start(self, kind: JobKind, actor_id: str, run_input: dict) -> JobHandle:
        try:
            run = await self._in_executor(self._start_actor_sync, actor_id, run_input)
        except Exception as e:
            raise JobStartError(
                None,
                f"Failed to start {JOB_LABELS[kind].lower()}: {e}",
                {"actor_id": actor_id},
            ) from e

        if not run or not run.get("id"):
            raise JobStartError(None, f"Actor {actor_id} returned no run id")

        handle = JobHandle(
            job_id=run["id"],
            kind=kind,
            dataset_id=run.get("defaultDatasetId"),
        )
        logger.info("apify_job_started", kind=kind.value, job_id=handle.job_id, actor_id=actor_id)
        return handle

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=start_retry_wait(),
        retry=retry_if_exception_type(JobStartError),
        before_sleep=_log_start_retry,
        reraise=True,
    )
    async def start_discovery_job(self, query: DiscoveryQuery) -> JobHandle:
        """Start a listing search job.

        Args:
            query: Brand/business name, location hint and crawl limits.

        Returns:
            Handle of the started run.

        Raises:
            JobStartError: If the actor cannot be started after retries.
        """
        run_input = build_discovery_input(query, self.language)
        logger.info(
            "apify_discovery_starting",
            search=run_input["searchStringsArray"][0],
            max_places=run_input["maxCrawledPlaces"],
            mode=query.mode,
        )
        return await self._start(JobKind.DISCOVERY, self.discovery_actor_id, run_input)

    @retry(
        stop=stop_after_attempt(3),
        wait=start_retry_wait(),
        retry=retry_if_exception_type(JobStartError),
        before_sleep=_log_start_retry,
        reraise=True,
    )
    async def start_scrape_job(self, places: list[Place], max_reviews_per_place: int) -> JobHandle:
        """Start a review scrape job for the selected places.

        Args:
            places: Places to scrape; each needs a URL or a place id.
            max_reviews_per_place: Review cap per place.

        Returns:
            Handle of the started run.
        """
        run_input = build_scrape_input(places, max_reviews_per_place, self.language)
        logger.info(
            "apify_scrape_starting",
            places=len(places),
            max_reviews=run_input["maxReviews"],
        )
        return await self._start(JobKind.SCRAPE, self.reviews_actor_id, run_input)

    async def get_job_status(self, job_id: str, kind: JobKind = JobKind.DISCOVERY) -> JobStatus:
        """Check a run once. Not retried: the poller owns the retry cadence."""
        run = await self._in_executor(self._get_run_sync, job_id)
        status = map_run_status(run, kind)
        logger.debug(
            "apify_job_status",
            job_id=job_id,
            kind=kind.value,
            provider_status=status.provider_status,
            state=status.state.value,
        )
        return status

    async def fetch_job_results(self, status_or_dataset: JobStatus | str) -> list[dict]:
        """Read every item of a succeeded run's dataset.

        Args:
            status_or_dataset: The terminal JobStatus or a dataset id.

        Raises:
            JobFailedError: If no dataset id is known.
        """
        if isinstance(status_or_dataset, JobStatus):
            dataset_id = status_or_dataset.dataset_id
        else:
            dataset_id = status_or_dataset

        if not dataset_id:
            raise JobFailedError(None, "Succeeded run has no dataset")

        items = await self._in_executor(self._list_items_sync, dataset_id)
        logger.info("apify_results_fetched", dataset_id=dataset_id, items=len(items))
        return items
