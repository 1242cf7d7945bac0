"""
Pipeline Controller.

Drives one run through its stages:

    IDLE -> DISCOVERING -> SELECTING -> SCRAPING -> [ENRICHING] -> DONE

A job failure or poll timeout moves the run to FAILED and re-raises. A new
``discover`` (or ``reset``) always starts from a clean IDLE context. Input
and credential errors raised before any job starts leave the stage unchanged.

Usage:
    controller = PipelineController()
    ctx = await controller.discover(SearchRequest(brand_name="Acme", location="italy"))
    artifact = await controller.scrape(ctx, [p.place_id for p in ctx.candidates], enrich=True)
"""

import asyncio
import functools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

import structlog

from mapreviews.analysis.stats import attach_brand_analysis, compute_stats
from mapreviews.collectors.apify_jobs import ApifyJobClient
from mapreviews.collectors.manual_urls import parse_manual_urls
from mapreviews.collectors.normalization import normalize, normalize_listings
from mapreviews.config.settings import Settings, get_settings
from mapreviews.core.exceptions import InvalidTransitionError, ValidationError
from mapreviews.delivery.history import HistoryStore
from mapreviews.models.schemas import (
    AggregateStats,
    DiscoveryQuery,
    JobHandle,
    JobKind,
    JobStatus,
    Place,
    RunArtifact,
    SearchMode,
    SearchRequest,
)
from mapreviews.orchestration.events import ProgressBus
from mapreviews.orchestration.poller import (
    DISCOVERY_SCHEDULE,
    SCRAPE_SCHEDULE,
    JobPoller,
    PollSchedule,
)
from mapreviews.services.enrichment import Analyzer, EnrichmentOrchestrator, EnrichmentReport
from mapreviews.services.review_analyzer import ReviewAnalyzer

logger = structlog.get_logger(__name__)


class PipelineStage(str, Enum):
    IDLE = "IDLE"
    DISCOVERING = "DISCOVERING"
    SELECTING = "SELECTING"
    SCRAPING = "SCRAPING"
    ENRICHING = "ENRICHING"
    DONE = "DONE"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: dict[PipelineStage, frozenset[PipelineStage]] = {
    PipelineStage.IDLE: frozenset({PipelineStage.DISCOVERING}),
    PipelineStage.DISCOVERING: frozenset({PipelineStage.SELECTING, PipelineStage.FAILED}),
    PipelineStage.SELECTING: frozenset({PipelineStage.SCRAPING}),
    PipelineStage.SCRAPING: frozenset(
        {PipelineStage.ENRICHING, PipelineStage.DONE, PipelineStage.FAILED}
    ),
    PipelineStage.ENRICHING: frozenset({PipelineStage.DONE, PipelineStage.FAILED}),
    PipelineStage.DONE: frozenset(),
    PipelineStage.FAILED: frozenset(),
}


class JobClient(Protocol):
    """External job operations the controller relies on."""

    async def start_discovery_job(self, query: DiscoveryQuery) -> JobHandle: ...

    async def start_scrape_job(self, places: list[Place], max_reviews_per_place: int) -> JobHandle: ...

    async def get_job_status(self, job_id: str, kind: JobKind = JobKind.DISCOVERY) -> JobStatus: ...

    async def fetch_job_results(self, status_or_dataset: Any) -> list[dict]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunContext:
    """Everything one run knows; passed explicitly between pipeline steps."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    stage: PipelineStage = PipelineStage.IDLE
    request: Optional[SearchRequest] = None
    candidates: list[Place] = field(default_factory=list)
    selected: list[Place] = field(default_factory=list)
    search_job: Optional[JobHandle] = None
    scrape_job: Optional[JobHandle] = None
    places: list[Place] = field(default_factory=list)
    stats: Optional[AggregateStats] = None
    enrichment_requested: bool = False
    sampling_enabled: bool = True
    enrichment_report: Optional[EnrichmentReport] = None
    error: Optional[str] = None
    events: ProgressBus = field(default_factory=ProgressBus)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def mode(self) -> Optional[SearchMode]:
        return self.request.mode if self.request else None

    @property
    def artifact(self) -> Optional[RunArtifact]:
        if self.stage != PipelineStage.DONE or self.stats is None:
            return None
        return RunArtifact(places=self.places, aggregate_stats=self.stats)


class PipelineController:
    """Stage machine coordinating jobs, normalization, enrichment and stats.

    Collaborators are built through factories so a missing credential only
    fails the step that needs it.
    """

    def __init__(
        self,
        job_client_factory: Optional[Callable[[], JobClient]] = None,
        analyzer_factory: Optional[Callable[[], Analyzer]] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        history: Optional[HistoryStore] = None,
    ):
        self.job_client_factory = job_client_factory or ApifyJobClient
        self.analyzer_factory = analyzer_factory or ReviewAnalyzer
        self.settings = settings or get_settings()
        self.sleep = sleep
        self.history = history
        self._job_client: Optional[JobClient] = None

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _client(self) -> JobClient:
        if self._job_client is None:
            self._job_client = self.job_client_factory()
        return self._job_client

    def _transition(self, ctx: RunContext, target: PipelineStage) -> None:
        if target not in ALLOWED_TRANSITIONS[ctx.stage]:
            raise InvalidTransitionError(ctx.stage.value, target.value)
        logger.info("pipeline_transition", run_id=ctx.run_id, source=ctx.stage.value, target=target.value)
        ctx.stage = target
        ctx.updated_at = _utcnow()

    def _fail(self, ctx: RunContext, error: Exception) -> None:
        ctx.error = getattr(error, "message", None) or str(error)
        logger.error(
            "pipeline_failed",
            run_id=ctx.run_id,
            stage=ctx.stage.value,
            error=ctx.error,
            error_type=type(error).__name__,
        )
        self._transition(ctx, PipelineStage.FAILED)

    def _schedule(self, base: PollSchedule, interval: float, max_attempts: int) -> PollSchedule:
        return base.with_overrides(interval_seconds=interval, max_attempts=max_attempts)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def reset(self, ctx: RunContext) -> RunContext:
        """Return a fresh IDLE context for a new run, reusing the progress bus."""
        ctx.cancel_event.set()
        logger.info("pipeline_reset", run_id=ctx.run_id, stage=ctx.stage.value)
        return RunContext(events=ctx.events)

    def _restart(self, ctx: RunContext) -> None:
        """Clear a finished run in place so the same context can discover again."""
        logger.info("pipeline_restart", run_id=ctx.run_id, stage=ctx.stage.value)
        fresh = RunContext(run_id=ctx.run_id, events=ctx.events, created_at=ctx.created_at)
        for name in RunContext.__dataclass_fields__:
            setattr(ctx, name, getattr(fresh, name))

    def validate_request(self, request: SearchRequest) -> list[Place]:
        """
        Check a search request before any job starts.

        Returns:
            The parsed Places in URL mode, an empty list in brand mode

        Raises:
            ValidationError: Empty brand name, or no usable URL
            ConfigurationError: Brand mode without an Apify token
        """
        if request.mode == SearchMode.URL:
            urls = [url for url in request.urls if url and url.strip()]
            if not urls:
                raise ValidationError("Enter at least one Google Maps URL", field="urls")
            places = parse_manual_urls(urls)
            if not places:
                raise ValidationError("No valid Google Maps URL found", field="urls")
            return places

        if not request.brand_name.strip():
            raise ValidationError("Enter a brand or business name", field="brand_name")
        self._client()
        return []

    async def discover(
        self,
        request: SearchRequest,
        ctx: Optional[RunContext] = None,
        events: Optional[ProgressBus] = None,
    ) -> RunContext:
        """
        Find candidate places for a request.

        Brand mode runs a listing search job; URL mode parses the links
        directly. Either way the run ends in SELECTING, possibly with zero
        candidates.

        Args:
            request: Brand query or explicit URL list
            ctx: An IDLE, FAILED or DONE context to run in; a new one is
                created if None. A finished context is cleared first.
            events: Progress bus for a new context

        Returns:
            The run context, in SELECTING

        Raises:
            InvalidTransitionError: ctx is mid-run
            ValidationError: Empty brand name or no usable URL (stage IDLE)
            ConfigurationError: Brand mode without an Apify token (stage IDLE)
            JobFailedError, PollTimeoutError: The search failed (stage FAILED)
        """
        if ctx is None:
            ctx = RunContext(events=events or ProgressBus())
        elif ctx.stage in (PipelineStage.FAILED, PipelineStage.DONE):
            self._restart(ctx)
        elif ctx.stage != PipelineStage.IDLE:
            raise InvalidTransitionError(ctx.stage.value, "discover")
        ctx.request = request

        places = self.validate_request(request)

        if request.mode == SearchMode.URL:
            self._transition(ctx, PipelineStage.DISCOVERING)
            ctx.candidates = places
            self._transition(ctx, PipelineStage.SELECTING)
            await ctx.events.publish(50, f"{len(places)} places parsed", stage=ctx.stage.value)
            return ctx

        brand_name = request.brand_name.strip()
        client = self._client()

        self._transition(ctx, PipelineStage.DISCOVERING)
        await ctx.events.publish(10, f"Searching for {brand_name}...", stage=ctx.stage.value)
        try:
            ctx.search_job = await client.start_discovery_job(
                DiscoveryQuery(
                    query=brand_name,
                    location=request.location,
                    max_results=request.max_places,
                    mode=request.search_mode,
                    skip_closed=request.skip_closed,
                )
            )
            poller = JobPoller(sleep=self.sleep, events=ctx.events)
            records = await poller.poll_until_terminal(
                ctx.search_job.job_id,
                fetch_status=functools.partial(client.get_job_status, kind=JobKind.DISCOVERY),
                fetch_results=client.fetch_job_results,
                schedule=self._schedule(
                    DISCOVERY_SCHEDULE,
                    self.settings.discovery_poll_interval,
                    self.settings.discovery_max_attempts,
                ),
                cancel_event=ctx.cancel_event,
            )
            ctx.candidates = normalize_listings(records)
        except Exception as e:
            self._fail(ctx, e)
            raise

        self._transition(ctx, PipelineStage.SELECTING)
        await ctx.events.publish(
            50, f"Search complete: {len(ctx.candidates)} places found", stage=ctx.stage.value
        )
        return ctx

    def validate_scrape(
        self, ctx: RunContext, selected_place_ids: Sequence[str], enrich: bool = False
    ) -> tuple[list[Place], Optional[Analyzer]]:
        """
        Check a scrape request before the job starts.

        Returns:
            The selected candidates in candidate order, and the analyzer when
            enrichment was requested

        Raises:
            InvalidTransitionError: ctx is not in SELECTING
            ValidationError: No selected id matches a candidate
            ConfigurationError: A required credential is missing
        """
        if ctx.stage != PipelineStage.SELECTING:
            raise InvalidTransitionError(ctx.stage.value, "scrape")

        wanted = set(selected_place_ids)
        selected = [place for place in ctx.candidates if place.place_id in wanted]
        unknown = wanted - {place.place_id for place in selected}
        if unknown:
            logger.warning("pipeline_unknown_selection", run_id=ctx.run_id, place_ids=sorted(unknown))
        if not selected:
            raise ValidationError("Select at least one place", field="selected_place_ids")

        analyzer = self.analyzer_factory() if enrich else None
        self._client()
        return selected, analyzer

    async def scrape(
        self,
        ctx: RunContext,
        selected_place_ids: Sequence[str],
        max_reviews: Optional[int] = None,
        enrich: bool = False,
        sampling: bool = True,
    ) -> RunArtifact:
        """
        Scrape reviews for the selected places, optionally enrich, compute stats.

        Args:
            ctx: A context in SELECTING
            selected_place_ids: Subset of candidate place ids, in any order
            max_reviews: Reviews per place, settings default if None
            enrich: Run AI analysis after scraping
            sampling: Sample reviews sent to the analysis service

        Returns:
            The run artifact; the context ends in DONE

        Raises:
            InvalidTransitionError: ctx is not in SELECTING
            ValidationError: Empty selection (stage stays SELECTING)
            ConfigurationError: Missing credential (stage stays SELECTING)
            JobFailedError, PollTimeoutError: The scrape failed (stage FAILED)
        """
        selected, analyzer = self.validate_scrape(ctx, selected_place_ids, enrich)
        client = self._client()
        max_reviews = max_reviews or self.settings.default_max_reviews

        ctx.selected = selected
        ctx.enrichment_requested = enrich
        ctx.sampling_enabled = sampling
        self._transition(ctx, PipelineStage.SCRAPING)
        await ctx.events.publish(
            10, f"Scraping reviews for {len(selected)} places...", stage=ctx.stage.value
        )

        try:
            ctx.scrape_job = await client.start_scrape_job(selected, max_reviews)
            poller = JobPoller(sleep=self.sleep, events=ctx.events)
            records = await poller.poll_until_terminal(
                ctx.scrape_job.job_id,
                fetch_status=functools.partial(client.get_job_status, kind=JobKind.SCRAPE),
                fetch_results=client.fetch_job_results,
                schedule=self._schedule(
                    SCRAPE_SCHEDULE,
                    self.settings.scrape_poll_interval,
                    self.settings.scrape_max_attempts,
                ),
                cancel_event=ctx.cancel_event,
            )
            ctx.places = normalize(records)
        except Exception as e:
            self._fail(ctx, e)
            raise

        stats = compute_stats(ctx.places)

        if analyzer is not None:
            self._transition(ctx, PipelineStage.ENRICHING)
            orchestrator = EnrichmentOrchestrator(
                analyzer,
                batch_size=self.settings.enrichment_batch_size,
                sampling_enabled=sampling,
                events=ctx.events,
            )
            try:
                brand_analysis = await orchestrator.enrich(ctx.places)
            except Exception as e:
                self._fail(ctx, e)
                raise
            ctx.enrichment_report = orchestrator.report
            stats = attach_brand_analysis(compute_stats(ctx.places), brand_analysis)
        else:
            await ctx.events.publish(100, "Scrape complete", stage=ctx.stage.value)

        ctx.stats = stats
        self._transition(ctx, PipelineStage.DONE)
        artifact = ctx.artifact
        logger.info(
            "pipeline_done",
            run_id=ctx.run_id,
            places=stats.total_places,
            reviews=stats.total_reviews,
            enriched=enrich,
        )

        if self.history is not None and ctx.request is not None:
            try:
                self.history.record(
                    artifact,
                    mode=ctx.request.mode,
                    brand_name=ctx.request.brand_name.strip() or None,
                    ai_enabled=enrich,
                )
            except OSError as e:
                logger.warning(
                    "history_save_failed",
                    run_id=ctx.run_id,
                    path=str(self.history.path),
                    error=str(e),
                )
        return artifact

    async def run(
        self,
        request: SearchRequest,
        select: Optional[Callable[[list[Place]], Sequence[str]]] = None,
        max_reviews: Optional[int] = None,
        enrich: bool = False,
        sampling: bool = True,
        events: Optional[ProgressBus] = None,
    ) -> RunContext:
        """
        Discover and scrape in one call.

        Args:
            request: Search request
            select: Picks place ids from the candidates; all candidates if None
            max_reviews: Reviews per place
            enrich: Run AI analysis
            sampling: Sample reviews sent to the analysis service
            events: Progress bus for the run

        Returns:
            The context: DONE, or SELECTING when nothing was found/selected
        """
        ctx = await self.discover(request, events=events)
        if not ctx.candidates:
            logger.info("pipeline_no_candidates", run_id=ctx.run_id)
            return ctx

        place_ids = select(ctx.candidates) if select else [p.place_id for p in ctx.candidates]
        if not place_ids:
            logger.info("pipeline_nothing_selected", run_id=ctx.run_id)
            return ctx

        await self.scrape(ctx, place_ids, max_reviews=max_reviews, enrich=enrich, sampling=sampling)
        return ctx
