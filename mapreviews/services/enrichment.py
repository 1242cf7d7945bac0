"""
Enrichment Orchestrator.

Runs per-place review analysis in bounded concurrent batches, then one
brand-level analysis over every review. Individual failures are contained:
a place whose analysis fails keeps ``analysis=None`` and the run goes on.

Progress:
    - before each batch: round(done / total * 90), listing the batch titles
    - 90 before the brand-level call
    - 100 only once everything has settled
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import structlog

from mapreviews.analysis.stats import round_half_up
from mapreviews.core.exceptions import AggregateEnrichmentError, EnrichmentError
from mapreviews.models.schemas import AnalysisResult, BrandAnalysisResult, Place, Review
from mapreviews.orchestration.events import ProgressBus

logger = structlog.get_logger(__name__)

DEFAULT_BRAND_NAME = "Brand"
BATCH_PROGRESS_SPAN = 90
STAGE = "ENRICHING"


class Analyzer(Protocol):
    """What the orchestrator needs from a text analysis service."""

    async def analyze_place(
        self, place_name: str, reviews: Sequence[Review], sampling_enabled: bool = True
    ) -> AnalysisResult: ...

    async def analyze_aggregate(
        self,
        all_reviews: Sequence[Review],
        brand_name: str,
        total_places: int,
        sampling_enabled: bool = True,
    ) -> BrandAnalysisResult: ...


@dataclass
class EnrichmentReport:
    """Counters of the last enrichment run."""

    analyzed: int = 0
    skipped: int = 0
    failed: int = 0
    aggregate_failed: bool = False


def derive_brand_name(places: Sequence[Place]) -> str:
    """Text before the first hyphen of the first place's title, or "Brand"."""
    if not places:
        return DEFAULT_BRAND_NAME
    return places[0].title.split("-")[0].strip() or DEFAULT_BRAND_NAME


def needs_analysis(place: Place) -> bool:
    return bool(place.reviews) and place.analysis is None


class EnrichmentOrchestrator:
    """Attaches AI analysis to places, ``batch_size`` calls in flight at most.

    Example:
        orchestrator = EnrichmentOrchestrator(ReviewAnalyzer(), events=bus)
        brand_analysis = await orchestrator.enrich(places)
        stats = attach_brand_analysis(compute_stats(places), brand_analysis)
    """

    def __init__(
        self,
        analyzer: Analyzer,
        batch_size: int = 3,
        sampling_enabled: bool = True,
        events: Optional[ProgressBus] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.analyzer = analyzer
        self.batch_size = batch_size
        self.sampling_enabled = sampling_enabled
        self.events = events
        self.report = EnrichmentReport()

    async def _publish(self, percent: float, message: str) -> None:
        if self.events is not None:
            await self.events.publish(percent, message, stage=STAGE)

    async def _analyze_place(self, place: Place) -> None:
        if not needs_analysis(place):
            self.report.skipped += 1
            return

        try:
            place.analysis = await self.analyzer.analyze_place(
                place.title, place.reviews, self.sampling_enabled
            )
        except Exception as e:
            self.report.failed += 1
            error = EnrichmentError(place.title, str(e), {"place_id": place.place_id})
            logger.warning(
                "enrichment_place_failed",
                place_id=place.place_id,
                error=str(error),
                error_type=type(e).__name__,
            )
            return
        self.report.analyzed += 1

    async def _analyze_aggregate(self, places: Sequence[Place]) -> Optional[BrandAnalysisResult]:
        all_reviews = [review for place in places for review in place.reviews]
        brand_name = derive_brand_name(places)
        try:
            return await self.analyzer.analyze_aggregate(
                all_reviews, brand_name, len(places), self.sampling_enabled
            )
        except Exception as e:
            self.report.aggregate_failed = True
            error = AggregateEnrichmentError(
                f"Brand analysis failed for {brand_name}: {e}",
                {"reviews": len(all_reviews)},
            )
            logger.warning("enrichment_aggregate_failed", error=str(error))
            return None

    async def enrich(self, places: list[Place]) -> Optional[BrandAnalysisResult]:
        """
        Analyze every eligible place, then the brand as a whole.

        Places are mutated in place with their ``analysis``. Places with no
        reviews or an existing analysis are skipped without a call.

        Args:
            places: Places in display order

        Returns:
            The brand-level analysis, or None if that call failed
        """
        self.report = EnrichmentReport()
        total = len(places)
        mode = "sampled" if self.sampling_enabled else "full"
        logger.info("enrichment_started", places=total, batch_size=self.batch_size, mode=mode)
        await self._publish(0, f"Starting AI analysis of {total} places ({mode})...")

        for start in range(0, total, self.batch_size):
            batch = places[start:start + self.batch_size]
            await self._publish(
                round_half_up(start / total * BATCH_PROGRESS_SPAN),
                f"Analyzing: {', '.join(place.title for place in batch)}...",
            )
            # _analyze_place contains its own failures; gather only joins.
            await asyncio.gather(*(self._analyze_place(place) for place in batch))

        await self._publish(BATCH_PROGRESS_SPAN, "Brand-level analysis...")
        brand_analysis = await self._analyze_aggregate(places)

        logger.info(
            "enrichment_complete",
            analyzed=self.report.analyzed,
            skipped=self.report.skipped,
            failed=self.report.failed,
            aggregate=brand_analysis is not None,
        )
        await self._publish(100, "AI analysis complete")
        return brand_analysis
