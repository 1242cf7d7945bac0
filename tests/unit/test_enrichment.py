"""Unit tests for the enrichment orchestrator."""

import pytest

from mapreviews.orchestration.events import ProgressBus
from mapreviews.services.enrichment import (
    EnrichmentOrchestrator,
    derive_brand_name,
)
from mapreviews.models.schemas import AnalysisResult

from tests.conftest import FakeAnalyzer, make_place, make_review


def five_places():
    return [
        make_place(f"P{i}", f"Cafe Roma - Sede {i}", reviews=[make_review(f"r{i}", text=f"review {i}")])
        for i in range(1, 6)
    ]


class TestDeriveBrandName:
    def test_text_before_first_hyphen(self):
        assert derive_brand_name([make_place(title="Cafe Roma - Milano - Centro")]) == "Cafe Roma"

    def test_defaults_to_brand(self):
        assert derive_brand_name([]) == "Brand"
        assert derive_brand_name([make_place(title="- Milano")]) == "Brand"


class TestEnrichmentOrchestrator:
    """Test batched, failure-isolated enrichment."""

    @pytest.mark.asyncio
    async def test_single_failure_is_isolated(self):
        places = five_places()
        analyzer = FakeAnalyzer(fail_on={"Cafe Roma - Sede 3"})
        orchestrator = EnrichmentOrchestrator(analyzer, batch_size=3)

        brand = await orchestrator.enrich(places)

        assert len(analyzer.place_calls) == 5
        assert [p.analysis is not None for p in places] == [True, True, False, True, True]
        assert orchestrator.report.analyzed == 4
        assert orchestrator.report.failed == 1
        assert analyzer.aggregate_calls == [(5, "Cafe Roma", 5)]
        assert brand.strengths == ["consistent quality"]

    @pytest.mark.asyncio
    async def test_aggregate_failure_returns_none(self):
        places = five_places()
        orchestrator = EnrichmentOrchestrator(FakeAnalyzer(fail_aggregate=True))

        brand = await orchestrator.enrich(places)

        assert brand is None
        assert orchestrator.report.aggregate_failed is True
        assert all(p.analysis is not None for p in places)

    @pytest.mark.asyncio
    async def test_batches_bound_concurrency(self):
        analyzer = FakeAnalyzer(delay=0.01)
        orchestrator = EnrichmentOrchestrator(analyzer, batch_size=2)

        await orchestrator.enrich(five_places())

        assert analyzer.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_skips_places_without_reviews_or_with_analysis(self):
        done = make_place("P2", "Done", reviews=[make_review()], analysis=AnalysisResult(strengths=["kept"]))
        places = [make_place("P1", "Empty"), done, make_place("P3", "Todo", reviews=[make_review()])]
        analyzer = FakeAnalyzer()
        orchestrator = EnrichmentOrchestrator(analyzer)

        await orchestrator.enrich(places)

        assert analyzer.place_calls == ["Todo"]
        assert orchestrator.report.skipped == 2
        assert places[0].analysis is None
        assert done.analysis.strengths == ["kept"]

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_completes(self):
        bus = ProgressBus()
        events = []
        bus.subscribe(events.append)
        orchestrator = EnrichmentOrchestrator(FakeAnalyzer(), batch_size=3, events=bus)

        await orchestrator.enrich(five_places())

        percents = [e.percent for e in events]
        assert percents == sorted(percents)
        assert percents[0] == 0
        assert 54 in percents
        assert percents[-2:] == [90, 100]
        assert events[-1].message == "AI analysis complete"
        assert all(e.stage == "ENRICHING" for e in events)

    @pytest.mark.asyncio
    async def test_completion_published_only_after_aggregate(self):
        bus = ProgressBus()
        seen_at_completion = []
        analyzer = FakeAnalyzer()

        def on_event(event):
            if event.percent == 100:
                seen_at_completion.append(len(analyzer.aggregate_calls))

        bus.subscribe(on_event)
        await EnrichmentOrchestrator(analyzer, events=bus).enrich(five_places())

        assert seen_at_completion == [1]

    @pytest.mark.asyncio
    async def test_empty_place_list(self):
        analyzer = FakeAnalyzer()

        brand = await EnrichmentOrchestrator(analyzer).enrich([])

        assert analyzer.place_calls == []
        assert analyzer.aggregate_calls == [(0, "Brand", 0)]
        assert brand is not None

    def test_rejects_zero_batch_size(self):
        with pytest.raises(ValueError):
            EnrichmentOrchestrator(FakeAnalyzer(), batch_size=0)
