"""
Pytest Configuration and Shared Fixtures.

This module provides common fixtures for all tests:

- make_review / make_place: model factories
- FakeJobClient: scripted stand-in for the Apify job client
- FakeAnalyzer: stand-in for the Claude review analyzer
- no_sleep: awaitable sleep that records intervals instead of waiting
- test_settings: Settings with credentials and a tiny poll budget
"""

import asyncio
from collections import deque
from typing import Any, Optional, Sequence

import pytest

from mapreviews.config.settings import Settings
from mapreviews.models.schemas import (
    AnalysisResult,
    BrandAnalysisResult,
    DiscoveryQuery,
    JobHandle,
    JobKind,
    JobState,
    JobStatus,
    Place,
    Review,
)


def make_review(review_id: str = "r1", stars: int = 5, text: str = "Great coffee", **kwargs) -> Review:
    return Review(id=review_id, stars=stars, text=text, **kwargs)


def make_place(place_id: str = "P1", title: str = "Cafe A", reviews: Optional[list[Review]] = None, **kwargs) -> Place:
    return Place(place_id=place_id, title=title, reviews=reviews or [], **kwargs)


class FakeJobClient:
    """Job client replaying scripted statuses and result sets per job kind."""

    def __init__(
        self,
        discovery_statuses: Optional[list[JobStatus]] = None,
        scrape_statuses: Optional[list[JobStatus]] = None,
        listing_records: Optional[list[dict]] = None,
        review_records: Optional[list[dict]] = None,
    ):
        self.statuses = {
            JobKind.DISCOVERY: deque(discovery_statuses or [succeeded("ds-search")]),
            JobKind.SCRAPE: deque(scrape_statuses or [succeeded("ds-reviews")]),
        }
        self.results = {
            "ds-search": listing_records or [],
            "ds-reviews": review_records or [],
        }
        self.discovery_queries: list[DiscoveryQuery] = []
        self.scrape_calls: list[tuple[list[Place], int]] = []
        self.status_checks: list[tuple[str, JobKind]] = []

    async def start_discovery_job(self, query: DiscoveryQuery) -> JobHandle:
        self.discovery_queries.append(query)
        return JobHandle(job_id="run-search", kind=JobKind.DISCOVERY)

    async def start_scrape_job(self, places: list[Place], max_reviews_per_place: int) -> JobHandle:
        self.scrape_calls.append((list(places), max_reviews_per_place))
        return JobHandle(job_id="run-reviews", kind=JobKind.SCRAPE)

    async def get_job_status(self, job_id: str, kind: JobKind = JobKind.DISCOVERY) -> JobStatus:
        self.status_checks.append((job_id, kind))
        queue = self.statuses[kind]
        # The last scripted status repeats forever.
        return queue.popleft() if len(queue) > 1 else queue[0]

    async def fetch_job_results(self, status_or_dataset: Any) -> list[dict]:
        dataset_id = getattr(status_or_dataset, "dataset_id", status_or_dataset)
        return list(self.results.get(dataset_id, []))


def running() -> JobStatus:
    return JobStatus(state=JobState.RUNNING, provider_status="RUNNING")


def succeeded(dataset_id: str) -> JobStatus:
    return JobStatus(state=JobState.SUCCEEDED, dataset_id=dataset_id, provider_status="SUCCEEDED")


def failed(error: str) -> JobStatus:
    return JobStatus(state=JobState.FAILED, error=error, provider_status="FAILED")


class FakeAnalyzer:
    """Analyzer returning fixed results; titles in ``fail_on`` raise."""

    def __init__(self, fail_on: Sequence[str] = (), fail_aggregate: bool = False, delay: float = 0.0):
        self.fail_on = set(fail_on)
        self.fail_aggregate = fail_aggregate
        self.delay = delay
        self.place_calls: list[str] = []
        self.aggregate_calls: list[tuple[int, str, int]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def analyze_place(
        self, place_name: str, reviews: Sequence[Review], sampling_enabled: bool = True
    ) -> AnalysisResult:
        self.place_calls.append(place_name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if place_name in self.fail_on:
                raise RuntimeError(f"analysis failed for {place_name}")
            return AnalysisResult(strengths=[f"{place_name} strength"], priorities=["a", "b", "c"])
        finally:
            self.in_flight -= 1

    async def analyze_aggregate(
        self,
        all_reviews: Sequence[Review],
        brand_name: str,
        total_places: int,
        sampling_enabled: bool = True,
    ) -> BrandAnalysisResult:
        self.aggregate_calls.append((len(all_reviews), brand_name, total_places))
        if self.fail_aggregate:
            raise RuntimeError("aggregate failed")
        return BrandAnalysisResult(strengths=["consistent quality"], priorities=["speed"])


class RecordingSleep:
    """Awaitable sleep that records requested intervals and returns at once."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with credentials set and a small poll budget."""
    return Settings(
        _env_file=None,
        apify_api_token="apify-test-token",
        anthropic_api_key="sk-ant-test",
        discovery_poll_interval=0.01,
        discovery_max_attempts=5,
        scrape_poll_interval=0.01,
        scrape_max_attempts=5,
        history_path=tmp_path / "history.json",
    )


@pytest.fixture
def sample_review_records() -> list[dict]:
    """Flat review records as the review scraper returns them."""
    return [
        {
            "placeId": "P1",
            "title": "Cafe A - Milano",
            "address": "Via Roma 1",
            "url": "https://maps.google.com/?cid=1",
            "totalScore": 4.5,
            "reviewsCount": 120,
            "reviewId": "R1",
            "stars": 5,
            "text": "Ottimo caffè, servizio veloce",
            "name": "Giulia",
        },
        {
            "placeId": "P1",
            "title": "Cafe A - Milano",
            "reviewId": "R2",
            "stars": 2,
            "text": "Servizio lento",
            "responseFromOwnerText": "Ci dispiace",
        },
        {
            "placeId": "P2",
            "title": "Cafe A - Torino",
            "totalScore": 4.0,
            "reviewId": "R3",
            "stars": 3,
            "text": "",
        },
    ]
