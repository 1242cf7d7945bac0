"""Unit tests for the Apify job client."""

import warnings

import pytest
from unittest.mock import MagicMock, patch
from tenacity import RetryCallState, wait_none

from mapreviews.collectors.apify_jobs import (
    ApifyJobClient,
    build_discovery_input,
    build_scrape_input,
    build_search_string,
    map_run_status,
    start_retry_wait,
    start_url_for,
)
from mapreviews.config.settings import Settings
from mapreviews.core.exceptions import ConfigurationError, JobFailedError, JobStartError
from mapreviews.models.schemas import DiscoveryQuery, JobKind, JobState, JobStatus

from tests.conftest import make_place


class TestInputBuilders:
    """Test actor input construction."""

    def test_search_string(self):
        assert build_search_string("Acme", None) == "Acme"
        assert build_search_string("Acme", "world") == "Acme"
        assert build_search_string("Acme", "italy") == "Acme in Italy"
        assert build_search_string("Acme", "Milano") == "Acme in Milano"

    def test_discovery_input_balanced(self):
        run_input = build_discovery_input(DiscoveryQuery(query="Acme", max_results=20), language="en")

        assert run_input["searchStringsArray"] == ["Acme"]
        assert run_input["maxCrawledPlaces"] == 20
        assert run_input["language"] == "en"
        assert run_input["maxReviews"] == 0
        assert run_input["includeReviews"] is False
        assert run_input["skipClosedPlaces"] is False
        assert "countryCode" not in run_input

    def test_discovery_input_aggressive_italy(self):
        query = DiscoveryQuery(query="Acme", location="italy", max_results=15, mode="aggressive", skip_closed=True)

        run_input = build_discovery_input(query)

        assert run_input["maxCrawledPlaces"] == 23
        assert run_input["countryCode"] == "it"
        assert run_input["skipClosedPlaces"] is True

    def test_start_url_fallbacks(self):
        assert start_url_for(make_place(url="https://a")) == "https://a"
        assert start_url_for(make_place(original_url="https://b")) == "https://b"
        assert start_url_for(make_place("ChIJx")) == "https://www.google.com/maps/place/?q=place_id:ChIJx"

    def test_scrape_input(self):
        run_input = build_scrape_input([make_place(url="https://a"), make_place("P2", url="https://b")], 50)

        assert run_input["startUrls"] == [{"url": "https://a"}, {"url": "https://b"}]
        assert run_input["maxReviews"] == 50
        assert run_input["reviewsSort"] == "newest"


class TestMapRunStatus:
    """Test provider status mapping."""

    def test_succeeded_carries_dataset(self):
        status = map_run_status({"status": "SUCCEEDED", "defaultDatasetId": "ds-1"}, JobKind.SCRAPE)

        assert status.state == JobState.SUCCEEDED
        assert status.dataset_id == "ds-1"

    @pytest.mark.parametrize("provider_status", ["FAILED", "ABORTED", "TIMED-OUT"])
    def test_failed_statuses(self, provider_status):
        status = map_run_status({"status": provider_status}, JobKind.SCRAPE)

        assert status.state == JobState.FAILED
        assert status.error == f"Scrape {provider_status.lower()}"

    @pytest.mark.parametrize("provider_status", ["READY", "RUNNING", "SOMETHING-NEW"])
    def test_other_statuses_keep_running(self, provider_status):
        assert map_run_status({"status": provider_status}, JobKind.DISCOVERY).state == JobState.RUNNING

    def test_missing_run_fails(self):
        status = map_run_status(None, JobKind.DISCOVERY)

        assert status.state == JobState.FAILED
        assert status.error == "Search run not found"


class TestApifyJobClient:
    """Test the async wrapper around the Apify client."""

    @pytest.fixture
    def apify(self):
        return MagicMock()

    @pytest.fixture
    def client(self, apify):
        return ApifyJobClient(
            client=apify,
            discovery_actor_id="search-actor",
            reviews_actor_id="reviews-actor",
            language="it",
        )

    def test_missing_token_raises_configuration_error(self):
        settings = Settings(_env_file=None, apify_api_token=None)
        with patch("mapreviews.collectors.apify_jobs.get_settings", return_value=settings):
            with pytest.raises(ConfigurationError) as exc_info:
                ApifyJobClient()

        assert exc_info.value.config_key == "apify_api_token"

    @pytest.mark.asyncio
    async def test_start_discovery_job(self, client, apify):
        apify.actor.return_value.start.return_value = {"id": "run-1", "defaultDatasetId": "ds-1"}

        handle = await client.start_discovery_job(DiscoveryQuery(query="Acme", location="italy"))

        assert handle.job_id == "run-1"
        assert handle.kind == JobKind.DISCOVERY
        assert handle.dataset_id == "ds-1"
        apify.actor.assert_called_with("search-actor")
        run_input = apify.actor.return_value.start.call_args.kwargs["run_input"]
        assert run_input["searchStringsArray"] == ["Acme in Italy"]

    @pytest.mark.asyncio
    async def test_start_scrape_job(self, client, apify):
        apify.actor.return_value.start.return_value = {"id": "run-2"}

        handle = await client.start_scrape_job([make_place(url="https://a")], 25)

        assert handle.kind == JobKind.SCRAPE
        apify.actor.assert_called_with("reviews-actor")
        run_input = apify.actor.return_value.start.call_args.kwargs["run_input"]
        assert run_input["maxReviews"] == 25

    def test_start_retry_wait_backs_off_without_deprecation(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            wait = start_retry_wait()

        state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        delays = []
        for attempt in (1, 2, 3, 10):
            state.attempt_number = attempt
            delays.append(wait(state))

        assert 2 <= delays[0] <= 3
        assert 4 <= delays[1] <= 5
        assert 8 <= delays[2] <= 9
        assert 30 <= delays[3] <= 31

    @pytest.mark.asyncio
    async def test_start_retries_then_raises(self, client, apify):
        apify.actor.return_value.start.side_effect = ConnectionError("refused")
        start = ApifyJobClient.start_discovery_job.retry_with(wait=wait_none())

        with pytest.raises(JobStartError, match="refused"):
            await start(client, DiscoveryQuery(query="Acme"))

        assert apify.actor.return_value.start.call_count == 3

    @pytest.mark.asyncio
    async def test_start_recovers_after_transient_error(self, client, apify):
        apify.actor.return_value.start.side_effect = [ConnectionError("refused"), {"id": "run-3"}]
        start = ApifyJobClient.start_scrape_job.retry_with(wait=wait_none())

        handle = await start(client, [make_place(url="https://a")], 10)

        assert handle.job_id == "run-3"

    @pytest.mark.asyncio
    async def test_get_job_status(self, client, apify):
        apify.run.return_value.get.return_value = {"status": "RUNNING"}

        status = await client.get_job_status("run-1", JobKind.SCRAPE)

        assert status.state == JobState.RUNNING
        apify.run.assert_called_with("run-1")

    @pytest.mark.asyncio
    async def test_fetch_job_results(self, client, apify):
        apify.dataset.return_value.iterate_items.return_value = iter([{"placeId": "P1"}, {"placeId": "P2"}])

        items = await client.fetch_job_results(JobStatus(state=JobState.SUCCEEDED, dataset_id="ds-1"))

        assert items == [{"placeId": "P1"}, {"placeId": "P2"}]
        apify.dataset.assert_called_with("ds-1")

    @pytest.mark.asyncio
    async def test_fetch_without_dataset_raises(self, client):
        with pytest.raises(JobFailedError):
            await client.fetch_job_results(JobStatus(state=JobState.SUCCEEDED))
