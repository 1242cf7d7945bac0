"""
Data Source Integrations.

This module contains collectors for gathering listing and review data:

- apify_jobs: Apify actors for listing search and review scraping
- manual_urls: Places parsed from pasted Google Maps links
- normalization: Canonical Place/Review model from raw job output

Example:
    from mapreviews.collectors import ApifyJobClient, normalize

    client = ApifyJobClient()
    handle = await client.start_scrape_job(places, max_reviews_per_place=100)
    ...
    places = normalize(await client.fetch_job_results(status))
"""

from mapreviews.collectors.apify_jobs import ApifyJobClient, map_run_status
from mapreviews.collectors.manual_urls import parse_manual_url, parse_manual_urls
from mapreviews.collectors.normalization import normalize, normalize_listings

__all__ = [
    "ApifyJobClient",
    "map_run_status",
    "normalize",
    "normalize_listings",
    "parse_manual_url",
    "parse_manual_urls",
]
