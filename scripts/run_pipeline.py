#!/usr/bin/env python3
"""
Run the full pipeline from the command line.

Discovers places for a brand (or parses Google Maps URLs), scrapes reviews
for every candidate, optionally runs AI analysis, then prints a summary and
writes the requested exports.

Usage:
    python scripts/run_pipeline.py "Acme Pizza" --location italy --max-places 10
    python scripts/run_pipeline.py --url "https://www.google.com/maps/place/..." --enrich
    python scripts/run_pipeline.py "Acme Pizza" --csv reviews.csv --json results.json
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path

import structlog

from mapreviews.config.settings import get_settings
from mapreviews.core.exceptions import MapReviewsError
from mapreviews.core.log_config import configure_logging
from mapreviews.delivery.export import to_csv, to_json
from mapreviews.delivery.history import HistoryStore
from mapreviews.models.schemas import SearchMode, SearchRequest
from mapreviews.orchestration.events import ProgressBus, ProgressEvent
from mapreviews.orchestration.pipeline import PipelineController, PipelineStage

logger = structlog.get_logger(__name__)


def print_header(text: str, char: str = "=") -> None:
    line = char * 60
    print(f"\n{line}")
    print(f" {text}")
    print(f"{line}")


def print_progress(event: ProgressEvent) -> None:
    stage = f"[{event.stage}] " if event.stage else ""
    print(f"  {event.percent:3d}% {stage}{event.message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search, scrape and analyze Google Maps reviews")
    parser.add_argument("brand", nargs="?", default="", help="Brand or business name to search")
    parser.add_argument("--url", action="append", default=[], help="Google Maps URL (repeatable)")
    parser.add_argument("--location", default=None, help="'world', 'italy' or a free-text location")
    parser.add_argument("--max-places", type=int, default=50, help="Maximum places to discover")
    parser.add_argument("--aggressive", action="store_true", help="Crawl 1.5x the requested places")
    parser.add_argument("--skip-closed", action="store_true", help="Skip permanently closed places")
    parser.add_argument("--max-reviews", type=int, default=None, help="Reviews per place")
    parser.add_argument("--enrich", action="store_true", help="Run AI analysis")
    parser.add_argument("--no-sampling", action="store_true", help="Send every text review to the AI")
    parser.add_argument("--csv", type=Path, default=None, help="Write reviews as CSV")
    parser.add_argument("--json", type=Path, default=None, help="Write results as JSON")
    parser.add_argument("--no-history", action="store_true", help="Do not save the run to history")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show log output")
    return parser


async def main() -> int:
    args = build_parser().parse_args()
    settings = get_settings()
    configure_logging("DEBUG" if args.verbose else "WARNING", json_output=False)

    if args.url:
        request = SearchRequest(mode=SearchMode.URL, urls=args.url)
    else:
        request = SearchRequest(
            brand_name=args.brand,
            location=args.location,
            max_places=args.max_places,
            search_mode="aggressive" if args.aggressive else "balanced",
            skip_closed=args.skip_closed,
        )

    history = None
    if not args.no_history:
        history = HistoryStore(
            settings.history_path,
            max_entries=settings.history_max_entries,
            dedupe_window_seconds=settings.history_dedupe_seconds,
        )
    controller = PipelineController(settings=settings, history=history)

    events = ProgressBus()
    events.subscribe(print_progress)

    print_header("mapreviews")
    label = request.brand_name or f"{len(request.urls)} URL(s)"
    print(f"  Input:   {label}")
    print(f"  Enrich:  {'yes' if args.enrich else 'no'}")

    t0 = time.time()
    try:
        ctx = await controller.run(
            request,
            max_reviews=args.max_reviews,
            enrich=args.enrich,
            sampling=not args.no_sampling,
            events=events,
        )
    except MapReviewsError as e:
        print(f"\n  FAILED: {e.message}")
        return 1

    if ctx.stage != PipelineStage.DONE:
        print("\n  No places found.")
        return 0

    artifact = ctx.artifact
    stats = artifact.aggregate_stats

    print_header("Results")
    print(f"  Places:        {stats.total_places}")
    print(f"  Reviews:       {stats.total_reviews} ({stats.reviews_with_text} with text)")
    print(f"  Avg rating:    {stats.avg_rating}")
    print(
        f"  Sentiment:     +{stats.sentiment.positive_percent}% "
        f"/ ={stats.sentiment.neutral_percent}% / -{stats.sentiment.negative_percent}%"
    )
    keywords = ", ".join(k.word for k in stats.top_keywords[:10])
    print(f"  Top keywords:  {keywords or 'N/A'}")
    if ctx.enrichment_report is not None:
        report = ctx.enrichment_report
        print(f"  AI analyzed:   {report.analyzed} (failed {report.failed}, skipped {report.skipped})")
    if stats.ai_stats and stats.ai_stats.analysis:
        for item in stats.ai_stats.analysis.priorities:
            print(f"         - {item[:80]}")

    if args.csv:
        args.csv.write_text(to_csv(artifact), encoding="utf-8")
        print(f"  CSV:           {args.csv}")
    if args.json:
        args.json.write_text(to_json(artifact), encoding="utf-8")
        print(f"  JSON:          {args.json}")

    print(f"\n  Done in {time.time() - t0:.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
