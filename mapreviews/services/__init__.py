"""
Business services.

- review_analyzer: Claude-backed per-place and brand-level review analysis
- enrichment: batched orchestration of the analyzer over a place set
- sampling: which reviews are sent to the analyzer
"""

from mapreviews.services.enrichment import (
    EnrichmentOrchestrator,
    EnrichmentReport,
    derive_brand_name,
)
from mapreviews.services.review_analyzer import ReviewAnalyzer
from mapreviews.services.sampling import sample_reviews

__all__ = [
    "EnrichmentOrchestrator",
    "EnrichmentReport",
    "ReviewAnalyzer",
    "derive_brand_name",
    "sample_reviews",
]
