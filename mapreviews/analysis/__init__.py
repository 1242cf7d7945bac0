"""Aggregate statistics and keyword extraction."""

from mapreviews.analysis.stats import (
    attach_brand_analysis,
    compute_stats,
    extract_top_keywords,
    round_half_up,
    tokenize,
)
from mapreviews.analysis.stopwords import STOPWORDS

__all__ = [
    "STOPWORDS",
    "attach_brand_analysis",
    "compute_stats",
    "extract_top_keywords",
    "round_half_up",
    "tokenize",
]
