"""Normalization infrastructure for job output.

Provides explicit flat/nested record parsers and the merge pipeline that
produces canonical Places.
"""

from mapreviews.collectors.normalization.parsers import (
    ParsedRecord,
    parse_flat_record,
    parse_nested_record,
)
from mapreviews.collectors.normalization.pipeline import (
    NormalizationPipeline,
    normalize,
    normalize_listings,
)

__all__ = [
    "NormalizationPipeline",
    "ParsedRecord",
    "normalize",
    "normalize_listings",
    "parse_flat_record",
    "parse_nested_record",
]
