"""Normalization pipeline for review job output.

Registers one parser per record shape and merges parsed records into the
canonical Place/Review model. Shapes are processed in registration order
(flat before nested by default); within a shape, input order is kept.

Merge rules:
- records sharing a derived place key land in the same Place
- the first record seen for a key sets the place metadata; later records
  only append reviews
- reviews with no stars and no text are dropped
- a review without an explicit id gets ``{place_key}_{index}``
- Places are returned in first-encounter order
"""

from typing import Callable, Iterable, Optional

import structlog

from mapreviews.collectors.normalization.parsers import (
    ParsedRecord,
    is_nested_record,
    parse_flat_record,
    parse_nested_record,
)
from mapreviews.collectors.normalization.schema import (
    PLACE_ADDRESS_FIELDS,
    PLACE_CATEGORY_FIELDS,
    PLACE_TITLE_FIELDS,
    PLACE_TOTAL_REVIEWS_FIELDS,
    PLACE_URL_FIELDS,
    NESTED_PLACE_RATING_FIELDS,
    RawRecord,
    as_text,
    derive_place_key,
    first_present,
    non_negative_float,
    non_negative_int,
)
from mapreviews.models.schemas import Place, Review

logger = structlog.get_logger(__name__)

Parser = Callable[[RawRecord], Optional[ParsedRecord]]

FLAT_SHAPE = "flat"
NESTED_SHAPE = "nested"


def classify_record(raw: RawRecord) -> str:
    """Return the shape name of a raw record."""
    return NESTED_SHAPE if is_nested_record(raw) else FLAT_SHAPE


class NormalizationPipeline:
    """Pipeline turning heterogeneous raw records into Places.

    Example:
        pipeline = NormalizationPipeline.default()
        places = pipeline.normalize(dataset_items)
    """

    def __init__(self):
        """Initialize the normalization pipeline."""
        self._parsers: dict[str, Parser] = {}

    @classmethod
    def default(cls) -> "NormalizationPipeline":
        """Pipeline with the flat parser registered before the nested one."""
        pipeline = cls()
        pipeline.register_parser(FLAT_SHAPE, parse_flat_record)
        pipeline.register_parser(NESTED_SHAPE, parse_nested_record)
        return pipeline

    def register_parser(self, shape: str, parser: Parser) -> None:
        """Register a parser for a record shape.

        Args:
            shape: Shape identifier ("flat", "nested").
            parser: Callable turning a raw record into a ParsedRecord.
        """
        self._parsers[shape] = parser

    def has_parser(self, shape: str) -> bool:
        return shape in self._parsers

    def list_shapes(self) -> list[str]:
        """List registered shapes in processing order."""
        return list(self._parsers.keys())

    def normalize(self, raw_records: Iterable[RawRecord]) -> list[Place]:
        """Normalize raw records into Places.

        Args:
            raw_records: Records from a job's result set, in provider order.

        Returns:
            Places in first-encounter order of their derived key.

        Raises:
            ValueError: If a record's shape has no registered parser.
        """
        by_shape: dict[str, list[RawRecord]] = {shape: [] for shape in self._parsers}
        for raw in raw_records:
            if not isinstance(raw, dict):
                logger.debug("normalize_skip_non_mapping", record_type=type(raw).__name__)
                continue
            shape = classify_record(raw)
            if shape not in by_shape:
                raise ValueError(f"No parser registered for shape: {shape}")
            by_shape[shape].append(raw)

        places: dict[str, Place] = {}
        dropped = 0
        for shape, records in by_shape.items():
            parser = self._parsers[shape]
            for raw in records:
                parsed = parser(raw)
                if parsed is None:
                    continue
                dropped += _merge(places, parsed)

        logger.info(
            "normalize_complete",
            records=sum(len(r) for r in by_shape.values()),
            places=len(places),
            reviews=sum(len(p.reviews) for p in places.values()),
            dropped_empty_reviews=dropped,
        )
        return list(places.values())


def _merge(places: dict[str, Place], parsed: ParsedRecord) -> int:
    """Merge one parsed record into the place map; returns dropped review count."""
    place = places.get(parsed.place_key)
    if place is None:
        seed = parsed.place
        place = Place(
            place_id=parsed.place_key,
            title=seed.title,
            address=seed.address,
            url=seed.url,
            rating=seed.rating,
            total_reviews=seed.total_reviews,
            category_name=seed.category_name,
        )
        places[parsed.place_key] = place

    dropped = 0
    for seed in parsed.reviews:
        if seed.is_empty:
            dropped += 1
            continue
        place.reviews.append(
            Review(
                id=seed.review_id or f"{parsed.place_key}_{len(place.reviews)}",
                text=seed.text,
                stars=seed.stars,
                published_at_date=seed.published_at_date,
                author_name=seed.author_name,
                author_url=seed.author_url,
                likes_count=seed.likes_count,
                response_from_owner=seed.response_from_owner,
            )
        )
    return dropped


_default_pipeline = NormalizationPipeline.default()


def normalize(raw_records: Iterable[RawRecord]) -> list[Place]:
    """Normalize review job output with the default flat-then-nested pipeline."""
    return _default_pipeline.normalize(raw_records)


def normalize_listings(raw_records: Iterable[RawRecord]) -> list[Place]:
    """Normalize listing search output into review-less Places.

    Records without a title are dropped; duplicates by place key keep the
    first occurrence.
    """
    places: dict[str, Place] = {}
    for raw in raw_records:
        if not isinstance(raw, dict):
            continue
        title = first_present(raw, PLACE_TITLE_FIELDS)
        if title is None:
            continue
        key = derive_place_key(raw)
        if key in places:
            continue
        places[key] = Place(
            place_id=key,
            title=as_text(title),
            address=as_text(first_present(raw, PLACE_ADDRESS_FIELDS)),
            url=as_text(first_present(raw, PLACE_URL_FIELDS)),
            rating=non_negative_float(first_present(raw, NESTED_PLACE_RATING_FIELDS)),
            total_reviews=non_negative_int(first_present(raw, PLACE_TOTAL_REVIEWS_FIELDS)),
            category_name=as_text(first_present(raw, PLACE_CATEGORY_FIELDS)),
        )

    logger.info("normalize_listings_complete", places=len(places))
    return list(places.values())
