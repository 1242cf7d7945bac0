"""Shape-specific parsers for review job output.

The review scraper can return two record shapes:

- flat: each record IS one review, with the place metadata repeated on it
- nested: each record is a place carrying a ``reviews`` list

Each parser turns one raw record into a ParsedRecord; the merge step in
``pipeline.py`` combines them into Places.
"""

from dataclasses import dataclass, field
from typing import Optional

from mapreviews.collectors.normalization.schema import (
    ANONYMOUS_AUTHOR,
    FLAT_PLACE_RATING_FIELDS,
    FLAT_REVIEW_ID_FIELDS,
    NESTED_PLACE_RATING_FIELDS,
    NESTED_REVIEW_ID_FIELDS,
    NESTED_REVIEWS_FIELD,
    PLACE_ADDRESS_FIELDS,
    PLACE_CATEGORY_FIELDS,
    PLACE_TITLE_FIELDS,
    PLACE_TOTAL_REVIEWS_FIELDS,
    PLACE_URL_FIELDS,
    REVIEW_AUTHOR_FIELDS,
    REVIEW_AUTHOR_URL_FIELDS,
    REVIEW_LIKES_FIELDS,
    REVIEW_OWNER_RESPONSE_FIELDS,
    REVIEW_PUBLISHED_FIELDS,
    REVIEW_STARS_FIELDS,
    REVIEW_TEXT_FIELDS,
    UNKNOWN_TITLE,
    RawRecord,
    as_text,
    coerce_stars,
    derive_place_key,
    first_present,
    non_negative_float,
    non_negative_int,
)


@dataclass
class PlaceSeed:
    """Place metadata read from a record, before merging."""

    title: str
    address: str
    url: str
    rating: float
    total_reviews: int
    category_name: str = ""


@dataclass
class ReviewSeed:
    """Review fields read from a record; the id may still be missing."""

    review_id: Optional[str]
    text: str
    stars: int
    published_at_date: str
    author_name: str
    author_url: str
    likes_count: int
    response_from_owner: Optional[str]

    @property
    def is_empty(self) -> bool:
        """True when the review carries neither a star rating nor text."""
        return self.stars == 0 and not self.text.strip()


@dataclass
class ParsedRecord:
    place_key: str
    place: PlaceSeed
    reviews: list[ReviewSeed] = field(default_factory=list)


def is_nested_record(raw: RawRecord) -> bool:
    """A record is nested when it carries a list of review sub-records."""
    return isinstance(raw.get(NESTED_REVIEWS_FIELD), list)


def _parse_review(raw: RawRecord, id_fields: tuple[str, ...]) -> ReviewSeed:
    review_id = first_present(raw, id_fields)
    owner_response = first_present(raw, REVIEW_OWNER_RESPONSE_FIELDS)
    return ReviewSeed(
        review_id=str(review_id) if review_id is not None else None,
        text=as_text(first_present(raw, REVIEW_TEXT_FIELDS)),
        stars=coerce_stars(first_present(raw, REVIEW_STARS_FIELDS)),
        published_at_date=as_text(first_present(raw, REVIEW_PUBLISHED_FIELDS)),
        author_name=as_text(first_present(raw, REVIEW_AUTHOR_FIELDS), ANONYMOUS_AUTHOR),
        author_url=as_text(first_present(raw, REVIEW_AUTHOR_URL_FIELDS)),
        likes_count=non_negative_int(first_present(raw, REVIEW_LIKES_FIELDS)),
        response_from_owner=str(owner_response) if owner_response is not None else None,
    )


def parse_flat_record(raw: RawRecord) -> ParsedRecord:
    """Parse a flat record: one review plus duplicated place metadata."""
    place = PlaceSeed(
        title=as_text(first_present(raw, PLACE_TITLE_FIELDS), UNKNOWN_TITLE),
        address=as_text(first_present(raw, PLACE_ADDRESS_FIELDS)),
        url=as_text(first_present(raw, PLACE_URL_FIELDS)),
        rating=non_negative_float(first_present(raw, FLAT_PLACE_RATING_FIELDS)),
        total_reviews=non_negative_int(first_present(raw, PLACE_TOTAL_REVIEWS_FIELDS)),
        category_name=as_text(first_present(raw, PLACE_CATEGORY_FIELDS)),
    )
    return ParsedRecord(
        place_key=derive_place_key(raw),
        place=place,
        reviews=[_parse_review(raw, FLAT_REVIEW_ID_FIELDS)],
    )


def parse_nested_record(raw: RawRecord) -> Optional[ParsedRecord]:
    """Parse a nested record: a place with a ``reviews`` list.

    Returns None when the record has no reviews list.
    """
    if not is_nested_record(raw):
        return None

    sub_records = [r for r in raw[NESTED_REVIEWS_FIELD] if isinstance(r, dict)]
    total_reviews = first_present(raw, PLACE_TOTAL_REVIEWS_FIELDS)

    place = PlaceSeed(
        title=as_text(first_present(raw, PLACE_TITLE_FIELDS), UNKNOWN_TITLE),
        address=as_text(first_present(raw, PLACE_ADDRESS_FIELDS)),
        url=as_text(first_present(raw, PLACE_URL_FIELDS)),
        rating=non_negative_float(first_present(raw, NESTED_PLACE_RATING_FIELDS)),
        total_reviews=(
            non_negative_int(total_reviews)
            if total_reviews is not None
            else len(raw[NESTED_REVIEWS_FIELD])
        ),
        category_name=as_text(first_present(raw, PLACE_CATEGORY_FIELDS)),
    )
    return ParsedRecord(
        place_key=derive_place_key(raw),
        place=place,
        reviews=[_parse_review(r, NESTED_REVIEW_ID_FIELDS) for r in sub_records],
    )
