"""Field lookup tables for raw provider records.

Provider output is not uniform: the same logical field can appear under
several keys. Each tuple below lists the keys in lookup order; the first
present value that is neither None nor an empty string wins.
"""

import math
from typing import Any, Iterable, Optional

RawRecord = dict[str, Any]

UNKNOWN_PLACE_KEY = "unknown"
UNKNOWN_TITLE = "Unknown Location"
ANONYMOUS_AUTHOR = "Anonymous"

# Place identity: explicit id -> canonical url -> title
PLACE_KEY_FIELDS = ("placeId", "url", "title")

# Place metadata
PLACE_TITLE_FIELDS = ("title", "name")
PLACE_ADDRESS_FIELDS = ("address", "street")
PLACE_URL_FIELDS = ("url",)
PLACE_CATEGORY_FIELDS = ("categoryName",)
PLACE_TOTAL_REVIEWS_FIELDS = ("reviewsCount",)
# In flat records "rating" is the review's own star value, so only totalScore
# describes the place.
FLAT_PLACE_RATING_FIELDS = ("totalScore",)
NESTED_PLACE_RATING_FIELDS = ("totalScore", "rating")

# Review fields
FLAT_REVIEW_ID_FIELDS = ("reviewId", "id")
NESTED_REVIEW_ID_FIELDS = ("reviewId",)
REVIEW_TEXT_FIELDS = ("text", "reviewText")
REVIEW_STARS_FIELDS = ("stars", "rating")
REVIEW_PUBLISHED_FIELDS = ("publishedAtDate", "publishAt")
REVIEW_AUTHOR_FIELDS = ("name", "reviewerName")
REVIEW_AUTHOR_URL_FIELDS = ("reviewUrl", "reviewerUrl")
REVIEW_LIKES_FIELDS = ("likesCount", "likes")
REVIEW_OWNER_RESPONSE_FIELDS = ("responseFromOwnerText", "ownerResponse")

NESTED_REVIEWS_FIELD = "reviews"


def first_present(record: RawRecord, keys: Iterable[str], default: Any = None) -> Any:
    """Return the first value under ``keys`` that is not None or ''."""
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, str) and value == "":
            continue
        return value
    return default


def derive_place_key(record: RawRecord) -> str:
    """Derive the merge key of a record: id, then url, then title, then 'unknown'."""
    value = first_present(record, PLACE_KEY_FIELDS)
    if value is None:
        return UNKNOWN_PLACE_KEY
    return str(value)


def as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def safe_float(value: Any) -> Optional[float]:
    """Parse a finite float; None for missing, unparseable, NaN or infinite values."""
    try:
        if value is None:
            return None
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return int(value)

    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            try:
                return int(digits)
            except ValueError:
                return None
    return None


def coerce_stars(value: Any) -> int:
    """Coerce a star rating to an int in 0..5 (0 = unrated)."""
    number = safe_float(value)
    if number is None:
        return 0
    return max(0, min(5, int(round(number))))


def non_negative_int(value: Any) -> int:
    number = safe_int(value)
    return number if number is not None and number > 0 else 0


def non_negative_float(value: Any) -> float:
    number = safe_float(value)
    return number if number is not None and number > 0 else 0.0
