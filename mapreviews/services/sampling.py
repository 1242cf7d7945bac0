"""Review sampling applied before text analysis."""

from typing import Iterable

from mapreviews.models.schemas import Review

MAX_POSITIVE_SAMPLES = 20
MAX_NEGATIVE_SAMPLES = 20
SAMPLE_TEXT_LIMIT = 200


def is_positive(review: Review) -> bool:
    return review.stars >= 4


def is_negative(review: Review) -> bool:
    return 1 <= review.stars <= 2


def sample_reviews(reviews: Iterable[Review], sampling_enabled: bool = True) -> list[Review]:
    """
    Select the reviews sent to the analysis service.

    Only reviews with text are considered. With sampling on, at most 20
    positive (4-5 stars) and 20 negative (1-2 stars) reviews are kept, each
    truncated to 200 characters. With sampling off, every text review is kept
    untruncated.

    Args:
        reviews: Reviews in original order
        sampling_enabled: Apply the positive/negative cap and truncation

    Returns:
        Positive samples followed by negative samples, or all text reviews
    """
    with_text = [review for review in reviews if review.has_text]
    if not sampling_enabled:
        return with_text

    positive = [r for r in with_text if is_positive(r)][:MAX_POSITIVE_SAMPLES]
    negative = [r for r in with_text if is_negative(r)][:MAX_NEGATIVE_SAMPLES]
    return [
        review.model_copy(update={"text": review.text[:SAMPLE_TEXT_LIMIT]})
        for review in positive + negative
    ]
