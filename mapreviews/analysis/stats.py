"""Aggregate statistics over a set of places.

``compute_stats`` is pure and cheap; it is recomputed from the full place set
whenever the review set changes instead of being updated incrementally.
"""

import math
import re
from collections import Counter
from typing import Iterable

from mapreviews.analysis.stopwords import STOPWORDS
from mapreviews.models.schemas import (
    AggregateStats,
    AIStats,
    BrandAnalysisResult,
    KeywordCount,
    Place,
    Review,
    SentimentBreakdown,
)

TOP_KEYWORDS_LIMIT = 30
MIN_KEYWORD_LENGTH = 4

# ASCII word chars plus the accented vowels used in Italian; anything else
# becomes a separator.
_NON_WORD_RE = re.compile(r"[^\w\sàèéìòùáíóú]", re.ASCII)
_DIGITS_RE = re.compile(r"^\d+$", re.ASCII)
_REPEATED_RE = re.compile(r"(.)\1{2,}")


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for non-negative values (2.5 -> 3)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _percent(count: int, total: int) -> int:
    if total == 0:
        return 0
    return int(round_half_up(count / total * 100))


def _is_keyword(token: str) -> bool:
    return (
        len(token) >= MIN_KEYWORD_LENGTH
        and token not in STOPWORDS
        and not _DIGITS_RE.match(token)
        and not _REPEATED_RE.search(token)
    )


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation and return the tokens that count as keywords."""
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [token for token in cleaned.split() if _is_keyword(token)]


def extract_top_keywords(texts: Iterable[str], limit: int = TOP_KEYWORDS_LIMIT) -> list[KeywordCount]:
    """Most frequent keywords across all texts.

    Words seen only once are dropped. Equal counts keep the order in which
    the words were first seen.
    """
    counts: Counter[str] = Counter()
    for text in texts:
        if not text:
            continue
        counts.update(tokenize(text))

    # Counter preserves first-insertion order and sorted() is stable.
    ranked = sorted(
        ((word, count) for word, count in counts.items() if count > 1),
        key=lambda item: item[1],
        reverse=True,
    )
    return [KeywordCount(word=word, count=count) for word, count in ranked[:limit]]


def compute_stats(places: Iterable[Place]) -> AggregateStats:
    """
    Compute aggregate statistics for a place set.

    Reviews with stars outside 1..5 (0 = unrated) count toward the totals and
    the average but not toward the distribution or sentiment.

    Args:
        places: Normalized places, possibly without reviews

    Returns:
        Fresh AggregateStats with no AI analysis attached
    """
    places = list(places)
    reviews: list[Review] = [review for place in places for review in place.reviews]
    total = len(reviews)

    distribution = {star: 0 for star in range(1, 6)}
    positive = neutral = negative = 0
    for review in reviews:
        stars = review.stars
        if not 1 <= stars <= 5:
            continue
        distribution[stars] += 1
        if stars >= 4:
            positive += 1
        elif stars == 3:
            neutral += 1
        else:
            negative += 1

    texts = [review.text for review in reviews if review.has_text]
    with_response = sum(
        1 for review in reviews
        if review.response_from_owner and review.response_from_owner.strip()
    )
    avg_rating = round_half_up(sum(r.stars for r in reviews) / total, 1) if total else 0.0

    return AggregateStats(
        total_places=len(places),
        total_reviews=total,
        reviews_with_text=len(texts),
        reviews_with_response=with_response,
        avg_rating=avg_rating,
        distribution=distribution,
        sentiment=SentimentBreakdown(
            positive=positive,
            neutral=neutral,
            negative=negative,
            positive_percent=_percent(positive, total),
            neutral_percent=_percent(neutral, total),
            negative_percent=_percent(negative, total),
        ),
        top_keywords=extract_top_keywords(texts),
    )


def attach_brand_analysis(
    stats: AggregateStats, analysis: BrandAnalysisResult | None
) -> AggregateStats:
    """Return a copy of ``stats`` carrying the brand-level analysis."""
    if analysis is None:
        return stats
    return stats.model_copy(update={"ai_stats": AIStats(analysis=analysis)})
