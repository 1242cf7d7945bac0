"""Unit tests for aggregate statistics and keyword extraction."""

from mapreviews.analysis.stats import (
    attach_brand_analysis,
    compute_stats,
    extract_top_keywords,
    round_half_up,
    tokenize,
)
from mapreviews.collectors.normalization import normalize
from mapreviews.models.schemas import BrandAnalysisResult

from tests.conftest import make_place, make_review


class TestRounding:
    def test_halves_round_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(3.25, 1) == 3.3

    def test_regular_values(self):
        assert round_half_up(2.4) == 2
        assert round_half_up(4.44, 1) == 4.4


class TestComputeStats:
    """Test compute_stats over place sets."""

    def test_two_reviews_same_place(self):
        places = normalize([
            {"placeId": "P1", "title": "Cafe A", "stars": 5, "text": "ottimo"},
            {"placeId": "P1", "title": "Cafe A", "stars": 1, "text": ""},
        ])

        stats = compute_stats(places)

        assert stats.total_places == 1
        assert stats.total_reviews == 2
        assert stats.reviews_with_text == 1
        assert stats.avg_rating == 3.0
        assert stats.distribution == {1: 1, 2: 0, 3: 0, 4: 0, 5: 1}
        assert stats.sentiment.positive == 1
        assert stats.sentiment.neutral == 0
        assert stats.sentiment.negative == 1
        assert stats.sentiment.positive_percent == 50
        assert stats.sentiment.neutral_percent == 0
        assert stats.sentiment.negative_percent == 50

    def test_uneven_thirds_round_each_bucket(self):
        reviews = [make_review("r1", stars=5), make_review("r2", stars=3), make_review("r3", stars=1)]

        sentiment = compute_stats([make_place("P1", reviews=reviews)]).sentiment

        assert (sentiment.positive_percent, sentiment.neutral_percent, sentiment.negative_percent) == (33, 33, 33)

    def test_two_thirds_rounds_up(self):
        reviews = [make_review("r1", stars=4), make_review("r2", stars=5), make_review("r3", stars=2)]

        sentiment = compute_stats([make_place("P1", reviews=reviews)]).sentiment

        assert (sentiment.positive_percent, sentiment.neutral_percent, sentiment.negative_percent) == (67, 0, 33)

    def test_percentages_sum_to_about_100(self):
        for stars in ([5, 3, 1], [5, 5, 3, 1, 1, 2], [4, 3, 3, 3, 3, 2, 1], [5] * 7 + [3] * 5 + [1] * 3):
            reviews = [make_review(f"r{i}", stars=s) for i, s in enumerate(stars)]

            sentiment = compute_stats([make_place("P1", reviews=reviews)]).sentiment
            total = sentiment.positive_percent + sentiment.neutral_percent + sentiment.negative_percent

            assert abs(total - 100) <= 1, stars

    def test_empty_place_set(self):
        stats = compute_stats([])

        assert stats.total_reviews == 0
        assert stats.avg_rating == 0.0
        assert stats.sentiment.positive_percent == 0
        assert stats.sentiment.negative_percent == 0
        assert stats.top_keywords == []

    def test_places_without_reviews_count_as_places(self):
        stats = compute_stats([make_place("P1"), make_place("P2")])

        assert stats.total_places == 2
        assert stats.total_reviews == 0

    def test_unrated_reviews_skip_distribution_and_sentiment(self):
        place = make_place(reviews=[
            make_review("r1", stars=0, text="no stars here"),
            make_review("r2", stars=4, text="good"),
        ])

        stats = compute_stats([place])

        assert stats.total_reviews == 2
        assert stats.avg_rating == 2.0
        assert sum(stats.distribution.values()) == 1
        assert stats.sentiment.positive == 1
        assert stats.sentiment.positive_percent == 50

    def test_counts_owner_responses(self):
        place = make_place(reviews=[
            make_review("r1", response_from_owner="Thanks!"),
            make_review("r2", response_from_owner="  "),
            make_review("r3"),
        ])

        assert compute_stats([place]).reviews_with_response == 1

    def test_average_rounds_to_one_decimal(self):
        place = make_place(reviews=[
            make_review("r1", stars=5),
            make_review("r2", stars=4),
            make_review("r3", stars=4),
        ])

        assert compute_stats([place]).avg_rating == 4.3

    def test_stats_are_recomputed_not_accumulated(self):
        place = make_place(reviews=[make_review("r1", stars=5)])
        first = compute_stats([place])

        place.reviews.append(make_review("r2", stars=1))
        second = compute_stats([place])

        assert first.total_reviews == 1
        assert second.total_reviews == 2
        assert second.avg_rating == 3.0


class TestKeywords:
    """Test tokenization and top keyword extraction."""

    def test_tokenize_filters_short_stopwords_digits_and_repeats(self):
        tokens = tokenize("Il caffè era ottimo!!! 2024 buonooo, molto molto servizio")

        assert "caffè" in tokens
        assert "ottimo" in tokens
        assert "servizio" in tokens
        assert "2024" not in tokens
        assert "buonooo" not in tokens
        assert "molto" not in tokens
        assert "il" not in tokens

    def test_tokenize_splits_on_non_ascii_letters(self):
        # Only the listed accented vowels survive; other letters act as separators.
        assert tokenize("crème brûlée") == ["crème"]

    def test_words_seen_once_are_dropped(self):
        keywords = extract_top_keywords(["pizza buona", "pizza fredda"])

        assert [(k.word, k.count) for k in keywords] == [("pizza", 2)]

    def test_ties_keep_first_seen_order(self):
        keywords = extract_top_keywords([
            "servizio pizza",
            "pizza servizio",
            "prezzo prezzo prezzo",
        ])

        assert [k.word for k in keywords] == ["prezzo", "servizio", "pizza"]

    def test_limit(self):
        texts = [" ".join(f"word{chr(97 + i)}" for i in range(10))] * 2

        assert len(extract_top_keywords(texts, limit=3)) == 3

    def test_stats_include_keywords(self):
        place = make_place(reviews=[
            make_review("r1", text="Pizza eccellente"),
            make_review("r2", text="pizza eccellente, personale gentile"),
        ])

        words = [k.word for k in compute_stats([place]).top_keywords]

        assert words == ["pizza", "eccellente"]


class TestAttachBrandAnalysis:
    def test_attaches_copy(self):
        stats = compute_stats([])
        analysis = BrandAnalysisResult(strengths=["fast"])

        enriched = attach_brand_analysis(stats, analysis)

        assert enriched.ai_stats.analysis.strengths == ["fast"]
        assert stats.ai_stats is None

    def test_none_leaves_stats_unchanged(self):
        stats = compute_stats([])

        assert attach_brand_analysis(stats, None) is stats
