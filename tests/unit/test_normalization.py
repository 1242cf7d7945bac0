"""Unit tests for review job normalization."""

import pytest

from mapreviews.collectors.normalization import (
    NormalizationPipeline,
    normalize,
    normalize_listings,
    parse_flat_record,
    parse_nested_record,
)
from mapreviews.collectors.normalization.schema import (
    coerce_stars,
    derive_place_key,
    first_present,
    safe_int,
)


class TestFieldLookup:
    """Test fallback lookups over alternate key names."""

    def test_first_present_skips_none_and_empty_string(self):
        record = {"a": None, "b": "", "c": "value"}
        assert first_present(record, ("a", "b", "c")) == "value"

    def test_first_present_keeps_zero(self):
        assert first_present({"a": 0, "b": 4}, ("a", "b")) == 0

    def test_first_present_default(self):
        assert first_present({}, ("a",), default="x") == "x"

    def test_place_key_fallback_chain(self):
        assert derive_place_key({"placeId": "P1", "url": "u", "title": "t"}) == "P1"
        assert derive_place_key({"url": "u", "title": "t"}) == "u"
        assert derive_place_key({"title": "t"}) == "t"
        assert derive_place_key({}) == "unknown"

    def test_coerce_stars_clamps_and_rounds(self):
        assert coerce_stars(4.6) == 5
        assert coerce_stars(7) == 5
        assert coerce_stars(-1) == 0
        assert coerce_stars("n/a") == 0
        assert coerce_stars(None) == 0

    def test_safe_int_reads_formatted_numbers(self):
        assert safe_int("1,234") == 1234
        assert safe_int(12.9) == 12
        assert safe_int(True) is None
        assert safe_int("none") is None

    def test_non_finite_numbers_read_as_missing(self):
        assert coerce_stars("nan") == 0
        assert coerce_stars(float("nan")) == 0
        assert coerce_stars("inf") == 0
        assert coerce_stars(float("-inf")) == 0
        assert safe_int(float("nan")) is None
        assert safe_int(float("inf")) is None


class TestParsers:
    """Test the shape-specific parsers."""

    def test_flat_record_uses_total_score_for_place_rating(self):
        parsed = parse_flat_record({"placeId": "P1", "title": "Cafe", "rating": 2, "totalScore": 4.4})

        assert parsed.place.rating == 4.4
        assert parsed.reviews[0].stars == 2

    def test_flat_record_reads_alternate_review_keys(self):
        parsed = parse_flat_record({
            "placeId": "P1",
            "id": "R9",
            "reviewText": "Buono",
            "publishAt": "2 weeks ago",
            "reviewerName": "Marco",
            "likes": 3,
            "ownerResponse": "Grazie",
        })
        review = parsed.reviews[0]

        assert review.review_id == "R9"
        assert review.text == "Buono"
        assert review.published_at_date == "2 weeks ago"
        assert review.author_name == "Marco"
        assert review.likes_count == 3
        assert review.response_from_owner == "Grazie"

    def test_nested_record_counts_reviews_when_total_missing(self):
        parsed = parse_nested_record({
            "placeId": "N1",
            "title": "Nested",
            "rating": 4.2,
            "reviews": [{"reviewId": "a", "stars": 4}, {"stars": 1}],
        })

        assert parsed.place.rating == 4.2
        assert parsed.place.total_reviews == 2
        assert [r.review_id for r in parsed.reviews] == ["a", None]

    def test_nested_parser_ignores_flat_records(self):
        assert parse_nested_record({"placeId": "P1", "stars": 5}) is None


class TestNormalize:
    """Test merging parsed records into Places."""

    def test_same_key_records_merge_into_one_place(self):
        places = normalize([
            {"placeId": "P1", "title": "Cafe A", "stars": 5, "text": "ottimo"},
            {"placeId": "P1", "title": "Cafe A", "stars": 1, "text": ""},
        ])

        assert len(places) == 1
        place = places[0]
        assert place.place_id == "P1"
        assert [r.stars for r in place.reviews] == [5, 1]
        assert [r.id for r in place.reviews] == ["P1_0", "P1_1"]

    def test_first_record_sets_place_metadata(self):
        places = normalize([
            {"placeId": "P1", "title": "First", "address": "A", "stars": 5},
            {"placeId": "P1", "title": "Second", "address": "B", "stars": 4},
        ])

        assert places[0].title == "First"
        assert places[0].address == "A"

    def test_reviews_without_stars_or_text_are_dropped(self):
        places = normalize([
            {"placeId": "P1", "stars": 0, "text": "   "},
            {"placeId": "P1", "text": "only text"},
            {"placeId": "P1", "stars": 3},
        ])

        assert [r.text for r in places[0].reviews] == ["only text", ""]

    def test_non_finite_values_do_not_abort_normalization(self):
        places = normalize([
            {"placeId": "P1", "title": "Cafe A", "totalScore": "inf", "reviewsCount": float("nan"), "stars": "nan", "text": "ok"},
            {"placeId": "P1", "stars": "inf", "text": "also ok"},
        ])

        assert [r.stars for r in places[0].reviews] == [0, 0]
        assert [r.text for r in places[0].reviews] == ["ok", "also ok"]
        assert places[0].rating == 0.0

    def test_place_with_only_empty_reviews_is_kept(self):
        places = normalize([{"placeId": "P1", "title": "Quiet"}])

        assert len(places) == 1
        assert places[0].reviews == []

    def test_nested_and_flat_records_share_keys(self):
        places = normalize([
            {"placeId": "P1", "title": "Nested", "reviews": [{"reviewId": "n1", "stars": 4}]},
            {"placeId": "P1", "title": "Flat", "reviewId": "f1", "stars": 5},
        ])

        # Flat records are processed first, so they set the metadata.
        assert len(places) == 1
        assert places[0].title == "Flat"
        assert [r.id for r in places[0].reviews] == ["f1", "n1"]

    def test_places_keep_first_encounter_order(self):
        places = normalize([
            {"placeId": "B", "stars": 5},
            {"placeId": "A", "stars": 5},
            {"placeId": "B", "stars": 4},
        ])

        assert [p.place_id for p in places] == ["B", "A"]

    def test_records_without_identity_collapse_into_unknown(self):
        places = normalize([{"stars": 5, "text": "a"}, {"stars": 4, "text": "b"}])

        assert len(places) == 1
        assert places[0].place_id == "unknown"
        assert places[0].title == "Unknown Location"

    def test_non_mapping_records_are_skipped(self):
        places = normalize(["garbage", None, {"placeId": "P1", "stars": 5}])

        assert [p.place_id for p in places] == ["P1"]

    def test_fixture_records(self, sample_review_records):
        places = normalize(sample_review_records)

        assert [p.place_id for p in places] == ["P1", "P2"]
        assert places[0].rating == 4.5
        assert places[0].total_reviews == 120
        assert places[0].reviews[1].response_from_owner == "Ci dispiace"
        assert len(places[1].reviews) == 1


class TestNormalizationPipeline:
    """Test parser registration."""

    def test_default_registers_flat_then_nested(self):
        pipeline = NormalizationPipeline.default()

        assert pipeline.list_shapes() == ["flat", "nested"]
        assert pipeline.has_parser("nested")

    def test_unregistered_shape_raises(self):
        pipeline = NormalizationPipeline()
        pipeline.register_parser("flat", parse_flat_record)

        with pytest.raises(ValueError, match="nested"):
            pipeline.normalize([{"placeId": "P1", "reviews": []}])


class TestNormalizeListings:
    """Test listing search output normalization."""

    def test_drops_untitled_and_duplicate_listings(self):
        places = normalize_listings([
            {"placeId": "P1", "title": "Cafe A", "totalScore": 4.5, "reviewsCount": 10},
            {"placeId": "P2"},
            {"placeId": "P1", "title": "Cafe A duplicate"},
            {"placeId": "P3", "name": "Cafe B", "rating": 3.9},
        ])

        assert [p.place_id for p in places] == ["P1", "P3"]
        assert places[0].total_reviews == 10
        assert places[1].title == "Cafe B"
        assert places[1].rating == 3.9
        assert all(p.reviews == [] for p in places)
