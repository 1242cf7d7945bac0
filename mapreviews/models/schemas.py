"""Pydantic models for mapreviews core entities.

Python attributes are snake_case; JSON produced with ``by_alias=True`` uses
the camelCase field names consumed by the presentation and export layers
(``placeId``, ``totalReviews``, ``aggregateStats`` ...).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Base Model
# =============================================================================


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting either spelling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict:
        """Dump to a JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Jobs
# =============================================================================


class JobKind(str, Enum):
    """External job types."""
    DISCOVERY = "discovery"
    SCRAPE = "scrape"


class JobState(str, Enum):
    """Provider-agnostic job states."""
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class JobHandle(CamelModel):
    """Identifier of a started external job, owned for one polling cycle."""

    job_id: str = Field(..., description="Provider run identifier")
    kind: JobKind
    started_at: datetime = Field(default_factory=_utcnow)
    dataset_id: Optional[str] = Field(None, description="Result set identifier, when known at start")


class JobStatus(CamelModel):
    """Result of a single status check."""

    state: JobState
    error: Optional[str] = None
    dataset_id: Optional[str] = None
    provider_status: Optional[str] = Field(None, description="Raw provider status string")

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.SUCCEEDED, JobState.FAILED)


# =============================================================================
# Search Input
# =============================================================================


class SearchMode(str, Enum):
    """How places are provided to a run."""
    BRAND = "brand"
    URL = "url"


class DiscoveryQuery(CamelModel):
    """Parameters of a listing search job."""

    query: str = Field(..., min_length=1, description="Brand or business name")
    location: Optional[str] = Field(None, description="Location hint ('world', 'italy' or free text)")
    max_results: int = Field(default=50, ge=1, description="Maximum places to crawl")
    mode: Literal["balanced", "aggressive"] = Field(
        default="balanced", description="'aggressive' crawls 1.5x max_results"
    )
    skip_closed: bool = Field(default=False, description="Skip permanently closed places")


class SearchRequest(CamelModel):
    """User submission that starts a run."""

    mode: SearchMode = SearchMode.BRAND
    brand_name: str = ""
    location: Optional[str] = None
    max_places: int = Field(default=50, ge=1)
    search_mode: Literal["balanced", "aggressive"] = "balanced"
    skip_closed: bool = False
    urls: list[str] = Field(default_factory=list)


# =============================================================================
# Analysis Results
# =============================================================================


class AnalysisResult(CamelModel):
    """Structured AI analysis attached to a single place."""

    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    priorities: list[str] = Field(default_factory=list, description="Three expected, not enforced")
    recommendations: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class BrandAnalysisResult(CamelModel):
    """Structured AI analysis across every place of a brand.

    Accepts the Italian keys the brand prompt historically produced.
    """

    strengths: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("strengths", "punti_forza"),
    )
    weaknesses: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("weaknesses", "punti_debolezza"),
    )
    positive_themes: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("positive_themes", "positiveThemes", "temi_positivi"),
    )
    negative_themes: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("negative_themes", "negativeThemes", "temi_negativi"),
    )
    strategic_suggestions: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "strategic_suggestions", "strategicSuggestions", "suggerimenti_strategici"
        ),
    )
    priorities: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("priorities", "priorita"),
    )


# =============================================================================
# Places and Reviews
# =============================================================================


class Review(CamelModel):
    """A single customer review."""

    id: str
    text: str = ""
    stars: int = Field(default=0, ge=0, le=5, description="0 means unrated")
    published_at_date: str = ""
    author_name: str = "Anonymous"
    author_url: str = ""
    likes_count: int = Field(default=0, ge=0)
    response_from_owner: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())


class Place(CamelModel):
    """A business listing with its reviews, unique by place_id within a run."""

    place_id: str
    title: str = "Unknown Location"
    address: str = ""
    url: str = ""
    original_url: str = ""
    category_name: str = ""
    rating: float = Field(default=0.0, ge=0.0)
    total_reviews: int = Field(default=0, ge=0)
    reviews: list[Review] = Field(default_factory=list)
    analysis: Optional[AnalysisResult] = None


# =============================================================================
# Aggregate Statistics
# =============================================================================


class SentimentBreakdown(CamelModel):
    """Star-bucketed sentiment counts and rounded percentages."""

    positive: int = 0
    neutral: int = 0
    negative: int = 0
    positive_percent: int = 0
    neutral_percent: int = 0
    negative_percent: int = 0


class KeywordCount(CamelModel):
    word: str
    count: int


class AIStats(CamelModel):
    analysis: Optional[BrandAnalysisResult] = None


class AggregateStats(CamelModel):
    """Statistics derived from the full place set; recomputed, never mutated incrementally."""

    total_places: int = 0
    total_reviews: int = 0
    reviews_with_text: int = 0
    reviews_with_response: int = 0
    avg_rating: float = 0.0
    distribution: dict[int, int] = Field(
        default_factory=lambda: {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
    )
    sentiment: SentimentBreakdown = Field(default_factory=SentimentBreakdown)
    top_keywords: list[KeywordCount] = Field(default_factory=list)
    ai_stats: Optional[AIStats] = None


class RunArtifact(CamelModel):
    """Final output of a run, handed to rendering, export and history."""

    places: list[Place] = Field(default_factory=list)
    aggregate_stats: AggregateStats = Field(default_factory=AggregateStats)
