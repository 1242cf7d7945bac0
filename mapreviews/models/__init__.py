"""Data models shared by every pipeline stage."""

from mapreviews.models.schemas import (
    AggregateStats,
    AIStats,
    AnalysisResult,
    BrandAnalysisResult,
    DiscoveryQuery,
    JobHandle,
    JobKind,
    JobState,
    JobStatus,
    KeywordCount,
    Place,
    Review,
    RunArtifact,
    SearchMode,
    SearchRequest,
    SentimentBreakdown,
)

__all__ = [
    "AggregateStats",
    "AIStats",
    "AnalysisResult",
    "BrandAnalysisResult",
    "DiscoveryQuery",
    "JobHandle",
    "JobKind",
    "JobState",
    "JobStatus",
    "KeywordCount",
    "Place",
    "Review",
    "RunArtifact",
    "SearchMode",
    "SearchRequest",
    "SentimentBreakdown",
]
