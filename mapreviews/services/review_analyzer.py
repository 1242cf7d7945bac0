"""
Review Analyzer.

Uses Claude to turn a set of Google Maps reviews into structured insights:
one analysis per place (strengths, weaknesses, priorities, recommendations,
suggestions) and one brand-level analysis across every place of a run.

Standalone usage:
    from mapreviews.services.review_analyzer import ReviewAnalyzer
    analyzer = ReviewAnalyzer()
    analysis = await analyzer.analyze_place("Cafe Roma - Milano", place.reviews)
"""

import json
import re
from typing import Optional, Sequence, TypeVar

import anthropic
import structlog
from pydantic import ValidationError as PydanticValidationError

from mapreviews.config import get_settings
from mapreviews.core.exceptions import ConfigurationError, MalformedResponseError
from mapreviews.models.schemas import AnalysisResult, BrandAnalysisResult, Review
from mapreviews.services.sampling import is_negative, is_positive, sample_reviews

logger = structlog.get_logger(__name__)

ResultT = TypeVar("ResultT", AnalysisResult, BrandAnalysisResult)


# =============================================================================
# Canned Results
# =============================================================================

INSUFFICIENT_PLACE_ANALYSIS = AnalysisResult(
    strengths=["Insufficient review data"],
    weaknesses=["No text reviews available for analysis"],
    priorities=["Encourage customers to leave detailed reviews"],
    recommendations=["Focus on improving review quantity and quality"],
    suggestions=["Implement review request campaigns"],
)

INSUFFICIENT_BRAND_ANALYSIS = BrandAnalysisResult(
    strengths=["Insufficient data"],
    weaknesses=["No reviews with text"],
    strategic_suggestions=["Encourage customers to leave text reviews"],
)


# =============================================================================
# Prompts
# =============================================================================

PLACE_SYSTEM_PROMPT = """You are an expert business analyst specializing in customer feedback
analysis. Provide structured, actionable insights from Google Maps reviews.
Return ONLY a JSON object. No markdown, no explanation."""

PLACE_PROMPT = """Analyze the following Google Maps reviews for "{place_name}".

Provide a structured JSON response with:
{{
  "strengths": ["strength 1", "strength 2", ...],
  "weaknesses": ["weakness 1", "weakness 2", ...],
  "priorities": ["top priority 1", "top priority 2", "top priority 3"],
  "recommendations": ["strategic recommendation 1", ...],
  "suggestions": ["specific actionable suggestion 1", ...]
}}

GUIDELINES:
- Identify 3-5 key strengths mentioned repeatedly in positive reviews
- Identify 3-5 key weaknesses mentioned in negative reviews
- Provide EXACTLY 3 top priorities (most urgent issues to address)
- Give 3-5 strategic recommendations for improvement
- Provide 5-7 concrete, actionable suggestions
- Focus on patterns and recurring themes
- Write in Italian if the reviews are in Italian, otherwise in English

Reviews ({count} total, {mode}):

{reviews}"""

BRAND_SYSTEM_PROMPT = """You are a strategy consultant specializing in brand reputation and
customer experience. Always answer with valid JSON only."""

BRAND_PROMPT = """Analyze these AGGREGATED reviews from {total_places} Google Maps listings
of the brand "{brand_name}".
MODE: {mode}

Total reviews: {total_reviews}
- Positive (4-5 stars): {positive_count}
- Negative (1-2 stars): {negative_count}

POSITIVE REVIEW SAMPLE:
{positive_texts}

NEGATIVE REVIEW SAMPLE:
{negative_texts}

Provide a STRATEGIC brand-level analysis as JSON with:
1. "strengths": 5-8 strengths COMMON across the brand
2. "weaknesses": 5-8 RECURRING weaknesses across the brand
3. "positive_themes": 3-5 emerging positive themes
4. "negative_themes": 3-5 recurring negative themes
5. "strategic_suggestions": 5-7 strategic actions for the brand
6. "priorities": 3 absolute priorities to address now

Focus on RECURRING PATTERNS and STRATEGIC INSIGHT, not single cases.
Write the values in Italian if the reviews are in Italian, otherwise in English.
Answer ONLY with valid JSON."""


def _mode_label(sampling_enabled: bool) -> str:
    return "sampled" if sampling_enabled else "full analysis"


def _format_place_reviews(reviews: Sequence[Review]) -> str:
    return "\n\n".join(
        f"Review {i} ({review.stars} stars): {review.text}"
        for i, review in enumerate(reviews, start=1)
    )


def _format_bullets(reviews: Sequence[Review], empty: str) -> str:
    if not reviews:
        return empty
    return "\n".join(f"- {review.text}" for review in reviews)


def _require_content(result: ResultT, text: str) -> ResultT:
    """Reject a reply that parsed but carries no analysis at all."""
    if not any(getattr(result, name) for name in type(result).model_fields):
        raise MalformedResponseError("Analysis response has no expected fields", text)
    return result


# =============================================================================
# Analyzer
# =============================================================================


class ReviewAnalyzer:
    """
    Analyzes reviews with Claude.

    Follows the same Anthropic client pattern as the other services, with
    the async client so several places can be analyzed concurrently.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        settings = get_settings()
        if client is None:
            key = api_key
            if key is None and settings.anthropic_api_key is not None:
                key = settings.anthropic_api_key.get_secret_value()
            if not key:
                raise ConfigurationError(
                    "Anthropic API key required for AI analysis. Set ANTHROPIC_API_KEY.",
                    config_key="anthropic_api_key",
                )
            client = anthropic.AsyncAnthropic(api_key=key)

        self.client = client
        self.model = model or settings.anthropic_model
        self.max_tokens = max_tokens or settings.analysis_max_tokens

    def _parse_response(self, text: str) -> dict:
        """Parse JSON from Claude's response."""
        text = text.strip()

        # Strip markdown code fences if present
        if text.startswith("```"):
            lines = text.split("\n")
            if lines[0].startswith("```"):
                lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines)

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            match = re.search(r"\{[\s\S]*\}", text)
            if not match:
                raise MalformedResponseError("No JSON object in analysis response", text)
            try:
                data = json.loads(match.group())
            except json.JSONDecodeError as e:
                raise MalformedResponseError(f"Invalid JSON in analysis response: {e}", text) from e

        if not isinstance(data, dict):
            raise MalformedResponseError("Analysis response is not a JSON object", text)
        return data

    async def _complete(self, system: str, prompt: str) -> str:
        raw = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        if not raw.content:
            raise MalformedResponseError("Empty analysis response")
        return raw.content[0].text

    async def analyze_place(
        self,
        place_name: str,
        reviews: Sequence[Review],
        sampling_enabled: bool = True,
    ) -> AnalysisResult:
        """
        Analyze the reviews of one place.

        Args:
            place_name: Listing title, used in the prompt.
            reviews: The place's reviews; only those with text are sent.
            sampling_enabled: Cap and truncate the reviews sent.

        Returns:
            AnalysisResult. A canned "insufficient data" result when no review
            has text; the model is not called in that case.

        Raises:
            MalformedResponseError: The response is not a valid analysis object.
        """
        selected = sample_reviews(reviews, sampling_enabled)
        if not selected:
            logger.info("analysis_insufficient_data", place=place_name)
            return INSUFFICIENT_PLACE_ANALYSIS.model_copy(deep=True)

        prompt = PLACE_PROMPT.format(
            place_name=place_name,
            count=len(selected),
            mode=_mode_label(sampling_enabled),
            reviews=_format_place_reviews(selected),
        )
        logger.info("analysis_place_started", place=place_name, reviews=len(selected))

        text = await self._complete(PLACE_SYSTEM_PROMPT, prompt)
        data = self._parse_response(text)
        try:
            result = AnalysisResult.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedResponseError(f"Analysis schema mismatch: {e}", text) from e
        return _require_content(result, text)

    async def analyze_aggregate(
        self,
        all_reviews: Sequence[Review],
        brand_name: str,
        total_places: int,
        sampling_enabled: bool = True,
    ) -> BrandAnalysisResult:
        """
        Analyze every review of a run at brand level.

        Args:
            all_reviews: Reviews of all places, flattened.
            brand_name: Brand label for the prompt.
            total_places: Number of places the reviews come from.
            sampling_enabled: Cap and truncate the reviews sent.

        Returns:
            BrandAnalysisResult, canned when no review has text.
        """
        if not any(review.has_text for review in all_reviews):
            logger.info("analysis_brand_insufficient_data", brand=brand_name)
            return INSUFFICIENT_BRAND_ANALYSIS.model_copy(deep=True)

        selected = sample_reviews(all_reviews, sampling_enabled)
        positive = [r for r in selected if is_positive(r)]
        negative = [r for r in selected if is_negative(r)]

        prompt = BRAND_PROMPT.format(
            total_places=total_places or "several",
            brand_name=brand_name,
            mode=_mode_label(sampling_enabled),
            total_reviews=len(all_reviews),
            positive_count=sum(1 for r in all_reviews if is_positive(r)),
            negative_count=sum(1 for r in all_reviews if is_negative(r)),
            positive_texts=_format_bullets(positive, "(No positive reviews with text)"),
            negative_texts=_format_bullets(negative, "(No negative reviews with text)"),
        )
        logger.info(
            "analysis_brand_started",
            brand=brand_name,
            reviews=len(all_reviews),
            sampled=len(selected),
        )

        text = await self._complete(BRAND_SYSTEM_PROMPT, prompt)
        data = self._parse_response(text)
        try:
            result = BrandAnalysisResult.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedResponseError(f"Brand analysis schema mismatch: {e}", text) from e
        return _require_content(result, text)
