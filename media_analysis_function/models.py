"""
Data Models for Media Analysis Function

Pydantic models and Gemini response schemas for the ESG media analysis pipeline.
Field names follow the wire format produced by the news search and consumed by
the presentation layer (camelCase aliases), while Python code uses snake_case.
"""

import json
import re
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import OracleResponseError


ESG_CATEGORIES = ("E", "S", "G")
SENTIMENTS = ("positive", "negative", "neutral")
MAX_EXEMPLARS = 5
MIN_ORACLE_RELEVANCE = 1

Sentiment = Literal["positive", "negative", "neutral"]
EsgCategory = Literal["E", "S", "G"]


# ============================================================================
# Input Models
# ============================================================================

class Article(BaseModel):
    """Raw news article from the search source."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str
    snippet: str = ""
    link: str
    original_link: Optional[str] = Field(default=None, alias="originalLink")
    publish_date: datetime = Field(default=None, alias="publishDate", validate_default=True)

    @field_validator("snippet", mode="before")
    @classmethod
    def _none_snippet(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("publish_date", mode="before")
    @classmethod
    def _default_publish_date(cls, value: Any) -> Any:
        # Search results without a published_time meta tag are dated "now"
        if value is None or value == "":
            return datetime.now(timezone.utc)
        return value

    @field_validator("publish_date")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def article_fields(self) -> Dict[str, Any]:
        """Plain Article fields, used when promoting to a richer model."""
        return {
            "title": self.title,
            "snippet": self.snippet,
            "link": self.link,
            "original_link": self.original_link,
            "publish_date": self.publish_date,
        }


class EmbeddedArticle(Article):
    """Article with its embedding vector (None when embedding failed)."""
    embedding: Optional[List[float]] = None


# ============================================================================
# Deduplication Models
# ============================================================================

class ClusterDateRange(BaseModel):
    """Earliest and latest publish dates across a cluster."""
    earliest: datetime
    latest: datetime


class RepresentativeArticle(Article):
    """Canonical article standing in for a cluster of near-duplicates."""
    duplicate_count: int = Field(default=1, ge=1)
    cluster_id: Optional[int] = None
    cluster_date_range: Optional[ClusterDateRange] = Field(default=None, alias="clusterDateRange")


class DeduplicationResult(BaseModel):
    """Outcome of a deduplication run."""
    articles: List[RepresentativeArticle]
    input_count: int
    cluster_count: int = 0
    degraded: bool = False
    degraded_reason: Optional[str] = None

    @property
    def duplicates_removed(self) -> int:
        return self.input_count - len(self.articles)


# ============================================================================
# Classification Models
# ============================================================================

class ArticleAnalysis(BaseModel):
    """Classification oracle output for one article."""
    model_config = ConfigDict(populate_by_name=True)

    is_esg_related: bool = Field(alias="isESGRelated")
    esg_categories: List[EsgCategory] = Field(default_factory=list, alias="esgCategories")
    issues: List[str] = Field(default_factory=list)
    sentiment: Sentiment = "neutral"
    relevance_score: int = Field(default=1, ge=0, le=5, alias="relevanceScore")

    @field_validator("esg_categories", mode="before")
    @classmethod
    def _normalize_categories(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        seen = []
        for item in value:
            tag = str(item).strip().upper()[:1]
            if tag in ESG_CATEGORIES and tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("issues", mode="before")
    @classmethod
    def _clean_issues(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(item) for item in value if str(item).strip()]

    @field_validator("sentiment", mode="before")
    @classmethod
    def _lower_sentiment(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


def non_esg_analysis() -> ArticleAnalysis:
    """Synthetic analysis assigned to articles rejected by the quick filter."""
    return ArticleAnalysis(
        is_esg_related=False,
        esg_categories=[],
        issues=[],
        sentiment="neutral",
        relevance_score=0,
    )


class ClassifiedArticle(RepresentativeArticle):
    """Article (representative or raw) with its analysis, None on failure."""
    analysis: Optional[ArticleAnalysis] = None


class ClassificationResult(BaseModel):
    """Outcome of a classification funnel run."""
    articles: List[ClassifiedArticle]
    mode: str
    passed_filter_count: int = 0
    filtered_out_count: int = 0
    failed_filter_batches: int = 0
    failed_count: int = 0
    classification_available: bool = True


# ============================================================================
# Aggregation Models
# ============================================================================

class IssueExemplar(BaseModel):
    """Sample article kept for an issue."""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    snippet: str = ""
    link: str
    original_link: Optional[str] = Field(default=None, alias="originalLink")
    publish_date: datetime = Field(alias="publishDate")
    sentiment: Sentiment
    duplicate_count: int = 1


class IssueAggregate(BaseModel):
    """Per-issue statistics folded from classified articles."""
    name: str
    mention_count: int = 0
    weighted_mention_count: int = 0
    positive_weight: int = 0
    negative_weight: int = 0
    neutral_weight: int = 0
    categories: List[EsgCategory] = Field(default_factory=list)
    exemplars: List[IssueExemplar] = Field(default_factory=list)
    negative_ratio: float = 0.0
    positive_ratio: float = 0.0


class IssueRanking(BaseModel):
    """Ranked issues plus the context needed to interpret an empty ranking."""
    issues: List[IssueAggregate] = Field(default_factory=list)
    total_articles: int = 0
    esg_article_count: int = 0
    unclassified_count: int = 0
    total_issue_count: int = 0
    classification_available: bool = True


# ============================================================================
# Gemini Response Schemas
# ============================================================================

# Structured output schema for single-article ESG classification
CLASSIFICATION_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "isESGRelated": {
            "type": "BOOLEAN",
            "description": "Whether the article concerns an ESG issue"
        },
        "esgCategories": {
            "type": "ARRAY",
            "items": {"type": "STRING", "enum": list(ESG_CATEGORIES)},
            "description": "Applicable ESG categories"
        },
        "issues": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "Specific issue names raised by the article"
        },
        "sentiment": {
            "type": "STRING",
            "enum": list(SENTIMENTS),
        },
        "relevanceScore": {
            "type": "INTEGER",
            "description": "1 (very low) to 5 (very high)"
        }
    },
    "required": ["isESGRelated", "esgCategories", "issues", "sentiment", "relevanceScore"]
}

# Structured output schema for the batch quick filter
QUICK_FILTER_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "relevant_indices": {
            "type": "ARRAY",
            "items": {"type": "INTEGER"},
            "description": "1-based numbers of the ESG-relevant titles"
        }
    },
    "required": ["relevant_indices"]
}


# ============================================================================
# Helper Functions
# ============================================================================

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def extract_json(response_text: str) -> Any:
    """
    Parse JSON from an LLM response.

    Accepts a clean JSON document or free text wrapping one (markdown fences,
    commentary); the first object, then the first array, is extracted.

    Raises:
        OracleResponseError: If no JSON can be recovered
    """
    if not response_text or not response_text.strip():
        raise OracleResponseError("Empty response")

    try:
        return json.loads(response_text)
    except json.JSONDecodeError:
        pass

    for pattern in (_JSON_OBJECT_RE, _JSON_ARRAY_RE):
        match = pattern.search(response_text)
        if match:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError:
                continue

    raise OracleResponseError(f"No JSON found in response: {response_text[:100]!r}")


def parse_analysis_response(response_text: str) -> ArticleAnalysis:
    """
    Parse a classification response into an ArticleAnalysis.

    Raises:
        OracleResponseError: If the response is not a valid analysis
    """
    data = extract_json(response_text)
    if not isinstance(data, dict):
        raise OracleResponseError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        analysis = ArticleAnalysis.model_validate(data)
    except ValidationError as e:
        raise OracleResponseError(f"Invalid analysis payload: {e.error_count()} errors") from e

    # 0 is reserved for articles rejected by the quick filter
    if analysis.relevance_score < MIN_ORACLE_RELEVANCE:
        raise OracleResponseError(f"relevanceScore out of range: {analysis.relevance_score}")
    return analysis


def parse_quick_filter_response(response_text: str, batch_size: int) -> List[int]:
    """
    Parse a quick-filter response into sorted, unique 1-based indices.

    Indices outside 1..batch_size are dropped.

    Raises:
        OracleResponseError: If the response holds no index list
    """
    data = extract_json(response_text)
    if isinstance(data, dict):
        data = data.get("relevant_indices")
    if not isinstance(data, list):
        raise OracleResponseError("Quick filter response has no index list")

    indices = set()
    for item in data:
        try:
            index = int(item)
        except (TypeError, ValueError) as e:
            raise OracleResponseError(f"Non-integer index in quick filter response: {item!r}") from e
        if 1 <= index <= batch_size:
            indices.add(index)

    return sorted(indices)
