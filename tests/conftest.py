"""
Shared test fixtures for the media analysis function.

Provides mock implementations of:
- Gemini GenAI client (async embeddings and JSON generation)
- Classification oracle (quick filter + per-article analysis)
- Article factories and sample data
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from media_analysis_function.models import (
    Article,
    ArticleAnalysis,
    ClassifiedArticle,
    EmbeddedArticle,
)


BASE_DATE = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

ENV_VARS = [
    "GEMINI_API_KEY",
    "GOOGLE_CLOUD_PROJECT",
    "VERTEX_AI_LOCATION",
    "EMBEDDING_MODEL",
    "CLASSIFICATION_MODEL",
    "SIMILARITY_THRESHOLD",
    "TIME_WINDOW_DAYS",
    "CLUSTER_STRATEGY",
    "EMBEDDING_BATCH_SIZE",
    "EMBEDDING_BATCH_DELAY",
    "QUICK_FILTER_BATCH_SIZE",
    "QUICK_FILTER_DELAY",
    "CLASSIFY_DELAY",
    "TWO_STAGE_THRESHOLD",
    "TOP_N_ISSUES",
    "NORMALIZE_ISSUE_LABELS",
    "GOOGLE_SEARCH_API_KEY",
    "GOOGLE_SEARCH_ENGINE_ID",
    "LOG_LEVEL",
]


# ============================================================================
# ARTICLE FACTORIES
# ============================================================================

def build_article(title: str, hours_ago: float = 0, snippet: str = "", link: Optional[str] = None) -> Article:
    """Article dated hours_ago before BASE_DATE."""
    return Article(
        title=title,
        snippet=snippet,
        link=link or "https://news.example.com/" + title.replace(" ", "-"),
        publish_date=BASE_DATE - timedelta(hours=hours_ago),
    )


def build_embedded(title: str, embedding: Optional[List[float]], hours_ago: float = 0) -> EmbeddedArticle:
    article = build_article(title, hours_ago=hours_ago)
    return EmbeddedArticle(**article.article_fields(), embedding=embedding)


def build_analysis(
    issues: List[str],
    sentiment: str = "neutral",
    categories: Optional[List[str]] = None,
    esg: bool = True,
    relevance: int = 3,
) -> ArticleAnalysis:
    return ArticleAnalysis(
        is_esg_related=esg,
        esg_categories=categories or [],
        issues=issues,
        sentiment=sentiment,
        relevance_score=relevance,
    )


def build_classified(
    title: str,
    analysis: Optional[ArticleAnalysis],
    duplicate_count: int = 1,
    snippet: str = "",
) -> ClassifiedArticle:
    article = build_article(title, snippet=snippet)
    return ClassifiedArticle(**article.article_fields(), duplicate_count=duplicate_count, analysis=analysis)


@pytest.fixture
def base_date():
    return BASE_DATE


@pytest.fixture
def make_article() -> Callable[..., Article]:
    return build_article


@pytest.fixture
def make_embedded() -> Callable[..., EmbeddedArticle]:
    return build_embedded


@pytest.fixture
def make_analysis() -> Callable[..., ArticleAnalysis]:
    return build_analysis


@pytest.fixture
def make_classified() -> Callable[..., ClassifiedArticle]:
    return build_classified


# ============================================================================
# GEMINI GENAI MOCKING
# ============================================================================

class MockEmbedding:
    """Mock embedding object."""

    def __init__(self, values: List[float]):
        self.values = values


class MockEmbedResponse:
    """Mock embed_content response."""

    def __init__(self, values: List[float]):
        self.embeddings = [MockEmbedding(values)]


class MockGenerateResponse:
    """Mock generate_content response."""

    def __init__(self, text: str):
        self.text = text


class MockAsyncModels:
    """
    Mock client.aio.models.

    Embeddings are looked up by the title (first line of the embedded text).
    Titles listed in failing_titles raise; unknown titles get default_vector.
    Generation responses are served from a queue of strings or exceptions.
    """

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None):
        self.vectors = vectors or {}
        self.failing_titles = set()
        self.default_vector = [1.0, 0.0, 0.0]
        self.embed_calls: List[str] = []
        self.generate_calls: List[dict] = []
        self.responses: List = []

    async def embed_content(self, model: str, contents, config=None) -> MockEmbedResponse:
        self.embed_calls.append(contents)
        title = contents.split("\n", 1)[0]
        if title in self.failing_titles:
            raise RuntimeError(f"embedding failed for {title}")
        return MockEmbedResponse(self.vectors.get(title, self.default_vector))

    async def generate_content(self, model: str, contents, config=None) -> MockGenerateResponse:
        self.generate_calls.append({"model": model, "contents": contents, "config": config})
        if not self.responses:
            raise RuntimeError("no queued response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if not isinstance(response, str):
            response = json.dumps(response, ensure_ascii=False)
        return MockGenerateResponse(response)


class MockGenAIClient:
    """Mock genai.Client exposing the async surface."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None):
        self.aio = MagicMock()
        self.aio.models = MockAsyncModels(vectors)


@pytest.fixture
def mock_genai_client():
    """Provide a mock GenAI client."""
    return MockGenAIClient()


@pytest.fixture
def make_genai_client() -> Callable[..., MockGenAIClient]:
    """Provide a factory for mock GenAI clients with title -> vector maps."""
    return MockGenAIClient


# ============================================================================
# CLASSIFICATION ORACLE MOCKING
# ============================================================================

class FakeOracle:
    """
    In-memory classification oracle.

    analyses maps a title to its ArticleAnalysis; titles in failing_titles
    raise. relevant_titles drives the quick filter; a batch containing a title
    from failing_filter_titles raises.
    """

    def __init__(self, analyses: Optional[Dict[str, ArticleAnalysis]] = None):
        self.analyses = analyses or {}
        self.failing_titles = set()
        self.relevant_titles = set()
        self.failing_filter_titles = set()
        self.filter_calls: List[List[str]] = []
        self.classify_calls: List[str] = []

    async def quick_filter(self, titles: List[str]) -> List[int]:
        self.filter_calls.append(list(titles))
        if any(t in self.failing_filter_titles for t in titles):
            raise RuntimeError("quick filter failed")
        return [i for i, t in enumerate(titles, start=1) if t in self.relevant_titles]

    async def classify_article(self, article: Article) -> ArticleAnalysis:
        self.classify_calls.append(article.title)
        if article.title in self.failing_titles:
            raise RuntimeError(f"classification failed for {article.title}")
        return self.analyses.get(article.title, build_analysis([], esg=False, relevance=1))


@pytest.fixture
def fake_oracle():
    """Provide an empty fake classification oracle."""
    return FakeOracle()


# ============================================================================
# ENVIRONMENT FIXTURES
# ============================================================================

@pytest.fixture
def clean_env(monkeypatch):
    """Remove every pipeline environment variable."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
