"""
Media exposure scoring and summary statistics over classified articles.

Scores follow a 1/3/5 scale: 5 for issues with high exposure in a mostly
negative context, 3 for moderate exposure, 1 otherwise.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from pydantic import BaseModel, Field

from .models import ESG_CATEGORIES, SENTIMENTS, ClassifiedArticle

logger = logging.getLogger(__name__)


class AnalysisStats(BaseModel):
    """Counts over a classified article set."""
    total: int = 0
    esg_related: int = 0
    unclassified: int = 0
    by_category: Dict[str, int] = Field(default_factory=lambda: {c: 0 for c in ESG_CATEGORIES})
    by_sentiment: Dict[str, int] = Field(default_factory=lambda: {s: 0 for s in SENTIMENTS})


class MediaScoreDetails(BaseModel):
    total_news: int
    related_news: int
    negative_news: int


class MediaScore(BaseModel):
    """Exposure-based media score for one issue."""
    score: int
    exposure_rate: float
    negative_rate: float
    related_news_count: int
    details: MediaScoreDetails


def _round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def compute_analysis_stats(articles: List[ClassifiedArticle]) -> AnalysisStats:
    """Totals, ESG-related count and per-category / per-sentiment counts of ESG articles."""
    stats = AnalysisStats(total=len(articles))

    for article in articles:
        analysis = article.analysis
        if analysis is None:
            stats.unclassified += 1
            continue
        if not analysis.is_esg_related:
            continue

        stats.esg_related += 1
        for category in analysis.esg_categories:
            stats.by_category[category] += 1
        stats.by_sentiment[analysis.sentiment] += 1

    return stats


def score_exposure(exposure_rate: float, negative_rate: float) -> int:
    if exposure_rate >= 10 and negative_rate >= 70:
        return 5
    if 10 <= exposure_rate <= 50:
        return 3
    return 1


def _mentions(article: ClassifiedArticle, keywords: List[str]) -> bool:
    title = article.title.lower()
    snippet = article.snippet.lower()
    return any(k.lower() in title or k.lower() in snippet for k in keywords if k)


def calculate_media_scores(
    articles: List[ClassifiedArticle],
    issue_keywords: Dict[str, List[str]],
) -> Dict[str, MediaScore]:
    """
    Score each issue by how often ESG coverage mentions its keywords.

    Args:
        articles: Classified articles; the exposure denominator is all of them
        issue_keywords: Issue name mapped to the keywords that identify it

    Returns:
        Issue name mapped to its MediaScore
    """
    total = len(articles)
    scores: Dict[str, MediaScore] = {}

    for issue_name, keywords in issue_keywords.items():
        related = [
            a for a in articles
            if a.analysis is not None and a.analysis.is_esg_related and _mentions(a, keywords)
        ]
        negative = sum(1 for a in related if a.analysis.sentiment == "negative")

        exposure_rate = len(related) / total * 100 if total else 0.0
        negative_rate = negative / len(related) * 100 if related else 0.0

        scores[issue_name] = MediaScore(
            score=score_exposure(exposure_rate, negative_rate),
            exposure_rate=_round2(exposure_rate),
            negative_rate=_round2(negative_rate),
            related_news_count=len(related),
            details=MediaScoreDetails(total_news=total, related_news=len(related), negative_news=negative),
        )

    logger.info(f"Calculated media scores for {len(scores)} issues")
    return scores


def filter_relevant_news(articles: List[ClassifiedArticle]) -> List[ClassifiedArticle]:
    """ESG-related articles, most relevant first."""
    relevant = [a for a in articles if a.analysis is not None and a.analysis.is_esg_related]
    return sorted(relevant, key=lambda a: a.analysis.relevance_score, reverse=True)
