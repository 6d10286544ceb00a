"""
Issue Aggregator

Folds classified articles into per-issue statistics and ranks the issues.

Each representative article contributes its duplicate_count as weight, so an
issue covered by ten outlets repeating one story outranks an issue mentioned
once. duplicate_count is only read, never multiplied, which makes
re-aggregation of already-deduplicated articles stable.

A label repeated within one article's issue list counts once for that
article, including its weight and sentiment.
"""

import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from .models import (
    ESG_CATEGORIES,
    MAX_EXEMPLARS,
    ClassifiedArticle,
    IssueAggregate,
    IssueExemplar,
    IssueRanking,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 10

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_issue_label(label: str) -> str:
    """
    Aggregation key for a free-text issue label.

    Trims, collapses internal whitespace and casefolds, so "Ocean  Pollution "
    and "ocean pollution" count as one issue.
    """
    return _WHITESPACE_RE.sub(" ", label).strip().casefold()


def display_label(label: str) -> str:
    """Trimmed, whitespace-collapsed label as first seen."""
    return _WHITESPACE_RE.sub(" ", label).strip()


def percentage(part: int, whole: int) -> float:
    """part / whole * 100, rounded half-up to one decimal; 0.0 for an empty whole."""
    if whole <= 0:
        return 0.0
    value = Decimal(part) * 100 / Decimal(whole)
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class IssueAggregator:
    """
    Weighted issue frequency aggregation with top-N ranking.
    """

    def __init__(self, top_n: int = DEFAULT_TOP_N, normalize_labels: bool = True):
        """
        Args:
            top_n: Default number of issues to keep
            normalize_labels: Merge labels differing only in case or whitespace
        """
        self.top_n = top_n
        self.normalize_labels = normalize_labels

    def _key(self, label: str) -> str:
        if self.normalize_labels:
            return normalize_issue_label(label)
        return label

    def accumulate(self, articles: List[ClassifiedArticle]) -> Dict[str, IssueAggregate]:
        """
        Build per-issue aggregates in first-encountered order.

        Only articles whose analysis marks them ESG-related contribute. A label
        repeated within one article counts once for that article.

        Returns:
            Mapping of aggregation key to IssueAggregate (ratios not yet set)
        """
        aggregates: Dict[str, IssueAggregate] = {}

        for article in articles:
            analysis = article.analysis
            if analysis is None or not analysis.is_esg_related:
                continue

            weight = article.duplicate_count
            seen_in_article = set()

            for label in analysis.issues:
                key = self._key(label)
                if not key.strip() or key in seen_in_article:
                    continue
                seen_in_article.add(key)

                aggregate = aggregates.get(key)
                if aggregate is None:
                    name = display_label(label) if self.normalize_labels else label
                    aggregate = IssueAggregate(name=name)
                    aggregates[key] = aggregate

                aggregate.mention_count += 1
                aggregate.weighted_mention_count += weight

                if analysis.sentiment == "positive":
                    aggregate.positive_weight += weight
                elif analysis.sentiment == "negative":
                    aggregate.negative_weight += weight
                else:
                    aggregate.neutral_weight += weight

                for category in analysis.esg_categories:
                    if category not in aggregate.categories:
                        aggregate.categories.append(category)

                if len(aggregate.exemplars) < MAX_EXEMPLARS:
                    aggregate.exemplars.append(
                        IssueExemplar(
                            title=article.title,
                            snippet=article.snippet,
                            link=article.link,
                            original_link=article.original_link,
                            publish_date=article.publish_date,
                            sentiment=analysis.sentiment,
                            duplicate_count=weight,
                        )
                    )

        for aggregate in aggregates.values():
            aggregate.categories.sort(key=ESG_CATEGORIES.index)
            aggregate.negative_ratio = percentage(aggregate.negative_weight, aggregate.weighted_mention_count)
            aggregate.positive_ratio = percentage(aggregate.positive_weight, aggregate.weighted_mention_count)

        return aggregates

    def rank(self, aggregates: List[IssueAggregate], top_n: Optional[int] = None) -> List[IssueAggregate]:
        """
        Sort by weighted mention count, descending.

        The sort is stable, so on equal weight the issue encountered first wins.
        """
        limit = self.top_n if top_n is None else top_n
        ranked = sorted(aggregates, key=lambda a: a.weighted_mention_count, reverse=True)
        return ranked[:max(0, limit)]

    def aggregate(
        self,
        articles: List[ClassifiedArticle],
        top_n: Optional[int] = None,
        classification_available: bool = True,
    ) -> IssueRanking:
        """
        Aggregate classified articles into a ranked issue list.

        Args:
            articles: Classified articles (duplicate_count defaults to 1)
            top_n: Number of issues to return; the instance default when None
            classification_available: Whether the classifier ran for this input

        Returns:
            IssueRanking; empty issues when no article is ESG-related
        """
        aggregates = self.accumulate(articles)
        ranked = self.rank(list(aggregates.values()), top_n)

        esg_count = sum(1 for a in articles if a.analysis is not None and a.analysis.is_esg_related)
        unclassified = sum(1 for a in articles if a.analysis is None)

        if articles and unclassified == len(articles):
            classification_available = False

        logger.info(
            f"Aggregated {len(aggregates)} issues from {esg_count} ESG articles, "
            f"returning top {len(ranked)}"
        )

        return IssueRanking(
            issues=ranked,
            total_articles=len(articles),
            esg_article_count=esg_count,
            unclassified_count=unclassified,
            total_issue_count=len(aggregates),
            classification_available=classification_available,
        )
