"""
Deduplication Service

Collapses near-duplicate news articles into one representative per cluster.

Flow:
1. Embed title + snippet of every article
2. Bucket embedded articles into time groups (forward-anchored window)
3. Cluster each group by embedding similarity
4. Pick a representative per cluster and attach duplicate metadata
5. Append articles whose embedding failed as singletons

If embeddings are unavailable for the whole run, every article passes through
as its own singleton. Deduplication never raises to the caller.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from .embedding_service import EmbeddingService
from .grouping_service import Cluster, GroupingService
from .models import (
    Article,
    ClusterDateRange,
    DeduplicationResult,
    EmbeddedArticle,
    RepresentativeArticle,
)

logger = logging.getLogger(__name__)

# Clusters spanning less than this are treated as same-day coverage
SAME_DAY_SPAN = timedelta(days=1)


def passthrough(articles: List[Article]) -> List[RepresentativeArticle]:
    """Every article as its own singleton representative."""
    return [
        RepresentativeArticle(**article.article_fields(), duplicate_count=1, cluster_id=None)
        for article in articles
    ]


def select_representative(cluster: Cluster) -> EmbeddedArticle:
    """
    Pick the canonical member of a cluster.

    Same-day clusters keep the longest title (most informative headline);
    otherwise the most recent member wins. Ties go to the earlier member.
    """
    if cluster.date_span < SAME_DAY_SPAN:
        return max(cluster.members, key=lambda a: len(a.title))
    return max(cluster.members, key=lambda a: a.publish_date)


def build_representative(cluster: Cluster) -> RepresentativeArticle:
    """Representative fields plus cluster size, id and date range."""
    chosen = select_representative(cluster)
    return RepresentativeArticle(
        **chosen.article_fields(),
        duplicate_count=cluster.size,
        cluster_id=cluster.cluster_id,
        cluster_date_range=ClusterDateRange(earliest=cluster.earliest, latest=cluster.latest),
    )


class DeduplicationService:
    """
    Embedding-based near-duplicate removal for news articles.
    """

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService],
        grouping_service: Optional[GroupingService] = None,
    ):
        """
        Initialize the deduplication service.

        Args:
            embedding_service: Embedding oracle, None when unavailable
            grouping_service: Time grouping and clustering settings
        """
        self.embedding_service = embedding_service
        self.grouping_service = grouping_service or GroupingService()

    def select_representatives(
        self,
        clusters: List[Cluster],
        unembedded: List[Article],
    ) -> List[RepresentativeArticle]:
        """
        One representative per cluster, then unembedded articles as singletons.

        An unembedded article is skipped when its exact title was already
        emitted.

        Args:
            clusters: Clusters from the grouping service
            unembedded: Articles whose embedding failed, in input order

        Returns:
            Representative articles
        """
        representatives = [build_representative(cluster) for cluster in clusters]
        emitted_titles = {rep.title for rep in representatives}

        for article in unembedded:
            if article.title in emitted_titles:
                logger.debug(f"Skipping unembedded article with emitted title: '{article.title[:60]}'")
                continue
            representatives.append(
                RepresentativeArticle(**article.article_fields(), duplicate_count=1, cluster_id=None)
            )
            emitted_titles.add(article.title)

        return representatives

    def deduplicate_embedded(self, embedded: List[EmbeddedArticle]) -> DeduplicationResult:
        """
        Group, cluster and select representatives for already-embedded articles.

        Args:
            embedded: Articles with embeddings (None where embedding failed)

        Returns:
            DeduplicationResult; degraded when no article has an embedding
        """
        if embedded and all(a.embedding is None for a in embedded):
            logger.warning("All embeddings failed, skipping deduplication")
            return DeduplicationResult(
                articles=passthrough(embedded),
                input_count=len(embedded),
                degraded=True,
                degraded_reason="all embeddings failed",
            )

        groups = self.grouping_service.group_by_time_window(embedded)
        clusters = self.grouping_service.cluster_time_groups(groups)

        unembedded = [a for a in embedded if a.embedding is None]
        representatives = self.select_representatives(clusters, unembedded)

        return DeduplicationResult(
            articles=representatives,
            input_count=len(embedded),
            cluster_count=len(clusters),
        )

    async def deduplicate(self, articles: List[Article]) -> DeduplicationResult:
        """
        Deduplicate raw articles.

        Args:
            articles: Raw articles

        Returns:
            DeduplicationResult with representatives and duplicate metadata
        """
        logger.info(f"Deduplication started: {len(articles)} articles")

        if not articles:
            return DeduplicationResult(articles=[], input_count=0)

        if self.embedding_service is None or not self.embedding_service.is_available:
            logger.warning("Embedding API not configured, skipping deduplication")
            return DeduplicationResult(
                articles=passthrough(articles),
                input_count=len(articles),
                degraded=True,
                degraded_reason="embedding oracle unavailable",
            )

        try:
            embedded = await self.embedding_service.embed_articles(articles)
            result = self.deduplicate_embedded(embedded)

        except Exception as e:
            logger.error(f"Deduplication failed, returning articles unchanged: {e}", exc_info=True)
            return DeduplicationResult(
                articles=passthrough(articles),
                input_count=len(articles),
                degraded=True,
                degraded_reason=str(e),
            )

        reduction = (1 - len(result.articles) / len(articles)) * 100
        logger.info(
            f"Deduplication complete: {len(articles)} -> {len(result.articles)} articles "
            f"({reduction:.1f}% reduction)"
        )
        return result
