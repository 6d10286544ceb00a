"""
Media Analysis Pipeline

raw articles -> deduplication -> classification funnel -> issue aggregation

Each stage degrades instead of failing: without embeddings articles pass
through undeduplicated, without a classifier articles come back unanalyzed and
the ranking is empty with classification_available=False.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel

from .classification_funnel import ClassificationFunnel, FunnelMode
from .config import PipelineSettings
from .dedup_service import DeduplicationService, passthrough
from .embedding_service import EmbeddingService
from .grouping_service import ClusterStrategy, GroupingService
from .issue_aggregator import IssueAggregator
from .llm_processor import create_genai_client, create_llm_processor
from .media_scoring import AnalysisStats, compute_analysis_stats
from .models import (
    Article,
    ClassificationResult,
    DeduplicationResult,
    IssueRanking,
)

logger = logging.getLogger(__name__)


class MediaAnalysisResult(BaseModel):
    """Everything one pipeline run produced."""
    deduplication: DeduplicationResult
    classification: ClassificationResult
    ranking: IssueRanking
    stats: AnalysisStats


class MediaAnalysisPipeline:
    """
    Orchestrates deduplication, classification and aggregation.
    """

    def __init__(
        self,
        dedup_service: DeduplicationService,
        funnel: ClassificationFunnel,
        aggregator: Optional[IssueAggregator] = None,
    ):
        self.dedup_service = dedup_service
        self.funnel = funnel
        self.aggregator = aggregator or IssueAggregator()

    @classmethod
    def from_settings(cls, settings: PipelineSettings, client=None) -> "MediaAnalysisPipeline":
        """
        Wire the pipeline from settings.

        Args:
            settings: Pipeline settings
            client: Optional pre-built genai.Client; created from settings when None
        """
        client = client or create_genai_client(settings)

        embedding_service = None
        if client is not None:
            embedding_service = EmbeddingService(
                client=client,
                model=settings.embedding_model,
                batch_size=settings.embedding_batch_size,
                batch_delay=settings.embedding_batch_delay,
            )

        grouping_service = GroupingService(
            threshold=settings.similarity_threshold,
            time_window_days=settings.time_window_days,
            strategy=ClusterStrategy(settings.cluster_strategy),
        )

        funnel = ClassificationFunnel(
            oracle=create_llm_processor(settings, client) if client is not None else None,
            filter_batch_size=settings.quick_filter_batch_size,
            filter_delay=settings.quick_filter_delay,
            classify_delay=settings.classify_delay,
            two_stage_threshold=settings.two_stage_threshold,
        )

        aggregator = IssueAggregator(
            top_n=settings.top_n_issues,
            normalize_labels=settings.normalize_issue_labels,
        )

        return cls(DeduplicationService(embedding_service, grouping_service), funnel, aggregator)

    async def analyze(
        self,
        articles: List[Article],
        top_n: Optional[int] = None,
        deduplicate: bool = True,
        mode: Optional[FunnelMode] = None,
    ) -> MediaAnalysisResult:
        """
        Run the full media analysis on raw articles.

        Args:
            articles: Raw articles
            top_n: Number of issues to rank; aggregator default when None
            deduplicate: Skip deduplication when False
            mode: Force the classification funnel mode

        Returns:
            MediaAnalysisResult
        """
        logger.info(f"=== MEDIA ANALYSIS STARTED: {len(articles)} articles ===")

        if deduplicate:
            dedup_result = await self.dedup_service.deduplicate(articles)
        else:
            dedup_result = DeduplicationResult(articles=passthrough(articles), input_count=len(articles))

        classification = await self.funnel.classify(dedup_result.articles, mode=mode)

        ranking = self.aggregator.aggregate(
            classification.articles,
            top_n=top_n,
            classification_available=classification.classification_available,
        )
        stats = compute_analysis_stats(classification.articles)

        logger.info(
            f"=== MEDIA ANALYSIS COMPLETED: {len(articles)} -> {len(dedup_result.articles)} articles, "
            f"{len(ranking.issues)} issues ==="
        )

        return MediaAnalysisResult(
            deduplication=dedup_result,
            classification=classification,
            ranking=ranking,
            stats=stats,
        )
