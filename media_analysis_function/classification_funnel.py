"""
Classification Funnel

Decides which articles receive the expensive per-article ESG analysis.

Stage 1 (quick filter): numbered title batches, one call per batch, returns
the relevant indices. A failed batch fails open (all of it passes).
Stage 2 (full classification): one call per surviving article. A failed call
records analysis=None and processing continues.

Both stages are sequential with fixed pauses between calls. Articles rejected
in stage 1 are still returned with a synthetic non-ESG analysis, so the output
always has one entry per input article, in input order.
"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional, Protocol, Set, Tuple, Union

from .models import (
    Article,
    ArticleAnalysis,
    ClassificationResult,
    ClassifiedArticle,
    RepresentativeArticle,
    non_esg_analysis,
)

logger = logging.getLogger(__name__)

FunnelInput = Union[Article, RepresentativeArticle]


class ClassificationOracle(Protocol):
    """Anything that can quick-filter titles and classify single articles."""

    async def quick_filter(self, titles: List[str]) -> List[int]:
        ...

    async def classify_article(self, article: Article) -> ArticleAnalysis:
        ...


class FunnelMode(str, Enum):
    SINGLE_STAGE = "single_stage"
    TWO_STAGE = "two_stage"


def to_classified(article: FunnelInput, analysis: Optional[ArticleAnalysis]) -> ClassifiedArticle:
    """Attach an analysis, keeping duplicate metadata when present."""
    fields = article.article_fields()
    if isinstance(article, RepresentativeArticle):
        fields.update(
            duplicate_count=article.duplicate_count,
            cluster_id=article.cluster_id,
            cluster_date_range=article.cluster_date_range,
        )
    return ClassifiedArticle(**fields, analysis=analysis)


class ClassificationFunnel:
    """
    Two-stage gate in front of full ESG classification.
    """

    def __init__(
        self,
        oracle: Optional[ClassificationOracle],
        filter_batch_size: int = 50,
        filter_delay: float = 0.3,
        classify_delay: float = 0.5,
        two_stage_threshold: int = 100,
    ):
        """
        Initialize the funnel.

        Args:
            oracle: Classification oracle, None when unavailable
            filter_batch_size: Titles per quick-filter call
            filter_delay: Seconds between quick-filter calls
            classify_delay: Seconds between classification calls
            two_stage_threshold: Article count from which two-stage mode is chosen
        """
        self.oracle = oracle
        self.filter_batch_size = max(1, filter_batch_size)
        self.filter_delay = filter_delay
        self.classify_delay = classify_delay
        self.two_stage_threshold = two_stage_threshold

    def select_mode(self, article_count: int, mode: Optional[FunnelMode] = None) -> FunnelMode:
        """Forced mode if given, else two-stage for large inputs."""
        if mode is not None:
            return FunnelMode(mode)
        if article_count >= self.two_stage_threshold:
            return FunnelMode.TWO_STAGE
        return FunnelMode.SINGLE_STAGE

    async def run_quick_filter(self, articles: List[FunnelInput]) -> Tuple[Set[int], int]:
        """
        Stage 1: find the positions of ESG-relevant articles.

        Args:
            articles: Articles to screen

        Returns:
            Tuple of (0-based positions that passed, number of failed batches)
        """
        passed: Set[int] = set()
        failed_batches = 0
        total_batches = (len(articles) + self.filter_batch_size - 1) // self.filter_batch_size

        for start in range(0, len(articles), self.filter_batch_size):
            batch = articles[start:start + self.filter_batch_size]
            batch_num = start // self.filter_batch_size + 1

            try:
                indices = await self.oracle.quick_filter([a.title for a in batch])
                passed.update(start + index - 1 for index in indices if 1 <= index <= len(batch))
                logger.info(f"Quick filter batch {batch_num}/{total_batches}: {len(indices)}/{len(batch)} relevant")

            except Exception as e:
                # Fail open: keep the whole batch
                failed_batches += 1
                passed.update(range(start, start + len(batch)))
                logger.warning(f"Quick filter batch {batch_num}/{total_batches} failed, keeping all {len(batch)}: {e}")

            if batch_num < total_batches and self.filter_delay > 0:
                await asyncio.sleep(self.filter_delay)

        return passed, failed_batches

    async def classify_each(self, articles: List[FunnelInput]) -> List[Optional[ArticleAnalysis]]:
        """
        Stage 2: classify articles one at a time.

        Returns:
            Analyses aligned with the input; None where classification failed
        """
        analyses: List[Optional[ArticleAnalysis]] = []

        for i, article in enumerate(articles):
            try:
                analyses.append(await self.oracle.classify_article(article))
            except Exception as e:
                logger.error(f"Article classification failed ({i + 1}/{len(articles)}): {e}")
                analyses.append(None)

            if (i + 1) % 10 == 0:
                logger.info(f"Classified {i + 1}/{len(articles)} articles")

            if i + 1 < len(articles) and self.classify_delay > 0:
                await asyncio.sleep(self.classify_delay)

        return analyses

    async def classify(
        self,
        articles: List[FunnelInput],
        mode: Optional[FunnelMode] = None,
    ) -> ClassificationResult:
        """
        Run the funnel.

        Args:
            articles: Representatives (or raw articles when dedup was skipped)
            mode: Force single- or two-stage mode; automatic when None

        Returns:
            ClassificationResult with one ClassifiedArticle per input article
        """
        selected = self.select_mode(len(articles), mode)

        if not articles:
            return ClassificationResult(articles=[], mode=selected.value)

        if self.oracle is None:
            logger.warning("Classification oracle unavailable, returning articles without analysis")
            return ClassificationResult(
                articles=[to_classified(a, None) for a in articles],
                mode=selected.value,
                failed_count=len(articles),
                classification_available=False,
            )

        logger.info(f"Classifying {len(articles)} articles ({selected.value})")

        if selected == FunnelMode.TWO_STAGE:
            passed, failed_batches = await self.run_quick_filter(articles)
        else:
            passed, failed_batches = set(range(len(articles))), 0

        positions = sorted(passed)
        analyses = await self.classify_each([articles[p] for p in positions])
        analysis_by_position = dict(zip(positions, analyses))

        classified = []
        for position, article in enumerate(articles):
            if position in analysis_by_position:
                classified.append(to_classified(article, analysis_by_position[position]))
            else:
                classified.append(to_classified(article, non_esg_analysis()))

        failed = sum(1 for a in analyses if a is None)
        logger.info(
            f"Classification complete: {len(positions)}/{len(articles)} passed filter, "
            f"{failed} failed"
        )

        return ClassificationResult(
            articles=classified,
            mode=selected.value,
            passed_filter_count=len(positions),
            filtered_out_count=len(articles) - len(positions),
            failed_filter_batches=failed_batches,
            failed_count=failed,
            classification_available=not positions or failed < len(positions),
        )
