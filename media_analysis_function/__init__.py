"""
Media Analysis Function

Turns a stream of search-engine news results into a ranked list of ESG issue
candidates: embedding-based near-duplicate removal, a two-stage classification
funnel and weighted issue aggregation.
"""

from .classification_funnel import ClassificationFunnel, FunnelMode
from .dedup_service import DeduplicationService
from .embedding_service import EmbeddingService
from .grouping_service import ClusterStrategy, GroupingService
from .issue_aggregator import IssueAggregator
from .llm_processor import LLMProcessor
from .pipeline import MediaAnalysisPipeline, MediaAnalysisResult

__all__ = [
    "ClassificationFunnel",
    "ClusterStrategy",
    "DeduplicationService",
    "EmbeddingService",
    "FunnelMode",
    "GroupingService",
    "IssueAggregator",
    "LLMProcessor",
    "MediaAnalysisPipeline",
    "MediaAnalysisResult",
]
