"""
Grouping Service for Media Analysis

Buckets embedded articles into date-bounded time groups, then forms clusters of
near-duplicate articles inside each group by cosine similarity of embeddings.

Two clustering strategies are available:
- single_seed (default): each cluster compares candidates against its seed only
- transitive: Union-Find over every similar pair in the group
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Dict, Optional, Sequence

import numpy as np

from .models import EmbeddedArticle

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.85
DEFAULT_TIME_WINDOW_DAYS = 2


def cosine_similarity(vec_a: Optional[Sequence[float]], vec_b: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 when either vector is missing, the lengths differ, or either
    norm is zero.
    """
    if vec_a is None or vec_b is None or len(vec_a) != len(vec_b):
        return 0.0

    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


class ClusterStrategy(str, Enum):
    """How members are admitted to a cluster."""
    SINGLE_SEED = "single_seed"
    TRANSITIVE = "transitive"


@dataclass
class TimeGroup:
    """Articles published within the time window of the group's anchor."""
    articles: List[EmbeddedArticle] = field(default_factory=list)

    @property
    def anchor_date(self) -> datetime:
        """Publish date of the most recent (first) member."""
        return self.articles[0].publish_date

    @property
    def size(self) -> int:
        return len(self.articles)


@dataclass
class Cluster:
    """A set of near-duplicate articles from one time group."""
    cluster_id: int
    members: List[EmbeddedArticle]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def is_singleton(self) -> bool:
        return self.size == 1

    @property
    def earliest(self) -> datetime:
        return min(member.publish_date for member in self.members)

    @property
    def latest(self) -> datetime:
        return max(member.publish_date for member in self.members)

    @property
    def date_span(self) -> timedelta:
        return self.latest - self.earliest


class UnionFind:
    """
    Union-Find (Disjoint Set) over article indices.

    Path compression plus union by rank.
    """

    def __init__(self, n: int):
        self.parent = list(range(n))
        self.rank = [0] * n

    def find(self, x: int) -> int:
        """Find root with path compression."""
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, x: int, y: int) -> bool:
        """
        Union two sets by rank.

        Returns True if a union was performed, False if already in same set.
        """
        px, py = self.find(x), self.find(y)
        if px == py:
            return False

        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1

        return True

    def get_groups(self) -> List[List[int]]:
        """
        Disjoint sets as index lists.

        Members are ascending and groups are ordered by their smallest member,
        whichever element ended up as the root.
        """
        groups: Dict[int, List[int]] = {}
        for i in range(len(self.parent)):
            groups.setdefault(self.find(i), []).append(i)
        return list(groups.values())


class GroupingService:
    """
    Time-window bucketing and similarity clustering of embedded articles.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        time_window_days: float = DEFAULT_TIME_WINDOW_DAYS,
        strategy: ClusterStrategy = ClusterStrategy.SINGLE_SEED,
    ):
        """
        Initialize the grouping service.

        Args:
            threshold: Minimum cosine similarity for two articles to be duplicates
            time_window_days: Maximum distance from a time group's anchor, in days
            strategy: Clustering strategy (single_seed or transitive)
        """
        self.threshold = threshold
        self.time_window_days = time_window_days
        self.strategy = ClusterStrategy(strategy)
        logger.info(
            f"GroupingService initialized: threshold={threshold}, "
            f"window={time_window_days}d, strategy={self.strategy.value}"
        )

    def group_by_time_window(self, articles: List[EmbeddedArticle]) -> List[TimeGroup]:
        """
        Partition articles into forward-anchored time groups.

        Articles without an embedding are excluded. The remaining articles are
        sorted newest first; each article joins the current group when it lies
        within the window of the group's first member, otherwise it anchors a
        new group.

        Args:
            articles: Embedded articles in input order

        Returns:
            Ordered list of TimeGroup objects
        """
        embedded = [a for a in articles if a.embedding is not None]
        ordered = sorted(embedded, key=lambda a: a.publish_date, reverse=True)

        window = timedelta(days=self.time_window_days)
        groups: List[TimeGroup] = []
        current: Optional[TimeGroup] = None

        for article in ordered:
            if current is not None and current.anchor_date - article.publish_date <= window:
                current.articles.append(article)
                continue

            current = TimeGroup(articles=[article])
            groups.append(current)

        logger.info(
            f"Formed {len(groups)} time groups from {len(ordered)} embedded articles "
            f"({len(articles) - len(ordered)} without embedding)"
        )
        return groups

    def cluster_group(self, group: TimeGroup, start_id: int = 0) -> List[Cluster]:
        """
        Cluster one time group with the configured strategy.

        Args:
            group: TimeGroup to cluster
            start_id: First cluster id to assign

        Returns:
            Clusters with ids start_id, start_id + 1, ...
        """
        if self.strategy == ClusterStrategy.TRANSITIVE:
            index_clusters = self._transitive_clusters(group.articles)
        else:
            index_clusters = self._single_seed_clusters(group.articles)

        return [
            Cluster(cluster_id=start_id + offset, members=[group.articles[i] for i in indices])
            for offset, indices in enumerate(index_clusters)
        ]

    def cluster_time_groups(self, groups: List[TimeGroup]) -> List[Cluster]:
        """
        Cluster every time group, numbering clusters across groups.

        Args:
            groups: TimeGroups in processing order

        Returns:
            All clusters, ids increasing in group processing order
        """
        clusters: List[Cluster] = []
        next_id = 0

        for group in groups:
            group_clusters = self.cluster_group(group, start_id=next_id)
            next_id += len(group_clusters)
            clusters.extend(group_clusters)

        duplicate_count = sum(c.size for c in clusters) - len(clusters)
        logger.info(f"Built {len(clusters)} clusters ({duplicate_count} duplicates found)")
        return clusters

    def _single_seed_clusters(self, articles: List[EmbeddedArticle]) -> List[List[int]]:
        """Each unprocessed article seeds a cluster of later articles similar to the seed."""
        processed = set()
        clusters = []

        for i, seed in enumerate(articles):
            if i in processed:
                continue

            members = [i]
            processed.add(i)

            for j in range(i + 1, len(articles)):
                if j in processed:
                    continue
                if cosine_similarity(seed.embedding, articles[j].embedding) >= self.threshold:
                    members.append(j)
                    processed.add(j)

            clusters.append(members)

        return clusters

    def _transitive_clusters(self, articles: List[EmbeddedArticle]) -> List[List[int]]:
        """Connected components of the similarity graph, ordered by first member."""
        n = len(articles)
        uf = UnionFind(n)

        unions_performed = 0
        for i in range(n):
            for j in range(i + 1, n):
                if cosine_similarity(articles[i].embedding, articles[j].embedding) >= self.threshold:
                    if uf.union(i, j):
                        unions_performed += 1

        logger.debug(f"Performed {unions_performed} unions with threshold {self.threshold}")

        return uf.get_groups()
