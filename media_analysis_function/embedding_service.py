"""
Embedding Service for Media Analysis

Generates vector embeddings for news articles using Google's text-embedding-004
model. The embeddings drive near-duplicate detection in the grouping service.

Calls within a batch run concurrently; batches run one after another with a
fixed pause in between to stay under the API rate limit. A failed call yields
a None embedding for that article and is never retried.
"""

import asyncio
import logging
from typing import List, Optional

from google import genai
from google.genai import types

from .models import Article, EmbeddedArticle

logger = logging.getLogger(__name__)


class EmbeddingService:
    """
    Service for generating text embeddings with the Gemini API.

    Uses text-embedding-004 with the SEMANTIC_SIMILARITY task type.
    """

    BATCH_SIZE = 100
    BATCH_DELAY_SECONDS = 0.3
    MODEL = "text-embedding-004"

    def __init__(
        self,
        client: Optional[genai.Client],
        model: str = MODEL,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
    ):
        """
        Initialize the embedding service.

        Args:
            client: Initialized genai.Client, or None when the API is not configured
            model: Embedding model name
            batch_size: Number of concurrent embedding calls per batch
            batch_delay: Seconds to sleep between batches
        """
        self.client = client
        self.model = model
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        logger.info(f"EmbeddingService initialized with model: {self.model}")

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def _prepare_text(self, article: Article) -> str:
        """Title and snippet on separate lines."""
        return f"{article.title}\n{article.snippet or ''}"

    async def embed_text(self, text: str) -> Optional[List[float]]:
        """
        Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding values, or None on any error
        """
        if self.client is None:
            return None

        try:
            response = await self.client.aio.models.embed_content(
                model=self.model,
                contents=text,
                config=types.EmbedContentConfig(task_type="SEMANTIC_SIMILARITY"),
            )
            return list(response.embeddings[0].values)

        except Exception as e:
            logger.warning(f"Embedding failed: {e}")
            return None

    async def embed_articles(self, articles: List[Article]) -> List[EmbeddedArticle]:
        """
        Embed a list of articles in rate-limited batches.

        Args:
            articles: Articles to embed

        Returns:
            EmbeddedArticle list in input order; failed embeddings are None
        """
        if not articles:
            logger.warning("No articles provided for embedding generation")
            return []

        total_batches = (len(articles) + self.batch_size - 1) // self.batch_size
        logger.info(f"Generating embeddings for {len(articles)} articles in {total_batches} batches")

        embedded: List[EmbeddedArticle] = []

        for i in range(0, len(articles), self.batch_size):
            batch = articles[i:i + self.batch_size]
            batch_num = i // self.batch_size + 1

            vectors = await asyncio.gather(
                *(self.embed_text(self._prepare_text(article)) for article in batch)
            )

            for article, vector in zip(batch, vectors):
                embedded.append(EmbeddedArticle(**article.article_fields(), embedding=vector))

            failed = sum(1 for v in vectors if v is None)
            logger.info(f"Embedding batch {batch_num}/{total_batches} completed ({failed} failed)")

            if batch_num < total_batches and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        return embedded
