"""
LLM Processor for ESG Classification

Builds prompts for the two classification calls and parses Gemini's structured
JSON responses:
- quick_filter: one call per batch of numbered titles, returns relevant indices
- classify_article: one call per article, returns a full ESG analysis

Both methods raise on failure; the classification funnel decides how to degrade.
"""

import logging
from typing import List, Optional

from google import genai
from google.genai import types
from google.genai.types import HttpOptions

from .config import PipelineSettings
from .exceptions import OracleResponseError
from .models import (
    CLASSIFICATION_RESPONSE_SCHEMA,
    QUICK_FILTER_RESPONSE_SCHEMA,
    Article,
    ArticleAnalysis,
    parse_analysis_response,
    parse_quick_filter_response,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-lite"

CLASSIFICATION_PROMPT = """다음 뉴스 기사를 분석하여 ESG 이슈와의 관련성을 평가해주세요.

제목: {title}
내용: {snippet}

다음 형식으로 JSON 응답해주세요:
{{
  "isESGRelated": true/false,
  "esgCategories": ["E", "S", "G"] 중 해당되는 것들,
  "issues": ["구체적인 이슈명들"],
  "sentiment": "positive/negative/neutral",
  "relevanceScore": 1-5 (1: 매우 낮음, 5: 매우 높음)
}}
"""

QUICK_FILTER_PROMPT = """다음은 뉴스 기사 제목 목록입니다.
환경(E), 사회(S), 지배구조(G) 이슈와 관련된 기사의 번호만 골라주세요.

{numbered_titles}

다음 형식으로 JSON 응답해주세요:
{{"relevant_indices": [관련 기사 번호들]}}
"""


def format_numbered_titles(titles: List[str]) -> str:
    """One title per line, numbered from 1."""
    return "\n".join(f"{i}. {title}" for i, title in enumerate(titles, start=1))


class LLMProcessor:
    """
    Gemini-backed classification oracle.
    """

    def __init__(
        self,
        genai_client: genai.Client,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.1,
    ):
        """
        Initialize the LLM processor.

        Args:
            genai_client: Initialized genai.Client
            model: Gemini model used for both calls
            temperature: Sampling temperature
        """
        self.genai_client = genai_client
        self.model = model
        self.temperature = temperature

        logger.info(f"LLMProcessor initialized: model={model}")

    def build_classification_prompt(self, article: Article) -> str:
        return CLASSIFICATION_PROMPT.format(title=article.title, snippet=article.snippet)

    def build_quick_filter_prompt(self, titles: List[str]) -> str:
        return QUICK_FILTER_PROMPT.format(numbered_titles=format_numbered_titles(titles))

    async def _generate(self, prompt: str, response_schema: dict) -> str:
        """Single JSON-mode generation call, returns the response text."""
        response = await self.genai_client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=self.temperature,
                candidate_count=1,
                response_mime_type="application/json",
                response_schema=response_schema,
            ),
        )

        text = response.text
        if not text:
            raise OracleResponseError("Empty response from model")
        return text

    async def classify_article(self, article: Article) -> ArticleAnalysis:
        """
        Classify one article.

        Args:
            article: Article with title and snippet

        Returns:
            Parsed ArticleAnalysis

        Raises:
            OracleResponseError: If the response cannot be parsed
            Exception: Any API error from the client
        """
        prompt = self.build_classification_prompt(article)
        response_text = await self._generate(prompt, CLASSIFICATION_RESPONSE_SCHEMA)
        return parse_analysis_response(response_text)

    async def quick_filter(self, titles: List[str]) -> List[int]:
        """
        Ask which titles in a batch are ESG-relevant.

        Args:
            titles: Batch of article titles

        Returns:
            Sorted 1-based indices of relevant titles

        Raises:
            OracleResponseError: If the response cannot be parsed
            Exception: Any API error from the client
        """
        if not titles:
            return []

        prompt = self.build_quick_filter_prompt(titles)
        response_text = await self._generate(prompt, QUICK_FILTER_RESPONSE_SCHEMA)
        return parse_quick_filter_response(response_text, batch_size=len(titles))


def create_genai_client(settings: PipelineSettings) -> Optional[genai.Client]:
    """
    Create a genai.Client from settings.

    An API key selects the Gemini Developer API; otherwise a project selects
    Vertex AI. Returns None when neither is configured or the client cannot be
    built, which puts the pipeline into its degraded modes.
    """
    try:
        if settings.gemini_api_key:
            client = genai.Client(api_key=settings.gemini_api_key)
            logger.info("Gemini client initialized (API key)")
            return client

        if settings.google_cloud_project:
            client = genai.Client(
                vertexai=True,
                project=settings.google_cloud_project,
                location=settings.vertex_ai_location,
                http_options=HttpOptions(api_version="v1"),
            )
            logger.info(f"Vertex AI client initialized: project={settings.google_cloud_project}")
            return client

    except Exception as e:
        logger.error(f"Failed to initialize Gemini client: {e}")
        return None

    logger.warning("Neither GEMINI_API_KEY nor GOOGLE_CLOUD_PROJECT is set; Gemini features disabled")
    return None


def create_llm_processor(settings: PipelineSettings, client: Optional[genai.Client] = None) -> Optional[LLMProcessor]:
    """
    Factory function to create an LLMProcessor from settings.

    Returns None when no Gemini client is available.
    """
    client = client or create_genai_client(settings)
    if client is None:
        return None
    return LLMProcessor(genai_client=client, model=settings.classification_model)
