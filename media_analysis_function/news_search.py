"""
News search via the Google Custom Search JSON API.

Results come in pages of 10. Pages are fetched one at a time with a short
pause in between; the first API error stops paging and whatever was collected
so far is returned. Without credentials the client produces generated sample
news so the rest of the pipeline can run locally.
"""

import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import TypeAdapter, ValidationError

from .exceptions import InvalidPeriodError
from .models import Article

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
PAGE_SIZE = 10
PAGE_DELAY_SECONDS = 0.1
VALID_PERIODS = ("y1", "m6", "m3", "m1")

# Non-ISO layouts seen in Korean news site meta tags
PUBLISHED_TIME_FORMATS = (
    "%Y.%m.%d %H:%M",
    "%Y.%m.%d %H:%M:%S",
    "%Y.%m.%d",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
)

_DATETIME_ADAPTER = TypeAdapter(datetime)

MOCK_ESG_TOPICS = [
    "온실가스 배출 감축",
    "재생에너지 전환",
    "산업안전보건",
    "근로자 인권",
    "공급망 관리",
    "데이터 프라이버시",
    "이사회 다양성",
    "윤리경영",
]


def validate_period(period: str) -> str:
    if period not in VALID_PERIODS:
        raise InvalidPeriodError(
            f"Unsupported period {period!r}, expected one of {', '.join(VALID_PERIODS)}"
        )
    return period


def parse_published_time(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an article:published_time value.

    Returns None for missing or unrecognised values, which dates the article now.
    """
    if not value:
        return None

    try:
        return _DATETIME_ADAPTER.validate_python(value)
    except ValidationError:
        pass

    text = str(value).strip()
    for fmt in PUBLISHED_TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    logger.debug(f"Unrecognised published_time {value!r}, dating article now")
    return None


def parse_search_item(item: Dict[str, Any]) -> Article:
    """
    Map one Custom Search result item to an Article.

    The publish date comes from the first metatags entry's
    article:published_time; items without it are dated now.
    """
    metatags = (item.get("pagemap") or {}).get("metatags") or [{}]
    published = metatags[0].get("article:published_time") if metatags else None

    return Article(
        title=item.get("title") or "Untitled",
        snippet=item.get("snippet") or "",
        link=item.get("link") or "",
        publish_date=parse_published_time(published),
    )


def generate_mock_news(keyword: str, count: int, seed: Optional[int] = None) -> List[Article]:
    """Sample ESG headlines about the keyword, dated within the last year."""
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    articles = []

    for i in range(count):
        topic = MOCK_ESG_TOPICS[i % len(MOCK_ESG_TOPICS)]
        positive = rng.random() > 0.5
        outcome = "개선" if positive else "논란"
        detail = "긍정적인 성과를 달성" if positive else "부정적인 이슈가 제기"

        articles.append(Article(
            title=f"{keyword} {topic} 관련 {outcome} ({i + 1})",
            snippet=f"{keyword}가 {topic}과 관련하여 {detail}되었습니다. 최근 1년간의 데이터를 분석한 결과...",
            link=f"https://news.example.com/article-{i + 1}",
            publish_date=now - timedelta(seconds=rng.random() * 365 * 24 * 60 * 60),
        ))

    return articles


class NewsSearchClient:
    """
    Keyword news search over Google Custom Search.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        search_engine_id: Optional[str] = None,
        page_delay: float = PAGE_DELAY_SECONDS,
        timeout: float = 30,
    ):
        """
        Initialize the search client.

        Args:
            api_key: Custom Search API key
            search_engine_id: Programmable Search Engine id (cx)
            page_delay: Seconds between page requests
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self.search_engine_id = search_engine_id
        self.page_delay = page_delay
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.search_engine_id)

    def build_params(self, keyword: str, period: str, start: int) -> Dict[str, Any]:
        return {
            "key": self.api_key,
            "cx": self.search_engine_id,
            "q": keyword,
            "dateRestrict": period,
            "start": start,
        }

    async def fetch_page(
        self,
        session: aiohttp.ClientSession,
        keyword: str,
        period: str,
        start: int,
    ) -> Dict[str, Any]:
        """One results page as decoded JSON."""
        async with session.get(
            SEARCH_URL,
            params=self.build_params(keyword, period, start),
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as response:
            response.raise_for_status()
            return await response.json()

    async def search(self, keyword: str, max_results: int = 50, period: str = "y1") -> List[Article]:
        """
        Search news for a keyword.

        Args:
            keyword: Search query, e.g. "삼성전자 ESG"
            max_results: Maximum number of articles
            period: Date restriction, one of y1, m6, m3, m1

        Returns:
            Up to max_results articles

        Raises:
            InvalidPeriodError: If period is not supported
        """
        validate_period(period)
        logger.info(f"Searching news: '{keyword}' (period={period}, max={max_results})")

        if max_results <= 0:
            return []

        if not self.is_configured:
            logger.warning("Google Search API key not configured, using mock news")
            return generate_mock_news(keyword, max_results)

        results: List[Article] = []
        pages = (max_results + PAGE_SIZE - 1) // PAGE_SIZE

        async with aiohttp.ClientSession() as session:
            for page in range(pages):
                start = page * PAGE_SIZE + 1

                try:
                    data = await self.fetch_page(session, keyword, period, start)
                except aiohttp.ClientResponseError as e:
                    logger.error(f"Search API HTTP error (page {page + 1}): {e.status} {e.message}")
                    break
                except Exception as e:
                    logger.error(f"Search API call failed (page {page + 1}): {e}")
                    break

                if data.get("error"):
                    logger.error(f"Search API error (page {page + 1}): {data['error'].get('message')}")
                    break

                items = data.get("items") or []
                if items:
                    logger.info(f"Page {page + 1}: {len(items)} results")
                    for item in items:
                        try:
                            results.append(parse_search_item(item))
                        except Exception as e:
                            logger.warning(f"Skipping unparseable search result: {e}")
                else:
                    logger.info(f"Page {page + 1}: no results")

                if page + 1 < pages and self.page_delay > 0:
                    await asyncio.sleep(self.page_delay)

        logger.info(f"Collected {min(len(results), max_results)} articles for '{keyword}'")
        return results[:max_results]
