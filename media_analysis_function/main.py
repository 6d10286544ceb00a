"""
Media Analysis Function - Entry Point

Runs the ESG media analysis either on a JSON file of raw articles or on a
keyword news search, and prints the ranked issues as JSON.

Usage:
    python -m media_analysis_function.main --keyword "삼성전자 ESG" --period m6
    python -m media_analysis_function.main --input articles.json --top-n 5
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from media_analysis_function.classification_funnel import FunnelMode
from media_analysis_function.config import PipelineSettings, configure_logging
from media_analysis_function.media_scoring import calculate_media_scores, filter_relevant_news
from media_analysis_function.models import Article
from media_analysis_function.news_search import NewsSearchClient
from media_analysis_function.pipeline import MediaAnalysisPipeline, MediaAnalysisResult

logger = logging.getLogger(__name__)


def build_pipeline(settings: PipelineSettings) -> MediaAnalysisPipeline:
    return MediaAnalysisPipeline.from_settings(settings)


def build_search_client(settings: PipelineSettings) -> NewsSearchClient:
    return NewsSearchClient(
        api_key=settings.google_search_api_key,
        search_engine_id=settings.google_search_engine_id,
    )


def load_articles(path: str) -> List[Article]:
    """Read a JSON array of raw articles (wire field names)."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("articles", [])

    articles = []
    for i, item in enumerate(data):
        try:
            articles.append(Article.model_validate(item))
        except Exception as e:
            logger.warning(f"Skipping invalid article #{i + 1}: {e}")
    return articles


def load_issue_keywords(path: str) -> Dict[str, List[str]]:
    """Read a JSON object mapping issue names to keyword lists."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{path} must hold a JSON object of issue name -> keywords")

    issue_keywords = {}
    for name, keywords in data.items():
        if isinstance(keywords, str):
            keywords = [keywords]
        if not isinstance(keywords, list):
            raise ValueError(f"Keywords for issue {name!r} must be a list")
        issue_keywords[name] = [str(k) for k in keywords]
    return issue_keywords


def summarize(
    result: MediaAnalysisResult,
    relevant_limit: int = 10,
    issue_keywords: Optional[Dict[str, List[str]]] = None,
) -> Dict[str, Any]:
    """JSON-ready summary of a pipeline run, with media scores when issue keywords are given."""
    relevant = filter_relevant_news(result.classification.articles)[:relevant_limit]
    summary = {
        "issues": [issue.model_dump(mode="json", by_alias=True) for issue in result.ranking.issues],
        "total_issue_count": result.ranking.total_issue_count,
        "classification_available": result.ranking.classification_available,
        "deduplication": {
            "input_count": result.deduplication.input_count,
            "output_count": len(result.deduplication.articles),
            "duplicates_removed": result.deduplication.duplicates_removed,
            "degraded": result.deduplication.degraded,
            "degraded_reason": result.deduplication.degraded_reason,
        },
        "classification_mode": result.classification.mode,
        "stats": result.stats.model_dump(),
        "relevant_news": [a.model_dump(mode="json", by_alias=True) for a in relevant],
    }

    if issue_keywords:
        scores = calculate_media_scores(result.classification.articles, issue_keywords)
        summary["media_scores"] = {name: score.model_dump() for name, score in scores.items()}

    return summary


async def recommend_issues(
    keyword: str,
    settings: PipelineSettings,
    period: str = "y1",
    max_results: int = 50,
    top_n: Optional[int] = None,
    deduplicate: bool = True,
    mode: Optional[FunnelMode] = None,
    search_client: Optional[NewsSearchClient] = None,
    pipeline: Optional[MediaAnalysisPipeline] = None,
) -> MediaAnalysisResult:
    """
    Search news for a keyword and rank the ESG issues found in it.

    Raises:
        InvalidPeriodError: If period is not supported
    """
    search_client = search_client or build_search_client(settings)
    pipeline = pipeline or build_pipeline(settings)

    articles = await search_client.search(keyword, max_results=max_results, period=period)
    return await pipeline.analyze(articles, top_n=top_n, deduplicate=deduplicate, mode=mode)


async def run_local(args: argparse.Namespace, settings: PipelineSettings) -> Dict[str, Any]:
    mode = FunnelMode(args.mode) if args.mode else None
    top_n = args.top_n if args.top_n is not None else settings.top_n_issues

    if args.input:
        articles = load_articles(args.input)
        logger.info(f"Loaded {len(articles)} articles from {args.input}")
        pipeline = build_pipeline(settings)
        result = await pipeline.analyze(articles, top_n=top_n, deduplicate=not args.no_dedup, mode=mode)
    else:
        result = await recommend_issues(
            args.keyword,
            settings,
            period=args.period,
            max_results=args.max_results,
            top_n=top_n,
            deduplicate=not args.no_dedup,
            mode=mode,
        )

    issue_keywords = load_issue_keywords(args.issues) if args.issues else None
    return summarize(result, issue_keywords=issue_keywords)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rank ESG issues from news coverage")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", help="JSON file with raw articles")
    source.add_argument("--keyword", help="News search keyword")
    parser.add_argument("--period", default="y1", help="Search period: y1, m6, m3 or m1")
    parser.add_argument("--max-results", type=int, default=50)
    parser.add_argument("--top-n", type=int, default=None)
    parser.add_argument("--mode", choices=[m.value for m in FunnelMode], default=None)
    parser.add_argument("--no-dedup", action="store_true", help="Skip deduplication")
    parser.add_argument("--issues", help="JSON file mapping issue names to keywords for media scoring")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    try:
        settings = PipelineSettings.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        summary = asyncio.run(run_local(args, settings))
    except ValueError as e:
        logger.error(f"Invalid request: {e}")
        return 2

    print(json.dumps(summary, ensure_ascii=False, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
