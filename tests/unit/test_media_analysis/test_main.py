"""Unit tests for media_analysis_function/main.py."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from media_analysis_function.classification_funnel import ClassificationFunnel
from media_analysis_function.config import PipelineSettings
from media_analysis_function.dedup_service import DeduplicationService
from media_analysis_function.exceptions import InvalidPeriodError
from media_analysis_function.main import (
    load_articles,
    load_issue_keywords,
    main,
    parse_args,
    recommend_issues,
    summarize,
)
from media_analysis_function.news_search import NewsSearchClient
from media_analysis_function.pipeline import MediaAnalysisPipeline


def offline_pipeline(oracle) -> MediaAnalysisPipeline:
    funnel = ClassificationFunnel(oracle, filter_delay=0, classify_delay=0)
    return MediaAnalysisPipeline(DeduplicationService(None), funnel)


class TestParseArgs:
    """Tests for parse_args."""

    def test_keyword_defaults(self):
        """Should default to a one-year period and 50 results."""
        args = parse_args(["--keyword", "삼성전자 ESG"])
        assert args.period == "y1"
        assert args.max_results == 50
        assert args.no_dedup is False

    def test_source_required(self):
        """Should require either --input or --keyword."""
        with pytest.raises(SystemExit):
            parse_args([])


class TestLoadArticles:
    """Tests for load_articles."""

    def test_reads_wire_format(self, tmp_path):
        """Should parse articles and skip invalid entries."""
        path = tmp_path / "articles.json"
        path.write_text(json.dumps([
            {"title": "a", "link": "https://a", "publishDate": "2025-01-01T00:00:00Z"},
            {"snippet": "missing title"},
        ]), encoding="utf-8")

        articles = load_articles(str(path))

        assert [a.title for a in articles] == ["a"]

    def test_reads_wrapped_list(self, tmp_path):
        """Should accept an object with an articles key."""
        path = tmp_path / "articles.json"
        path.write_text(json.dumps({"articles": [{"title": "a", "link": "l"}]}), encoding="utf-8")
        assert len(load_articles(str(path))) == 1


class TestLoadIssueKeywords:
    """Tests for load_issue_keywords."""

    def test_reads_mapping(self, tmp_path):
        """Should accept keyword lists and single keywords."""
        path = tmp_path / "issues.json"
        path.write_text(json.dumps({"기후변화": ["탄소", "온실가스"], "안전": "산재"}), encoding="utf-8")

        assert load_issue_keywords(str(path)) == {"기후변화": ["탄소", "온실가스"], "안전": ["산재"]}

    def test_rejects_list(self, tmp_path):
        """Should raise ValueError for a top-level list."""
        path = tmp_path / "issues.json"
        path.write_text(json.dumps(["탄소"]), encoding="utf-8")
        with pytest.raises(ValueError):
            load_issue_keywords(str(path))


class TestRecommendIssues:
    """Tests for recommend_issues."""

    def test_search_then_analyze(self, fake_oracle, make_article, make_analysis):
        """Should analyze the articles returned by the search."""
        fake_oracle.analyses["a"] = make_analysis(["윤리경영"], "negative", ["G"])
        search_client = MagicMock()
        search_client.search = AsyncMock(return_value=[make_article("a"), make_article("b")])

        result = asyncio.run(recommend_issues(
            "키워드",
            PipelineSettings(),
            period="m3",
            max_results=2,
            search_client=search_client,
            pipeline=offline_pipeline(fake_oracle),
        ))

        search_client.search.assert_awaited_once_with("키워드", max_results=2, period="m3")
        assert [i.name for i in result.ranking.issues] == ["윤리경영"]

    def test_invalid_period(self, fake_oracle):
        """Should raise for an unsupported period."""
        with pytest.raises(InvalidPeriodError):
            asyncio.run(recommend_issues(
                "k",
                PipelineSettings(),
                period="x",
                search_client=NewsSearchClient(),
                pipeline=offline_pipeline(fake_oracle),
            ))


class TestSummarize:
    """Tests for summarize."""

    def test_json_ready(self, fake_oracle, make_article, make_analysis):
        """Should produce a JSON-serializable summary."""
        fake_oracle.analyses["a"] = make_analysis(["x"], relevance=4)
        result = asyncio.run(offline_pipeline(fake_oracle).analyze([make_article("a")]))

        summary = summarize(result)

        json.dumps(summary)
        assert summary["issues"][0]["name"] == "x"
        assert summary["deduplication"]["degraded"] is True
        assert summary["relevant_news"][0]["title"] == "a"

    def test_media_scores_for_issue_keywords(self, fake_oracle, make_article, make_analysis):
        """Should score each issue against the classified articles."""
        fake_oracle.analyses["탄소 배출 논란"] = make_analysis(["기후"], "negative", ["E"])
        fake_oracle.analyses["신제품 출시"] = make_analysis(["제품"], "positive", ["S"])
        articles = [make_article("탄소 배출 논란"), make_article("신제품 출시")]
        result = asyncio.run(offline_pipeline(fake_oracle).analyze(articles))

        summary = summarize(result, issue_keywords={"기후변화": ["탄소"]})

        json.dumps(summary, ensure_ascii=False)
        score = summary["media_scores"]["기후변화"]
        assert score["related_news_count"] == 1
        assert score["exposure_rate"] == 50.0
        assert score["negative_rate"] == 100.0
        assert score["score"] == 5

    def test_no_media_scores_without_keywords(self, fake_oracle, make_article, make_analysis):
        """Should leave media scores out when no issue keywords are given."""
        fake_oracle.analyses["a"] = make_analysis(["x"])
        result = asyncio.run(offline_pipeline(fake_oracle).analyze([make_article("a")]))
        assert "media_scores" not in summarize(result)


class TestMain:
    """Tests for the command-line entry point."""

    def test_runs_on_input_file(self, tmp_path, clean_env, capsys):
        """Should print a summary for an input file without credentials."""
        path = tmp_path / "articles.json"
        path.write_text(json.dumps([{"title": "a", "link": "l"}]), encoding="utf-8")

        with patch("media_analysis_function.main.load_dotenv"), \
                patch("media_analysis_function.main.configure_logging"):
            code = main(["--input", str(path)])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["classification_available"] is False

    def test_bad_configuration(self, clean_env):
        """Should exit with status 2 on invalid settings."""
        clean_env.setenv("TOP_N_ISSUES", "many")
        with patch("media_analysis_function.main.load_dotenv"):
            assert main(["--keyword", "k"]) == 2

    def test_scores_issue_keywords(self, tmp_path, clean_env, capsys):
        """Should add media scores when an issues file is given."""
        articles = tmp_path / "articles.json"
        articles.write_text(json.dumps([
            {"title": "탄소 감축 발표", "link": "l1"},
            {"title": "신제품 출시", "link": "l2"},
        ]), encoding="utf-8")
        issues = tmp_path / "issues.json"
        issues.write_text(json.dumps({"기후변화": ["탄소"]}, ensure_ascii=False), encoding="utf-8")

        with patch("media_analysis_function.main.load_dotenv"), \
                patch("media_analysis_function.main.configure_logging"):
            code = main(["--input", str(articles), "--issues", str(issues)])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        score = output["media_scores"]["기후변화"]
        assert score["details"]["total_news"] == 2
        assert score["related_news_count"] == 0
        assert score["score"] == 1

    def test_bad_issues_file(self, tmp_path, clean_env):
        """Should exit with status 2 when the issues file is not an object."""
        articles = tmp_path / "articles.json"
        articles.write_text(json.dumps([{"title": "a", "link": "l"}]), encoding="utf-8")
        issues = tmp_path / "issues.json"
        issues.write_text(json.dumps(["탄소"]), encoding="utf-8")

        with patch("media_analysis_function.main.load_dotenv"), \
                patch("media_analysis_function.main.configure_logging"):
            assert main(["--input", str(articles), "--issues", str(issues)]) == 2
