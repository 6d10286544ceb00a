"""
Configuration for the Media Analysis Function.

All settings come from environment variables; the entry point loads a local
.env file first.
"""

import logging
import os
import sys
from typing import Optional

from pydantic import BaseModel

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = _env_str(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _env_float(name: str, default: float) -> float:
    value = _env_str(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    value = _env_str(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


class PipelineSettings(BaseModel):
    """Runtime configuration for the media analysis pipeline."""

    # Gemini access
    gemini_api_key: Optional[str] = None
    google_cloud_project: Optional[str] = None
    vertex_ai_location: str = "us-central1"
    embedding_model: str = "text-embedding-004"
    classification_model: str = "gemini-2.5-flash-lite"

    # Deduplication
    similarity_threshold: float = 0.85
    time_window_days: float = 2
    cluster_strategy: str = "single_seed"
    embedding_batch_size: int = 100
    embedding_batch_delay: float = 0.3

    # Classification funnel
    quick_filter_batch_size: int = 50
    quick_filter_delay: float = 0.3
    classify_delay: float = 0.5
    two_stage_threshold: int = 100

    # Aggregation
    top_n_issues: int = 10
    normalize_issue_labels: bool = True

    # News search
    google_search_api_key: Optional[str] = None
    google_search_engine_id: Optional[str] = None

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        return cls(
            gemini_api_key=_env_str("GEMINI_API_KEY"),
            google_cloud_project=_env_str("GOOGLE_CLOUD_PROJECT"),
            vertex_ai_location=_env_str("VERTEX_AI_LOCATION", "us-central1"),
            embedding_model=_env_str("EMBEDDING_MODEL", "text-embedding-004"),
            classification_model=_env_str("CLASSIFICATION_MODEL", "gemini-2.5-flash-lite"),
            similarity_threshold=_env_float("SIMILARITY_THRESHOLD", 0.85),
            time_window_days=_env_float("TIME_WINDOW_DAYS", 2),
            cluster_strategy=_env_str("CLUSTER_STRATEGY", "single_seed"),
            embedding_batch_size=_env_int("EMBEDDING_BATCH_SIZE", 100),
            embedding_batch_delay=_env_float("EMBEDDING_BATCH_DELAY", 0.3),
            quick_filter_batch_size=_env_int("QUICK_FILTER_BATCH_SIZE", 50),
            quick_filter_delay=_env_float("QUICK_FILTER_DELAY", 0.3),
            classify_delay=_env_float("CLASSIFY_DELAY", 0.5),
            two_stage_threshold=_env_int("TWO_STAGE_THRESHOLD", 100),
            top_n_issues=_env_int("TOP_N_ISSUES", 10),
            normalize_issue_labels=_env_bool("NORMALIZE_ISSUE_LABELS", True),
            google_search_api_key=_env_str("GOOGLE_SEARCH_API_KEY"),
            google_search_engine_id=_env_str("GOOGLE_SEARCH_ENGINE_ID"),
            log_level=_env_str("LOG_LEVEL", "INFO"),
        )


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging to stdout."""
    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True
    )
