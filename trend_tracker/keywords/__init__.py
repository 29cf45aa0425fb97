"""
Trend keywords and their signal time series.

Components:
- TrendSource: Closed set of keyword origins
- Keyword / KeywordMetric: Dataclasses mapping to trend_keywords / trend_metrics
- KeywordRepository: Registration (dedup by normalized text) and metric upserts
- KeywordNotFoundError: Raised for unknown keyword ids
"""

from trend_tracker.keywords.repository import KeywordNotFoundError, KeywordRepository
from trend_tracker.keywords.schemas import (
    COMMUNITY_SOURCES,
    Keyword,
    KeywordMetric,
    TrendSource,
)

__all__ = [
    "COMMUNITY_SOURCES",
    "Keyword",
    "KeywordMetric",
    "KeywordNotFoundError",
    "KeywordRepository",
    "TrendSource",
]
