"""Schema definitions for trend keywords and their signal metrics.

Maps 1:1 to the ``trend_keywords`` and ``trend_metrics`` tables. A keyword
is created on its first sighting from any source and deduplicated by its
normalized form; metrics are its time series of signal observations.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class TrendSource(str, Enum):
    """Origin of a trend keyword or metric."""

    GOOGLE_TRENDS = "GOOGLE_TRENDS"
    NAVER_DATALAB = "NAVER_DATALAB"
    ZUM = "ZUM"
    DAUM = "DAUM"
    DCINSIDE = "DCINSIDE"
    FMKOREA = "FMKOREA"
    THEQOO = "THEQOO"
    MANUAL = "MANUAL"


# Community hot-post boards: noisy signal, still useful for clustering
COMMUNITY_SOURCES: frozenset[TrendSource] = frozenset({
    TrendSource.DCINSIDE,
    TrendSource.FMKOREA,
    TrendSource.THEQOO,
})


@dataclass
class Keyword:
    """
    A tracked trend keyword from the trend_keywords table.

    Attributes:
        id: Database identifier.
        keyword: Raw text as first seen.
        normalized_keyword: Unique comparison key (see normalize_keyword).
        source: Source that first reported the keyword.
        category: Optional catalog category tag (e.g., "electronics").
        is_active: False once retired; keywords are never hard-deleted.
        created_at: First sighting.
    """

    id: int
    keyword: str
    normalized_keyword: str
    source: TrendSource
    category: str | None = None
    is_active: bool = True
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        self.source = TrendSource(self.source)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "keyword": self.keyword,
            "normalized_keyword": self.normalized_keyword,
            "source": self.source.value,
            "category": self.category,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class KeywordMetric:
    """
    One signal observation for a keyword.

    Primary key is (keyword_id, source, collected_at); writing the same
    triple again overwrites the signal instead of adding a row.

    Attributes:
        keyword_id: Parent keyword.
        source: Source that produced the observation.
        collected_at: Collection instant (timezone-aware).
        search_volume: Signal strength, conventionally 0-100.
        source_rank: Position reported by the source, if any.
    """

    keyword_id: int
    source: TrendSource
    collected_at: datetime
    search_volume: float
    source_rank: int | None = None

    def __post_init__(self) -> None:
        self.source = TrendSource(self.source)
        if self.search_volume < 0:
            raise ValueError(
                f"Invalid search_volume {self.search_volume}. Must be >= 0."
            )
