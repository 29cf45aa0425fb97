"""Schema definitions for ranking periods and leaderboard entries."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class PeriodKind(str, Enum):
    DAILY = "DAILY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


@dataclass
class RankingPeriod:
    """
    A calendar bucket a leaderboard is computed for.

    ``month`` is None for YEARLY periods and ``day`` is None for MONTHLY and
    YEARLY periods. Unique per (period_kind, year, month, day).
    """

    id: int
    period_kind: PeriodKind
    year: int
    month: int | None
    day: int | None
    started_at: datetime
    ended_at: datetime

    def __post_init__(self) -> None:
        self.period_kind = PeriodKind(self.period_kind)


@dataclass(frozen=True)
class KeywordScore:
    """Score breakdown of one keyword at ranking time."""

    keyword_id: int
    keyword: str
    base_score: float
    recency_bonus: float
    consistency_bonus: float
    product_bonus: float
    search_volume: float
    product_count: int
    metric_count: int
    latest_metric_at: datetime

    @property
    def total_score(self) -> float:
        return (
            self.base_score
            + self.recency_bonus
            + self.consistency_bonus
            + self.product_bonus
        )


@dataclass
class RankingEntry:
    """One leaderboard row."""

    keyword_id: int
    rank: int
    score: float
    search_volume: float
    product_count: int = 0
    previous_rank: int | None = None
    period_id: int | None = None

    @property
    def rank_change(self) -> int | None:
        """Positions gained since the previous period (positive = moved up)."""
        if self.previous_rank is None:
            return None
        return self.previous_rank - self.rank

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyword_id": self.keyword_id,
            "rank": self.rank,
            "previous_rank": self.previous_rank,
            "rank_change": self.rank_change,
            "score": self.score,
            "search_volume": self.search_volume,
            "product_count": self.product_count,
        }


@dataclass
class RankingRunResult:
    period_id: int
    period_kind: PeriodKind
    rankings_created: int = 0
    errors: list[str] = field(default_factory=list)
