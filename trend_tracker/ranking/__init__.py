"""
Period-based trend leaderboards.

Components:
- RankingConfig: Excluded sources, lookback, offset, bonus tiers (RANKING_*)
- PeriodKind / RankingPeriod / RankingEntry / KeywordScore: Schemas
- periods: Pure calendar math for period keys and bounds
- RankingRepository: Period and entry persistence
- RankingGenerator: Scoring, ranking, and period regeneration
"""

from trend_tracker.ranking.config import RankingConfig
from trend_tracker.ranking.periods import (
    PeriodKey,
    period_bounds,
    previous_period_key,
    resolve_period_key,
)
from trend_tracker.ranking.repository import RankingRepository
from trend_tracker.ranking.schemas import (
    KeywordScore,
    PeriodKind,
    RankingEntry,
    RankingPeriod,
    RankingRunResult,
)
from trend_tracker.ranking.service import RankingGenerator, describe_ranking_method

__all__ = [
    "KeywordScore",
    "PeriodKey",
    "PeriodKind",
    "RankingConfig",
    "RankingEntry",
    "RankingGenerator",
    "RankingPeriod",
    "RankingRepository",
    "RankingRunResult",
    "describe_ranking_method",
    "period_bounds",
    "previous_period_key",
    "resolve_period_key",
]
