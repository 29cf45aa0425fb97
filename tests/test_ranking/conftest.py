"""Shared fixtures for ranking tests."""

from datetime import datetime, timedelta, timezone

import pytest

from trend_tracker.keywords.schemas import Keyword, KeywordMetric, TrendSource
from trend_tracker.ranking.periods import PeriodKey
from trend_tracker.ranking.schemas import RankingEntry, RankingPeriod
from trend_tracker.ranking.service import RankingGenerator
from trend_tracker.text.normalizer import normalize_keyword

RANK_NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class InMemoryKeywordStore:
    """The slice of KeywordRepository the ranking generator reads."""

    def __init__(self) -> None:
        self.keywords: list[Keyword] = []
        self.metrics: dict[int, list[KeywordMetric]] = {}
        self.product_counts: dict[int, int] = {}
        self.failing: set[int] = set()

    def add(
        self,
        text: str,
        source: TrendSource = TrendSource.GOOGLE_TRENDS,
        signals: list[tuple[float, datetime]] | None = None,
        product_count: int = 0,
    ) -> Keyword:
        keyword_id = len(self.keywords) + 1
        kw = Keyword(
            id=keyword_id,
            keyword=text,
            normalized_keyword=normalize_keyword(text),
            source=source,
            created_at=RANK_NOW - timedelta(days=30) + timedelta(minutes=keyword_id),
        )
        self.keywords.append(kw)
        self.metrics[keyword_id] = [
            KeywordMetric(
                keyword_id=keyword_id,
                source=source,
                collected_at=at,
                search_volume=volume,
            )
            for volume, at in (signals or [])
        ]
        self.product_counts[keyword_id] = product_count
        return kw

    async def list_active(self, exclude_sources=None) -> list[Keyword]:
        excluded = set(exclude_sources or [])
        rows = [k for k in self.keywords if k.is_active and k.source not in excluded]
        rows.sort(key=lambda k: (k.created_at, k.id), reverse=True)
        return rows

    async def get_recent_metrics(self, keyword_id: int, limit: int = 30) -> list[KeywordMetric]:
        if keyword_id in self.failing:
            raise RuntimeError("metrics unavailable")
        rows = sorted(self.metrics.get(keyword_id, []), key=lambda m: m.collected_at, reverse=True)
        return rows[:limit]

    async def count_active_matches(self, keyword_id: int) -> int:
        return self.product_counts.get(keyword_id, 0)


class InMemoryRankingStore:
    """RankingRepository stand-in keyed by PeriodKey."""

    def __init__(self) -> None:
        self.periods: dict[PeriodKey, RankingPeriod] = {}
        self.entries: dict[int, list[RankingEntry]] = {}

    async def find_period(self, key: PeriodKey) -> RankingPeriod | None:
        return self.periods.get(key)

    async def get_or_create_period(self, key, started_at, ended_at) -> RankingPeriod:
        if key not in self.periods:
            self.periods[key] = RankingPeriod(
                id=len(self.periods) + 1,
                period_kind=key.kind,
                year=key.year,
                month=key.month,
                day=key.day,
                started_at=started_at,
                ended_at=ended_at,
            )
        return self.periods[key]

    async def get_ranks(self, period_id: int) -> dict[int, int]:
        return {e.keyword_id: e.rank for e in self.entries.get(period_id, [])}

    async def replace_entries(self, period_id: int, entries: list[RankingEntry]) -> int:
        self.entries[period_id] = [
            RankingEntry(
                keyword_id=e.keyword_id,
                rank=e.rank,
                previous_rank=e.previous_rank,
                score=e.score,
                search_volume=e.search_volume,
                product_count=e.product_count,
                period_id=period_id,
            )
            for e in entries
        ]
        return len(entries)

    def seed(self, key: PeriodKey, ranks: dict[int, int]) -> RankingPeriod:
        """Store a finished leaderboard for ``key``."""
        period = RankingPeriod(
            id=len(self.periods) + 1,
            period_kind=key.kind,
            year=key.year,
            month=key.month,
            day=key.day,
            started_at=RANK_NOW,
            ended_at=RANK_NOW,
        )
        self.periods[key] = period
        self.entries[period.id] = [
            RankingEntry(keyword_id=kid, rank=rank, score=0.0, search_volume=0.0, period_id=period.id)
            for kid, rank in ranks.items()
        ]
        return period


@pytest.fixture
def rank_now():
    return RANK_NOW


@pytest.fixture
def keyword_store():
    return InMemoryKeywordStore()


@pytest.fixture
def ranking_store():
    return InMemoryRankingStore()


@pytest.fixture
def generator(keyword_store, ranking_store):
    return RankingGenerator(keyword_store, ranking_store)
