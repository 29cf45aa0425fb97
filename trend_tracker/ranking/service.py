"""
Trend ranking generation.

Each eligible keyword gets a bounded score from four factors:

    base         latest signal, capped at 100                 0-100
    recency      hours since the latest metric                0-10
    consistency  metrics among the latest 30 observations     0-10
    product      active catalog products linked to it         0-5

Keywords are sorted by total score (stable, so ties keep the order the
keyword store returned them in), ranked 1..N, and compared with the
previous period's ranks.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from trend_tracker.keywords.repository import KeywordRepository
from trend_tracker.keywords.schemas import Keyword, KeywordMetric
from trend_tracker.ranking.config import RankingConfig
from trend_tracker.ranking.periods import (
    period_bounds,
    previous_period_key,
    resolve_period_key,
)
from trend_tracker.ranking.repository import RankingRepository
from trend_tracker.ranking.schemas import (
    KeywordScore,
    PeriodKind,
    RankingEntry,
    RankingRunResult,
)

logger = logging.getLogger(__name__)


def _points_within(value: float, tiers: tuple[tuple[float, float], ...]) -> float:
    for threshold, points in tiers:
        if value <= threshold:
            return points
    return 0.0


def _points_at_least(value: float, tiers: tuple[tuple[int, float], ...]) -> float:
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0.0


def describe_ranking_method(config: RankingConfig) -> dict[str, Any]:
    """Describe how scores are built, for display next to a leaderboard."""
    recency_max = max((p for _, p in config.recency_tiers), default=0)
    consistency_max = max((p for _, p in config.consistency_tiers), default=0)
    product_max = max((p for _, p in config.product_tiers), default=0)

    return {
        "title": "Trend keyword ranking method",
        "description": (
            "Keyword ranks combine several factors into one score, "
            f"out of a maximum of {config.max_score:g} points."
        ),
        "max_score": config.max_score,
        "factors": [
            {
                "name": "search_volume",
                "max_points": config.max_base_score,
                "description": "Latest search interest index reported by the trend sources.",
            },
            {
                "name": "recency",
                "max_points": recency_max,
                "description": (
                    "More recently collected data scores higher "
                    f"(within {config.recency_tiers[0][0]:g} hours: +{recency_max:g})."
                    if config.recency_tiers
                    else "Disabled."
                ),
            },
            {
                "name": "consistency",
                "max_points": consistency_max,
                "description": (
                    "Keywords observed repeatedly earn a bonus "
                    f"({config.consistency_tiers[0][0]}+ collections: +{consistency_max:g})."
                    if config.consistency_tiers
                    else "Disabled."
                ),
            },
            {
                "name": "product_matches",
                "max_points": product_max,
                "description": (
                    "Keywords linked to more catalog products earn a bonus "
                    f"({config.product_tiers[0][0]}+ products: +{product_max:g})."
                    if config.product_tiers
                    else "Disabled."
                ),
            },
        ],
    }


class RankingGenerator:
    """
    Period leaderboard generation.

    Pure computation:
      - ``compute_keyword_score``: four-factor score for one keyword
      - ``rank_scores``: order scores into ranked entries

    Async operations (repository-backed):
      - ``generate_rankings``: build and store one period's leaderboard
      - ``generate_all_rankings``: daily and monthly for today
    """

    def __init__(
        self,
        keyword_repo: KeywordRepository,
        ranking_repo: RankingRepository,
        config: RankingConfig | None = None,
    ) -> None:
        self._keywords = keyword_repo
        self._rankings = ranking_repo
        self._config = config or RankingConfig()

    @property
    def config(self) -> RankingConfig:
        return self._config

    # ── Scoring ─────────────────────────────────────────────

    def compute_keyword_score(
        self,
        keyword: Keyword,
        metrics: list[KeywordMetric],
        product_count: int,
        now: datetime,
    ) -> KeywordScore | None:
        """
        Score one keyword.

        Args:
            keyword: Keyword being scored.
            metrics: Its recent metrics, any order.
            product_count: Active products linked to the keyword.
            now: Reference time for the recency bonus (timezone-aware).

        Returns:
            KeywordScore, or None if the keyword has no metrics.
        """
        if not metrics:
            return None

        cfg = self._config
        latest = max(metrics, key=lambda m: m.collected_at)
        hours_since = (now - latest.collected_at).total_seconds() / 3600
        metric_count = min(len(metrics), cfg.metric_lookback)

        return KeywordScore(
            keyword_id=keyword.id,
            keyword=keyword.keyword,
            base_score=min(max(latest.search_volume, 0.0), cfg.max_base_score),
            recency_bonus=_points_within(hours_since, cfg.recency_tiers),
            consistency_bonus=_points_at_least(metric_count, cfg.consistency_tiers),
            product_bonus=_points_at_least(product_count, cfg.product_tiers),
            search_volume=latest.search_volume,
            product_count=product_count,
            metric_count=metric_count,
            latest_metric_at=latest.collected_at,
        )

    def rank_scores(
        self,
        scores: list[KeywordScore],
        previous_ranks: dict[int, int],
    ) -> list[RankingEntry]:
        """
        Turn scores into 1-based ranked entries.

        Args:
            scores: Keyword scores in eligibility order.
            previous_ranks: keyword_id -> rank in the previous period.

        Returns:
            Entries ordered by rank. Equal scores keep input order.
        """
        ordered = sorted(scores, key=lambda s: s.total_score, reverse=True)
        return [
            RankingEntry(
                keyword_id=score.keyword_id,
                rank=position,
                previous_rank=previous_ranks.get(score.keyword_id),
                score=score.total_score,
                search_volume=score.search_volume,
                product_count=score.product_count,
            )
            for position, score in enumerate(ordered, start=1)
        ]

    # ── Generation ──────────────────────────────────────────

    async def generate_rankings(
        self,
        period_kind: PeriodKind | str,
        year: int | None = None,
        month: int | None = None,
        day: int | None = None,
        now: datetime | None = None,
    ) -> RankingRunResult:
        """
        Build and store the leaderboard for one period.

        Missing calendar fields default to ``now`` in the configured UTC
        offset. Regenerating a period replaces its entries.

        Raises:
            ValueError: Unknown period kind or invalid calendar fields,
                before anything is written.
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        offset = self._config.utc_offset_hours
        key = resolve_period_key(period_kind, year, month, day, now=now, utc_offset_hours=offset)
        started_at, ended_at = period_bounds(key, offset)

        period = await self._rankings.get_or_create_period(key, started_at, ended_at)
        result = RankingRunResult(period_id=period.id, period_kind=key.kind)

        previous_ranks: dict[int, int] = {}
        prev_key = previous_period_key(key)
        if prev_key is not None:
            previous = await self._rankings.find_period(prev_key)
            if previous is not None:
                previous_ranks = await self._rankings.get_ranks(previous.id)

        keywords = await self._keywords.list_active(
            exclude_sources=self._config.excluded_sources
        )

        scores: list[KeywordScore] = []
        for keyword in keywords:
            try:
                metrics = await self._keywords.get_recent_metrics(
                    keyword.id, limit=self._config.metric_lookback
                )
                if not metrics:
                    continue
                product_count = await self._keywords.count_active_matches(keyword.id)
                score = self.compute_keyword_score(keyword, metrics, product_count, now)
                if score is not None:
                    scores.append(score)
            except Exception as e:
                logger.error(f"Failed to score keyword {keyword.id}: {e}")
                result.errors.append(f"Failed to calculate score for keyword {keyword.id}: {e}")

        entries = self.rank_scores(scores, previous_ranks)
        result.rankings_created = await self._rankings.replace_entries(period.id, entries)

        logger.info(
            f"Generated {key.kind.value} ranking for period {period.id}: "
            f"{result.rankings_created} entries, {len(result.errors)} errors"
        )
        return result

    async def generate_all_rankings(
        self, now: datetime | None = None
    ) -> dict[PeriodKind, RankingRunResult]:
        """Generate the daily and monthly leaderboards containing ``now``."""
        now = now or datetime.now(timezone.utc)
        return {
            PeriodKind.DAILY: await self.generate_rankings(PeriodKind.DAILY, now=now),
            PeriodKind.MONTHLY: await self.generate_rankings(PeriodKind.MONTHLY, now=now),
        }

    def ranking_method_description(self) -> dict[str, Any]:
        return describe_ranking_method(self._config)
