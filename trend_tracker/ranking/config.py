"""Configuration for trend ranking generation."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trend_tracker.keywords.schemas import COMMUNITY_SOURCES, TrendSource

# (threshold, points), checked in order; first satisfied tier wins
DEFAULT_RECENCY_TIERS: tuple[tuple[float, float], ...] = (
    (6, 10), (24, 7), (72, 4), (168, 2),
)
DEFAULT_CONSISTENCY_TIERS: tuple[tuple[int, float], ...] = (
    (20, 10), (10, 7), (5, 4), (2, 2),
)
DEFAULT_PRODUCT_TIERS: tuple[tuple[int, float], ...] = (
    (5, 5), (3, 3), (1, 1),
)


class RankingConfig(BaseSettings):
    """
    Configuration for the RankingGenerator.

    Score = min(signal, max_base_score) + recency + consistency + product
    bonus. With the defaults the maximum is 100 + 10 + 10 + 5 = 125.

    All settings can be overridden via ``RANKING_*`` environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="RANKING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    excluded_sources: frozenset[TrendSource] = Field(
        default=COMMUNITY_SOURCES,
        description="Sources whose keywords never enter the leaderboard",
    )

    metric_lookback: int = Field(default=30, ge=1)
    """Most recent metrics considered for the consistency bonus."""

    max_base_score: float = Field(default=100.0, gt=0.0)

    utc_offset_hours: int = Field(default=0, ge=-12, le=14)
    """Fixed offset in which calendar days, months and years are cut."""

    recency_tiers: tuple[tuple[float, float], ...] = DEFAULT_RECENCY_TIERS
    """(max hours since latest metric, points)."""

    consistency_tiers: tuple[tuple[int, float], ...] = DEFAULT_CONSISTENCY_TIERS
    """(min metric count, points)."""

    product_tiers: tuple[tuple[int, float], ...] = DEFAULT_PRODUCT_TIERS
    """(min active product matches, points)."""

    @field_validator("recency_tiers")
    @classmethod
    def _ascending_hours(cls, v: tuple[tuple[float, float], ...]):
        hours = [h for h, _ in v]
        if hours != sorted(hours):
            raise ValueError("recency_tiers must be ordered by ascending hours")
        return v

    @field_validator("consistency_tiers", "product_tiers")
    @classmethod
    def _descending_counts(cls, v: tuple[tuple[int, float], ...]):
        counts = [c for c, _ in v]
        if counts != sorted(counts, reverse=True):
            raise ValueError("count tiers must be ordered by descending threshold")
        return v

    @property
    def max_score(self) -> float:
        """Highest total score the tiers allow."""
        return (
            self.max_base_score
            + max((p for _, p in self.recency_tiers), default=0)
            + max((p for _, p in self.consistency_tiers), default=0)
            + max((p for _, p in self.product_tiers), default=0)
        )
