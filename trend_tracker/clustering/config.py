"""
Keyword clustering configuration.

Parameter Tuning Guide:
    - similarity_threshold: Minimum blended similarity for a keyword to join
      a cluster or to be grouped with a founding keyword. 0.7 groups spacing
      and typo variants without merging unrelated short keywords. Lower
      values merge more aggressively.
    - member_sample_size: How many of a cluster's strongest members are
      compared against a candidate. Larger samples are stricter for
      heterogeneous clusters and slower.
    - max_cluster_size: Cap on members added when a cluster is founded.
    - source_weights: Trust multiplier per source used by cluster scoring.
      Search-volume feeds weigh more than community boards and manual entry.
"""

from types import MappingProxyType
from typing import Mapping

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trend_tracker.keywords.schemas import TrendSource

DEFAULT_SOURCE_WEIGHTS: Mapping[TrendSource, float] = MappingProxyType({
    TrendSource.GOOGLE_TRENDS: 1.2,
    TrendSource.NAVER_DATALAB: 1.1,
    TrendSource.ZUM: 1.0,
    TrendSource.DCINSIDE: 0.9,
    TrendSource.FMKOREA: 0.9,
    TrendSource.THEQOO: 0.9,
    TrendSource.DAUM: 0.8,
    TrendSource.MANUAL: 0.5,
})


class ClusterConfig(BaseSettings):
    """
    Configuration for the keyword clustering service.

    All settings can be overridden via environment variables prefixed with
    CLUSTERING_. Instances are frozen; build a new one to change a value.

    Example:
        CLUSTERING_SIMILARITY_THRESHOLD=0.75
        CLUSTERING_MAX_CLUSTER_SIZE=30
    """

    model_config = SettingsConfigDict(
        env_prefix="CLUSTERING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    similarity_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum similarity to join a cluster or found one together.",
    )
    min_cluster_size: int = Field(
        default=2,
        ge=1,
        description="Advisory only. Founding requires at least one sibling; "
        "existing clusters are not dissolved when they shrink.",
    )
    max_cluster_size: int = Field(
        default=50,
        ge=1,
        description="Maximum members added when a cluster is founded or merged into.",
    )
    member_sample_size: int = Field(
        default=5,
        ge=1,
        description="Top members (by stored similarity) compared against a candidate.",
    )
    batch_size: int = Field(
        default=1000,
        ge=1,
        description="Unclustered keywords processed per run, newest first.",
    )

    # Cluster scoring (read path)
    source_weights: Mapping[TrendSource, float] = Field(
        default=DEFAULT_SOURCE_WEIGHTS,
        validate_default=True,
        description="Trust multiplier per source for cluster scoring.",
    )
    default_source_weight: float = Field(
        default=1.0,
        gt=0.0,
        description="Weight for sources missing from source_weights.",
    )
    cross_source_bonus: float = Field(
        default=5.0,
        ge=0.0,
        description="Points added per distinct source beyond the first.",
    )
    max_cluster_score: float = Field(
        default=125.0,
        gt=0.0,
        description="Upper bound on a cluster's combined score.",
    )

    @field_validator("source_weights", mode="after")
    @classmethod
    def _freeze_weights(cls, v: Mapping[TrendSource, float]) -> Mapping[TrendSource, float]:
        return MappingProxyType(dict(v))

    @model_validator(mode="after")
    def _check_sizes(self) -> "ClusterConfig":
        if self.min_cluster_size > self.max_cluster_size:
            raise ValueError(
                f"min_cluster_size ({self.min_cluster_size}) cannot exceed "
                f"max_cluster_size ({self.max_cluster_size})"
            )
        return self

    def weight_for(self, source: TrendSource) -> float:
        """Trust weight for a source."""
        return self.source_weights.get(source, self.default_source_weight)
