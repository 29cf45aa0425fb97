"""Configuration for keyword-to-product matching.

The tier thresholds and score ranges below are empirically tuned. They
are exposed as settings for experimentation; the defaults are what the
stored match scores were produced with.
"""

from types import MappingProxyType
from typing import Mapping

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trend_tracker.matching.brands import DEFAULT_BRAND_KEYWORDS


class MatchingConfig(BaseSettings):
    """
    Configuration for the ProductMatcher.

    All settings can be overridden via ``MATCHING_*`` environment variables
    (e.g., ``MATCHING_MIN_SCORE=40``). Instances are frozen.
    """

    model_config = SettingsConfigDict(
        env_prefix="MATCHING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Similarity tier
    similarity_floor: float = Field(default=0.85, ge=0.0, le=1.0)
    """Minimum Jaro-Winkler similarity for the similarity tier."""

    high_similarity: float = Field(default=0.92, ge=0.0, le=1.0)
    """Similarity at or above which the similarity tier is high confidence."""

    similarity_base_score: float = 60.0
    similarity_slope: float = 233.33
    similarity_max_score: float = 95.0

    # Brand / category tiers
    brand_high_overlap: float = Field(default=0.3, ge=0.0, le=1.0)
    """Token overlap at or above which a brand match is medium confidence."""

    category_min_overlap: float = Field(default=0.2, ge=0.0, le=1.0)
    """Minimum token overlap for the category tier."""

    # Candidate selection
    min_score: float = Field(default=30.0, ge=0.0, le=100.0)
    """Minimum match score kept as a candidate."""

    search_limit: int = Field(default=10, ge=1)
    """Default number of candidates for ad-hoc product search."""

    per_keyword_limit: int = Field(default=20, ge=1)
    """Candidates persisted per keyword by matching runs."""

    brand_keywords: Mapping[str, tuple[str, ...]] = Field(
        default=DEFAULT_BRAND_KEYWORDS,
        validate_default=True,
        description="Category -> known brand terms for the brand tier.",
    )

    @field_validator("brand_keywords", mode="after")
    @classmethod
    def _freeze_brands(cls, v: Mapping[str, tuple[str, ...]]) -> Mapping[str, tuple[str, ...]]:
        return MappingProxyType({category: tuple(brands) for category, brands in v.items()})
