"""Schema definitions for keyword-to-product matching.

Product mirrors the catalog's ``products`` table (read-only here).
KeywordProductMatch maps 1:1 to ``trend_product_matches``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MatchType(str, Enum):
    """How a keyword was linked to a product."""

    EXACT = "exact"
    SIMILARITY = "similarity"
    PARTIAL = "partial"
    BRAND = "brand"
    CATEGORY = "category"
    MANUAL = "manual"


class MatchConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class Product:
    """
    A catalog product as seen by the matcher.

    Attributes:
        id: Catalog identifier.
        name: Display name.
        normalized_name: Catalog-provided comparison key.
        category: Optional category key (e.g., "electronics").
        is_active: Inactive products are never matched.
    """

    id: int
    name: str
    normalized_name: str
    category: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class MatchResult:
    """Outcome of scoring one keyword against one product."""

    score: float
    match_type: MatchType
    confidence: MatchConfidence


@dataclass
class ProductMatchCandidate:
    """A scored product for a keyword, ready to persist."""

    product_id: int
    product_name: str
    score: float
    match_type: MatchType
    confidence: MatchConfidence

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "score": self.score,
            "match_type": self.match_type.value,
            "confidence": self.confidence.value,
        }


@dataclass
class KeywordProductMatch:
    """
    A persisted keyword-product link.

    Unique per (keyword_id, product_id). Rows with ``is_manual`` were
    created by an operator and survive automatic re-matching when the
    caller asks to preserve them.
    """

    keyword_id: int
    product_id: int
    match_score: float
    match_type: MatchType
    is_manual: bool = False
    id: int | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        self.match_type = MatchType(self.match_type)


@dataclass
class MatchRunResult:
    """Match rows written for one keyword."""

    matched: int = 0
    updated: int = 0


@dataclass
class BulkMatchResult:
    """Summary of a matching run over all active keywords."""

    keywords_processed: int = 0
    total_matched: int = 0
    total_updated: int = 0
    errors: list[str] = field(default_factory=list)
