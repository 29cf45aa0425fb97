"""
Keyword-to-product matching against the product catalog.

Components:
- MatchingConfig: Tier thresholds, limits, and brand dictionary (MATCHING_*)
- MatchType / MatchConfidence / Product / KeywordProductMatch: Schemas
- ProductRepository: Read-only catalog access
- MatchRepository: Transactional match persistence
- ProductMatcher: Tiered scoring and matching runs
"""

from trend_tracker.matching.brands import DEFAULT_BRAND_KEYWORDS
from trend_tracker.matching.config import MatchingConfig
from trend_tracker.matching.repository import (
    MatchNotFoundError,
    MatchRepository,
    ProductNotFoundError,
    ProductRepository,
)
from trend_tracker.matching.schemas import (
    BulkMatchResult,
    KeywordProductMatch,
    MatchConfidence,
    MatchResult,
    MatchRunResult,
    MatchType,
    Product,
    ProductMatchCandidate,
)
from trend_tracker.matching.service import ProductMatcher

__all__ = [
    "DEFAULT_BRAND_KEYWORDS",
    "BulkMatchResult",
    "KeywordProductMatch",
    "MatchConfidence",
    "MatchNotFoundError",
    "MatchRepository",
    "MatchResult",
    "MatchRunResult",
    "MatchType",
    "MatchingConfig",
    "Product",
    "ProductMatchCandidate",
    "ProductMatcher",
    "ProductNotFoundError",
    "ProductRepository",
]
