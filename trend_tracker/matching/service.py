"""
Keyword-to-product matching.

Scores a trend keyword against catalog products with a ladder of tiers.
The first tier that applies decides the score, type and confidence:

    exact       normalized keyword == product normalized name   100
    similarity  Jaro-Winkler >= 0.85                            60-95
    partial     case-insensitive containment either way         45-80
    brand       same known brand in keyword and product name    30-50
    category    token Jaccard overlap >= 0.2                    20-40

Scores are rounded to two decimals.
"""

import logging
import re
from collections.abc import Callable, Mapping

from trend_tracker.keywords.repository import KeywordNotFoundError, KeywordRepository
from trend_tracker.keywords.schemas import Keyword
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
from trend_tracker.text.normalizer import normalize_keyword
from trend_tracker.text.similarity import jaro_winkler

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[\s\-_]+")

TierOutcome = tuple[float, MatchConfidence] | None


def tokenize(text: str) -> list[str]:
    """Lowercase and split on whitespace, hyphens and underscores; drop 1-char tokens."""
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) > 1]


def token_overlap(tokens_a: list[str], tokens_b: list[str]) -> float:
    """Jaccard similarity of two token sets."""
    set_a = set(tokens_a)
    set_b = set(tokens_b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def find_brand(
    text: str,
    brand_keywords: Mapping[str, tuple[str, ...]],
    category: str | None = None,
) -> str | None:
    """
    Find the first known brand mentioned in ``text``.

    The given category's brands are checked first, then every category.
    Matching is case-insensitive substring containment.

    Returns:
        The lowercased brand term, or None.
    """
    text_lower = text.lower()

    if category and category in brand_keywords:
        for brand in brand_keywords[category]:
            if brand.lower() in text_lower:
                return brand.lower()

    for brands in brand_keywords.values():
        for brand in brands:
            if brand.lower() in text_lower:
                return brand.lower()

    return None


def _round_score(score: float) -> float:
    return round(score, 2)


class ProductMatcher:
    """
    Links trend keywords to catalog products.

    Pure computation:
      - ``match_score``: tiered score of one keyword against one product

    Async operations (repository-backed):
      - ``find_matching_products``: ad-hoc search over active products
      - ``match_keyword_to_products``: persist candidates for one keyword
      - ``match_all_keywords``: persist candidates for every active keyword
      - ``set_manual_match``: operator-confirmed link
      - ``list_matches``: a keyword's stored links
      - ``remove_match``: delete one link
    """

    def __init__(
        self,
        keyword_repo: KeywordRepository,
        product_repo: ProductRepository,
        match_repo: MatchRepository,
        config: MatchingConfig | None = None,
    ) -> None:
        self._keywords = keyword_repo
        self._products = product_repo
        self._matches = match_repo
        self._config = config or MatchingConfig()

        # Evaluated in order; manual links are never produced by scoring
        self._tiers: tuple[
            tuple[MatchType, Callable[[str, str, Product], TierOutcome]], ...
        ] = (
            (MatchType.EXACT, self._exact_tier),
            (MatchType.SIMILARITY, self._similarity_tier),
            (MatchType.PARTIAL, self._partial_tier),
            (MatchType.BRAND, self._brand_tier),
            (MatchType.CATEGORY, self._category_tier),
        )

    @property
    def config(self) -> MatchingConfig:
        return self._config

    # ── Scoring ─────────────────────────────────────────────

    def match_score(self, keyword: str, product: Product) -> MatchResult | None:
        """
        Score a keyword against one product.

        Args:
            keyword: Raw keyword text.
            product: Catalog product.

        Returns:
            MatchResult from the first applicable tier, or None if no tier
            applies (or the keyword is blank).
        """
        normalized = normalize_keyword(keyword)
        if not normalized:
            return None

        for match_type, tier in self._tiers:
            outcome = tier(keyword, normalized, product)
            if outcome is not None:
                score, confidence = outcome
                return MatchResult(
                    score=_round_score(score),
                    match_type=match_type,
                    confidence=confidence,
                )
        return None

    def _exact_tier(self, keyword: str, normalized: str, product: Product) -> TierOutcome:
        if normalized == product.normalized_name:
            return 100.0, MatchConfidence.HIGH
        return None

    def _similarity_tier(
        self, keyword: str, normalized: str, product: Product
    ) -> TierOutcome:
        cfg = self._config
        sim = jaro_winkler(normalized, product.normalized_name)
        if sim < cfg.similarity_floor:
            return None

        score = cfg.similarity_base_score + (sim - cfg.similarity_floor) * cfg.similarity_slope
        confidence = (
            MatchConfidence.HIGH if sim >= cfg.high_similarity else MatchConfidence.MEDIUM
        )
        return min(cfg.similarity_max_score, _round_score(score)), confidence

    def _partial_tier(self, keyword: str, normalized: str, product: Product) -> TierOutcome:
        keyword_lower = keyword.strip().lower()
        name_lower = product.name.strip().lower()
        if not keyword_lower or not name_lower:
            return None

        if keyword_lower in name_lower:
            ratio = len(keyword_lower) / len(name_lower)
            confidence = MatchConfidence.HIGH if ratio >= 0.5 else MatchConfidence.MEDIUM
            return 50 + ratio * 30, confidence

        if name_lower in keyword_lower:
            ratio = len(name_lower) / len(keyword_lower)
            confidence = MatchConfidence.MEDIUM if ratio >= 0.6 else MatchConfidence.LOW
            return 45 + ratio * 25, confidence

        return None

    def _brand_tier(self, keyword: str, normalized: str, product: Product) -> TierOutcome:
        brands = self._config.brand_keywords
        keyword_brand = find_brand(keyword, brands, product.category)
        if keyword_brand is None:
            return None
        product_brand = find_brand(product.name, brands, product.category)
        if product_brand != keyword_brand:
            return None

        overlap = token_overlap(tokenize(keyword), tokenize(product.name))
        confidence = (
            MatchConfidence.MEDIUM
            if overlap >= self._config.brand_high_overlap
            else MatchConfidence.LOW
        )
        return 30 + overlap * 20, confidence

    def _category_tier(self, keyword: str, normalized: str, product: Product) -> TierOutcome:
        overlap = token_overlap(tokenize(keyword), tokenize(product.name))
        if overlap < self._config.category_min_overlap:
            return None
        return 20 + overlap * 20, MatchConfidence.LOW

    def rank_products(
        self,
        keyword: str,
        products: list[Product],
        limit: int,
        min_score: float,
    ) -> list[ProductMatchCandidate]:
        """
        Score products and keep the best ``limit`` with ``score >= min_score``.

        Sorting is stable, so equal scores keep catalog order.
        """
        candidates: list[ProductMatchCandidate] = []
        for product in products:
            if not product.is_active:
                continue
            result = self.match_score(keyword, product)
            if result is None or result.score < min_score:
                continue
            candidates.append(
                ProductMatchCandidate(
                    product_id=product.id,
                    product_name=product.name,
                    score=result.score,
                    match_type=result.match_type,
                    confidence=result.confidence,
                )
            )

        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates[:limit]

    # ── Persistence ─────────────────────────────────────────

    async def find_matching_products(
        self,
        keyword: str,
        category: str | None = None,
        limit: int | None = None,
        min_score: float | None = None,
    ) -> list[ProductMatchCandidate]:
        """
        Search active products for a keyword.

        Args:
            keyword: Raw keyword text.
            category: Restrict the catalog to one category.
            limit: Maximum candidates (default ``search_limit``).
            min_score: Minimum score, inclusive (default ``min_score``).

        Returns:
            Candidates ordered by score descending.
        """
        products = await self._products.list_active(category)
        return self.rank_products(
            keyword,
            products,
            limit=limit if limit is not None else self._config.search_limit,
            min_score=min_score if min_score is not None else self._config.min_score,
        )

    async def match_keyword_to_products(
        self,
        keyword_id: int,
        clear_existing: bool = False,
        preserve_manual: bool = True,
    ) -> MatchRunResult:
        """
        Match one keyword against the catalog and persist the links.

        Candidates come from the keyword's own category. All writes happen
        in a single transaction.

        Raises:
            KeywordNotFoundError: If the keyword does not exist.
        """
        keyword = await self._keywords.get_by_id(keyword_id)
        if keyword is None:
            raise KeywordNotFoundError(keyword_id)

        products = await self._products.list_active(keyword.category)
        return await self._match_keyword(keyword, products, clear_existing, preserve_manual)

    async def _match_keyword(
        self,
        keyword: Keyword,
        products: list[Product],
        clear_existing: bool,
        preserve_manual: bool,
    ) -> MatchRunResult:
        candidates = self.rank_products(
            keyword.keyword,
            products,
            limit=self._config.per_keyword_limit,
            min_score=self._config.min_score,
        )
        created, updated = await self._matches.apply_matches(
            keyword.id,
            candidates,
            clear_existing=clear_existing,
            preserve_manual=preserve_manual,
        )
        logger.debug(
            f"Matched keyword {keyword.keyword!r}: {len(candidates)} candidates, "
            f"{created} created, {updated} updated"
        )
        return MatchRunResult(matched=created, updated=updated)

    async def match_all_keywords(
        self,
        clear_existing: bool = False,
        preserve_manual: bool = True,
    ) -> BulkMatchResult:
        """
        Match every active keyword.

        A failure on one keyword is logged and recorded in ``errors``; the
        run continues. Failing to load the keyword list propagates.
        """
        result = BulkMatchResult()
        keywords = await self._keywords.list_active()

        # One catalog read per category for the whole run
        catalog: dict[str | None, list[Product]] = {}

        for keyword in keywords:
            try:
                if keyword.category not in catalog:
                    catalog[keyword.category] = await self._products.list_active(
                        keyword.category
                    )
                run = await self._match_keyword(
                    keyword,
                    catalog[keyword.category],
                    clear_existing,
                    preserve_manual,
                )
                result.total_matched += run.matched
                result.total_updated += run.updated
            except Exception as e:
                logger.error(f"Failed to match keyword {keyword.id}: {e}")
                result.errors.append(f"Keyword {keyword.id} ({keyword.keyword}): {e}")
            result.keywords_processed += 1

        logger.info(
            f"Matching run: {result.keywords_processed} keywords, "
            f"{result.total_matched} created, {result.total_updated} updated, "
            f"{len(result.errors)} errors"
        )
        return result

    async def set_manual_match(
        self,
        keyword_id: int,
        product_id: int,
        score: float = 100.0,
    ) -> KeywordProductMatch:
        """
        Record an operator-confirmed link.

        Creates the link or converts an automatic one; either way it is
        flagged manual and survives preserving re-match runs.

        Raises:
            KeywordNotFoundError: If the keyword does not exist.
            ProductNotFoundError: If the product does not exist.
        """
        if await self._keywords.get_by_id(keyword_id) is None:
            raise KeywordNotFoundError(keyword_id)
        if await self._products.get_by_id(product_id) is None:
            raise ProductNotFoundError(product_id)

        match = await self._matches.set_manual(keyword_id, product_id, score)
        logger.info(f"Manual match keyword {keyword_id} -> product {product_id} ({score})")
        return match

    async def list_matches(self, keyword_id: int) -> list[KeywordProductMatch]:
        """
        Get a keyword's stored links, strongest first.

        Raises:
            KeywordNotFoundError: If the keyword does not exist.
        """
        if await self._keywords.get_by_id(keyword_id) is None:
            raise KeywordNotFoundError(keyword_id)
        return await self._matches.list_for_keyword(keyword_id)

    async def remove_match(self, keyword_id: int, product_id: int) -> None:
        """
        Delete the link between a keyword and a product, manual links included.

        Raises:
            KeywordNotFoundError: If the keyword does not exist.
            MatchNotFoundError: If the two are not linked.
        """
        if await self._keywords.get_by_id(keyword_id) is None:
            raise KeywordNotFoundError(keyword_id)
        if not await self._matches.remove(keyword_id, product_id):
            raise MatchNotFoundError(keyword_id, product_id)
        logger.info(f"Removed match keyword {keyword_id} -> product {product_id}")
