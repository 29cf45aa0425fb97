"""Product and match repositories.

The product catalog is owned elsewhere; ProductRepository only reads it.
MatchRepository owns ``trend_product_matches`` and performs every write
for one keyword inside a single transaction.
"""

import logging
from typing import Any

from trend_tracker.matching.schemas import (
    KeywordProductMatch,
    MatchType,
    Product,
    ProductMatchCandidate,
)
from trend_tracker.storage.database import Database

logger = logging.getLogger(__name__)


class ProductNotFoundError(LookupError):
    """Raised when an operation references a product id that does not exist."""

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product {product_id!r} not found")
        self.product_id = product_id


class MatchNotFoundError(LookupError):
    """Raised when no link exists between a keyword and a product."""

    def __init__(self, keyword_id: int, product_id: int) -> None:
        super().__init__(f"No match between keyword {keyword_id!r} and product {product_id!r}")
        self.keyword_id = keyword_id
        self.product_id = product_id


class ProductRepository:
    """Read-only access to the product catalog."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_by_id(self, product_id: int) -> Product | None:
        row = await self._db.fetchrow("SELECT * FROM products WHERE id = $1", product_id)
        return _row_to_product(row) if row is not None else None

    async def list_active(self, category: str | None = None) -> list[Product]:
        """
        Get active products, optionally restricted to one category.

        Ordered by id so that equal match scores rank deterministically.
        """
        if category is None:
            rows = await self._db.fetch(
                "SELECT * FROM products WHERE is_active ORDER BY id"
            )
        else:
            rows = await self._db.fetch(
                "SELECT * FROM products WHERE is_active AND category = $1 ORDER BY id",
                category,
            )
        return [_row_to_product(row) for row in rows]


class MatchRepository:
    """Repository for keyword-product links."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def apply_matches(
        self,
        keyword_id: int,
        candidates: list[ProductMatchCandidate],
        clear_existing: bool = False,
        preserve_manual: bool = True,
    ) -> tuple[int, int]:
        """
        Write a keyword's match candidates in one transaction.

        Args:
            keyword_id: Keyword being matched.
            candidates: Scored products to persist.
            clear_existing: Delete the keyword's prior links first (manual
                links survive when ``preserve_manual``).
            preserve_manual: Never overwrite a manual link.

        Returns:
            (created, updated)
        """
        created = 0
        updated = 0

        async with self._db.transaction() as conn:
            if clear_existing:
                if preserve_manual:
                    await conn.execute(
                        "DELETE FROM trend_product_matches "
                        "WHERE keyword_id = $1 AND NOT is_manual",
                        keyword_id,
                    )
                else:
                    await conn.execute(
                        "DELETE FROM trend_product_matches WHERE keyword_id = $1",
                        keyword_id,
                    )

            for candidate in candidates:
                existing = await conn.fetchrow(
                    """
                    SELECT id, is_manual FROM trend_product_matches
                    WHERE keyword_id = $1 AND product_id = $2
                    """,
                    keyword_id,
                    candidate.product_id,
                )

                if existing is None:
                    await conn.execute(
                        """
                        INSERT INTO trend_product_matches (
                            keyword_id, product_id, match_score, match_type
                        ) VALUES ($1, $2, $3, $4)
                        """,
                        keyword_id,
                        candidate.product_id,
                        candidate.score,
                        candidate.match_type.value,
                    )
                    created += 1
                    continue

                if preserve_manual and existing["is_manual"]:
                    continue

                await conn.execute(
                    """
                    UPDATE trend_product_matches
                    SET match_score = $2, match_type = $3, is_manual = FALSE,
                        updated_at = NOW()
                    WHERE id = $1
                    """,
                    existing["id"],
                    candidate.score,
                    candidate.match_type.value,
                )
                updated += 1

        return created, updated

    async def set_manual(
        self,
        keyword_id: int,
        product_id: int,
        score: float = 100.0,
    ) -> KeywordProductMatch:
        """Create or convert a link into an operator-confirmed manual match."""
        sql = """
            INSERT INTO trend_product_matches (
                keyword_id, product_id, match_score, match_type, is_manual
            ) VALUES ($1, $2, $3, $4, TRUE)
            ON CONFLICT (keyword_id, product_id) DO UPDATE SET
                match_score = EXCLUDED.match_score,
                match_type  = EXCLUDED.match_type,
                is_manual   = TRUE,
                updated_at  = NOW()
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql, keyword_id, product_id, score, MatchType.MANUAL.value
        )
        return _row_to_match(row)

    async def list_for_keyword(self, keyword_id: int) -> list[KeywordProductMatch]:
        """Get a keyword's links, strongest first."""
        sql = """
            SELECT * FROM trend_product_matches
            WHERE keyword_id = $1
            ORDER BY match_score DESC, product_id ASC
        """
        rows = await self._db.fetch(sql, keyword_id)
        return [_row_to_match(row) for row in rows]

    async def remove(self, keyword_id: int, product_id: int) -> bool:
        """Delete one link, manual or not. Returns False if there was none."""
        sql = """
            DELETE FROM trend_product_matches
            WHERE keyword_id = $1 AND product_id = $2
            RETURNING id
        """
        async with self._db.transaction() as conn:
            row = await conn.fetchrow(sql, keyword_id, product_id)
        return row is not None


# ── Helpers ─────────────────────────────────────────────────


def _row_to_product(row: Any) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        normalized_name=row["normalized_name"],
        category=row.get("category"),
        is_active=row.get("is_active", True),
    )


def _row_to_match(row: Any) -> KeywordProductMatch:
    return KeywordProductMatch(
        id=row["id"],
        keyword_id=row["keyword_id"],
        product_id=row["product_id"],
        match_score=float(row["match_score"]),
        match_type=MatchType(row["match_type"]),
        is_manual=row.get("is_manual", False),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
