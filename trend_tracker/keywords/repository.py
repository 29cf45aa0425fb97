"""Keyword repository for keyword registration and metric time series.

Follows the asyncpg repository pattern: SQL lives here, rows are
converted to dataclasses by module-level helpers.
"""

import logging
from collections.abc import Iterable
from typing import Any

from trend_tracker.keywords.schemas import Keyword, KeywordMetric, TrendSource
from trend_tracker.storage.database import Database
from trend_tracker.text.normalizer import normalize_keyword

logger = logging.getLogger(__name__)


class KeywordNotFoundError(LookupError):
    """Raised when an operation references a keyword id that does not exist."""

    def __init__(self, keyword_id: int) -> None:
        super().__init__(f"Keyword {keyword_id!r} not found")
        self.keyword_id = keyword_id


class KeywordRepository:
    """
    Repository for trend keywords and their metrics.

    Keywords are unique by normalized text. Metrics are unique by
    (keyword_id, source, collected_at) and upserted.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    # ── Keywords ────────────────────────────────────────────

    async def register(
        self,
        keyword: str,
        source: TrendSource | str,
        category: str | None = None,
    ) -> tuple[Keyword, bool]:
        """
        Create a keyword on first sighting, or return the existing one.

        Args:
            keyword: Raw keyword text.
            source: Source reporting the keyword.
            category: Optional category tag.

        Returns:
            Tuple of (keyword, created). ``created`` is False when a keyword
            with the same normalized form already existed.

        Raises:
            ValueError: If the keyword normalizes to an empty string.
        """
        text = keyword.strip()
        normalized = normalize_keyword(text)
        if not normalized:
            raise ValueError(f"Keyword {keyword!r} is empty after normalization")

        source = TrendSource(source)
        sql = """
            INSERT INTO trend_keywords (keyword, normalized_keyword, category, source)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (normalized_keyword) DO NOTHING
            RETURNING *
        """
        row = await self._db.fetchrow(sql, text, normalized, category, source.value)
        if row is not None:
            logger.debug(f"Registered keyword {text!r} from {source.value}")
            return _row_to_keyword(row), True

        existing = await self.get_by_normalized(normalized)
        if existing is None:
            # Lost a race with a concurrent delete; nothing sensible to return
            raise RuntimeError(f"Keyword {normalized!r} vanished during registration")
        return existing, False

    async def get_by_id(self, keyword_id: int) -> Keyword | None:
        """Get a keyword by id."""
        row = await self._db.fetchrow(
            "SELECT * FROM trend_keywords WHERE id = $1", keyword_id
        )
        return _row_to_keyword(row) if row is not None else None

    async def get_by_normalized(self, normalized_keyword: str) -> Keyword | None:
        """Get a keyword by its normalized comparison key."""
        row = await self._db.fetchrow(
            "SELECT * FROM trend_keywords WHERE normalized_keyword = $1",
            normalized_keyword,
        )
        return _row_to_keyword(row) if row is not None else None

    async def deactivate(self, keyword_id: int) -> bool:
        """
        Retire a keyword. Keywords are never hard-deleted.

        Returns:
            True if a keyword was updated, False if not found.
        """
        result = await self._db.execute(
            "UPDATE trend_keywords SET is_active = FALSE, updated_at = NOW() WHERE id = $1",
            keyword_id,
        )
        return not result.endswith(" 0")

    async def list_active(
        self,
        exclude_sources: Iterable[TrendSource] | None = None,
    ) -> list[Keyword]:
        """
        Get all active keywords, newest first.

        Args:
            exclude_sources: Sources whose keywords should be left out.
        """
        excluded = [TrendSource(s).value for s in (exclude_sources or [])]
        sql = """
            SELECT * FROM trend_keywords
            WHERE is_active
              AND NOT (source = ANY($1::text[]))
            ORDER BY created_at DESC, id DESC
        """
        rows = await self._db.fetch(sql, excluded)
        return [_row_to_keyword(row) for row in rows]

    async def list_unclustered(self, limit: int = 1000) -> list[Keyword]:
        """
        Get active keywords without a cluster membership, newest first.

        Args:
            limit: Maximum keywords to return (one clustering batch).
        """
        sql = """
            SELECT k.* FROM trend_keywords k
            WHERE k.is_active
              AND NOT EXISTS (
                  SELECT 1 FROM trend_cluster_members m WHERE m.keyword_id = k.id
              )
            ORDER BY k.created_at DESC, k.id DESC
            LIMIT $1
        """
        rows = await self._db.fetch(sql, limit)
        return [_row_to_keyword(row) for row in rows]

    # ── Metrics ─────────────────────────────────────────────

    async def record_metric(self, metric: KeywordMetric) -> None:
        """
        Upsert a signal observation.

        Idempotent: ON CONFLICT (keyword_id, source, collected_at) overwrites
        the signal and source rank.
        """
        sql = """
            INSERT INTO trend_metrics (
                keyword_id, source, collected_at, search_volume, source_rank
            ) VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (keyword_id, source, collected_at) DO UPDATE SET
                search_volume = EXCLUDED.search_volume,
                source_rank   = EXCLUDED.source_rank
        """
        await self._db.execute(
            sql,
            metric.keyword_id,
            metric.source.value,
            metric.collected_at,
            metric.search_volume,
            metric.source_rank,
        )

    async def get_recent_metrics(
        self,
        keyword_id: int,
        limit: int = 30,
    ) -> list[KeywordMetric]:
        """
        Get the most recent observations for a keyword.

        Returns:
            Up to ``limit`` metrics ordered by collected_at descending.
        """
        sql = """
            SELECT * FROM trend_metrics
            WHERE keyword_id = $1
            ORDER BY collected_at DESC
            LIMIT $2
        """
        rows = await self._db.fetch(sql, keyword_id, limit)
        return [_row_to_metric(row) for row in rows]

    async def get_latest_metric(self, keyword_id: int) -> KeywordMetric | None:
        """Get the newest observation for a keyword, if any."""
        metrics = await self.get_recent_metrics(keyword_id, limit=1)
        return metrics[0] if metrics else None

    async def count_active_matches(self, keyword_id: int) -> int:
        """Count products linked to a keyword that are still active in the catalog."""
        sql = """
            SELECT COUNT(*) FROM trend_product_matches m
            JOIN products p ON p.id = m.product_id
            WHERE m.keyword_id = $1 AND p.is_active
        """
        count = await self._db.fetchval(sql, keyword_id)
        return int(count or 0)


# ── Helpers ─────────────────────────────────────────────────


def _row_to_keyword(row: Any) -> Keyword:
    """Convert an asyncpg Record to a Keyword."""
    return Keyword(
        id=row["id"],
        keyword=row["keyword"],
        normalized_keyword=row["normalized_keyword"],
        source=TrendSource(row["source"]),
        category=row.get("category"),
        is_active=row.get("is_active", True),
        created_at=row["created_at"],
    )


def _row_to_metric(row: Any) -> KeywordMetric:
    """Convert an asyncpg Record to a KeywordMetric."""
    return KeywordMetric(
        keyword_id=row["keyword_id"],
        source=TrendSource(row["source"]),
        collected_at=row["collected_at"],
        search_volume=float(row["search_volume"]),
        source_rank=row.get("source_rank"),
    )
