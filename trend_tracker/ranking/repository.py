"""Ranking repository for periods and leaderboard entries."""

import logging
from datetime import datetime
from typing import Any

from trend_tracker.ranking.periods import PeriodKey
from trend_tracker.ranking.schemas import PeriodKind, RankingEntry, RankingPeriod
from trend_tracker.storage.database import Database

logger = logging.getLogger(__name__)


class RankingRepository:
    """
    Repository for ranking periods and their entries.

    A period is unique per (kind, year, month, day). Regenerating a period
    replaces its entries atomically.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    # ── Periods ─────────────────────────────────────────────

    async def find_period(self, key: PeriodKey) -> RankingPeriod | None:
        sql = """
            SELECT * FROM trend_ranking_periods
            WHERE period_kind = $1
              AND year = $2
              AND month IS NOT DISTINCT FROM $3
              AND day IS NOT DISTINCT FROM $4
        """
        row = await self._db.fetchrow(sql, key.kind.value, key.year, key.month, key.day)
        return _row_to_period(row) if row is not None else None

    async def get_or_create_period(
        self,
        key: PeriodKey,
        started_at: datetime,
        ended_at: datetime,
    ) -> RankingPeriod:
        """
        Get the period for a key, creating it on first use.

        Concurrent creators converge on one row through the unique bucket
        index.
        """
        sql = """
            INSERT INTO trend_ranking_periods (
                period_kind, year, month, day, started_at, ended_at
            ) VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (period_kind, year, (COALESCE(month, 0)), (COALESCE(day, 0)))
            DO NOTHING
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql, key.kind.value, key.year, key.month, key.day, started_at, ended_at
        )
        if row is not None:
            logger.info(f"Created ranking period {key.kind.value} {key.year}-{key.month}-{key.day}")
            return _row_to_period(row)

        period = await self.find_period(key)
        if period is None:
            raise RuntimeError(f"Ranking period {key} neither created nor found")
        return period

    # ── Entries ─────────────────────────────────────────────

    async def get_ranks(self, period_id: int) -> dict[int, int]:
        """Get keyword_id -> rank for a period."""
        rows = await self._db.fetch(
            "SELECT keyword_id, rank FROM trend_ranking_entries WHERE period_id = $1",
            period_id,
        )
        return {row["keyword_id"]: row["rank"] for row in rows}

    async def list_entries(self, period_id: int, limit: int = 100) -> list[RankingEntry]:
        """Get a period's leaderboard, best rank first."""
        sql = """
            SELECT * FROM trend_ranking_entries
            WHERE period_id = $1
            ORDER BY rank ASC
            LIMIT $2
        """
        rows = await self._db.fetch(sql, period_id, limit)
        return [_row_to_entry(row) for row in rows]

    async def replace_entries(self, period_id: int, entries: list[RankingEntry]) -> int:
        """
        Replace every entry of a period in one transaction.

        Readers see either the old leaderboard or the new one, never a mix.

        Returns:
            Number of entries written.
        """
        async with self._db.transaction() as conn:
            await conn.execute(
                "DELETE FROM trend_ranking_entries WHERE period_id = $1", period_id
            )
            if entries:
                await conn.execute(
                    """
                    INSERT INTO trend_ranking_entries (
                        period_id, keyword_id, rank, previous_rank,
                        score, search_volume, product_count
                    )
                    SELECT $1, e.keyword_id, e.rank, e.previous_rank,
                           e.score, e.search_volume, e.product_count
                    FROM unnest(
                        $2::bigint[], $3::int[], $4::int[],
                        $5::real[], $6::real[], $7::int[]
                    ) AS e(keyword_id, rank, previous_rank, score, search_volume, product_count)
                    """,
                    period_id,
                    [e.keyword_id for e in entries],
                    [e.rank for e in entries],
                    [e.previous_rank for e in entries],
                    [e.score for e in entries],
                    [e.search_volume for e in entries],
                    [e.product_count for e in entries],
                )
        return len(entries)


# ── Helpers ─────────────────────────────────────────────────


def _row_to_period(row: Any) -> RankingPeriod:
    return RankingPeriod(
        id=row["id"],
        period_kind=PeriodKind(row["period_kind"]),
        year=row["year"],
        month=row.get("month"),
        day=row.get("day"),
        started_at=row["started_at"],
        ended_at=row["ended_at"],
    )


def _row_to_entry(row: Any) -> RankingEntry:
    return RankingEntry(
        period_id=row["period_id"],
        keyword_id=row["keyword_id"],
        rank=row["rank"],
        previous_rank=row.get("previous_rank"),
        score=float(row["score"]),
        search_volume=float(row["search_volume"]),
        product_count=row.get("product_count", 0),
    )
