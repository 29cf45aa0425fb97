"""Cluster repository for cluster and membership persistence.

Memberships are keyed by keyword id, so a keyword can belong to at most
one cluster. Every membership insert uses ON CONFLICT (keyword_id) DO
NOTHING: the first assignment wins and is never moved.
"""

import logging
from typing import Any

from trend_tracker.clustering.schemas import Cluster, ClusterMember, ClusterSample
from trend_tracker.keywords.schemas import TrendSource
from trend_tracker.storage.database import Database

logger = logging.getLogger(__name__)

_INSERT_MEMBERS_SQL = """
    INSERT INTO trend_cluster_members (cluster_id, keyword_id, similarity_score)
    SELECT $1, m.keyword_id, m.similarity_score
    FROM unnest($2::bigint[], $3::real[]) AS m(keyword_id, similarity_score)
    ON CONFLICT (keyword_id) DO NOTHING
    RETURNING keyword_id
"""


class ClusterRepository:
    """Repository for trend clusters and their memberships."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # ── Clusters ────────────────────────────────────────────

    async def get_by_id(self, cluster_id: int) -> Cluster | None:
        """Get a cluster by id."""
        row = await self._db.fetchrow(
            "SELECT * FROM trend_clusters WHERE id = $1", cluster_id
        )
        return _row_to_cluster(row) if row is not None else None

    async def get_by_normalized_name(self, normalized_name: str) -> Cluster | None:
        """Get a cluster (active or not) by its unique normalized name."""
        row = await self._db.fetchrow(
            "SELECT * FROM trend_clusters WHERE normalized_name = $1",
            normalized_name,
        )
        return _row_to_cluster(row) if row is not None else None

    async def list_active(self, limit: int = 100, offset: int = 0) -> list[Cluster]:
        """Get active clusters, newest first."""
        sql = """
            SELECT * FROM trend_clusters
            WHERE is_active
            ORDER BY created_at DESC, id DESC
            LIMIT $1 OFFSET $2
        """
        rows = await self._db.fetch(sql, limit, offset)
        return [_row_to_cluster(row) for row in rows]

    async def list_active_samples(self, sample_size: int = 5) -> list[ClusterSample]:
        """
        Get every active cluster with its strongest members' text.

        Members are ordered by stored similarity descending; ties keep
        insertion order. Clusters are returned oldest first.

        Args:
            sample_size: Members to include per cluster.
        """
        sql = """
            SELECT c.*, top.keyword AS member_keyword
            FROM trend_clusters c
            LEFT JOIN LATERAL (
                SELECT k.keyword
                FROM trend_cluster_members m
                JOIN trend_keywords k ON k.id = m.keyword_id
                WHERE m.cluster_id = c.id
                ORDER BY m.similarity_score DESC, m.created_at ASC
                LIMIT $1
            ) top ON TRUE
            WHERE c.is_active
            ORDER BY c.created_at ASC, c.id ASC
        """
        rows = await self._db.fetch(sql, sample_size)

        samples: dict[int, ClusterSample] = {}
        for row in rows:
            cluster_id = row["id"]
            if cluster_id not in samples:
                samples[cluster_id] = ClusterSample(cluster=_row_to_cluster(row))
            if row.get("member_keyword") is not None:
                samples[cluster_id].member_keywords.append(row["member_keyword"])
        return list(samples.values())

    async def create_with_members(
        self,
        name: str,
        normalized_name: str,
        members: list[tuple[int, float]],
    ) -> tuple[Cluster, int] | None:
        """
        Create a cluster and its initial members in one transaction.

        Args:
            name: Representative keyword text.
            normalized_name: Unique comparison key.
            members: (keyword_id, similarity_score) pairs, representative first.

        Returns:
            (cluster, members_inserted), or None when a cluster with the
            same normalized name already exists.
        """
        async with self._db.transaction() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO trend_clusters (name, normalized_name)
                VALUES ($1, $2)
                ON CONFLICT (normalized_name) DO NOTHING
                RETURNING *
                """,
                name,
                normalized_name,
            )
            if row is None:
                return None

            cluster = _row_to_cluster(row)
            inserted = await conn.fetch(
                _INSERT_MEMBERS_SQL,
                cluster.id,
                [keyword_id for keyword_id, _ in members],
                [score for _, score in members],
            )
        return cluster, len(inserted)

    async def deactivate_empty(self) -> int:
        """
        Deactivate active clusters that have no members.

        Returns:
            Number of clusters deactivated.
        """
        sql = """
            UPDATE trend_clusters c
            SET is_active = FALSE, updated_at = NOW()
            WHERE c.is_active
              AND NOT EXISTS (
                  SELECT 1 FROM trend_cluster_members m WHERE m.cluster_id = c.id
              )
        """
        result = await self._db.execute(sql)
        return _affected_rows(result)

    # ── Memberships ─────────────────────────────────────────

    async def get_cluster_id_for_keyword(self, keyword_id: int) -> int | None:
        """Get the cluster a keyword belongs to, if any."""
        return await self._db.fetchval(
            "SELECT cluster_id FROM trend_cluster_members WHERE keyword_id = $1",
            keyword_id,
        )

    async def add_member(
        self,
        cluster_id: int,
        keyword_id: int,
        similarity_score: float,
    ) -> bool:
        """
        Add a keyword to a cluster.

        Returns:
            True if inserted, False if the keyword was already clustered.
        """
        return await self.add_members(cluster_id, [(keyword_id, similarity_score)]) > 0

    async def add_members(
        self,
        cluster_id: int,
        members: list[tuple[int, float]],
    ) -> int:
        """
        Add keywords to an existing cluster, reactivating it if needed.

        Keywords that already belong to a cluster are skipped.

        Args:
            cluster_id: Target cluster.
            members: (keyword_id, similarity_score) pairs.

        Returns:
            Number of memberships inserted.
        """
        if not members:
            return 0

        async with self._db.transaction() as conn:
            inserted = await conn.fetch(
                _INSERT_MEMBERS_SQL,
                cluster_id,
                [keyword_id for keyword_id, _ in members],
                [score for _, score in members],
            )
            if inserted:
                await conn.execute(
                    """
                    UPDATE trend_clusters
                    SET is_active = TRUE, updated_at = NOW()
                    WHERE id = $1
                    """,
                    cluster_id,
                )
        return len(inserted)

    async def get_members(self, cluster_id: int) -> list[ClusterMember]:
        """
        Get a cluster's members with each keyword's newest signal.

        Returns:
            Members ordered by similarity descending.
        """
        sql = """
            SELECT m.keyword_id, m.similarity_score,
                   k.keyword, k.source,
                   latest.search_volume AS latest_signal
            FROM trend_cluster_members m
            JOIN trend_keywords k ON k.id = m.keyword_id
            LEFT JOIN LATERAL (
                SELECT t.search_volume
                FROM trend_metrics t
                WHERE t.keyword_id = m.keyword_id
                ORDER BY t.collected_at DESC
                LIMIT 1
            ) latest ON TRUE
            WHERE m.cluster_id = $1
            ORDER BY m.similarity_score DESC, m.created_at ASC
        """
        rows = await self._db.fetch(sql, cluster_id)
        return [_row_to_member(row) for row in rows]

    async def delete_all_memberships(self) -> int:
        """
        Remove every cluster membership (full recomputation).

        Returns:
            Number of memberships deleted.
        """
        result = await self._db.execute("DELETE FROM trend_cluster_members")
        return _affected_rows(result)


# ── Helpers ─────────────────────────────────────────────────


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg status string like "UPDATE 3"."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


def _row_to_cluster(row: Any) -> Cluster:
    """Convert an asyncpg Record to a Cluster."""
    return Cluster(
        id=row["id"],
        name=row["name"],
        normalized_name=row["normalized_name"],
        is_active=row.get("is_active", True),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_member(row: Any) -> ClusterMember:
    """Convert an asyncpg Record to a ClusterMember."""
    latest = row.get("latest_signal")
    return ClusterMember(
        keyword_id=row["keyword_id"],
        keyword=row["keyword"],
        source=TrendSource(row["source"]),
        similarity_score=float(row["similarity_score"]),
        latest_signal=float(latest) if latest is not None else None,
    )
