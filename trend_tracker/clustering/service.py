"""
Keyword clustering across sources.

Groups keywords that denote the same topic (spacing variants, typos,
differently worded post titles) into clusters with a greedy, incremental
heuristic:

1. A keyword that already has a membership keeps it. Assignment is
   first-match and never revisited, even if a better cluster appears later.
2. An unclustered keyword joins the active cluster whose strongest members
   it resembles most, provided the average similarity clears the threshold.
3. Otherwise it founds a new cluster together with every still-unprocessed
   keyword in the batch that resembles it ("siblings"). A keyword with no
   siblings stays unclustered; single-member clusters are never created.

Processing order is newest keyword first, which decides ties.
"""

import logging
from collections.abc import Callable

from trend_tracker.clustering.config import ClusterConfig
from trend_tracker.clustering.repository import ClusterRepository
from trend_tracker.clustering.schemas import (
    ClusterCandidate,
    ClusterDetails,
    ClusterMember,
    ClusterRunResult,
)
from trend_tracker.keywords.repository import KeywordRepository
from trend_tracker.keywords.schemas import Keyword
from trend_tracker.text.normalizer import normalize_keyword
from trend_tracker.text.similarity import similarity

logger = logging.getLogger(__name__)


class KeywordClusterService:
    """
    Incremental keyword clustering and cluster scoring.

    Pure computation:
      - ``compute_cluster_score``: weighted signal average plus cross-source bonus

    Async operations (repository-backed):
      - ``assign_to_existing_cluster``: attach one keyword to its best cluster
      - ``cluster_unassigned``: batch assignment plus new-cluster founding
      - ``recalculate_all_clusters``: drop memberships and re-cluster
      - ``cluster_score`` / ``get_cluster_details``: read path
    """

    def __init__(
        self,
        keyword_repo: KeywordRepository,
        cluster_repo: ClusterRepository,
        config: ClusterConfig | None = None,
        similarity_fn: Callable[[str, str], float] = similarity,
    ) -> None:
        self._keywords = keyword_repo
        self._clusters = cluster_repo
        self._config = config or ClusterConfig()
        self._similarity = similarity_fn

    @property
    def config(self) -> ClusterConfig:
        return self._config

    # ── Assignment ──────────────────────────────────────────

    async def assign_to_existing_cluster(self, keyword_id: int) -> int | None:
        """
        Attach a keyword to the most similar active cluster.

        Idempotent: a keyword that already belongs to a cluster returns that
        cluster without any comparison.

        Args:
            keyword_id: Keyword to assign.

        Returns:
            Cluster id, or None if the keyword does not exist or no cluster
            reaches the similarity threshold.
        """
        keyword = await self._keywords.get_by_id(keyword_id)
        if keyword is None:
            return None
        return await self._assign_keyword(keyword)

    async def _assign_keyword(self, keyword: Keyword) -> int | None:
        existing = await self._clusters.get_cluster_id_for_keyword(keyword.id)
        if existing is not None:
            return existing

        samples = await self._clusters.list_active_samples(
            sample_size=self._config.member_sample_size
        )

        best_id: int | None = None
        best_score = 0.0
        for sample in samples:
            if not sample.member_keywords:
                continue
            total = sum(
                self._similarity(keyword.keyword, member)
                for member in sample.member_keywords
            )
            avg = total / len(sample.member_keywords)
            if avg >= self._config.similarity_threshold and (
                best_id is None or avg > best_score
            ):
                best_id = sample.cluster.id
                best_score = avg

        if best_id is None:
            return None

        inserted = await self._clusters.add_member(best_id, keyword.id, best_score)
        if not inserted:
            # Assigned concurrently by another run; report where it landed
            return await self._clusters.get_cluster_id_for_keyword(keyword.id)

        logger.debug(
            f"Assigned keyword {keyword.keyword!r} to cluster {best_id} "
            f"(similarity={best_score:.3f})"
        )
        return best_id

    # ── Batch clustering ────────────────────────────────────

    async def cluster_unassigned(self) -> ClusterRunResult:
        """
        Cluster the newest batch of unclustered active keywords.

        Failures assigning one keyword or persisting one new cluster are
        recorded in ``errors`` and the batch continues. Failing to load the
        batch itself propagates.

        Returns:
            ClusterRunResult with clusters created, memberships inserted,
            and per-item errors.
        """
        result = ClusterRunResult()
        keywords = await self._keywords.list_unclustered(limit=self._config.batch_size)
        if not keywords:
            logger.info("No unclustered keywords")
            return result

        processed: set[int] = set()
        candidates: list[ClusterCandidate] = []

        for keyword in keywords:
            if keyword.id in processed:
                continue

            try:
                cluster_id = await self._assign_keyword(keyword)
            except Exception as e:
                logger.error(f"Failed to assign keyword {keyword.id}: {e}")
                result.errors.append(f"assign:{keyword.id}: {e}")
                continue

            if cluster_id is not None:
                processed.add(keyword.id)
                result.keywords_assigned += 1
                continue

            siblings: list[tuple[Keyword, float]] = []
            for other in keywords:
                if other.id == keyword.id or other.id in processed:
                    continue
                score = self._similarity(keyword.keyword, other.keyword)
                if score >= self._config.similarity_threshold:
                    siblings.append((other, score))

            if siblings:
                candidates.append(ClusterCandidate(representative=keyword, siblings=siblings))
                processed.add(keyword.id)
                processed.update(other.id for other, _ in siblings)

        for candidate in candidates:
            try:
                created, assigned = await self._persist_candidate(candidate)
                result.clusters_created += created
                result.keywords_assigned += assigned
            except Exception as e:
                name = candidate.representative.keyword
                logger.error(f"Failed to create cluster for {name!r}: {e}")
                result.errors.append(f"Failed to create cluster for {name!r}: {e}")

        logger.info(
            f"Clustering run: {len(keywords)} keywords, "
            f"{result.clusters_created} clusters created, "
            f"{result.keywords_assigned} assigned, {len(result.errors)} errors"
        )
        return result

    async def _persist_candidate(self, candidate: ClusterCandidate) -> tuple[int, int]:
        """
        Found a cluster for a candidate, or merge into a same-named one.

        Returns:
            (clusters_created, memberships_inserted)
        """
        representative = candidate.representative
        normalized_name = normalize_keyword(representative.keyword)

        # Stable sort keeps creation order among equally similar siblings
        ranked = sorted(candidate.siblings, key=lambda pair: pair[1], reverse=True)
        members = [(representative.id, 1.0)] + [
            (kw.id, score) for kw, score in ranked[: self._config.max_cluster_size - 1]
        ]

        existing = await self._clusters.get_by_normalized_name(normalized_name)
        if existing is None:
            created = await self._clusters.create_with_members(
                representative.keyword, normalized_name, members
            )
            if created is not None:
                cluster, inserted = created
                logger.debug(
                    f"Created cluster {cluster.id} {cluster.name!r} with {inserted} members"
                )
                return 1, inserted

            # Another run created it between lookup and insert
            existing = await self._clusters.get_by_normalized_name(normalized_name)
            if existing is None:
                raise RuntimeError(f"Cluster {normalized_name!r} neither created nor found")

        inserted = await self._clusters.add_members(existing.id, members)
        logger.debug(f"Merged {inserted} keywords into existing cluster {existing.id}")
        return 0, inserted

    async def deactivate_empty_clusters(self) -> int:
        """Deactivate clusters that no longer have members."""
        removed = await self._clusters.deactivate_empty()
        if removed:
            logger.info(f"Deactivated {removed} empty clusters")
        return removed

    async def recalculate_all_clusters(self) -> ClusterRunResult:
        """
        Rebuild clustering from scratch.

        Deletes every membership, deactivates the now-empty clusters, then
        runs a normal clustering batch. Re-founded clusters reuse (and
        reactivate) the rows of same-named deactivated clusters.

        Returns:
            ClusterRunResult including ``clusters_removed``.
        """
        deleted = await self._clusters.delete_all_memberships()
        removed = await self.deactivate_empty_clusters()
        logger.info(f"Cleared {deleted} memberships before reclustering")

        result = await self.cluster_unassigned()
        result.clusters_removed = removed
        return result

    # ── Scoring (read path) ─────────────────────────────────

    def compute_cluster_score(self, members: list[ClusterMember]) -> float:
        """
        Combined score of a cluster's members.

        Formula:
            base  = sum(signal * weight * sim) / sum(weight * sim)
            bonus = cross_source_bonus * (distinct_sources - 1)
            score = min(base + bonus, max_cluster_score)

        Members without a signal are left out of both the average and the
        source count.

        Args:
            members: Cluster members with their latest signal.

        Returns:
            Score in [0, max_cluster_score].
        """
        weighted_total = 0.0
        weight_total = 0.0
        sources = set()

        for member in members:
            if member.latest_signal is None:
                continue
            weight = self._config.weight_for(member.source) * member.similarity_score
            weighted_total += member.latest_signal * weight
            weight_total += weight
            sources.add(member.source)

        base = weighted_total / weight_total if weight_total > 0 else 0.0
        bonus = max(0, len(sources) - 1) * self._config.cross_source_bonus

        return min(base + bonus, self._config.max_cluster_score)

    async def cluster_score(self, cluster_id: int) -> float:
        """Combined score of a stored cluster; 0.0 if missing or empty."""
        members = await self._clusters.get_members(cluster_id)
        if not members:
            return 0.0
        return self.compute_cluster_score(members)

    async def get_cluster_details(self, cluster_id: int) -> ClusterDetails | None:
        """
        Get a cluster with members (strongest first), score, and source count.

        Returns:
            ClusterDetails, or None if the cluster does not exist.
        """
        cluster = await self._clusters.get_by_id(cluster_id)
        if cluster is None:
            return None

        members = await self._clusters.get_members(cluster_id)
        return ClusterDetails(
            cluster_id=cluster.id,
            representative_keyword=cluster.name,
            members=members,
            combined_score=self.compute_cluster_score(members) if members else 0.0,
            source_count=len({m.source for m in members}),
        )
