"""Batch pipeline: clustering, product matching, then ranking.

Runs as an offline batch process after a collection round:
1. Clusters unassigned keywords (assign to existing clusters, found new ones)
2. Matches every active keyword against the product catalog
3. Generates the daily and monthly leaderboards for ``now``

A phase that fails is recorded in ``errors`` and later phases still run.
Ranking uses whatever matches exist, so a failed matching phase only makes
the product bonus stale.

Designed for external cron scheduling: ``0 * * * * trend-tracker pipeline``
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from trend_tracker.clustering.config import ClusterConfig
from trend_tracker.clustering.repository import ClusterRepository
from trend_tracker.clustering.schemas import ClusterRunResult
from trend_tracker.clustering.service import KeywordClusterService
from trend_tracker.keywords.repository import KeywordRepository
from trend_tracker.matching.config import MatchingConfig
from trend_tracker.matching.repository import MatchRepository, ProductRepository
from trend_tracker.matching.schemas import BulkMatchResult
from trend_tracker.matching.service import ProductMatcher
from trend_tracker.observability.logging import bind_context, clear_context
from trend_tracker.observability.metrics import get_metrics
from trend_tracker.ranking.config import RankingConfig
from trend_tracker.ranking.repository import RankingRepository
from trend_tracker.ranking.schemas import PeriodKind, RankingRunResult
from trend_tracker.ranking.service import RankingGenerator
from trend_tracker.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Summary of one pipeline run."""

    started_at: datetime
    clustering: ClusterRunResult | None = None
    matching: BulkMatchResult | None = None
    rankings: dict[PeriodKind, RankingRunResult] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def item_errors(self) -> int:
        """Per-item errors reported inside the phases."""
        total = 0
        if self.clustering is not None:
            total += len(self.clustering.errors)
        if self.matching is not None:
            total += len(self.matching.errors)
        total += sum(len(r.errors) for r in self.rankings.values())
        return total


async def run_trend_pipeline(
    database: Database,
    now: datetime | None = None,
    cluster_config: ClusterConfig | None = None,
    matching_config: MatchingConfig | None = None,
    ranking_config: RankingConfig | None = None,
) -> PipelineResult:
    """
    Run clustering, matching, and ranking in sequence.

    Args:
        database: Connected Database instance (caller manages lifecycle).
        now: Reference time for ranking (default: current UTC time).
        cluster_config: Clustering configuration (default: from env).
        matching_config: Matching configuration (default: from env).
        ranking_config: Ranking configuration (default: from env).

    Returns:
        PipelineResult with each phase's result and phase-level errors.
    """
    now = now or datetime.now(timezone.utc)
    result = PipelineResult(started_at=now)
    metrics = get_metrics()
    start_time = time.monotonic()

    try:
        bind_context(job="pipeline", run_at=now.isoformat())
        keyword_repo = KeywordRepository(database)

        # Phase 1: Clustering
        bind_context(phase="clustering")
        phase_start = time.monotonic()
        try:
            clusterer = KeywordClusterService(
                keyword_repo, ClusterRepository(database), config=cluster_config
            )
            result.clustering = await clusterer.cluster_unassigned()
            metrics.record_clustering(
                result.clustering.clusters_created, result.clustering.keywords_assigned
            )
            metrics.record_batch(
                "clustering", time.monotonic() - phase_start, len(result.clustering.errors)
            )
        except Exception as e:
            logger.exception("Clustering phase failed")
            result.errors.append(f"clustering: {e}")
            metrics.record_batch("clustering", time.monotonic() - phase_start, errors=1)

        # Phase 2: Product matching
        bind_context(phase="matching")
        phase_start = time.monotonic()
        try:
            matcher = ProductMatcher(
                keyword_repo,
                ProductRepository(database),
                MatchRepository(database),
                config=matching_config,
            )
            result.matching = await matcher.match_all_keywords()
            metrics.record_matching(result.matching.total_matched, result.matching.total_updated)
            metrics.record_batch(
                "matching", time.monotonic() - phase_start, len(result.matching.errors)
            )
        except Exception as e:
            logger.exception("Matching phase failed")
            result.errors.append(f"matching: {e}")
            metrics.record_batch("matching", time.monotonic() - phase_start, errors=1)

        # Phase 3: Rankings
        generator = RankingGenerator(
            keyword_repo, RankingRepository(database), config=ranking_config
        )
        for kind in (PeriodKind.DAILY, PeriodKind.MONTHLY):
            bind_context(phase=f"ranking_{kind.value.lower()}")
            phase_start = time.monotonic()
            try:
                run = await generator.generate_rankings(kind, now=now)
                result.rankings[kind] = run
                metrics.record_ranking(kind.value, run.rankings_created)
                metrics.record_batch("ranking", time.monotonic() - phase_start, len(run.errors))
            except Exception as e:
                logger.exception(f"{kind.value} ranking phase failed")
                result.errors.append(f"ranking_{kind.value.lower()}: {e}")
                metrics.record_batch("ranking", time.monotonic() - phase_start, errors=1)

        result.elapsed_seconds = time.monotonic() - start_time
        logger.info(
            f"Pipeline finished in {result.elapsed_seconds:.2f}s: "
            f"{len(result.errors)} phase errors, {result.item_errors} item errors"
        )
    finally:
        clear_context()
    return result
