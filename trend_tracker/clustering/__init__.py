"""
Similarity-based clustering of trend keywords across sources.

Components:
- ClusterConfig: Thresholds, size caps, and source weights (CLUSTERING_*)
- Cluster / ClusterMember / ClusterDetails / ClusterRunResult: Schemas
- ClusterRepository: Cluster and membership persistence
- KeywordClusterService: Incremental clustering and cluster scoring
"""

from trend_tracker.clustering.config import DEFAULT_SOURCE_WEIGHTS, ClusterConfig
from trend_tracker.clustering.repository import ClusterRepository
from trend_tracker.clustering.schemas import (
    Cluster,
    ClusterDetails,
    ClusterMember,
    ClusterRunResult,
)
from trend_tracker.clustering.service import KeywordClusterService

__all__ = [
    "DEFAULT_SOURCE_WEIGHTS",
    "Cluster",
    "ClusterConfig",
    "ClusterDetails",
    "ClusterMember",
    "ClusterRepository",
    "ClusterRunResult",
    "KeywordClusterService",
]
