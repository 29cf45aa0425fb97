"""Schema definitions for keyword clusters.

Cluster maps 1:1 to the ``trend_clusters`` table and ClusterMember to a
``trend_cluster_members`` row joined with its keyword. The remaining
dataclasses are run summaries and read-path views.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from trend_tracker.keywords.schemas import Keyword, TrendSource


@dataclass
class Cluster:
    """
    A group of keywords believed to denote the same topic.

    Attributes:
        id: Database identifier.
        name: Raw text of the founding keyword.
        normalized_name: Unique comparison key of the founding keyword.
        is_active: False once the cluster has lost all its members.
    """

    id: int
    name: str
    normalized_name: str
    is_active: bool = True
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Cluster):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass
class ClusterMember:
    """
    A keyword's membership in a cluster, joined with the keyword itself.

    Attributes:
        keyword_id: Member keyword.
        keyword: Member keyword's raw text.
        source: Member keyword's source.
        similarity_score: Similarity to the cluster when it was assigned.
        latest_signal: Newest metric signal, None when the keyword has none.
    """

    keyword_id: int
    keyword: str
    source: TrendSource
    similarity_score: float
    latest_signal: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyword_id": self.keyword_id,
            "keyword": self.keyword,
            "source": TrendSource(self.source).value,
            "similarity_score": self.similarity_score,
            "latest_signal": self.latest_signal,
        }


@dataclass
class ClusterSample:
    """An active cluster with the raw text of its strongest members."""

    cluster: Cluster
    member_keywords: list[str] = field(default_factory=list)


@dataclass
class ClusterCandidate:
    """A cluster to be founded: representative plus similar unclustered keywords."""

    representative: Keyword
    siblings: list[tuple[Keyword, float]] = field(default_factory=list)


@dataclass
class ClusterDetails:
    """Read-path view of a cluster with its score."""

    cluster_id: int
    representative_keyword: str
    members: list[ClusterMember]
    combined_score: float
    source_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "representative_keyword": self.representative_keyword,
            "members": [m.to_dict() for m in self.members],
            "combined_score": self.combined_score,
            "source_count": self.source_count,
        }


@dataclass
class ClusterRunResult:
    """Summary of a clustering batch run."""

    clusters_created: int = 0
    keywords_assigned: int = 0
    clusters_removed: int = 0
    errors: list[str] = field(default_factory=list)
