"""Shared fixtures for clustering tests.

In-memory stand-ins for KeywordRepository and ClusterRepository that keep
the same ordering and first-match rules as the SQL versions, so service
behaviour can be exercised end to end without PostgreSQL.
"""

from datetime import datetime, timedelta, timezone

import pytest

from trend_tracker.clustering.config import ClusterConfig
from trend_tracker.clustering.schemas import Cluster, ClusterMember, ClusterSample
from trend_tracker.clustering.service import KeywordClusterService
from trend_tracker.keywords.schemas import Keyword, KeywordMetric, TrendSource
from trend_tracker.text.normalizer import normalize_keyword

BASE_TIME = datetime(2026, 3, 1, tzinfo=timezone.utc)


class InMemoryKeywords:
    """Keyword store; ``memberships`` is shared with InMemoryClusters."""

    def __init__(self) -> None:
        self.keywords: dict[int, Keyword] = {}
        self.metrics: dict[int, list[KeywordMetric]] = {}
        self.memberships: dict[int, tuple[int, float, int]] = {}

    def add(
        self,
        text: str,
        source: TrendSource = TrendSource.GOOGLE_TRENDS,
        signal: float | None = None,
    ) -> Keyword:
        keyword_id = len(self.keywords) + 1
        kw = Keyword(
            id=keyword_id,
            keyword=text,
            normalized_keyword=normalize_keyword(text),
            source=source,
            created_at=BASE_TIME + timedelta(minutes=keyword_id),
        )
        self.keywords[keyword_id] = kw
        if signal is not None:
            self.metrics[keyword_id] = [
                KeywordMetric(
                    keyword_id=keyword_id,
                    source=source,
                    collected_at=kw.created_at,
                    search_volume=signal,
                )
            ]
        return kw

    async def get_by_id(self, keyword_id: int) -> Keyword | None:
        return self.keywords.get(keyword_id)

    async def list_unclustered(self, limit: int = 1000) -> list[Keyword]:
        rows = [
            kw
            for kw in self.keywords.values()
            if kw.is_active and kw.id not in self.memberships
        ]
        rows.sort(key=lambda k: (k.created_at, k.id), reverse=True)
        return rows[:limit]


class InMemoryClusters:
    """Cluster store with keyword-keyed, first-write-wins memberships."""

    def __init__(self, keywords: InMemoryKeywords) -> None:
        self._keywords = keywords
        self.clusters: dict[int, Cluster] = {}
        self._seq = 0

    @property
    def memberships(self) -> dict[int, tuple[int, float, int]]:
        return self._keywords.memberships

    def members_of(self, cluster_id: int) -> list[int]:
        rows = [
            (kid, score, seq)
            for kid, (cid, score, seq) in self.memberships.items()
            if cid == cluster_id
        ]
        rows.sort(key=lambda r: (-r[1], r[2]))
        return [kid for kid, _, _ in rows]

    async def get_by_id(self, cluster_id: int) -> Cluster | None:
        return self.clusters.get(cluster_id)

    async def get_by_normalized_name(self, normalized_name: str) -> Cluster | None:
        for cluster in self.clusters.values():
            if cluster.normalized_name == normalized_name:
                return cluster
        return None

    async def list_active_samples(self, sample_size: int = 5) -> list[ClusterSample]:
        samples = []
        for cluster in sorted(self.clusters.values(), key=lambda c: c.id):
            if not cluster.is_active:
                continue
            ids = self.members_of(cluster.id)[:sample_size]
            samples.append(
                ClusterSample(
                    cluster=cluster,
                    member_keywords=[self._keywords.keywords[i].keyword for i in ids],
                )
            )
        return samples

    async def create_with_members(self, name, normalized_name, members):
        if await self.get_by_normalized_name(normalized_name) is not None:
            return None
        cluster = Cluster(id=len(self.clusters) + 1, name=name, normalized_name=normalized_name)
        self.clusters[cluster.id] = cluster
        return cluster, self._insert(cluster.id, members)

    def _insert(self, cluster_id: int, members: list[tuple[int, float]]) -> int:
        inserted = 0
        for keyword_id, score in members:
            if keyword_id in self.memberships:
                continue
            self._seq += 1
            self.memberships[keyword_id] = (cluster_id, score, self._seq)
            inserted += 1
        return inserted

    async def deactivate_empty(self) -> int:
        removed = 0
        for cluster in self.clusters.values():
            if cluster.is_active and not self.members_of(cluster.id):
                cluster.is_active = False
                removed += 1
        return removed

    async def get_cluster_id_for_keyword(self, keyword_id: int) -> int | None:
        entry = self.memberships.get(keyword_id)
        return entry[0] if entry else None

    async def add_member(self, cluster_id, keyword_id, similarity_score) -> bool:
        return await self.add_members(cluster_id, [(keyword_id, similarity_score)]) > 0

    async def add_members(self, cluster_id, members) -> int:
        inserted = self._insert(cluster_id, members)
        if inserted:
            self.clusters[cluster_id].is_active = True
        return inserted

    async def get_members(self, cluster_id: int) -> list[ClusterMember]:
        result = []
        for keyword_id in self.members_of(cluster_id):
            kw = self._keywords.keywords[keyword_id]
            metrics = self._keywords.metrics.get(keyword_id)
            result.append(
                ClusterMember(
                    keyword_id=keyword_id,
                    keyword=kw.keyword,
                    source=kw.source,
                    similarity_score=self.memberships[keyword_id][1],
                    latest_signal=metrics[-1].search_volume if metrics else None,
                )
            )
        return result

    async def delete_all_memberships(self) -> int:
        count = len(self.memberships)
        self.memberships.clear()
        return count


@pytest.fixture
def keyword_store():
    return InMemoryKeywords()


@pytest.fixture
def cluster_store(keyword_store):
    return InMemoryClusters(keyword_store)


@pytest.fixture
def cluster_config():
    return ClusterConfig()


@pytest.fixture
def cluster_service(keyword_store, cluster_store, cluster_config):
    return KeywordClusterService(keyword_store, cluster_store, config=cluster_config)


@pytest.fixture
def variant_keywords(keyword_store):
    """Two topics written three and two ways, plus an unrelated singleton."""
    return [
        keyword_store.add("아이폰16"),
        keyword_store.add("아이폰 16", TrendSource.NAVER_DATALAB),
        keyword_store.add("아이폰-16", TrendSource.ZUM),
        keyword_store.add("갤럭시S25"),
        keyword_store.add("갤럭시 s25", TrendSource.DAUM),
        keyword_store.add("날씨"),
    ]
