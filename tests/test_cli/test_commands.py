"""Tests for the trend-tracker CLI commands."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from trend_tracker.cli import main
from trend_tracker.clustering.schemas import (
    Cluster,
    ClusterDetails,
    ClusterMember,
    ClusterRunResult,
)
from trend_tracker.keywords.repository import KeywordNotFoundError
from trend_tracker.keywords.schemas import Keyword, TrendSource
from trend_tracker.matching.repository import MatchNotFoundError
from trend_tracker.matching.schemas import (
    BulkMatchResult,
    KeywordProductMatch,
    MatchConfidence,
    MatchRunResult,
    MatchType,
    ProductMatchCandidate,
)
from trend_tracker.pipeline import PipelineResult
from trend_tracker.ranking.schemas import (
    PeriodKind,
    RankingEntry,
    RankingPeriod,
    RankingRunResult,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def _no_logging_setup():
    """Keep the root logger off CliRunner's temporary streams."""
    with patch("trend_tracker.cli.setup_logging"):
        yield


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.connect = AsyncMock()
    db.close = AsyncMock()
    db.health_check = AsyncMock(return_value=True)
    return db


def _patch_db(db):
    return patch("trend_tracker.storage.database.Database", return_value=db)


# ── init-db / health ─────────────────────────────────────


class TestInitDb:
    def test_creates_tables(self, runner, mock_db):
        with _patch_db(mock_db), \
             patch("trend_tracker.storage.schema.create_tables", new=AsyncMock()) as create:
            result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0
        assert "Database initialized successfully" in result.output
        create.assert_awaited_once_with(mock_db)
        mock_db.close.assert_awaited_once()


class TestHealth:
    def test_healthy(self, runner, mock_db):
        with _patch_db(mock_db):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 0
        assert "postgres: True" in result.output

    def test_connection_error(self, runner, mock_db):
        mock_db.connect.side_effect = OSError("connection refused")
        with _patch_db(mock_db):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "connection refused" in result.output


# ── keyword ──────────────────────────────────────────────


class TestKeywordAdd:
    def test_register_with_volume(self, runner, mock_db):
        repo = AsyncMock()
        repo.register.return_value = (
            Keyword(id=3, keyword="갤럭시 S25", normalized_keyword="갤럭시s25",
                    source=TrendSource.NAVER_DATALAB),
            True,
        )

        with _patch_db(mock_db), \
             patch("trend_tracker.keywords.repository.KeywordRepository", return_value=repo):
            result = runner.invoke(
                main, ["keyword", "add", "갤럭시 S25", "--source", "naver_datalab", "--volume", "87"]
            )

        assert result.exit_code == 0, result.output
        assert "Registered: 갤럭시 S25 (id=3, normalized=갤럭시s25)" in result.output
        metric = repo.record_metric.call_args[0][0]
        assert metric.keyword_id == 3
        assert metric.search_volume == 87.0
        assert metric.source is TrendSource.NAVER_DATALAB

    def test_unknown_source(self, runner):
        result = runner.invoke(main, ["keyword", "add", "x", "--source", "twitter"])

        assert result.exit_code == 2
        assert "GOOGLE_TRENDS" in result.output

    def test_blank_keyword(self, runner, mock_db):
        repo = AsyncMock()
        repo.register.side_effect = ValueError("Keyword '  ' is empty after normalization")

        with _patch_db(mock_db), \
             patch("trend_tracker.keywords.repository.KeywordRepository", return_value=repo):
            result = runner.invoke(main, ["keyword", "add", "  "])

        assert result.exit_code == 1
        assert "empty after normalization" in result.output
        mock_db.close.assert_awaited_once()


# ── cluster ──────────────────────────────────────────────


class TestCluster:
    def test_run(self, runner, mock_db):
        service = AsyncMock()
        service.cluster_unassigned.return_value = ClusterRunResult(
            clusters_created=2, keywords_assigned=5, errors=["Keyword 9 (x): boom"]
        )

        with _patch_db(mock_db), \
             patch("trend_tracker.clustering.service.KeywordClusterService", return_value=service), \
             patch("trend_tracker.cli.get_metrics") as get_metrics:
            result = runner.invoke(main, ["cluster", "run"])

        assert result.exit_code == 0
        assert "Clusters created:   2" in result.output
        assert "Keywords assigned:  5" in result.output
        assert "Keyword 9 (x): boom" in result.output
        get_metrics.return_value.record_clustering.assert_called_once_with(2, 5)

    def test_recalculate_requires_confirmation(self, runner, mock_db):
        service = AsyncMock()
        with _patch_db(mock_db), \
             patch("trend_tracker.clustering.service.KeywordClusterService", return_value=service):
            result = runner.invoke(main, ["cluster", "recalculate"], input="n\n")

        assert result.exit_code == 1
        service.recalculate_all_clusters.assert_not_called()

    def test_recalculate(self, runner, mock_db):
        service = AsyncMock()
        service.recalculate_all_clusters.return_value = ClusterRunResult(
            clusters_created=1, keywords_assigned=3, clusters_removed=4
        )
        with _patch_db(mock_db), \
             patch("trend_tracker.clustering.service.KeywordClusterService", return_value=service), \
             patch("trend_tracker.cli.get_metrics") as get_metrics:
            result = runner.invoke(main, ["cluster", "recalculate", "--yes"])

        assert result.exit_code == 0
        assert "Clusters removed:   4" in result.output
        get_metrics.return_value.record_clustering.assert_called_once_with(1, 3)

    def test_show(self, runner, mock_db):
        service = AsyncMock()
        service.get_cluster_details.return_value = ClusterDetails(
            cluster_id=7,
            representative_keyword="아이폰16",
            members=[
                ClusterMember(keyword_id=1, keyword="아이폰16", source=TrendSource.GOOGLE_TRENDS,
                              similarity_score=1.0, latest_signal=80.0),
                ClusterMember(keyword_id=2, keyword="아이폰 16", source=TrendSource.DCINSIDE,
                              similarity_score=0.98),
            ],
            combined_score=86.4,
            source_count=2,
        )
        with _patch_db(mock_db), \
             patch("trend_tracker.clustering.service.KeywordClusterService", return_value=service):
            result = runner.invoke(main, ["cluster", "show", "7"])

        assert result.exit_code == 0
        assert "Cluster 7: 아이폰16" in result.output
        assert "Combined score: 86.40" in result.output
        assert "signal=-" in result.output

    def test_show_missing(self, runner, mock_db):
        service = AsyncMock()
        service.get_cluster_details.return_value = None
        with _patch_db(mock_db), \
             patch("trend_tracker.clustering.service.KeywordClusterService", return_value=service):
            result = runner.invoke(main, ["cluster", "show", "99"])

        assert result.exit_code == 1
        assert "Cluster 99 not found" in result.output


# ── match ────────────────────────────────────────────────


class TestMatch:
    def test_run_all(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.match_all_keywords.return_value = BulkMatchResult(
            keywords_processed=4, total_matched=6, total_updated=1
        )
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher), \
             patch("trend_tracker.cli.get_metrics") as get_metrics:
            result = runner.invoke(main, ["match", "run", "--clear-existing"])

        assert result.exit_code == 0
        assert "Keywords processed: 4" in result.output
        assert "Matches created:    6" in result.output
        matcher.match_all_keywords.assert_awaited_once_with(
            clear_existing=True, preserve_manual=True
        )
        get_metrics.return_value.record_matching.assert_called_once_with(6, 1)

    def test_run_single(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.match_keyword_to_products.return_value = MatchRunResult(matched=2, updated=0)
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(
                main, ["match", "run", "--keyword-id", "42", "--no-preserve-manual"]
            )

        assert result.exit_code == 0
        assert "Matches created: 2" in result.output
        matcher.match_keyword_to_products.assert_awaited_once_with(
            42, clear_existing=False, preserve_manual=False
        )

    def test_run_single_missing_keyword(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.match_keyword_to_products.side_effect = KeywordNotFoundError(42)
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "run", "--keyword-id", "42"])

        assert result.exit_code == 1
        mock_db.close.assert_awaited_once()

    def test_search(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.find_matching_products.return_value = [
            ProductMatchCandidate(
                product_id=3,
                product_name="애플 에어팟 프로",
                score=60.0,
                match_type=MatchType.PARTIAL,
                confidence=MatchConfidence.MEDIUM,
            )
        ]
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "search", "에어팟", "--limit", "5"])

        assert result.exit_code == 0
        assert "애플 에어팟 프로 (id=3)" in result.output
        assert "partial" in result.output
        matcher.find_matching_products.assert_awaited_once_with(
            "에어팟", category=None, limit=5, min_score=30.0
        )

    def test_search_nothing(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.find_matching_products.return_value = []
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "search", "날씨"])

        assert "No matching products." in result.output

    def test_manual(self, runner, mock_db):
        matcher = AsyncMock()
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "manual", "5", "9"])

        assert result.exit_code == 0
        assert "keyword 5 -> product 9" in result.output
        matcher.set_manual_match.assert_awaited_once_with(5, 9, 100.0)

    def test_list(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.list_matches.return_value = [
            KeywordProductMatch(keyword_id=5, product_id=9, match_score=100.0,
                                match_type=MatchType.MANUAL, is_manual=True),
            KeywordProductMatch(keyword_id=5, product_id=3, match_score=60.0,
                                match_type=MatchType.PARTIAL),
        ]
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "list", "5"])

        assert result.exit_code == 0
        assert "product 9  manual" in result.output
        assert "partial" in result.output
        assert result.output.index("product 9") < result.output.index("product 3")
        matcher.list_matches.assert_awaited_once_with(5)

    def test_list_empty(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.list_matches.return_value = []
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "list", "5"])

        assert result.exit_code == 0
        assert "No matches for keyword 5." in result.output

    def test_list_missing_keyword(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.list_matches.side_effect = KeywordNotFoundError(5)
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "list", "5"])

        assert result.exit_code == 1
        mock_db.close.assert_awaited_once()

    def test_remove(self, runner, mock_db):
        matcher = AsyncMock()
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "remove", "5", "9"])

        assert result.exit_code == 0
        assert "Match removed: keyword 5 -> product 9" in result.output
        matcher.remove_match.assert_awaited_once_with(5, 9)

    def test_remove_missing_link(self, runner, mock_db):
        matcher = AsyncMock()
        matcher.remove_match.side_effect = MatchNotFoundError(5, 9)
        with _patch_db(mock_db), \
             patch("trend_tracker.matching.service.ProductMatcher", return_value=matcher):
            result = runner.invoke(main, ["match", "remove", "5", "9"])

        assert result.exit_code == 1
        assert "No match between keyword 5 and product 9" in result.output
        mock_db.close.assert_awaited_once()


# ── rank ─────────────────────────────────────────────────


class TestRank:
    def test_generate_with_date(self, runner, mock_db):
        generator = AsyncMock()
        generator.generate_rankings.return_value = RankingRunResult(
            period_id=12, period_kind=PeriodKind.MONTHLY, rankings_created=40
        )
        with _patch_db(mock_db), \
             patch("trend_tracker.ranking.service.RankingGenerator", return_value=generator), \
             patch("trend_tracker.cli.get_metrics"):
            result = runner.invoke(
                main, ["rank", "generate", "--period", "monthly", "--date", "2026-01"]
            )

        assert result.exit_code == 0, result.output
        assert "entries=40" in result.output
        generator.generate_rankings.assert_awaited_once_with(
            PeriodKind.MONTHLY, year=2026, month=1, day=1
        )

    def test_generate_bad_period(self, runner):
        result = runner.invoke(main, ["rank", "generate", "--period", "weekly"])
        assert result.exit_code == 2

    def test_all(self, runner, mock_db):
        generator = AsyncMock()
        generator.generate_all_rankings.return_value = {
            PeriodKind.DAILY: RankingRunResult(period_id=1, period_kind=PeriodKind.DAILY),
            PeriodKind.MONTHLY: RankingRunResult(period_id=2, period_kind=PeriodKind.MONTHLY),
        }
        with _patch_db(mock_db), \
             patch("trend_tracker.ranking.service.RankingGenerator", return_value=generator), \
             patch("trend_tracker.cli.get_metrics"):
            result = runner.invoke(main, ["rank", "all"])

        assert result.exit_code == 0
        assert "DAILY" in result.output
        assert "MONTHLY" in result.output

    def test_method(self, runner):
        result = runner.invoke(main, ["rank", "method"])

        assert result.exit_code == 0
        assert "search_volume" in result.output
        assert "product_matches" in result.output
        assert "125" in result.output


# ── pipeline ─────────────────────────────────────────────


class TestPipelineCommand:
    def _result(self, errors=None):
        return PipelineResult(
            started_at=NOW,
            clustering=ClusterRunResult(clusters_created=1, keywords_assigned=2),
            matching=None,
            rankings={
                PeriodKind.DAILY: RankingRunResult(
                    period_id=1, period_kind=PeriodKind.DAILY, rankings_created=10
                )
            },
            errors=errors or [],
        )

    def test_success(self, runner, mock_db):
        with _patch_db(mock_db), \
             patch("trend_tracker.pipeline.run_trend_pipeline",
                   new=AsyncMock(return_value=self._result())):
            result = runner.invoke(main, ["pipeline"])

        assert result.exit_code == 0
        assert "Clustering: 1 created, 2 assigned" in result.output
        assert "DAILY 10 entries" in result.output
        mock_db.close.assert_awaited_once()

    def test_phase_error_exits_nonzero(self, runner, mock_db):
        with _patch_db(mock_db), \
             patch("trend_tracker.pipeline.run_trend_pipeline",
                   new=AsyncMock(return_value=self._result(["matching: db down"]))):
            result = runner.invoke(main, ["pipeline"])

        assert result.exit_code == 1
        assert "matching: db down" in result.output

    def test_metrics_server(self, runner, mock_db):
        metrics = MagicMock()
        with _patch_db(mock_db), \
             patch("trend_tracker.cli.get_metrics", return_value=metrics), \
             patch("trend_tracker.pipeline.run_trend_pipeline",
                   new=AsyncMock(return_value=self._result())):
            result = runner.invoke(main, ["pipeline", "--metrics"])

        assert result.exit_code == 0
        metrics.start_server.assert_called_once()


# ── read-only views ──────────────────────────────────────


class TestViews:
    def test_cluster_list(self, runner, mock_db):
        repo = AsyncMock()
        repo.list_active.return_value = [
            Cluster(id=7, name="아이폰16", normalized_name="아이폰16", created_at=NOW)
        ]
        with _patch_db(mock_db), \
             patch("trend_tracker.clustering.repository.ClusterRepository", return_value=repo):
            result = runner.invoke(main, ["cluster", "list", "--limit", "5"])

        assert result.exit_code == 0
        assert "아이폰16" in result.output
        repo.list_active.assert_awaited_once_with(limit=5)

    def test_rank_show(self, runner, mock_db):
        rankings = AsyncMock()
        rankings.find_period.return_value = RankingPeriod(
            id=12, period_kind=PeriodKind.DAILY, year=2026, month=3, day=15,
            started_at=NOW, ended_at=NOW,
        )
        rankings.list_entries.return_value = [
            RankingEntry(keyword_id=3, rank=1, score=90.0, search_volume=80.0, previous_rank=4),
            RankingEntry(keyword_id=8, rank=2, score=85.0, search_volume=60.0),
        ]
        keywords = AsyncMock()
        keywords.get_by_id.side_effect = lambda kid: (
            Keyword(id=3, keyword="갤럭시S25", normalized_keyword="갤럭시s25",
                    source=TrendSource.NAVER_DATALAB)
            if kid == 3 else None
        )

        with _patch_db(mock_db), \
             patch("trend_tracker.ranking.repository.RankingRepository", return_value=rankings), \
             patch("trend_tracker.keywords.repository.KeywordRepository", return_value=keywords):
            result = runner.invoke(main, ["rank", "show", "--date", "2026-03-15"])

        assert result.exit_code == 0, result.output
        assert "갤럭시S25" in result.output
        assert "+3" in result.output
        assert "#8" in result.output
        assert "new" in result.output
        rankings.list_entries.assert_awaited_once_with(12, limit=20)

    def test_rank_show_missing_period(self, runner, mock_db):
        rankings = AsyncMock()
        rankings.find_period.return_value = None
        with _patch_db(mock_db), \
             patch("trend_tracker.ranking.repository.RankingRepository", return_value=rankings):
            result = runner.invoke(main, ["rank", "show", "--period", "yearly", "--date", "2025"])

        assert result.exit_code == 1
        assert "No yearly ranking" in result.output
