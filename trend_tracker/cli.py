"""
Command-line interface for trend-tracker.

Provides commands to initialize the database, register keywords, and run
the clustering, product matching, and ranking batch jobs.

Usage:
    trend-tracker init-db                        # Create tables
    trend-tracker keyword add "아이폰 16" --source GOOGLE_TRENDS
    trend-tracker cluster run                    # Cluster new keywords
    trend-tracker match run                      # Match keywords to products
    trend-tracker rank generate --period daily   # Today's leaderboard
    trend-tracker rank show --period daily       # Print it
    trend-tracker pipeline                       # All of the above
"""

import asyncio
import sys
from datetime import datetime, timezone
from typing import Any

import click

from trend_tracker.observability.logging import setup_logging
from trend_tracker.observability.metrics import get_metrics

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m", "%Y"]


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Trend Tracker - Keyword clustering, product matching, and rankings."""
    setup_logging(level="DEBUG" if debug else None)


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from trend_tracker.storage.database import Database
    from trend_tracker.storage.schema import create_tables

    async def run():
        db = Database()
        await db.connect()

        try:
            await create_tables(db)
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check database connectivity."""
    from trend_tracker.storage.database import Database

    async def check():
        try:
            db = Database()
            await db.connect()
            healthy = await db.health_check()
            await db.close()
        except Exception as e:
            healthy = False
            click.echo(click.style(f"  Postgres error: {e}", fg="red"))

        icon = "✓" if healthy else "✗"
        color = "green" if healthy else "red"
        click.echo(click.style(f"  {icon} postgres: {healthy}", fg=color))
        sys.exit(0 if healthy else 1)

    asyncio.run(check())


# ── Keywords ────────────────────────────────────────────────


@main.group()
def keyword() -> None:
    """Keyword management commands."""


@keyword.command("add")
@click.argument("text")
@click.option("--source", default="MANUAL", help="Trend source (e.g. GOOGLE_TRENDS)")
@click.option("--category", default=None, help="Category tag (e.g. electronics)")
@click.option("--volume", default=None, type=float, help="Record a signal observation now")
def keyword_add(text: str, source: str, category: str | None, volume: float | None) -> None:
    """Register a keyword, optionally with a signal observation.

    Example:
        trend-tracker keyword add "갤럭시 S25" --source NAVER_DATALAB --volume 87
    """
    from trend_tracker.keywords.repository import KeywordRepository
    from trend_tracker.keywords.schemas import KeywordMetric, TrendSource
    from trend_tracker.storage.database import Database

    try:
        trend_source = TrendSource(source.upper())
    except ValueError:
        valid = ", ".join(s.value for s in TrendSource)
        raise click.BadParameter(f"{source!r} (choose from {valid})", param_hint="--source")

    async def run():
        db = Database()
        await db.connect()

        try:
            repo = KeywordRepository(db)
            try:
                kw, created = await repo.register(text, trend_source, category=category)
            except ValueError as e:
                raise click.ClickException(str(e))

            status = "Registered" if created else "Already registered"
            click.echo(f"{status}: {kw.keyword} (id={kw.id}, normalized={kw.normalized_keyword})")

            if volume is not None:
                metric = KeywordMetric(
                    keyword_id=kw.id,
                    source=trend_source,
                    collected_at=datetime.now(timezone.utc),
                    search_volume=volume,
                )
                await repo.record_metric(metric)
                click.echo(f"  Recorded signal {volume:g} from {trend_source.value}")
        finally:
            await db.close()

    asyncio.run(run())


# ── Clustering ──────────────────────────────────────────────


@main.group()
def cluster() -> None:
    """Clustering management commands."""


def _print_cluster_result(result: Any) -> None:
    click.echo("\nClustering Results:")
    click.echo(f"  Clusters created:   {result.clusters_created}")
    click.echo(f"  Keywords assigned:  {result.keywords_assigned}")
    if result.clusters_removed:
        click.echo(f"  Clusters removed:   {result.clusters_removed}")
    click.echo(f"  Errors:             {len(result.errors)}")
    _print_errors(result.errors)


def _print_errors(errors: list[str]) -> None:
    if errors:
        click.echo("\nErrors:")
        for err in errors:
            click.echo(click.style(f"  - {err}", fg="red"))


@cluster.command("run")
def cluster_run() -> None:
    """Cluster keywords that have no cluster yet."""
    from trend_tracker.clustering.repository import ClusterRepository
    from trend_tracker.clustering.service import KeywordClusterService
    from trend_tracker.keywords.repository import KeywordRepository
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            service = KeywordClusterService(KeywordRepository(db), ClusterRepository(db))
            result = await service.cluster_unassigned()
            get_metrics().record_clustering(result.clusters_created, result.keywords_assigned)
            _print_cluster_result(result)
        finally:
            await db.close()

    asyncio.run(run())


@cluster.command("recalculate")
@click.confirmation_option(prompt="Delete every cluster membership and re-cluster?")
def cluster_recalculate() -> None:
    """Drop all memberships and re-cluster from scratch."""
    from trend_tracker.clustering.repository import ClusterRepository
    from trend_tracker.clustering.service import KeywordClusterService
    from trend_tracker.keywords.repository import KeywordRepository
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            service = KeywordClusterService(KeywordRepository(db), ClusterRepository(db))
            result = await service.recalculate_all_clusters()
            get_metrics().record_clustering(result.clusters_created, result.keywords_assigned)
            _print_cluster_result(result)
        finally:
            await db.close()

    asyncio.run(run())


@cluster.command("list")
@click.option("--limit", default=20, help="Maximum clusters to show")
def cluster_list(limit: int) -> None:
    """List active clusters, newest first."""
    from trend_tracker.clustering.repository import ClusterRepository
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            clusters = await ClusterRepository(db).list_active(limit=limit)
            if not clusters:
                click.echo("No active clusters.")
                return

            click.echo(f"\nActive clusters ({len(clusters)}):")
            for c in clusters:
                click.echo(f"  {c.id:6d}  {c.name:30s} created {c.created_at:%Y-%m-%d}")
        finally:
            await db.close()

    asyncio.run(run())


@cluster.command("show")
@click.argument("cluster_id", type=int)
def cluster_show(cluster_id: int) -> None:
    """Show a cluster's members and combined score."""
    from trend_tracker.clustering.repository import ClusterRepository
    from trend_tracker.clustering.service import KeywordClusterService
    from trend_tracker.keywords.repository import KeywordRepository
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            service = KeywordClusterService(KeywordRepository(db), ClusterRepository(db))
            details = await service.get_cluster_details(cluster_id)
            if details is None:
                raise click.ClickException(f"Cluster {cluster_id} not found")

            click.echo(f"\nCluster {details.cluster_id}: {details.representative_keyword}")
            click.echo(f"  Combined score: {details.combined_score:.2f}")
            click.echo(f"  Sources:        {details.source_count}")
            click.echo(f"  Members:        {len(details.members)}")
            for member in details.members:
                signal = (
                    f"{member.latest_signal:g}" if member.latest_signal is not None else "-"
                )
                click.echo(
                    f"    {member.keyword:30s} {member.source.value:14s} "
                    f"sim={member.similarity_score:.3f} signal={signal}"
                )
        finally:
            await db.close()

    asyncio.run(run())


# ── Matching ────────────────────────────────────────────────


@main.group()
def match() -> None:
    """Keyword-to-product matching commands."""


@match.command("run")
@click.option("--keyword-id", default=None, type=int, help="Match a single keyword")
@click.option("--clear-existing", is_flag=True, help="Delete prior automatic matches first")
@click.option("--no-preserve-manual", is_flag=True, help="Allow overwriting manual matches")
def match_run(keyword_id: int | None, clear_existing: bool, no_preserve_manual: bool) -> None:
    """Match keywords to catalog products.

    Example:
        trend-tracker match run                        # Every active keyword
        trend-tracker match run --keyword-id 42        # One keyword
        trend-tracker match run --clear-existing       # Rebuild automatic matches
    """
    from trend_tracker.keywords.repository import KeywordNotFoundError, KeywordRepository
    from trend_tracker.matching.repository import MatchRepository, ProductRepository
    from trend_tracker.matching.service import ProductMatcher
    from trend_tracker.storage.database import Database

    preserve_manual = not no_preserve_manual

    async def run():
        db = Database()
        await db.connect()

        try:
            matcher = ProductMatcher(
                KeywordRepository(db), ProductRepository(db), MatchRepository(db)
            )

            if keyword_id is not None:
                try:
                    result = await matcher.match_keyword_to_products(
                        keyword_id,
                        clear_existing=clear_existing,
                        preserve_manual=preserve_manual,
                    )
                except KeywordNotFoundError as e:
                    raise click.ClickException(str(e))
                click.echo(f"\nKeyword {keyword_id}:")
                click.echo(f"  Matches created: {result.matched}")
                click.echo(f"  Matches updated: {result.updated}")
                return

            bulk = await matcher.match_all_keywords(
                clear_existing=clear_existing, preserve_manual=preserve_manual
            )
            get_metrics().record_matching(bulk.total_matched, bulk.total_updated)

            click.echo("\nMatching Results:")
            click.echo(f"  Keywords processed: {bulk.keywords_processed}")
            click.echo(f"  Matches created:    {bulk.total_matched}")
            click.echo(f"  Matches updated:    {bulk.total_updated}")
            click.echo(f"  Errors:             {len(bulk.errors)}")
            _print_errors(bulk.errors)
        finally:
            await db.close()

    asyncio.run(run())


@match.command("search")
@click.argument("text")
@click.option("--category", default=None, help="Restrict to one product category")
@click.option("--limit", default=10, help="Maximum results to return")
@click.option("--min-score", default=30.0, type=float, help="Minimum match score")
def match_search(text: str, category: str | None, limit: int, min_score: float) -> None:
    """Preview catalog matches for arbitrary text without saving."""
    from trend_tracker.keywords.repository import KeywordRepository
    from trend_tracker.matching.repository import MatchRepository, ProductRepository
    from trend_tracker.matching.service import ProductMatcher
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            matcher = ProductMatcher(
                KeywordRepository(db), ProductRepository(db), MatchRepository(db)
            )
            candidates = await matcher.find_matching_products(
                text, category=category, limit=limit, min_score=min_score
            )
            if not candidates:
                click.echo("No matching products.")
                return

            click.echo(f"\nMatches for {text!r}:")
            for c in candidates:
                click.echo(
                    f"  {c.score:6.2f}  {c.match_type.value:10s} {c.confidence.value:6s} "
                    f"{c.product_name} (id={c.product_id})"
                )
        finally:
            await db.close()

    asyncio.run(run())


@match.command("manual")
@click.argument("keyword_id", type=int)
@click.argument("product_id", type=int)
@click.option("--score", default=100.0, type=float, help="Match score to store")
def match_manual(keyword_id: int, product_id: int, score: float) -> None:
    """Link a keyword to a product by hand."""
    from trend_tracker.keywords.repository import KeywordNotFoundError, KeywordRepository
    from trend_tracker.matching.repository import (
        MatchRepository,
        ProductNotFoundError,
        ProductRepository,
    )
    from trend_tracker.matching.service import ProductMatcher
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            matcher = ProductMatcher(
                KeywordRepository(db), ProductRepository(db), MatchRepository(db)
            )
            try:
                await matcher.set_manual_match(keyword_id, product_id, score)
            except (KeywordNotFoundError, ProductNotFoundError) as e:
                raise click.ClickException(str(e))
            click.echo(f"Manual match saved: keyword {keyword_id} -> product {product_id}")
        finally:
            await db.close()

    asyncio.run(run())


@match.command("list")
@click.argument("keyword_id", type=int)
def match_list(keyword_id: int) -> None:
    """Show the products linked to a keyword, strongest first."""
    from trend_tracker.keywords.repository import KeywordNotFoundError, KeywordRepository
    from trend_tracker.matching.repository import MatchRepository, ProductRepository
    from trend_tracker.matching.service import ProductMatcher
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            matcher = ProductMatcher(
                KeywordRepository(db), ProductRepository(db), MatchRepository(db)
            )
            try:
                matches = await matcher.list_matches(keyword_id)
            except KeywordNotFoundError as e:
                raise click.ClickException(str(e))
            if not matches:
                click.echo(f"No matches for keyword {keyword_id}.")
                return

            click.echo(f"\nMatches for keyword {keyword_id}:")
            for m in matches:
                marker = "manual" if m.is_manual else ""
                click.echo(
                    f"  {m.match_score:6.2f}  {m.match_type.value:10s} "
                    f"product {m.product_id}  {marker}"
                )
        finally:
            await db.close()

    asyncio.run(run())


@match.command("remove")
@click.argument("keyword_id", type=int)
@click.argument("product_id", type=int)
def match_remove(keyword_id: int, product_id: int) -> None:
    """Delete the link between a keyword and a product."""
    from trend_tracker.keywords.repository import KeywordNotFoundError, KeywordRepository
    from trend_tracker.matching.repository import (
        MatchNotFoundError,
        MatchRepository,
        ProductRepository,
    )
    from trend_tracker.matching.service import ProductMatcher
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            matcher = ProductMatcher(
                KeywordRepository(db), ProductRepository(db), MatchRepository(db)
            )
            try:
                await matcher.remove_match(keyword_id, product_id)
            except (KeywordNotFoundError, MatchNotFoundError) as e:
                raise click.ClickException(str(e))
            click.echo(f"Match removed: keyword {keyword_id} -> product {product_id}")
        finally:
            await db.close()

    asyncio.run(run())


# ── Rankings ────────────────────────────────────────────────


@main.group()
def rank() -> None:
    """Ranking generation commands."""


def _print_ranking_result(result: Any) -> None:
    click.echo(
        f"  {result.period_kind.value:8s} period={result.period_id} "
        f"entries={result.rankings_created} errors={len(result.errors)}"
    )
    _print_errors(result.errors)


@rank.command("generate")
@click.option(
    "--period",
    "period_kind",
    type=click.Choice(["daily", "monthly", "yearly"], case_sensitive=False),
    default="daily",
    help="Period kind",
)
@click.option("--date", "target_date", default=None, type=click.DateTime(formats=_DATE_FORMATS),
              help="Date inside the period (default: today)")
def rank_generate(period_kind: str, target_date: Any) -> None:
    """Generate the leaderboard for one period.

    Example:
        trend-tracker rank generate --period daily
        trend-tracker rank generate --period monthly --date 2026-01
    """
    from trend_tracker.keywords.repository import KeywordRepository
    from trend_tracker.ranking.repository import RankingRepository
    from trend_tracker.ranking.schemas import PeriodKind
    from trend_tracker.ranking.service import RankingGenerator
    from trend_tracker.storage.database import Database

    kind = PeriodKind(period_kind.upper())

    async def run():
        db = Database()
        await db.connect()

        try:
            generator = RankingGenerator(KeywordRepository(db), RankingRepository(db))
            if target_date is not None:
                result = await generator.generate_rankings(
                    kind,
                    year=target_date.year,
                    month=target_date.month,
                    day=target_date.day,
                )
            else:
                result = await generator.generate_rankings(kind)
            get_metrics().record_ranking(kind.value, result.rankings_created)

            click.echo("\nRanking Results:")
            _print_ranking_result(result)
        finally:
            await db.close()

    asyncio.run(run())


@rank.command("all")
def rank_all() -> None:
    """Generate today's daily and monthly leaderboards."""
    from trend_tracker.keywords.repository import KeywordRepository
    from trend_tracker.ranking.repository import RankingRepository
    from trend_tracker.ranking.service import RankingGenerator
    from trend_tracker.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            generator = RankingGenerator(KeywordRepository(db), RankingRepository(db))
            results = await generator.generate_all_rankings()

            click.echo("\nRanking Results:")
            for kind, result in results.items():
                get_metrics().record_ranking(kind.value, result.rankings_created)
                _print_ranking_result(result)
        finally:
            await db.close()

    asyncio.run(run())


@rank.command("show")
@click.option(
    "--period",
    "period_kind",
    type=click.Choice(["daily", "monthly", "yearly"], case_sensitive=False),
    default="daily",
    help="Period kind",
)
@click.option("--date", "target_date", default=None, type=click.DateTime(formats=_DATE_FORMATS),
              help="Date inside the period (default: today)")
@click.option("--limit", default=20, help="Number of entries to show")
def rank_show(period_kind: str, target_date: Any, limit: int) -> None:
    """Show a stored leaderboard with rank changes.

    Example:
        trend-tracker rank show --period monthly --date 2026-01 --limit 10
    """
    from trend_tracker.keywords.repository import KeywordRepository
    from trend_tracker.ranking.config import RankingConfig
    from trend_tracker.ranking.periods import resolve_period_key
    from trend_tracker.ranking.repository import RankingRepository
    from trend_tracker.ranking.schemas import PeriodKind
    from trend_tracker.storage.database import Database

    kind = PeriodKind(period_kind.upper())
    offset = RankingConfig().utc_offset_hours
    if target_date is not None:
        key = resolve_period_key(
            kind, target_date.year, target_date.month, target_date.day, utc_offset_hours=offset
        )
    else:
        key = resolve_period_key(kind, utc_offset_hours=offset)

    async def run():
        db = Database()
        await db.connect()

        try:
            rankings = RankingRepository(db)
            period = await rankings.find_period(key)
            if period is None:
                raise click.ClickException(f"No {kind.value.lower()} ranking for {key.year}-"
                                           f"{key.month or '--'}-{key.day or '--'}")

            entries = await rankings.list_entries(period.id, limit=limit)
            keywords = KeywordRepository(db)
            click.echo(f"\n{kind.value} ranking ({period.started_at:%Y-%m-%d} "
                       f"to {period.ended_at:%Y-%m-%d}):")
            for entry in entries:
                kw = await keywords.get_by_id(entry.keyword_id)
                text = kw.keyword if kw is not None else f"#{entry.keyword_id}"
                change = entry.rank_change
                if change is None:
                    marker = "new"
                elif change > 0:
                    marker = f"+{change}"
                else:
                    marker = str(change)
                click.echo(f"  {entry.rank:4d}  {text:30s} {entry.score:7.2f}  {marker:>5s}")
        finally:
            await db.close()

    asyncio.run(run())


@rank.command("method")
def rank_method() -> None:
    """Explain how ranking scores are computed."""
    from trend_tracker.ranking.config import RankingConfig
    from trend_tracker.ranking.service import describe_ranking_method

    description = describe_ranking_method(RankingConfig())
    click.echo(f"\n{description['title']}")
    click.echo(f"  {description['description']}\n")
    for factor in description["factors"]:
        click.echo(f"  {factor['name']:16s} max {factor['max_points']:g}")
        click.echo(f"    {factor['description']}")


# ── Pipeline ────────────────────────────────────────────────


@main.command()
@click.option("--metrics/--no-metrics", default=False, help="Expose Prometheus metrics while running")
def pipeline(metrics: bool) -> None:
    """Run clustering, matching, and ranking in sequence.

    Designed for cron scheduling: 0 * * * * trend-tracker pipeline
    """
    from trend_tracker.pipeline import run_trend_pipeline
    from trend_tracker.storage.database import Database

    async def run():
        if metrics:
            get_metrics().start_server()

        db = Database()
        await db.connect()

        try:
            return await run_trend_pipeline(db)
        finally:
            await db.close()

    result = asyncio.run(run())

    click.echo(f"\nPipeline Results ({result.started_at:%Y-%m-%d %H:%M}):")
    if result.clustering is not None:
        click.echo(
            f"  Clustering: {result.clustering.clusters_created} created, "
            f"{result.clustering.keywords_assigned} assigned"
        )
    if result.matching is not None:
        click.echo(
            f"  Matching:   {result.matching.keywords_processed} keywords, "
            f"{result.matching.total_matched} created, {result.matching.total_updated} updated"
        )
    for kind, run_result in result.rankings.items():
        click.echo(f"  Ranking:    {kind.value} {run_result.rankings_created} entries")
    click.echo(f"  Item errors:  {result.item_errors}")
    click.echo(f"  Phase errors: {len(result.errors)}")
    click.echo(f"  Elapsed:      {result.elapsed_seconds:.2f}s")
    _print_errors(result.errors)

    if result.errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
