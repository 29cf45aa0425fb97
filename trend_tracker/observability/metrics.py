"""
Prometheus metrics for monitoring the trend batch jobs.

Defines and exposes metrics for:
- Cluster creation and keyword assignment
- Product match writes
- Ranking entries generated per period kind
- Per-item error counts
- Batch latency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    start_http_server,
)

from trend_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

# Batch jobs scan the full keyword set, so latencies run long
BATCH_LATENCY_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the trend-tracker batch jobs.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_clustering(clusters_created=3, keywords_assigned=11)
        metrics.record_batch("ranking", latency=4.2, errors=0)
    """

    def __init__(self) -> None:
        self.clusters_created = Counter(
            "trend_tracker_clusters_created_total",
            "Total keyword clusters created",
        )

        self.keywords_clustered = Counter(
            "trend_tracker_keywords_clustered_total",
            "Total keywords assigned to clusters",
        )

        self.matches_written = Counter(
            "trend_tracker_product_matches_written_total",
            "Total keyword-product match rows written",
            ["operation"],  # created, updated
        )

        self.ranking_entries = Counter(
            "trend_tracker_ranking_entries_total",
            "Total ranking entries generated",
            ["period_kind"],
        )

        self.batch_errors = Counter(
            "trend_tracker_batch_errors_total",
            "Total per-item errors recorded by batch jobs",
            ["job"],  # clustering, matching, ranking
        )

        self.batch_latency = Histogram(
            "trend_tracker_batch_latency_seconds",
            "Wall-clock time of a batch job",
            ["job"],
            buckets=BATCH_LATENCY_BUCKETS,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_clustering(self, clusters_created: int, keywords_assigned: int) -> None:
        """Record the outcome of a clustering run."""
        if clusters_created:
            self.clusters_created.inc(clusters_created)
        if keywords_assigned:
            self.keywords_clustered.inc(keywords_assigned)

    def record_matching(self, created: int, updated: int) -> None:
        """Record product match rows written by a matching run."""
        if created:
            self.matches_written.labels(operation="created").inc(created)
        if updated:
            self.matches_written.labels(operation="updated").inc(updated)

    def record_ranking(self, period_kind: str, entries: int) -> None:
        """Record ranking entries generated for a period kind."""
        self.ranking_entries.labels(period_kind=period_kind).inc(entries)

    def record_batch(self, job: str, latency: float, errors: int = 0) -> None:
        """
        Record batch job latency and error count.

        Args:
            job: Job name (clustering, matching, ranking)
            latency: Wall-clock seconds
            errors: Number of per-item errors the job reported
        """
        if latency > 0:
            self.batch_latency.labels(job=job).observe(latency)
        if errors:
            self.batch_errors.labels(job=job).inc(errors)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
