"""Observability layer - logging and metrics."""

from trend_tracker.observability.logging import bind_context, clear_context, setup_logging
from trend_tracker.observability.metrics import MetricsCollector, get_metrics

__all__ = ["bind_context", "clear_context", "setup_logging", "MetricsCollector", "get_metrics"]
