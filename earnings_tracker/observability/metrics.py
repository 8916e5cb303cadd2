"""
Prometheus metrics for monitoring the earnings backfill pipeline.

Defines and exposes metrics for:
- Record store writes (applied vs. rejected by the confidence gate)
- Backfill attempt outcomes and latency
- Fact extraction outcomes
- Blob store persistence errors

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from earnings_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


class MetricsCollector:
    """
    Prometheus metrics collector for the earnings-tracker pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_upsert(applied=True)
        metrics.record_backfill("succeeded", latency=0.02)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.record_upserts = Counter(
            "earnings_tracker_record_upserts_total",
            "Record store writes by outcome",
            ["outcome"],  # applied, rejected
        )

        self.records_stored = Gauge(
            "earnings_tracker_records_stored",
            "Number of earnings records currently held in the store",
        )

        self.records_pruned = Counter(
            "earnings_tracker_records_pruned_total",
            "Records dropped by retention pruning",
        )

        self.backfill_attempts = Counter(
            "earnings_tracker_backfill_attempts_total",
            "Backfill requests by outcome",
            ["outcome"],  # skipped, duplicate, succeeded, failed
        )

        self.backfill_latency = Histogram(
            "earnings_tracker_backfill_latency_seconds",
            "Time to run the ranking and extraction cascade for one key",
            buckets=LATENCY_BUCKETS,
        )

        self.extractions = Counter(
            "earnings_tracker_extractions_total",
            "Fact extraction outcomes per candidate article",
            ["outcome"],  # usable, unusable, not_earnings, error
        )

        self.persistence_errors = Counter(
            "earnings_tracker_persistence_errors_total",
            "Blob store read/write failures",
            ["blob", "operation"],  # operation: load, save
        )

        self.news_index_version = Gauge(
            "earnings_tracker_news_index_version",
            "Current news index version",
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

    def record_upsert(self, applied: bool, count: int = 1) -> None:
        """Record store write outcome."""
        outcome = "applied" if applied else "rejected"
        self.record_upserts.labels(outcome=outcome).inc(count)

    def record_backfill(self, outcome: str, latency: float | None = None) -> None:
        """
        Record a backfill request outcome.

        Args:
            outcome: skipped, duplicate, succeeded or failed
            latency: Cascade duration in seconds, when the cascade ran
        """
        self.backfill_attempts.labels(outcome=outcome).inc()
        if latency is not None:
            self.backfill_latency.observe(latency)

    def record_extraction(self, outcome: str) -> None:
        """Record the outcome of extracting one candidate article."""
        self.extractions.labels(outcome=outcome).inc()

    def record_persistence_error(self, blob: str, operation: str) -> None:
        """Record a swallowed blob store failure."""
        self.persistence_errors.labels(blob=blob, operation=operation).inc()


_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
