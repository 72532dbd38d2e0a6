"""
Fee Histogram Prometheus Metrics
================================
Exposes fee-histogram pipeline metrics for Prometheus scraping.

Metrics:
- fee_blocks_ingested_total: Blocks added to the window
- fee_window_rebuilds_total: Block histogram rebuilds
- fee_window_rebuild_seconds: Rebuild latency histogram
- fee_unresolved_tx_total: Transactions without a resolvable fee (source=block|mempool)
- fee_negative_fee_total: Integrity faults (outputs exceed inputs)
- fee_mempool_tracked: Transactions counted in the mempool histogram
- fee_histogram_bucket_count: Current count per bucket (histogram=block|mempool)
- fee_estimate_sat_vbyte: Last estimate per block target
"""

import logging
from typing import Dict, Optional, Sequence

from prometheus_client import (
    CollectorRegistry, Counter, Gauge, Histogram, start_http_server,
)

logger = logging.getLogger(__name__)


class MetricsExporter:
    """
    Prometheus metrics exporter with its own registry.

    Usage:
        metrics = MetricsExporter(port=8000)
        metrics.start_server()
        metrics.record_block_ingested()
        metrics.set_histogram("block", counts)
    """

    def __init__(self, port: int = 8000, registry: CollectorRegistry = None):
        self.port = port
        self.registry = registry or CollectorRegistry()
        self._server_started = False
        self._init_metrics()

    def _init_metrics(self):
        """Initialize Prometheus metric objects."""
        r = self.registry

        # Counters
        self.blocks_ingested = Counter(
            "fee_blocks_ingested_total",
            "Blocks added to the sliding window",
            registry=r,
        )
        self.window_rebuilds = Counter(
            "fee_window_rebuilds_total",
            "Block window histogram rebuilds",
            registry=r,
        )
        self.unresolved = Counter(
            "fee_unresolved_tx_total",
            "Transactions whose fee could not be resolved",
            ["source"],  # block, mempool
            registry=r,
        )
        self.negative_fee = Counter(
            "fee_negative_fee_total",
            "Transactions whose outputs exceed their inputs",
            registry=r,
        )

        # Histograms
        self.rebuild_latency = Histogram(
            "fee_window_rebuild_seconds",
            "Block window histogram rebuild latency",
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=r,
        )

        # Gauges
        self.mempool_tracked = Gauge(
            "fee_mempool_tracked",
            "Transactions counted in the mempool histogram",
            registry=r,
        )
        self.bucket_count = Gauge(
            "fee_histogram_bucket_count",
            "Current transaction count per fee-rate bucket",
            ["histogram", "bucket"],
            registry=r,
        )
        self.estimate = Gauge(
            "fee_estimate_sat_vbyte",
            "Last fee estimate per block target",
            ["block_target"],
            registry=r,
        )

    def start_server(self):
        """Start the HTTP server for Prometheus scraping."""
        if self._server_started:
            logger.warning("Metrics server already started")
            return

        try:
            start_http_server(self.port, registry=self.registry)
            self._server_started = True
            logger.info(f"Prometheus metrics server started on port {self.port}")
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")

    # =========================================================================
    # CONVENIENCE METHODS
    # =========================================================================

    def record_block_ingested(self):
        self.blocks_ingested.inc()

    def record_rebuild(self, latency_seconds: Optional[float] = None):
        self.window_rebuilds.inc()
        if latency_seconds is not None:
            self.rebuild_latency.observe(latency_seconds)

    def record_unresolved(self, source: str, count: int = 1):
        if count:
            self.unresolved.labels(source=source).inc(count)

    def record_negative_fee(self):
        self.negative_fee.inc()

    def set_mempool_tracked(self, count: int):
        self.mempool_tracked.set(count)

    def set_histogram(self, name: str, counts: Sequence[int]):
        """Publish every bucket count of a histogram."""
        for i, count in enumerate(counts):
            self.bucket_count.labels(histogram=name, bucket=str(i)).set(count)

    def set_estimates(self, estimates: Dict[int, float]):
        for target, value in estimates.items():
            self.estimate.labels(block_target=str(target)).set(value)

    def value(self, name: str, labels: Dict[str, str] = None) -> Optional[float]:
        """Current sample value from this exporter's registry."""
        return self.registry.get_sample_value(name, labels or {})

