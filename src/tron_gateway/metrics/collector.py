"""Metrics collector: Prometheus counters, gauges, histograms.

Exposed series:
- ``tron_gateway_transfers_total`` counter by terminal status
- ``tron_gateway_incoming_recorded_total`` counter
- ``tron_gateway_sponsorship_total`` counter by outcome
- ``tron_gateway_fee_quotes_total`` counter by fee source
- ``tron_gateway_pending_transfers`` gauge
- ``tron_gateway_cron_histogram`` / ``tron_gateway_cron_last_execution_gauge``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

_PREFIX = "tron_gateway"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`GatewayMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class GatewayMetrics:
    """High-level settlement pipeline metrics."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._transfers = self._collector.counter(
            f"{_PREFIX}_transfers_total",
            "Outgoing transfers reaching a terminal status",
            ("status",),
        )
        self._incoming = self._collector.counter(
            f"{_PREFIX}_incoming_recorded_total",
            "Incoming transactions recorded by the monitor",
        )
        self._sponsorship = self._collector.counter(
            f"{_PREFIX}_sponsorship_total",
            "Gas sponsorship attempts by outcome",
            ("outcome",),
        )
        self._fee_quotes = self._collector.counter(
            f"{_PREFIX}_fee_quotes_total",
            "Fee quotes computed by pricing tier",
            ("source",),
        )
        self._pending = self._collector.gauge(
            f"{_PREFIX}_pending_transfers",
            "Outgoing transfers waiting in the PENDING queue",
        )

        self._cron_histogram = self._collector.histogram(
            f"{_PREFIX}_cron_histogram",
            "Duration of cron job executions",
            ("job_name",),
        )
        self._cron_last = self._collector.gauge(
            f"{_PREFIX}_cron_last_execution_gauge",
            "Timestamp of last cron execution",
            ("job_name",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def record_transfer(self, status: str) -> None:
        self._transfers.labels(status=status).inc()

    def record_incoming(self, count: int = 1) -> None:
        self._incoming.inc(count)

    def record_sponsorship(self, outcome: str) -> None:
        self._sponsorship.labels(outcome=outcome).inc()

    def record_fee_quote(self, source: str) -> None:
        self._fee_quotes.labels(source=source).inc()

    def set_pending_transfers(self, count: int) -> None:
        self._pending.set(count)

    @contextmanager
    def track_cron(self, job_name: str) -> Iterator[None]:
        """Track the duration of a cron job and record last execution time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._cron_histogram.labels(job_name=job_name).observe(time.monotonic() - start)
            self._cron_last.labels(job_name=job_name).set(time.time())
