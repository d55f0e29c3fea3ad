"""Prometheus metrics for the gateway engine and HTTP layer."""

from tron_gateway.metrics.collector import GatewayMetrics, MetricsCollector

__all__ = ["GatewayMetrics", "MetricsCollector"]
