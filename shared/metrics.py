"""
Shared metrics configuration for the Daylight traffic cache layer.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, start_http_server


class MetricsCollector:
    """Prometheus metrics collector for the cache layer and upstream calls.

    Each collector owns its registry unless one is passed in, so several
    collectors (tests, multiple applications in one process) never clash on
    metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        self._metrics["cache_operations_total"] = Counter(
            "cache_operations_total",
            "Total cache operations by outcome",
            ["namespace", "operation"],
            registry=self.registry
        )

        self._metrics["upstream_requests_total"] = Counter(
            "upstream_requests_total",
            "Total upstream lookups by outcome",
            ["provider", "outcome"],
            registry=self.registry
        )

        self._metrics["upstream_request_duration_seconds"] = Histogram(
            "upstream_request_duration_seconds",
            "Upstream lookup duration in seconds",
            ["provider"],
            registry=self.registry
        )

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus metrics server."""
        start_http_server(port, registry=self.registry)

    def record_cache_operation(self, namespace: str, operation: str):
        """Record a cache hit, miss, set or invalidation."""
        self._metrics["cache_operations_total"].labels(
            namespace=namespace,
            operation=operation
        ).inc()

    def record_upstream_request(self, provider: str, outcome: str):
        """Record the outcome of an upstream lookup."""
        self._metrics["upstream_requests_total"].labels(provider=provider, outcome=outcome).inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start_time
            if operation_name in self._metrics:
                self._metrics[operation_name].labels(**labels).observe(duration)

    def sample(self, metric_name: str, **labels) -> float:
        """Read back the current value of a metric sample (0.0 when unseen)."""
        value = self.registry.get_sample_value(metric_name, labels)
        return value or 0.0


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
