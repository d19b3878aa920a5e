"""
Prometheus metrics integration for ordersaga.

Quick Start:
    >>> from ordersaga.monitoring.prometheus import PrometheusOrderMetrics, start_metrics_server
    >>>
    >>> start_metrics_server(port=8000)
    >>> metrics = PrometheusOrderMetrics()
    >>> saga = OrderSaga(resolver, store, payments, metrics=metrics)
"""

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, start_http_server

from ordersaga.core.logger import get_logger
from ordersaga.core.types import OrderStatus

logger = get_logger(__name__)


class PrometheusOrderMetrics:
    """
    Prometheus-compatible metrics collector.

    Exposes the following metrics:
        - <prefix>_created_total: Counter of create-order runs by final status
        - <prefix>_failures_total: Counter of failures by error kind
        - <prefix>_delivery_events_total: Counter of delivery events by outcome
        - <prefix>_saga_duration_seconds: Histogram of create-order durations

    Args:
        prefix: Metric name prefix (default: "ordersaga")
        registry: Registry to register with (default: the global one)
    """

    def __init__(self, prefix: str = "ordersaga", registry: CollectorRegistry | None = None):
        registry = registry if registry is not None else REGISTRY
        self._prefix = prefix

        self._created_total = Counter(
            f"{prefix}_created_total",
            "Create-order runs by final order status",
            ["status"],
            registry=registry,
        )
        self._failures_total = Counter(
            f"{prefix}_failures_total",
            "Create-order failures by error kind",
            ["kind"],
            registry=registry,
        )
        self._delivery_total = Counter(
            f"{prefix}_delivery_events_total",
            "Delivery-started events by outcome",
            ["outcome"],
            registry=registry,
        )
        self._duration = Histogram(
            f"{prefix}_saga_duration_seconds",
            "Create-order duration in seconds",
            buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry,
        )

    def record_order(self, status: OrderStatus | None, duration: float) -> None:
        status_str = status.value if status is not None else "rejected"
        self._created_total.labels(status=status_str).inc()
        self._duration.observe(duration)

    def record_failure(self, kind: str) -> None:
        self._failures_total.labels(kind=kind).inc()

    def record_delivery(self, outcome: str) -> None:
        self._delivery_total.labels(outcome=outcome).inc()


def start_metrics_server(port: int = 8000, addr: str = "0.0.0.0") -> None:
    """
    Start a Prometheus HTTP metrics server.

    Metrics become available at http://<addr>:<port>/metrics
    """
    start_http_server(port, addr)
    logger.info(f"Prometheus metrics server started on port {port}")
