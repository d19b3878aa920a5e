"""
Metrics collection for order sagas
"""

from typing import Any

from ordersaga.core.types import OrderStatus


class OrderMetrics:
    """Collect and expose order saga metrics"""

    def __init__(self):
        self.metrics = {
            "total_orders": 0,
            "total_processed": 0,
            "total_declined": 0,
            "total_pending": 0,
            "total_rejected": 0,
            "average_execution_time": 0.0,
            "failures_by_kind": {},
            "deliveries": {},
        }

    def record_order(self, status: OrderStatus | None, duration: float) -> None:
        """
        Record one create-order run.

        Args:
            status: Final order status, or None when nothing was persisted
            duration: Wall time in seconds
        """
        self.metrics["total_orders"] += 1
        self._increment_status_counter(status)
        self._update_average_time(duration)

    def _increment_status_counter(self, status: OrderStatus | None) -> None:
        status_map = {
            OrderStatus.PAYMENT_PROCESSED: "total_processed",
            OrderStatus.PAYMENT_FAILED: "total_declined",
            OrderStatus.PENDING: "total_pending",
            None: "total_rejected",
        }
        counter = status_map.get(status)
        if counter:
            self.metrics[counter] += 1

    def _update_average_time(self, duration: float) -> None:
        total_time = self.metrics["average_execution_time"] * (self.metrics["total_orders"] - 1)
        self.metrics["average_execution_time"] = (total_time + duration) / self.metrics[
            "total_orders"
        ]

    def record_failure(self, kind: str) -> None:
        """Count a failure by exception class name"""
        by_kind = self.metrics["failures_by_kind"]
        by_kind[kind] = by_kind.get(kind, 0) + 1

    def record_delivery(self, outcome: str) -> None:
        """Count a delivery-started event by outcome (applied, duplicate, deferred, ignored)"""
        deliveries = self.metrics["deliveries"]
        deliveries[outcome] = deliveries.get(outcome, 0) + 1

    def get_metrics(self) -> dict[str, Any]:
        success_rate = (
            self.metrics["total_processed"] / self.metrics["total_orders"] * 100
            if self.metrics["total_orders"] > 0
            else 0
        )

        return {
            **self.metrics,
            "success_rate": f"{success_rate:.2f}%",
        }
