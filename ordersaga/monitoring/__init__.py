"""
Monitoring: structured logging and metrics for the order saga.
"""

from ordersaga.monitoring.logging import (
    OrderContextFilter,
    OrderJsonFormatter,
    OrderSagaLogger,
    order_context,
    setup_order_logging,
)
from ordersaga.monitoring.metrics import OrderMetrics

__all__ = [
    "OrderContextFilter",
    "OrderJsonFormatter",
    "OrderMetrics",
    "OrderSagaLogger",
    "order_context",
    "setup_order_logging",
]
