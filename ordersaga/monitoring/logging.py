"""
Structured logging for order saga execution

Every log line emitted while an order is in flight carries the order id,
the saga step and a correlation id, propagated through a context variable
so that concurrent sagas do not mix their context.
"""

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from ordersaga.core.types import OrderStatus

# Context variables for propagating order context
order_context: ContextVar[dict[str, Any]] = ContextVar("order_context", default={})


class OrderJsonFormatter(logging.Formatter):
    """JSON formatter for order saga logs with structured fields"""

    _EXTRA_FIELDS = (
        "order_id",
        "step_name",
        "correlation_id",
        "status",
        "duration_ms",
        "error_type",
    )

    def format(self, record: logging.LogRecord) -> str:
        log_entry = self._build_base_entry(record)
        self._add_order_context(log_entry)
        self._add_record_extras(log_entry, record)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)

    def _build_base_entry(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

    def _add_order_context(self, log_entry: dict[str, Any]) -> None:
        context = order_context.get({})
        if context:
            log_entry.update(
                {
                    "order_id": context.get("order_id"),
                    "step_name": context.get("step_name"),
                    "correlation_id": context.get("correlation_id"),
                }
            )

    def _add_record_extras(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        for field in self._EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)


class OrderContextFilter(logging.Filter):
    """Logging filter that adds order context to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        context = order_context.get({})

        # Values passed through ``extra`` win over the ambient context
        if getattr(record, "order_id", None) is None:
            record.order_id = context.get("order_id") or "unknown"
        if getattr(record, "step_name", None) is None:
            record.step_name = context.get("step_name") or ""
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = context.get("correlation_id") or ""

        return True


class OrderSagaLogger:
    """
    Order-aware logger with automatic context propagation
    """

    def __init__(self, name: str = "ordersaga.saga"):
        self.logger = logging.getLogger(name)
        if not any(isinstance(f, OrderContextFilter) for f in self.logger.filters):
            self.logger.addFilter(OrderContextFilter())

    def set_order_context(
        self,
        order_id: str | None,
        step_name: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        """Set order context for current execution"""
        current = order_context.get({})
        order_context.set(
            {
                "order_id": order_id,
                "step_name": step_name,
                "correlation_id": correlation_id or current.get("correlation_id") or order_id,
            }
        )

    def clear_order_context(self) -> None:
        order_context.set({})

    def saga_started(self, user_id: str, product_count: int, correlation_id: str) -> None:
        self.set_order_context(None, "start", correlation_id=correlation_id)
        self.logger.info(
            f"Order saga started for user {user_id} with {product_count} products",
            extra={"correlation_id": correlation_id},
        )

    def step_started(self, step_name: str, order_id: str | None = None) -> None:
        current = order_context.get({})
        self.set_order_context(order_id or current.get("order_id"), step_name)
        self.logger.debug(f"Step started: {step_name}")

    def step_failed(self, error: Exception, step_name: str | None = None) -> None:
        step_name = step_name or order_context.get({}).get("step_name") or "unknown"
        self.logger.warning(
            f"Step failed: {step_name} - {error!s}",
            extra={"step_name": step_name, "error_type": type(error).__name__},
        )

    def saga_finished(
        self, order_id: str | None, status: OrderStatus | None, duration_ms: float
    ) -> None:
        level = logging.INFO if status == OrderStatus.PAYMENT_PROCESSED else logging.WARNING
        status_value = status.value if status else "not_created"
        self.logger.log(
            level,
            f"Order saga finished: {order_id or '-'} - Status: {status_value}",
            extra={"order_id": order_id, "status": status_value, "duration_ms": duration_ms},
        )

    def delivery_event(self, order_id: str, outcome: str) -> None:
        self.set_order_context(order_id, "delivery_started")
        level = logging.INFO if outcome in ("applied", "duplicate") else logging.WARNING
        self.logger.log(
            level,
            f"Delivery started event for order {order_id}: {outcome}",
            extra={"order_id": order_id},
        )

    def compensation_recorded(self, order_id: str, status: OrderStatus) -> None:
        self.logger.warning(
            f"Compensation recorded: order {order_id} -> {status.value}",
            extra={"order_id": order_id, "status": status.value},
        )


def setup_order_logging(
    log_level: str = "INFO", json_format: bool = True, include_console: bool = True
) -> OrderSagaLogger:
    """
    Set up structured logging for the ``ordersaga`` namespace

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON formatting for structured logs
        include_console: Include console handler
    """
    root_logger = logging.getLogger("ordersaga")
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if include_console:
        console_handler = logging.StreamHandler()
        console_handler.addFilter(OrderContextFilter())

        if json_format:
            console_handler.setFormatter(OrderJsonFormatter())
        else:
            console_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - "
                    "[%(order_id)s:%(step_name)s] - %(message)s"
                )
            )

        root_logger.addHandler(console_handler)

    return OrderSagaLogger()
