"""
Core module for ordersaga - types, errors, configuration and logging.
"""

from ordersaga.core.config import OrderSagaConfig, configure, get_config
from ordersaga.core.exceptions import (
    AmountMismatch,
    CatalogPartialMiss,
    CatalogUnavailable,
    ConcurrencyConflict,
    DependencyError,
    EmptyProductList,
    IdentityNotFound,
    IdentityUnavailable,
    InvalidStatusTransition,
    OrderNotFound,
    OrderSagaError,
    PaymentDeclined,
    PaymentTransportError,
    SerializationError,
    StorageError,
    TransportError,
    ValidationError,
)
from ordersaga.core.logger import NullLogger, get_logger, set_logger
from ordersaga.core.state_machine import OrderStateMachine
from ordersaga.core.types import (
    CreateOrderRequest,
    Customer,
    Order,
    OrderStatus,
    Payment,
    PaymentOutcome,
    ProductSnapshot,
    SagaLogEntry,
    SagaStep,
)

__all__ = [
    # Config
    "OrderSagaConfig",
    "configure",
    "get_config",
    # Exceptions
    "AmountMismatch",
    "CatalogPartialMiss",
    "CatalogUnavailable",
    "ConcurrencyConflict",
    "DependencyError",
    "EmptyProductList",
    "IdentityNotFound",
    "IdentityUnavailable",
    "InvalidStatusTransition",
    "OrderNotFound",
    "OrderSagaError",
    "PaymentDeclined",
    "PaymentTransportError",
    "SerializationError",
    "StorageError",
    "TransportError",
    "ValidationError",
    # Logger
    "NullLogger",
    "get_logger",
    "set_logger",
    # State machine
    "OrderStateMachine",
    # Types
    "CreateOrderRequest",
    "Customer",
    "Order",
    "OrderStatus",
    "Payment",
    "PaymentOutcome",
    "ProductSnapshot",
    "SagaLogEntry",
    "SagaStep",
]
