"""
ordersaga - Order creation saga for an e-commerce checkout.

Resolves the customer and product prices, validates the declared payment
amount, persists the order as ``pending`` and then charges payment, recording
the outcome (``paymentProcessed`` or ``paymentFailed``) on the order. A
separate delivery-started event moves paid orders to ``deliveryStarted``.
Orders left ``pending`` by a crash or an unreachable payment service are
picked up by the reconciler.

Usage:
    >>> from ordersaga import OrderSagaConfig, build_saga, CreateOrderRequest, Payment
    >>>
    >>> saga = build_saga(OrderSagaConfig(), identity, catalog, gateway)
    >>> order = await saga.create_order(
    ...     CreateOrderRequest(
    ...         product_ids=["p1", "p2"],
    ...         address={"street": "Main St 1"},
    ...         payment=Payment(amount=2500),
    ...         user_id="u1",
    ...     )
    ... )
    >>> order.status
    <OrderStatus.PAYMENT_PROCESSED: 'paymentProcessed'>
    >>>
    >>> await saga.on_delivery_started(order.id)
"""

from ordersaga.bootstrap import build_reconciler, build_saga
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
    TransportError,
    ValidationError,
)
from ordersaga.core.types import (
    CreateOrderRequest,
    Customer,
    Order,
    OrderStatus,
    Payment,
    PaymentOutcome,
    ProductSnapshot,
    SagaStep,
)
from ordersaga.payment import PaymentCoordinator
from ordersaga.reconciler import PendingOrderReconciler, ReconcileReport
from ordersaga.resolver import PriceIdentityResolver
from ordersaga.saga import OrderSaga

__version__ = "0.1.0"

__all__ = [
    # Primary exports
    "OrderSaga",
    "PriceIdentityResolver",
    "PaymentCoordinator",
    "PendingOrderReconciler",
    "ReconcileReport",
    "build_saga",
    "build_reconciler",
    # Configuration
    "OrderSagaConfig",
    "configure",
    "get_config",
    # Types
    "CreateOrderRequest",
    "Customer",
    "Order",
    "OrderStatus",
    "Payment",
    "PaymentOutcome",
    "ProductSnapshot",
    "SagaStep",
    # Exceptions
    "OrderSagaError",
    "ValidationError",
    "EmptyProductList",
    "IdentityNotFound",
    "CatalogPartialMiss",
    "AmountMismatch",
    "DependencyError",
    "IdentityUnavailable",
    "CatalogUnavailable",
    "PaymentTransportError",
    "PaymentDeclined",
    "OrderNotFound",
    "InvalidStatusTransition",
    "ConcurrencyConflict",
    "TransportError",
]
