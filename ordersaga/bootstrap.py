"""
Wiring helpers: build a ready-to-use saga (and reconciler) from configuration.

Example:
    >>> config = OrderSagaConfig.from_env()
    >>> saga = build_saga(config, identity, catalog, gateway, publisher=events)
    >>> reconciler = build_reconciler(saga, config)
"""

from ordersaga.collaborators.base import (
    CatalogLookup,
    EventPublisher,
    IdentityLookup,
    PaymentGateway,
)
from ordersaga.core.config import OrderSagaConfig, get_config
from ordersaga.monitoring.logging import setup_order_logging
from ordersaga.monitoring.metrics import OrderMetrics
from ordersaga.payment import PaymentCoordinator
from ordersaga.reconciler import PendingOrderReconciler
from ordersaga.resolver import PriceIdentityResolver
from ordersaga.saga import OrderSaga
from ordersaga.storage.factory import create_storage


def create_metrics(config: OrderSagaConfig):
    """Metrics collector selected by config, or None when metrics are off."""
    if not config.metrics:
        return None
    if config.prometheus:
        from ordersaga.monitoring.prometheus import PrometheusOrderMetrics

        return PrometheusOrderMetrics()
    return OrderMetrics()


def build_saga(
    config: OrderSagaConfig | None,
    identity: IdentityLookup,
    catalog: CatalogLookup,
    gateway: PaymentGateway,
    publisher: EventPublisher | None = None,
    setup_logging: bool = False,
) -> OrderSaga:
    """
    Build an OrderSaga with stores, metrics and timeouts taken from ``config``.

    Args:
        config: Configuration (the global one if None)
        identity: Identity service adapter
        catalog: Catalog service adapter
        gateway: Payment service adapter
        publisher: Receives PaymentSucceeded events
        setup_logging: Install the structured console handler as well
    """
    config = config or get_config()
    store, saga_log = create_storage(config.storage_url)

    saga_logger = None
    if setup_logging:
        saga_logger = setup_order_logging(log_level=config.log_level, json_format=config.log_json)

    return OrderSaga(
        resolver=PriceIdentityResolver(identity, catalog, call_timeout=config.call_timeout),
        store=store,
        payments=PaymentCoordinator(gateway, call_timeout=config.call_timeout),
        saga_log=saga_log,
        publisher=publisher,
        metrics=create_metrics(config),
        saga_logger=saga_logger,
    )


def build_reconciler(
    saga: OrderSaga, config: OrderSagaConfig | None = None
) -> PendingOrderReconciler:
    config = config or get_config()
    return PendingOrderReconciler(
        saga,
        stale_after=config.reconcile_stale_after,
        max_attempts=config.reconcile_max_attempts,
    )
