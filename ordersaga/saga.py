"""
Order creation saga.

Turns a checkout request into a persisted order:

    1. resolve customer          (identity service)
    2. resolve products          (catalog service, one batched call)
    3. validate declared amount
    4. create order (pending)    <- durability point
    5. charge payment            (payment service)
       approved  -> paymentProcessed
       declined  -> paymentFailed, then PaymentDeclined is re-raised
       transport -> left pending, PaymentTransportError is re-raised

Failures in steps 1-3 leave nothing behind. After step 4 a failure is
recorded, never erased. Each step is appended to the saga log so that
orders stuck in ``pending`` can be found and resumed by the reconciler.

The delivery-started event arrives later, out of band, and only moves
``paymentProcessed`` orders to ``deliveryStarted``.

Example:
    >>> saga = OrderSaga(
    ...     resolver=PriceIdentityResolver(identity, catalog),
    ...     store=InMemoryOrderStore(),
    ...     payments=PaymentCoordinator(gateway),
    ... )
    >>> order = await saga.create_order(
    ...     CreateOrderRequest(["p1", "p2"], address, Payment(amount=2500), user_id="u1")
    ... )
"""

import time
import uuid

from ordersaga.collaborators.base import EventPublisher, PaymentSucceeded
from ordersaga.core.exceptions import (
    ConcurrencyConflict,
    InvalidStatusTransition,
    OrderNotFound,
    OrderSagaError,
    PaymentDeclined,
    PaymentTransportError,
)
from ordersaga.core.logger import get_logger
from ordersaga.core.types import CreateOrderRequest, Order, OrderStatus, SagaStep
from ordersaga.monitoring.logging import OrderSagaLogger
from ordersaga.payment import PaymentCoordinator
from ordersaga.resolver import PriceIdentityResolver
from ordersaga.storage.base import OrderStore, SagaLog
from ordersaga.storage.memory import InMemorySagaLog

logger = get_logger(__name__)

# Re-read and retry limit for status writes that lose a race
_MAX_STATUS_ATTEMPTS = 3


class OrderSaga:
    """
    Orchestrates order creation and the delivery-started event.

    Args:
        resolver: Customer/product resolution and amount validation (needed by create_order)
        store: Order persistence
        payments: Payment coordinator (needed by create_order and resume_payment)
        saga_log: Saga progress log (in-memory if omitted)
        publisher: Receives PaymentSucceeded after a successful charge
        metrics: OrderMetrics or PrometheusOrderMetrics
        saga_logger: Structured logger (default OrderSagaLogger)
    """

    def __init__(
        self,
        resolver: PriceIdentityResolver | None,
        store: OrderStore,
        payments: PaymentCoordinator | None,
        saga_log: SagaLog | None = None,
        publisher: EventPublisher | None = None,
        metrics=None,
        saga_logger: OrderSagaLogger | None = None,
    ):
        self.resolver = resolver
        self.store = store
        self.payments = payments
        self.saga_log = saga_log if saga_log is not None else InMemorySagaLog()
        self.publisher = publisher
        self.metrics = metrics
        self.log = saga_logger or OrderSagaLogger()

    # ------------------------------------------------------------------
    # Create order
    # ------------------------------------------------------------------

    async def create_order(self, request: CreateOrderRequest) -> Order:
        """
        Run the create-order saga.

        Returns:
            The persisted order in ``paymentProcessed`` (or ``deliveryStarted``
            if the delivery event overtook the payment write)

        Raises:
            ValidationError: Unknown user, empty/unknown products, amount mismatch
            DependencyError: Identity, catalog or payment unreachable
            PaymentDeclined: Charge declined; the order is kept as ``paymentFailed``
        """
        if self.resolver is None or self.payments is None:
            msg = "create_order needs both a resolver and a payment coordinator"
            raise RuntimeError(msg)

        started = time.perf_counter()
        self.log.saga_started(request.user_id, len(request.product_ids), str(uuid.uuid4()))
        order: Order | None = None
        final_status: OrderStatus | None = None

        try:
            self.log.step_started("resolve_customer")
            customer = await self.resolver.resolve_customer(request.user_id)

            self.log.step_started("resolve_products")
            products = await self.resolver.resolve_products(request.product_ids)

            self.log.step_started("validate_amount")
            total = self.resolver.compute_total(products)
            self.resolver.validate_amount(total, request.payment.amount)

            self.log.step_started("create_order")
            order = await self.store.create(
                customer, products, dict(request.address), request.payment
            )
            final_status = order.status
            await self.saga_log.append(order.id, SagaStep.ORDER_CREATED, {"total": total})

            order = await self._settle_payment(order)
            final_status = order.status
            return order

        except OrderSagaError as e:
            if isinstance(e, PaymentDeclined):
                final_status = OrderStatus.PAYMENT_FAILED
            self.log.step_failed(e)
            self._record_failure(e)
            raise

        finally:
            duration = time.perf_counter() - started
            self.log.saga_finished(order.id if order else None, final_status, duration * 1000)
            if self.metrics is not None:
                self.metrics.record_order(final_status, duration)
            self.log.clear_order_context()

    async def get_order(self, order_id: str) -> Order:
        """
        Raises:
            OrderNotFound: If no order has this id
        """
        return await self.store.get(order_id)

    async def resume_payment(self, order_id: str) -> Order:
        """
        Drive payment for an order left ``pending`` (crash or unknown outcome).

        Orders that already have a payment outcome are returned unchanged.

        Raises:
            OrderNotFound, PaymentDeclined, PaymentTransportError
        """
        order = await self.store.get(order_id)
        if order.status != OrderStatus.PENDING:
            return order
        if self.payments is None:
            msg = "resume_payment needs a payment coordinator"
            raise RuntimeError(msg)
        try:
            return await self._settle_payment(order)
        finally:
            self.log.clear_order_context()

    async def _settle_payment(self, order: Order) -> Order:
        self.log.step_started("charge_payment", order.id)
        await self.saga_log.append(
            order.id, SagaStep.PAYMENT_REQUESTED, {"amount": order.payment.amount}
        )

        try:
            outcome = await self.payments.charge(order.id, order.payment, order.customer.email)
        except PaymentDeclined as e:
            await self.saga_log.append(order.id, SagaStep.PAYMENT_DECLINED, {"raw": e.raw})
            order = await self._record_status(order.id, OrderStatus.PAYMENT_FAILED)
            self.log.compensation_recorded(order.id, OrderStatus.PAYMENT_FAILED)
            await self._settle_deferred_delivery(order)
            raise
        except PaymentTransportError as e:
            # Outcome unknown: the order stays pending for reconciliation
            await self.saga_log.append(
                order.id, SagaStep.PAYMENT_UNCERTAIN, {"cause": type(e.cause).__name__}
            )
            raise

        await self.saga_log.append(order.id, SagaStep.PAYMENT_APPROVED, {"raw": outcome.raw})
        order = await self._record_status(order.id, self.payments.status_for(outcome))
        await self._publish_payment_succeeded(order)
        return await self._settle_deferred_delivery(order)

    async def _record_status(self, order_id: str, status: OrderStatus) -> Order:
        """
        Record a payment outcome on a pending order.

        If another writer recorded the same outcome first, the current order
        is returned instead of failing.
        """
        try:
            return await self.store.update_status(order_id, status, expected={OrderStatus.PENDING})
        except (InvalidStatusTransition, ConcurrencyConflict):
            current = await self.store.get(order_id)
            if current.status == status or (
                status == OrderStatus.PAYMENT_PROCESSED
                and current.status == OrderStatus.DELIVERY_STARTED
            ):
                return current
            raise

    async def _publish_payment_succeeded(self, order: Order) -> None:
        if self.publisher is None:
            return
        event = PaymentSucceeded(order_id=order.id, email=order.customer.email, amount=order.total)
        try:
            await self.publisher.publish(event)
        except Exception as e:
            # The order is already recorded as paid; a lost signal is an ops problem
            logger.exception(f"Failed to publish payment succeeded for order {order.id}: {e!s}")
            self._record_failure(e)

    # ------------------------------------------------------------------
    # Delivery started
    # ------------------------------------------------------------------

    async def on_delivery_started(self, order_id: str) -> None:
        """
        Handle the delivery-started event.

        Always acknowledges: duplicates, unknown orders and events for orders
        that are not (yet) paid are logged rather than raised back to the
        event source.
        """
        try:
            order = await self.store.get(order_id)
            await self._apply_delivery(order)
        except OrderNotFound:
            self._delivery_outcome(order_id, "unknown_order")
        finally:
            self.log.clear_order_context()

    async def _apply_delivery(self, order: Order) -> Order:
        for _ in range(_MAX_STATUS_ATTEMPTS):
            if order.status == OrderStatus.DELIVERY_STARTED:
                self._delivery_outcome(order.id, "duplicate")
                return order

            if order.status == OrderStatus.PAYMENT_FAILED:
                await self.saga_log.append(
                    order.id, SagaStep.DELIVERY_IGNORED, {"status": order.status.value}
                )
                self._delivery_outcome(order.id, "ignored")
                return order

            if order.status == OrderStatus.PENDING:
                if not await self.saga_log.has_step(order.id, SagaStep.DELIVERY_DEFERRED):
                    await self.saga_log.append(order.id, SagaStep.DELIVERY_DEFERRED)
                # The payment write may have landed while the deferral was recorded
                latest = await self.store.get(order.id)
                if latest.status == OrderStatus.PENDING:
                    self._delivery_outcome(order.id, "deferred")
                    return latest
                order = latest
                continue

            try:
                order = await self.store.update_status(
                    order.id,
                    OrderStatus.DELIVERY_STARTED,
                    expected={OrderStatus.PAYMENT_PROCESSED},
                    expected_version=order.version,
                )
            except (InvalidStatusTransition, ConcurrencyConflict):
                order = await self.store.get(order.id)
                continue

            await self.saga_log.append(order.id, SagaStep.DELIVERY_STARTED)
            self._delivery_outcome(order.id, "applied")
            return order

        logger.error(
            f"Gave up applying delivery started to order {order.id} after repeated conflicts"
        )
        self._delivery_outcome(order.id, "conflict")
        return order

    async def _settle_deferred_delivery(self, order: Order) -> Order:
        """Apply, or record as ignored, a delivery event that arrived before payment."""
        if order.status not in (OrderStatus.PAYMENT_PROCESSED, OrderStatus.PAYMENT_FAILED):
            return order
        if not await self.saga_log.has_step(order.id, SagaStep.DELIVERY_DEFERRED):
            return order
        return await self._apply_delivery(order)

    # ------------------------------------------------------------------
    # Observability helpers
    # ------------------------------------------------------------------

    def _delivery_outcome(self, order_id: str, outcome: str) -> None:
        self.log.delivery_event(order_id, outcome)
        if self.metrics is not None:
            self.metrics.record_delivery(outcome)

    def _record_failure(self, error: Exception) -> None:
        if self.metrics is not None:
            self.metrics.record_failure(type(error).__name__)
