"""
Pending Order Reconciler - Background job for orders stuck in ``pending``.

An order stays pending when the process died between creating it and
recording the payment outcome, or when the payment call failed in transit.
The reconciler finds such orders once they have been idle for a while and
re-drives the payment step through the saga. The payment service receives
the same order id, which it treats as the idempotency key of the charge.

Usage:
    >>> reconciler = PendingOrderReconciler(saga, stale_after=60, max_attempts=5)
    >>> report = await reconciler.reconcile_once()
    >>> # or
    >>> await reconciler.run(interval=30)  # Runs until stop()
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from ordersaga.core.exceptions import OrderNotFound, PaymentDeclined, PaymentTransportError
from ordersaga.core.logger import get_logger
from ordersaga.core.types import Order, OrderStatus, SagaStep
from ordersaga.saga import OrderSaga

logger = get_logger(__name__)


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation pass, by order id"""

    processed: list[str] = field(default_factory=list)
    declined: list[str] = field(default_factory=list)
    still_pending: list[str] = field(default_factory=list)
    abandoned: list[str] = field(default_factory=list)

    @property
    def examined(self) -> int:
        return (
            len(self.processed)
            + len(self.declined)
            + len(self.still_pending)
            + len(self.abandoned)
        )


class PendingOrderReconciler:
    """
    Args:
        saga: Saga used to resume payment
        stale_after: Seconds an order must sit in pending, untouched, before it is picked up
        max_attempts: Attempts per order before it is abandoned for manual handling
        batch_size: Orders examined per pass
    """

    def __init__(
        self,
        saga: OrderSaga,
        stale_after: float = 60.0,
        max_attempts: int = 5,
        batch_size: int = 100,
    ):
        self.saga = saga
        self.store = saga.store
        self.saga_log = saga.saga_log
        self.stale_after = stale_after
        self.max_attempts = max_attempts
        self.batch_size = batch_size
        self._stop = asyncio.Event()

    async def reconcile_once(self) -> ReconcileReport:
        """Run a single reconciliation pass."""
        report = ReconcileReport()
        cutoff = datetime.now(UTC) - timedelta(seconds=self.stale_after)

        for order in await self._find_candidates(cutoff):
            attempts = await self.saga_log.count(order.id, SagaStep.RECONCILE_ATTEMPTED)
            if attempts >= self.max_attempts:
                await self.saga_log.append(
                    order.id, SagaStep.RECONCILE_ABANDONED, {"attempts": attempts}
                )
                logger.error(
                    f"Order {order.id} still pending after {attempts} reconcile attempts, "
                    "needs manual intervention"
                )
                report.abandoned.append(order.id)
                continue

            await self.saga_log.append(
                order.id, SagaStep.RECONCILE_ATTEMPTED, {"attempt": attempts + 1}
            )
            await self._reconcile_order(order.id, report)

        if report.examined:
            logger.info(
                f"Reconcile pass: {len(report.processed)} processed, "
                f"{len(report.declined)} declined, {len(report.still_pending)} still pending, "
                f"{len(report.abandoned)} abandoned"
            )
        return report

    async def _find_candidates(self, cutoff: datetime) -> list[Order]:
        """
        Stale pending orders, oldest first, up to ``batch_size``.

        Abandoned orders stay pending with their old ``updated_at``, so they
        are paged past rather than counted against the batch.
        """
        candidates: list[Order] = []
        offset = 0
        while len(candidates) < self.batch_size:
            page = await self.store.list_orders(
                status=OrderStatus.PENDING,
                updated_before=cutoff,
                limit=self.batch_size,
                offset=offset,
            )
            for order in page:
                if await self.saga_log.has_step(order.id, SagaStep.RECONCILE_ABANDONED):
                    continue
                candidates.append(order)
                if len(candidates) == self.batch_size:
                    break
            if len(page) < self.batch_size:
                break
            offset += len(page)
        return candidates

    async def _reconcile_order(self, order_id: str, report: ReconcileReport) -> None:
        try:
            order = await self.saga.resume_payment(order_id)
        except PaymentDeclined:
            report.declined.append(order_id)
        except PaymentTransportError:
            logger.warning(f"Payment still unreachable for order {order_id}")
            report.still_pending.append(order_id)
        except OrderNotFound:
            logger.warning(f"Order {order_id} disappeared during reconciliation")
        else:
            if order.status == OrderStatus.PAYMENT_FAILED:
                report.declined.append(order_id)
            elif order.status == OrderStatus.PENDING:
                report.still_pending.append(order_id)
            else:
                report.processed.append(order_id)

    async def run(self, interval: float = 30.0) -> None:
        """Run passes every ``interval`` seconds until stop() is called."""
        self._stop.clear()
        logger.info(f"Reconciler started (interval={interval}s, stale_after={self.stale_after}s)")

        while not self._stop.is_set():
            await self.reconcile_once()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

        logger.info("Reconciler stopped")

    def stop(self) -> None:
        self._stop.set()
