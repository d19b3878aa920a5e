"""
Tests for PendingOrderReconciler.
"""

import asyncio

import pytest

from ordersaga.core.exceptions import PaymentTransportError
from ordersaga.core.types import OrderStatus, SagaStep
from ordersaga.reconciler import PendingOrderReconciler, ReconcileReport


async def _stuck_order(saga, store, gateway, make_request):
    """Create an order whose charge failed in transit."""
    gateway.fail_next = 1
    with pytest.raises(PaymentTransportError):
        await saga.create_order(make_request())
    orders = await store.list_orders(status=OrderStatus.PENDING)
    return orders[-1]


@pytest.fixture
def reconciler(saga):
    return PendingOrderReconciler(saga, stale_after=0, max_attempts=2)


class TestReconcileOnce:
    @pytest.mark.asyncio
    async def test_nothing_to_do(self, reconciler):
        report = await reconciler.reconcile_once()

        assert report == ReconcileReport()
        assert report.examined == 0

    @pytest.mark.asyncio
    async def test_resumes_stuck_order(self, reconciler, saga, store, gateway, make_request):
        stuck = await _stuck_order(saga, store, gateway, make_request)
        await asyncio.sleep(0.01)

        report = await reconciler.reconcile_once()

        assert report.processed == [stuck.id]
        assert (await store.get(stuck.id)).status == OrderStatus.PAYMENT_PROCESSED

    @pytest.mark.asyncio
    async def test_ignores_recent_orders(self, saga, store, gateway, make_request):
        await _stuck_order(saga, store, gateway, make_request)
        reconciler = PendingOrderReconciler(saga, stale_after=3600)

        report = await reconciler.reconcile_once()

        assert report.examined == 0
        assert gateway.calls == 1

    @pytest.mark.asyncio
    async def test_skips_settled_orders(self, reconciler, saga, gateway, make_request):
        await saga.create_order(make_request())
        await asyncio.sleep(0.01)
        calls = gateway.calls

        report = await reconciler.reconcile_once()

        assert report.examined == 0
        assert gateway.calls == calls

    @pytest.mark.asyncio
    async def test_declined_on_retry(self, reconciler, saga, store, gateway, make_request):
        stuck = await _stuck_order(saga, store, gateway, make_request)
        gateway.declined_orders.add(stuck.id)
        await asyncio.sleep(0.01)

        report = await reconciler.reconcile_once()

        assert report.declined == [stuck.id]
        assert (await store.get(stuck.id)).status == OrderStatus.PAYMENT_FAILED

    @pytest.mark.asyncio
    async def test_still_unreachable(self, reconciler, saga, store, gateway, make_request):
        stuck = await _stuck_order(saga, store, gateway, make_request)
        gateway.fail_next = 1
        await asyncio.sleep(0.01)

        report = await reconciler.reconcile_once()

        assert report.still_pending == [stuck.id]
        assert (await store.get(stuck.id)).status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_abandons_after_max_attempts(
        self, reconciler, saga, store, saga_log, gateway, make_request, caplog
    ):
        stuck = await _stuck_order(saga, store, gateway, make_request)
        gateway.fail_next = 10

        for _ in range(2):
            await asyncio.sleep(0.01)
            report = await reconciler.reconcile_once()
            assert report.still_pending == [stuck.id]

        await asyncio.sleep(0.01)
        report = await reconciler.reconcile_once()

        assert report.abandoned == [stuck.id]
        assert await saga_log.count(stuck.id, SagaStep.RECONCILE_ATTEMPTED) == 2
        assert await saga_log.has_step(stuck.id, SagaStep.RECONCILE_ABANDONED)
        assert "needs manual intervention" in caplog.text

        # Abandoned orders are left alone afterwards
        await asyncio.sleep(0.01)
        report = await reconciler.reconcile_once()
        assert report.examined == 0

    @pytest.mark.asyncio
    async def test_abandoned_orders_do_not_block_newer_ones(
        self, saga, store, saga_log, gateway, make_request
    ):
        reconciler = PendingOrderReconciler(saga, stale_after=0, max_attempts=1, batch_size=1)
        abandoned = await _stuck_order(saga, store, gateway, make_request)
        gateway.fail_next = 1
        await asyncio.sleep(0.01)
        assert (await reconciler.reconcile_once()).still_pending == [abandoned.id]
        await asyncio.sleep(0.01)
        assert (await reconciler.reconcile_once()).abandoned == [abandoned.id]

        newer = await _stuck_order(saga, store, gateway, make_request)
        await asyncio.sleep(0.01)

        report = await reconciler.reconcile_once()

        assert report.processed == [newer.id]
        assert (await store.get(newer.id)).status == OrderStatus.PAYMENT_PROCESSED
        assert (await store.get(abandoned.id)).status == OrderStatus.PENDING
        assert await saga_log.count(abandoned.id, SagaStep.RECONCILE_ATTEMPTED) == 1

    @pytest.mark.asyncio
    async def test_charge_is_idempotent_per_order(
        self, reconciler, saga, store, gateway, make_request
    ):
        stuck = await _stuck_order(saga, store, gateway, make_request)
        await asyncio.sleep(0.01)

        await reconciler.reconcile_once()
        await saga.resume_payment(stuck.id)

        assert list(gateway.charges) == [stuck.id]


class TestReconcilerLoop:
    @pytest.mark.asyncio
    async def test_run_until_stopped(self, reconciler, saga, store, gateway, make_request):
        stuck = await _stuck_order(saga, store, gateway, make_request)

        task = asyncio.create_task(reconciler.run(interval=0.01))
        for _ in range(100):
            await asyncio.sleep(0.01)
            if (await store.get(stuck.id)).status != OrderStatus.PENDING:
                break
        reconciler.stop()
        await asyncio.wait_for(task, timeout=1)

        assert (await store.get(stuck.id)).status == OrderStatus.PAYMENT_PROCESSED
        assert task.done()
