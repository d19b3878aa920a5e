"""
Tests for the create-order saga.

Prices in the shared fixtures are in cents: p1 = 1000, p2 = 1500, p3 = 3000.
"""

from unittest.mock import AsyncMock

import pytest

from ordersaga.collaborators.base import PaymentSucceeded
from ordersaga.core.exceptions import (
    AmountMismatch,
    CatalogPartialMiss,
    CatalogUnavailable,
    EmptyProductList,
    IdentityNotFound,
    IdentityUnavailable,
    PaymentDeclined,
    PaymentTransportError,
)
from ordersaga.core.types import OrderStatus, SagaStep
from ordersaga.saga import OrderSaga


class TestCreateOrderHappyPath:
    @pytest.mark.asyncio
    async def test_order_is_processed(self, saga, make_request):
        order = await saga.create_order(make_request())

        assert order.status == OrderStatus.PAYMENT_PROCESSED
        assert order.total == 2500
        assert order.customer.email == "ada@example.com"
        assert [p.product_id for p in order.products] == ["p1", "p2"]
        assert order.payment.amount == 2500

    @pytest.mark.asyncio
    async def test_order_is_persisted(self, saga, store, make_request):
        order = await saga.create_order(make_request())

        stored = await store.get(order.id)
        assert stored.status == OrderStatus.PAYMENT_PROCESSED
        assert stored.version == 1
        assert await saga.get_order(order.id) == stored

    @pytest.mark.asyncio
    async def test_saga_log_records_every_step(self, saga, saga_log, make_request):
        order = await saga.create_order(make_request())

        steps = [e.step for e in await saga_log.entries(order.id)]
        assert steps == [
            SagaStep.ORDER_CREATED,
            SagaStep.PAYMENT_REQUESTED,
            SagaStep.PAYMENT_APPROVED,
        ]

    @pytest.mark.asyncio
    async def test_payment_succeeded_published(self, saga, publisher, make_request):
        order = await saga.create_order(make_request())

        assert publisher.events == [
            PaymentSucceeded(order_id=order.id, email="ada@example.com", amount=2500)
        ]

    @pytest.mark.asyncio
    async def test_charge_uses_order_id(self, saga, gateway, make_request):
        order = await saga.create_order(make_request())

        assert list(gateway.charges) == [order.id]

    @pytest.mark.asyncio
    async def test_snapshot_survives_price_change(self, saga, catalog, make_request):
        order = await saga.create_order(make_request())

        catalog.set_price("p1", 9999)

        stored = await saga.get_order(order.id)
        assert stored.products[0].price == 1000
        assert stored.total == 2500

    @pytest.mark.asyncio
    async def test_address_stored_as_given(self, saga, make_request):
        address = {"street": "1 Main St", "extra": {"floor": 3, "door": "B"}}

        order = await saga.create_order(make_request(address=address))

        assert order.delivery_address == address

    @pytest.mark.asyncio
    async def test_duplicate_product_ids(self, saga, make_request):
        order = await saga.create_order(make_request(product_ids=["p1", "p1", "p2"], amount=2500))

        assert [p.product_id for p in order.products] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, saga, metrics, make_request):
        await saga.create_order(make_request())

        snapshot = metrics.get_metrics()
        assert snapshot["total_orders"] == 1
        assert snapshot["total_processed"] == 1
        assert snapshot["success_rate"] == "100.00%"

    @pytest.mark.asyncio
    async def test_works_without_publisher_or_metrics(self, saga, store, make_request):
        bare = OrderSaga(saga.resolver, store, saga.payments)

        order = await bare.create_order(make_request())

        assert order.status == OrderStatus.PAYMENT_PROCESSED


class TestCreateOrderValidation:
    """Validation failures must leave nothing behind."""

    @pytest.mark.asyncio
    async def test_amount_mismatch(self, saga, store, gateway, make_request):
        with pytest.raises(AmountMismatch) as exc_info:
            await saga.create_order(make_request(amount=3000))

        assert exc_info.value.computed == 2500
        assert exc_info.value.declared == 3000
        assert store.get_order_count() == 0
        assert gateway.calls == 0

    @pytest.mark.asyncio
    async def test_unknown_user(self, saga, store, catalog, make_request):
        with pytest.raises(IdentityNotFound):
            await saga.create_order(make_request(user_id="ghost"))

        assert store.get_order_count() == 0
        assert catalog.calls == 0

    @pytest.mark.asyncio
    async def test_empty_product_list(self, saga, store, make_request):
        with pytest.raises(EmptyProductList):
            await saga.create_order(make_request(product_ids=[], amount=0))

        assert store.get_order_count() == 0

    @pytest.mark.asyncio
    async def test_unknown_product(self, saga, store, make_request):
        with pytest.raises(CatalogPartialMiss) as exc_info:
            await saga.create_order(make_request(product_ids=["p1", "p404"]))

        assert exc_info.value.missing_ids == ["p404"]
        assert store.get_order_count() == 0

    @pytest.mark.asyncio
    async def test_identity_unavailable(self, saga, store, identity, make_request):
        identity.fail_next = 1

        with pytest.raises(IdentityUnavailable):
            await saga.create_order(make_request())

        assert store.get_order_count() == 0

    @pytest.mark.asyncio
    async def test_catalog_timeout(self, saga, store, catalog, make_request):
        catalog.hang = True

        with pytest.raises(CatalogUnavailable):
            await saga.create_order(make_request())

        assert store.get_order_count() == 0

    @pytest.mark.asyncio
    async def test_rejections_counted(self, saga, metrics, make_request):
        with pytest.raises(AmountMismatch):
            await saga.create_order(make_request(amount=1))

        snapshot = metrics.get_metrics()
        assert snapshot["total_rejected"] == 1
        assert snapshot["failures_by_kind"] == {"AmountMismatch": 1}


class TestCreateOrderPaymentFailures:
    @pytest.mark.asyncio
    async def test_declined_payment_records_failure(
        self, saga, store, gateway, publisher, make_request
    ):
        gateway.declined_emails.add("ada@example.com")

        with pytest.raises(PaymentDeclined) as exc_info:
            await saga.create_order(make_request())

        order = await store.get(exc_info.value.order_id)
        assert order.status == OrderStatus.PAYMENT_FAILED
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_declined_payment_logged(self, saga, saga_log, gateway, metrics, make_request):
        gateway.declined_emails.add("ada@example.com")

        with pytest.raises(PaymentDeclined) as exc_info:
            await saga.create_order(make_request())

        steps = [e.step for e in await saga_log.entries(exc_info.value.order_id)]
        assert steps[-1] == SagaStep.PAYMENT_DECLINED
        assert metrics.get_metrics()["total_declined"] == 1

    @pytest.mark.asyncio
    async def test_payment_transport_error_leaves_order_pending(
        self, saga, store, saga_log, gateway, make_request
    ):
        gateway.fail_next = 1

        with pytest.raises(PaymentTransportError):
            await saga.create_order(make_request())

        (order,) = await store.list_orders()
        assert order.status == OrderStatus.PENDING
        assert await saga_log.last_step(order.id) == SagaStep.PAYMENT_UNCERTAIN

    @pytest.mark.asyncio
    async def test_payment_timeout_leaves_order_pending(self, saga, store, gateway, make_request):
        gateway.hang = True

        with pytest.raises(PaymentTransportError):
            await saga.create_order(make_request())

        (order,) = await store.list_orders()
        assert order.status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_undo_order(
        self, saga, store, metrics, make_request, caplog
    ):
        saga.publisher = AsyncMock()
        saga.publisher.publish.side_effect = RuntimeError("broker down")

        order = await saga.create_order(make_request())

        assert order.status == OrderStatus.PAYMENT_PROCESSED
        assert (await store.get(order.id)).status == OrderStatus.PAYMENT_PROCESSED
        assert metrics.get_metrics()["failures_by_kind"] == {"RuntimeError": 1}
        assert "Failed to publish payment succeeded" in caplog.text

    @pytest.mark.asyncio
    async def test_missing_collaborators(self, store, make_request):
        saga = OrderSaga(resolver=None, store=store, payments=None)

        with pytest.raises(RuntimeError):
            await saga.create_order(make_request())


class TestResumePayment:
    @pytest.mark.asyncio
    async def test_resume_pending_order(self, saga, store, gateway, publisher, make_request):
        gateway.fail_next = 1
        with pytest.raises(PaymentTransportError):
            await saga.create_order(make_request())
        (pending,) = await store.list_orders()

        order = await saga.resume_payment(pending.id)

        assert order.status == OrderStatus.PAYMENT_PROCESSED
        assert [e.order_id for e in publisher.events] == [pending.id]

    @pytest.mark.asyncio
    async def test_resume_is_a_no_op_after_outcome(self, saga, gateway, make_request):
        order = await saga.create_order(make_request())
        calls = gateway.calls

        resumed = await saga.resume_payment(order.id)

        assert resumed.status == OrderStatus.PAYMENT_PROCESSED
        assert gateway.calls == calls

    @pytest.mark.asyncio
    async def test_resume_declined(self, saga, store, gateway, make_request):
        gateway.fail_next = 1
        with pytest.raises(PaymentTransportError):
            await saga.create_order(make_request())
        (pending,) = await store.list_orders()
        gateway.declined_orders.add(pending.id)

        with pytest.raises(PaymentDeclined):
            await saga.resume_payment(pending.id)

        assert (await store.get(pending.id)).status == OrderStatus.PAYMENT_FAILED
