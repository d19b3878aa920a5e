"""
Tests for PaymentCoordinator.
"""

from unittest.mock import AsyncMock

import pytest

from ordersaga.collaborators.base import ChargeResult
from ordersaga.core.exceptions import DependencyError, PaymentDeclined, PaymentTransportError
from ordersaga.core.types import OrderStatus, Payment, PaymentOutcome
from ordersaga.payment import PaymentCoordinator


@pytest.fixture
def coordinator(gateway):
    return PaymentCoordinator(gateway, call_timeout=0.1)


class TestPaymentCoordinator:
    @pytest.mark.asyncio
    async def test_approved_charge(self, coordinator):
        outcome = await coordinator.charge("ord-1", Payment(amount=2500), "ada@example.com")

        assert outcome.approved is True
        assert outcome.raw["paymentStatus"] == "Approved"
        assert outcome.raw["amount"] == 2500

    @pytest.mark.asyncio
    async def test_declined_charge(self, coordinator, gateway):
        gateway.declined_emails.add("ada@example.com")

        with pytest.raises(PaymentDeclined) as exc_info:
            await coordinator.charge("ord-1", Payment(amount=2500), "ada@example.com")

        assert exc_info.value.order_id == "ord-1"
        assert exc_info.value.raw["paymentStatus"] == "Rejected"

    @pytest.mark.asyncio
    async def test_transport_failure(self, coordinator, gateway):
        gateway.fail_next = 1

        with pytest.raises(PaymentTransportError) as exc_info:
            await coordinator.charge("ord-1", Payment(amount=2500), "ada@example.com")

        assert isinstance(exc_info.value, DependencyError)
        assert exc_info.value.details["dependency"] == "payment"

    @pytest.mark.asyncio
    async def test_timeout(self, coordinator, gateway):
        gateway.hang = True

        with pytest.raises(PaymentTransportError):
            await coordinator.charge("ord-1", Payment(amount=2500), "ada@example.com")

    @pytest.mark.asyncio
    async def test_single_attempt(self, coordinator, gateway):
        gateway.fail_next = 1

        with pytest.raises(PaymentTransportError):
            await coordinator.charge("ord-1", Payment(amount=2500), "ada@example.com")

        assert gateway.calls == 1

    @pytest.mark.asyncio
    async def test_charge_request_fields(self):
        gateway = AsyncMock()
        gateway.charge.return_value = ChargeResult(approved=True, raw={"paymentStatus": "Approved"})
        coordinator = PaymentCoordinator(gateway)

        await coordinator.charge(
            "ord-9",
            Payment(amount=700, method="transfer", details={"iban": "PT50"}),
            "b@example.com",
        )

        request = gateway.charge.await_args.args[0]
        assert request.order_id == "ord-9"
        assert request.amount == 700
        assert request.method == "transfer"
        assert request.payer_email == "b@example.com"
        assert request.details == {"iban": "PT50"}

    def test_status_for(self):
        assert PaymentCoordinator.status_for(PaymentOutcome(approved=True)) == (
            OrderStatus.PAYMENT_PROCESSED
        )
        assert PaymentCoordinator.status_for(PaymentOutcome(approved=False)) == (
            OrderStatus.PAYMENT_FAILED
        )
