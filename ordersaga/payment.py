"""
Payment coordination for the order saga.

Calls the payment collaborator once and turns its answer into one of three
outcomes: approved, declined (``PaymentDeclined``) or unknown
(``PaymentTransportError``). Nothing is retried or refunded here.
"""

import asyncio

from ordersaga.collaborators.base import ChargeRequest, PaymentGateway
from ordersaga.core.exceptions import PaymentDeclined, PaymentTransportError
from ordersaga.core.logger import get_logger
from ordersaga.core.types import OrderStatus, Payment, PaymentOutcome
from ordersaga.resolver import TRANSPORT_FAILURES

logger = get_logger(__name__)


class PaymentCoordinator:
    """
    Args:
        gateway: Payment service client
        call_timeout: Seconds allowed for the charge call
    """

    def __init__(self, gateway: PaymentGateway, call_timeout: float = 5.0):
        self.gateway = gateway
        self.call_timeout = call_timeout

    async def charge(self, order_id: str, payment: Payment, payer_email: str) -> PaymentOutcome:
        """
        Charge the declared payment for an order.

        Returns:
            The approved outcome

        Raises:
            PaymentDeclined: The collaborator declined the charge
            PaymentTransportError: The call failed or timed out; outcome unknown
        """
        request = ChargeRequest(
            order_id=order_id,
            amount=payment.amount,
            method=payment.method,
            payer_email=payer_email,
            details=dict(payment.details),
        )

        try:
            result = await asyncio.wait_for(self.gateway.charge(request), self.call_timeout)
        except TRANSPORT_FAILURES as e:
            logger.error(f"Payment call for order {order_id} failed, outcome unknown: {e!r}")
            raise PaymentTransportError(cause=e) from e

        outcome = PaymentOutcome(approved=result.approved, raw=dict(result.raw))
        if not outcome.approved:
            logger.info(f"Payment declined for order {order_id}")
            raise PaymentDeclined(order_id, raw=outcome.raw)

        logger.info(f"Payment approved for order {order_id}")
        return outcome

    @staticmethod
    def status_for(outcome: PaymentOutcome) -> OrderStatus:
        """Order status that records a definite payment outcome."""
        return OrderStatus.PAYMENT_PROCESSED if outcome.approved else OrderStatus.PAYMENT_FAILED
