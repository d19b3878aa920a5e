"""
Order State Machine - guards order status transitions.

State Diagram:

    ┌─────────┐
    │ PENDING │
    └────┬────┘
         │
    ┌────┴──────────────┐
    │                   │
    ▼                   ▼
┌───────────────────┐ ┌───────────────┐
│ PAYMENT_PROCESSED │ │ PAYMENT_FAILED│
└─────────┬─────────┘ └───────────────┘
          │ delivery started
          ▼
┌──────────────────┐
│ DELIVERY_STARTED │
└──────────────────┘

Nothing ever moves back to PENDING; PAYMENT_FAILED and DELIVERY_STARTED
are terminal.
"""

from collections.abc import Callable, Iterable
from typing import Any

from ordersaga.core.exceptions import InvalidStatusTransition
from ordersaga.core.types import OrderStatus


class OrderStateMachine:
    """
    Validates order status transitions.

    Usage:
        >>> sm = OrderStateMachine()
        >>> sm.validate("ord-1", OrderStatus.PENDING, OrderStatus.PAYMENT_PROCESSED)
        >>> sm.can_transition(OrderStatus.PAYMENT_FAILED, OrderStatus.DELIVERY_STARTED)
        False
    """

    # Valid transitions: from_status -> [to_status, ...]
    VALID_TRANSITIONS = {
        OrderStatus.PENDING: [OrderStatus.PAYMENT_PROCESSED, OrderStatus.PAYMENT_FAILED],
        OrderStatus.PAYMENT_PROCESSED: [OrderStatus.DELIVERY_STARTED],
        OrderStatus.PAYMENT_FAILED: [],  # Terminal state
        OrderStatus.DELIVERY_STARTED: [],  # Terminal state
    }

    def __init__(
        self,
        on_transition: Callable[[str, OrderStatus, OrderStatus], Any] | None = None,
    ):
        """
        Args:
            on_transition: Optional callback invoked after a transition is accepted
        """
        self._on_transition = on_transition

    def can_transition(self, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        return to_status in self.VALID_TRANSITIONS.get(from_status, [])

    def validate(
        self,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
        expected: Iterable[OrderStatus] | None = None,
    ) -> None:
        """
        Check a transition against the diagram and the caller's expectation.

        Args:
            order_id: Order being updated (for the error message)
            from_status: Current persisted status
            to_status: Requested status
            expected: Statuses the caller believes the order is in; None skips the check

        Raises:
            InvalidStatusTransition: If either check fails
        """
        if expected is not None and from_status not in set(expected):
            raise InvalidStatusTransition(order_id, from_status, to_status)
        if not self.can_transition(from_status, to_status):
            raise InvalidStatusTransition(order_id, from_status, to_status)

    def transitioned(self, order_id: str, from_status: OrderStatus, to_status: OrderStatus) -> None:
        """Notify the transition hook, if any."""
        if self._on_transition:
            self._on_transition(order_id, from_status, to_status)
