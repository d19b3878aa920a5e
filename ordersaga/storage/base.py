"""
Base storage interfaces for orders and the saga log.

``OrderStore`` persists the order aggregate; ``SagaLog`` records how far
each order got through the saga so that a crashed or stuck order can be
found and driven forward by the reconciler.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from ordersaga.core.types import (
    Customer,
    Order,
    OrderStatus,
    Payment,
    ProductSnapshot,
    SagaLogEntry,
    SagaStep,
)


class OrderStore(ABC):
    """
    Abstract base class for order persistence

    Implementations must be safe under concurrent calls for different
    order ids, and must make the status compare-and-write in
    ``update_status`` a single atomic step.
    """

    @abstractmethod
    async def create(
        self,
        customer: Customer,
        products: Sequence[ProductSnapshot],
        address: dict[str, Any],
        payment: Payment,
    ) -> Order:
        """
        Persist a new order with status ``pending`` and version 0.

        The write is atomic: the order is either fully visible or absent.

        Raises:
            ValueError: If ``products`` is empty
        """

    @abstractmethod
    async def get(self, order_id: str) -> Order:
        """
        Raises:
            OrderNotFound: If no order has this id
        """

    @abstractmethod
    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        expected: Iterable[OrderStatus] | None = None,
        expected_version: int | None = None,
    ) -> Order:
        """
        Move an order to a new status, bumping version and updated_at.

        Args:
            order_id: Order to update
            status: Target status
            expected: Statuses the caller requires the order to be in
            expected_version: Version the caller last read

        Raises:
            OrderNotFound: Unknown order
            InvalidStatusTransition: Not allowed by the state machine or not in ``expected``
            ConcurrencyConflict: Version differs from ``expected_version``, or a
                concurrent writer changed the order during the update
        """

    @abstractmethod
    async def list_orders(
        self,
        status: OrderStatus | None = None,
        updated_before: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Order]:
        """List orders, oldest update first (ties by id), with optional filtering"""

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Check storage health"""

    async def close(self) -> None:
        """Release backend resources"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class SagaLog(ABC):
    """
    Append-only log of saga progress keyed by order id.

    Entries are never updated or removed.
    """

    @abstractmethod
    async def append(
        self, order_id: str, step: SagaStep, detail: dict[str, Any] | None = None
    ) -> SagaLogEntry:
        """Record that an order reached a step"""

    @abstractmethod
    async def entries(self, order_id: str) -> list[SagaLogEntry]:
        """All entries for an order, oldest first"""

    async def last_step(self, order_id: str) -> SagaStep | None:
        entries = await self.entries(order_id)
        return entries[-1].step if entries else None

    async def has_step(self, order_id: str, step: SagaStep) -> bool:
        return await self.count(order_id, step) > 0

    async def count(self, order_id: str, step: SagaStep) -> int:
        return sum(1 for e in await self.entries(order_id) if e.step == step)

    async def close(self) -> None:
        """Release backend resources"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
