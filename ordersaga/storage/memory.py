"""
In-memory storage implementation for orders and the saga log

Provides a simple in-memory storage backend for development and testing.
Not suitable for production use as state is lost on process restart.
"""

import asyncio
import copy
import sys
import uuid
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from ordersaga.core.exceptions import ConcurrencyConflict, OrderNotFound
from ordersaga.core.state_machine import OrderStateMachine
from ordersaga.core.types import (
    Customer,
    Order,
    OrderStatus,
    Payment,
    ProductSnapshot,
    SagaLogEntry,
    SagaStep,
)
from ordersaga.storage.base import OrderStore, SagaLog


class InMemoryOrderStore(OrderStore):
    """
    In-memory implementation of order storage

    All reads return copies to prevent external modification.
    """

    def __init__(self, state_machine: OrderStateMachine | None = None):
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()
        self.state_machine = state_machine or OrderStateMachine()

    async def create(
        self,
        customer: Customer,
        products: Sequence[ProductSnapshot],
        address: dict[str, Any],
        payment: Payment,
    ) -> Order:
        if not products:
            msg = "An order needs at least one product"
            raise ValueError(msg)

        now = datetime.now(UTC)
        order = Order(
            id=str(uuid.uuid4()),
            customer=customer,
            products=tuple(products),
            delivery_address=copy.deepcopy(dict(address)),
            payment=payment,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
            version=0,
        )

        async with self._lock:
            self._orders[order.id] = order
            return order.copy()

    async def get(self, order_id: str) -> Order:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFound(order_id)
            return order.copy()

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        expected: Iterable[OrderStatus] | None = None,
        expected_version: int | None = None,
    ) -> Order:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFound(order_id)

            if expected_version is not None and order.version != expected_version:
                raise ConcurrencyConflict(order_id, expected_version, order.version)

            previous = order.status
            self.state_machine.validate(order_id, previous, status, expected)

            order.status = status
            order.version += 1
            order.updated_at = datetime.now(UTC)
            self.state_machine.transitioned(order_id, previous, status)
            return order.copy()

    async def list_orders(
        self,
        status: OrderStatus | None = None,
        updated_before: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Order]:
        async with self._lock:
            results = [
                order.copy()
                for order in self._orders.values()
                if self._matches_filters(order, status, updated_before)
            ]
        results.sort(key=lambda o: (o.updated_at, o.id))
        return results[offset : offset + limit]

    def _matches_filters(
        self, order: Order, status: OrderStatus | None, updated_before: datetime | None
    ) -> bool:
        if status is not None and order.status != status:
            return False
        return not (updated_before is not None and order.updated_at >= updated_before)

    async def health_check(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "status": "healthy",
                "storage_type": "in_memory",
                "total_orders": len(self._orders),
                "memory_usage_bytes": self._estimate_memory_usage(),
                "timestamp": datetime.now(UTC).isoformat(),
            }

    def _estimate_memory_usage(self) -> int:
        """Very approximate, for monitoring only."""
        return sum(
            sys.getsizeof(o) + sys.getsizeof(o.delivery_address) for o in self._orders.values()
        )

    async def clear_all(self) -> int:
        """Clear all orders (for testing purposes)"""
        async with self._lock:
            count = len(self._orders)
            self._orders.clear()
            return count

    def get_order_count(self) -> int:
        """Get current order count (synchronous for testing)"""
        return len(self._orders)


class InMemorySagaLog(SagaLog):
    def __init__(self):
        self._entries: dict[str, list[SagaLogEntry]] = {}
        self._lock = asyncio.Lock()

    async def append(
        self, order_id: str, step: SagaStep, detail: dict[str, Any] | None = None
    ) -> SagaLogEntry:
        entry = SagaLogEntry(
            order_id=order_id,
            step=step,
            recorded_at=datetime.now(UTC),
            detail=dict(detail or {}),
        )
        async with self._lock:
            self._entries.setdefault(order_id, []).append(entry)
        return entry

    async def entries(self, order_id: str) -> list[SagaLogEntry]:
        async with self._lock:
            return list(self._entries.get(order_id, []))
