"""
SQLite storage backends for orders and the saga log.

Provides lightweight embedded storage using SQLite with async support via
aiosqlite. Status updates are a compare-and-swap on the ``version`` column,
so two writers racing on the same order cannot both win.

Usage:
    >>> from ordersaga.storage.sqlite import SQLiteOrderStore
    >>>
    >>> store = SQLiteOrderStore("./data/orders.db")
    >>> async with store:
    ...     order = await store.get("7c9e...")
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from ordersaga.core.exceptions import ConcurrencyConflict, OrderNotFound
from ordersaga.core.logger import get_logger
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
from ordersaga.storage.serialization import deserialize, serialize

logger = get_logger(__name__)


def _timestamp(value: datetime) -> str:
    # Fixed-width so that text comparison in SQL orders like the datetimes
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class _SQLiteBackend:
    """Connection handling shared by the SQLite backends."""

    SCHEMA = ""

    def __init__(self, db_path: str = ":memory:"):
        """
        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Create connection and schema."""
        await self._get_connection()

    async def _get_connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row

        if not self._initialized:
            await self._conn.executescript(self.SCHEMA)
            await self._conn.commit()
            self._initialized = True

        return self._conn

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            self._initialized = False

    async def __aenter__(self):
        await self._get_connection()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class SQLiteOrderStore(_SQLiteBackend, OrderStore):
    """
    SQLite-based order storage.

    Attributes:
        db_path: Path to SQLite database file (or ":memory:" for in-memory)
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS orders (
            id TEXT PRIMARY KEY,
            customer TEXT NOT NULL,
            products TEXT NOT NULL,
            delivery_address TEXT NOT NULL,
            payment TEXT NOT NULL,
            status TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 0
        );

        CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status);
        CREATE INDEX IF NOT EXISTS idx_orders_updated_at ON orders(updated_at);
    """

    def __init__(self, db_path: str = ":memory:", state_machine: OrderStateMachine | None = None):
        super().__init__(db_path)
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

        conn = await self._get_connection()
        now = datetime.now(UTC)
        order = Order(
            id=str(uuid.uuid4()),
            customer=customer,
            products=tuple(products),
            delivery_address=dict(address),
            payment=payment,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
            version=0,
        )

        await conn.execute(
            """
            INSERT INTO orders (id, customer, products, delivery_address, payment,
                                status, created_at, updated_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                order.id,
                serialize(customer.to_dict()),
                serialize([p.to_dict() for p in order.products]),
                serialize(order.delivery_address),
                serialize(payment.to_dict()),
                order.status.value,
                _timestamp(now),
                _timestamp(now),
                0,
            ),
        )
        await conn.commit()
        return await self.get(order.id)

    async def get(self, order_id: str) -> Order:
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,))
        row = await cursor.fetchone()
        if row is None:
            raise OrderNotFound(order_id)
        return self._row_to_order(row)

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        expected: Iterable[OrderStatus] | None = None,
        expected_version: int | None = None,
    ) -> Order:
        current = await self.get(order_id)

        if expected_version is not None and current.version != expected_version:
            raise ConcurrencyConflict(order_id, expected_version, current.version)

        self.state_machine.validate(order_id, current.status, status, expected)

        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            UPDATE orders
            SET status = ?, version = version + 1, updated_at = ?
            WHERE id = ? AND version = ?
            """,
            (status.value, _timestamp(datetime.now(UTC)), order_id, current.version),
        )
        await conn.commit()

        if cursor.rowcount == 0:
            latest = await self.get(order_id)
            logger.warning(
                f"Concurrent update on order {order_id}: "
                f"read version {current.version}, found {latest.version}"
            )
            raise ConcurrencyConflict(order_id, current.version, latest.version)

        self.state_machine.transitioned(order_id, current.status, status)
        return await self.get(order_id)

    async def list_orders(
        self,
        status: OrderStatus | None = None,
        updated_before: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Order]:
        conn = await self._get_connection()

        query = "SELECT * FROM orders WHERE 1=1"
        params: list[Any] = []

        if status is not None:
            query += " AND status = ?"
            params.append(status.value)

        if updated_before is not None:
            query += " AND updated_at < ?"
            params.append(_timestamp(updated_before))

        query += " ORDER BY updated_at ASC, id ASC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_order(row) for row in rows]

    async def health_check(self) -> dict[str, Any]:
        try:
            conn = await self._get_connection()
            cursor = await conn.execute("SELECT COUNT(*) FROM orders")
            row = await cursor.fetchone()
            return {
                "status": "healthy",
                "storage_type": "sqlite",
                "db_path": self.db_path,
                "total_orders": row[0],
                "timestamp": datetime.now(UTC).isoformat(),
            }
        except aiosqlite.Error as e:
            return {
                "status": "unhealthy",
                "storage_type": "sqlite",
                "db_path": self.db_path,
                "error": str(e),
                "timestamp": datetime.now(UTC).isoformat(),
            }

    def _row_to_order(self, row: aiosqlite.Row) -> Order:
        return Order(
            id=row["id"],
            customer=Customer.from_dict(deserialize(row["customer"])),
            products=tuple(ProductSnapshot.from_dict(p) for p in deserialize(row["products"])),
            delivery_address=deserialize(row["delivery_address"]),
            payment=Payment.from_dict(deserialize(row["payment"])),
            status=OrderStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            version=row["version"],
        )


class SQLiteSagaLog(_SQLiteBackend, SagaLog):
    SCHEMA = """
        CREATE TABLE IF NOT EXISTS saga_log (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            order_id TEXT NOT NULL,
            step TEXT NOT NULL,
            recorded_at TEXT NOT NULL,
            detail TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_saga_log_order ON saga_log(order_id, seq);
    """

    async def append(
        self, order_id: str, step: SagaStep, detail: dict[str, Any] | None = None
    ) -> SagaLogEntry:
        entry = SagaLogEntry(
            order_id=order_id,
            step=step,
            recorded_at=datetime.now(UTC),
            detail=dict(detail or {}),
        )
        conn = await self._get_connection()
        await conn.execute(
            "INSERT INTO saga_log (order_id, step, recorded_at, detail) VALUES (?, ?, ?, ?)",
            (order_id, step.value, _timestamp(entry.recorded_at), serialize(entry.detail)),
        )
        await conn.commit()
        return entry

    async def entries(self, order_id: str) -> list[SagaLogEntry]:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM saga_log WHERE order_id = ? ORDER BY seq ASC", (order_id,)
        )
        rows = await cursor.fetchall()
        return [
            SagaLogEntry(
                order_id=row["order_id"],
                step=SagaStep(row["step"]),
                recorded_at=datetime.fromisoformat(row["recorded_at"]),
                detail=deserialize(row["detail"]),
            )
            for row in rows
        ]

    async def count(self, order_id: str, step: SagaStep) -> int:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT COUNT(*) FROM saga_log WHERE order_id = ? AND step = ?",
            (order_id, step.value),
        )
        row = await cursor.fetchone()
        return int(row[0])
