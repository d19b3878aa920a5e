"""
Order and saga log persistence.

Backends:
    - InMemoryOrderStore / InMemorySagaLog: development and tests
    - SQLiteOrderStore / SQLiteSagaLog: embedded, durable (aiosqlite)
"""

from ordersaga.storage.base import OrderStore, SagaLog
from ordersaga.storage.factory import create_storage
from ordersaga.storage.memory import InMemoryOrderStore, InMemorySagaLog

__all__ = [
    "OrderStore",
    "SagaLog",
    "create_storage",
    "InMemoryOrderStore",
    "InMemorySagaLog",
]
