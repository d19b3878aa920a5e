"""
Storage factory - builds the order store and saga log from a URL.

Supported URLs:
    memory://                   in-memory (development, tests)
    sqlite:///path/to/orders.db SQLite file (both tables in one file)
    sqlite://:memory:           SQLite in-memory

Example:
    >>> store, saga_log = create_storage("sqlite:///./orders.db")
"""

from ordersaga.storage.base import OrderStore, SagaLog


def parse_sqlite_path(url: str) -> str:
    path = url.removeprefix("sqlite://")
    if path in ("", ":memory:", "/:memory:"):
        return ":memory:"
    # sqlite:///relative.db -> "relative.db", sqlite:////abs/path.db -> "/abs/path.db"
    return path.removeprefix("/")


def create_storage(url: str = "memory://") -> tuple[OrderStore, SagaLog]:
    """
    Create the order store and saga log for a storage URL.

    Raises:
        ValueError: For an unknown URL scheme
    """
    if url in ("", "memory://"):
        from ordersaga.storage.memory import InMemoryOrderStore, InMemorySagaLog

        return InMemoryOrderStore(), InMemorySagaLog()

    if url.startswith("sqlite://"):
        from ordersaga.storage.sqlite import SQLiteOrderStore, SQLiteSagaLog

        path = parse_sqlite_path(url)
        return SQLiteOrderStore(path), SQLiteSagaLog(path)

    msg = f"Unknown storage URL scheme: {url}"
    raise ValueError(msg)
