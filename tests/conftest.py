"""
Pytest configuration and shared fixtures for order saga tests

The in-memory collaborators are seeded with one customer and three
products priced in cents:

    p1 -> 1000, p2 -> 1500, p3 -> 3000
"""

import pytest

from ordersaga.collaborators.memory import (
    InMemoryCatalogService,
    InMemoryEventPublisher,
    InMemoryIdentityService,
    InMemoryPaymentGateway,
)
from ordersaga.core.logger import set_logger
from ordersaga.core.types import CreateOrderRequest, Payment
from ordersaga.monitoring.metrics import OrderMetrics
from ordersaga.payment import PaymentCoordinator
from ordersaga.resolver import PriceIdentityResolver
from ordersaga.saga import OrderSaga
from ordersaga.storage.memory import InMemoryOrderStore, InMemorySagaLog
from ordersaga.storage.sqlite import SQLiteOrderStore, SQLiteSagaLog

# ============================================
# AUTO-USE FIXTURES
# ============================================


@pytest.fixture(autouse=True)
def reset_custom_logger():
    """Make sure no test leaks a custom logger into the next one."""
    yield
    set_logger(None)


# ============================================
# COLLABORATORS
# ============================================


@pytest.fixture
def identity():
    service = InMemoryIdentityService()
    service.add_user("u1", "ada@example.com", "Ada Lovelace")
    return service


@pytest.fixture
def catalog():
    service = InMemoryCatalogService()
    service.add_product("p1", "Keyboard", 1000)
    service.add_product("p2", "Mouse", 1500)
    service.add_product("p3", "Monitor", 3000)
    return service


@pytest.fixture
def gateway():
    return InMemoryPaymentGateway()


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


# ============================================
# SAGA
# ============================================


@pytest.fixture(params=["memory", "sqlite"])
def backend(request):
    """Storage backend the saga-level tests run against."""
    return request.param


@pytest.fixture
async def store(backend):
    if backend == "memory":
        yield InMemoryOrderStore()
        return

    async with SQLiteOrderStore(":memory:") as sqlite_store:
        yield sqlite_store


@pytest.fixture
async def saga_log(backend):
    if backend == "memory":
        yield InMemorySagaLog()
        return

    async with SQLiteSagaLog(":memory:") as sqlite_log:
        yield sqlite_log


@pytest.fixture
def metrics():
    return OrderMetrics()


@pytest.fixture
def saga(identity, catalog, gateway, publisher, store, saga_log, metrics):
    """Saga wired to in-memory collaborators with a short call timeout, on each backend."""
    return OrderSaga(
        resolver=PriceIdentityResolver(identity, catalog, call_timeout=0.2),
        store=store,
        payments=PaymentCoordinator(gateway, call_timeout=0.2),
        saga_log=saga_log,
        publisher=publisher,
        metrics=metrics,
    )


@pytest.fixture
def make_request():
    """Factory for checkout requests; defaults to p1 + p2 paying 2500."""

    def _make(product_ids=("p1", "p2"), amount=2500, user_id="u1", address=None, method="card"):
        return CreateOrderRequest(
            product_ids=list(product_ids),
            address=address if address is not None else {"street": "1 Main St", "city": "Lisbon"},
            payment=Payment(amount=amount, method=method, details={"last4": "4242"}),
            user_id=user_id,
        )

    return _make
