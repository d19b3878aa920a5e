"""
In-memory collaborators for development and testing.

Each double can be told to fail the next calls with a transport error,
or to hang (to exercise call timeouts).
"""

import asyncio
from collections.abc import Iterable

from ordersaga.collaborators.base import (
    ChargeRequest,
    ChargeResult,
    PaymentSucceeded,
    ProductInfo,
    UserInfo,
)
from ordersaga.core.exceptions import TransportError


class _FaultInjection:
    def __init__(self):
        self.fail_next = 0
        self.hang = False
        self.calls = 0

    async def _maybe_fail(self) -> None:
        self.calls += 1
        if self.hang:
            await asyncio.Event().wait()
        if self.fail_next > 0:
            self.fail_next -= 1
            msg = f"{type(self).__name__} unreachable"
            raise TransportError(msg)


class InMemoryIdentityService(_FaultInjection):
    def __init__(self, users: Iterable[UserInfo] = ()):
        super().__init__()
        self.users = {u.id: u for u in users}

    def add_user(self, user_id: str, email: str, name: str) -> UserInfo:
        user = UserInfo(id=user_id, email=email, name=name)
        self.users[user_id] = user
        return user

    async def get_user(self, user_id: str) -> UserInfo | None:
        await self._maybe_fail()
        return self.users.get(user_id)


class InMemoryCatalogService(_FaultInjection):
    def __init__(self, products: Iterable[ProductInfo] = ()):
        super().__init__()
        self.products = {p.id: p for p in products}

    def add_product(self, product_id: str, name: str, price: int) -> ProductInfo:
        product = ProductInfo(id=product_id, name=name, price=price)
        self.products[product_id] = product
        return product

    def set_price(self, product_id: str, price: int) -> None:
        current = self.products[product_id]
        self.products[product_id] = ProductInfo(id=current.id, name=current.name, price=price)

    async def find_products(self, product_ids: Iterable[str]) -> list[ProductInfo]:
        await self._maybe_fail()
        return [self.products[pid] for pid in set(product_ids) if pid in self.products]


class InMemoryPaymentGateway(_FaultInjection):
    """
    Approves every charge unless the order or payer is in the decline lists.

    Charges are keyed by order id; a repeated charge for the same order
    returns the first result without charging again.
    """

    def __init__(self):
        super().__init__()
        self.declined_emails: set[str] = set()
        self.declined_orders: set[str] = set()
        self.charges: dict[str, ChargeResult] = {}

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        await self._maybe_fail()
        if request.order_id in self.charges:
            return self.charges[request.order_id]

        declined = (
            request.payer_email in self.declined_emails
            or request.order_id in self.declined_orders
        )
        result = ChargeResult(
            approved=not declined,
            raw={
                "paymentStatus": "Rejected" if declined else "Approved",
                "orderId": request.order_id,
                "amount": request.amount,
            },
        )
        self.charges[request.order_id] = result
        return result


class InMemoryEventPublisher:
    def __init__(self):
        self.events: list[PaymentSucceeded] = []

    async def publish(self, event: PaymentSucceeded) -> None:
        self.events.append(event)
