"""
Contracts the order saga expects from the services it calls.

Adapters for a concrete transport (gRPC, HTTP, a queue) implement these
protocols. Transport failures must surface as ``TransportError``,
``OSError`` or ``TimeoutError``; "not found" is an answer, not a failure.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class UserInfo:
    id: str
    email: str
    name: str


@dataclass(frozen=True)
class ProductInfo:
    id: str
    name: str
    price: int


@dataclass(frozen=True)
class ChargeRequest:
    """What the payment service receives for one charge"""

    order_id: str
    amount: int
    method: str
    payer_email: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChargeResult:
    approved: bool
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentSucceeded:
    """Signal handed to the notification subsystem after a successful charge"""

    order_id: str
    email: str
    amount: int


@runtime_checkable
class IdentityLookup(Protocol):
    async def get_user(self, user_id: str) -> UserInfo | None:
        """Return the user, or None when the id is unknown."""
        ...


@runtime_checkable
class CatalogLookup(Protocol):
    async def find_products(self, product_ids: Iterable[str]) -> list[ProductInfo]:
        """Return the products that exist among ``product_ids`` (any order)."""
        ...


@runtime_checkable
class PaymentGateway(Protocol):
    async def charge(self, request: ChargeRequest) -> ChargeResult:
        """
        Attempt a charge.

        ``request.order_id`` is the idempotency key: charging the same order
        twice must not take the money twice.
        """
        ...


@runtime_checkable
class EventPublisher(Protocol):
    async def publish(self, event: PaymentSucceeded) -> None: ...
