"""
All type definitions, enums, and dataclasses

Money is carried as integer minor units (cents) so that the declared amount
can be compared with the catalog total exactly.
"""

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class OrderStatus(Enum):
    """Order status as persisted and exposed to clients"""

    PENDING = "pending"
    PAYMENT_PROCESSED = "paymentProcessed"
    PAYMENT_FAILED = "paymentFailed"
    DELIVERY_STARTED = "deliveryStarted"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.PAYMENT_FAILED, OrderStatus.DELIVERY_STARTED)


class SagaStep(Enum):
    """Entries written to the saga log while an order moves through the saga"""

    ORDER_CREATED = "order_created"
    PAYMENT_REQUESTED = "payment_requested"
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_DECLINED = "payment_declined"
    PAYMENT_UNCERTAIN = "payment_uncertain"
    DELIVERY_DEFERRED = "delivery_deferred"
    DELIVERY_STARTED = "delivery_started"
    DELIVERY_IGNORED = "delivery_ignored"
    RECONCILE_ATTEMPTED = "reconcile_attempted"
    RECONCILE_ABANDONED = "reconcile_abandoned"


@dataclass(frozen=True)
class Customer:
    """Identity snapshot taken when the order is placed"""

    user_id: str
    email: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "email": self.email, "name": self.name}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Customer":
        return cls(user_id=data["user_id"], email=data["email"], name=data["name"])


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog entry copied into the order; later price changes do not apply"""

    product_id: str
    name: str
    price: int

    def to_dict(self) -> dict[str, Any]:
        return {"product_id": self.product_id, "name": self.name, "price": self.price}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProductSnapshot":
        return cls(product_id=data["product_id"], name=data["name"], price=int(data["price"]))


@dataclass(frozen=True)
class Payment:
    """
    Payment as declared by the client.

    Attributes:
        amount: Declared total in minor units
        method: Payment method name (card, transfer, ...)
        details: Remaining method-specific fields, stored as-is
    """

    amount: int
    method: str = "card"
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"amount": self.amount, "method": self.method, "details": dict(self.details)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Payment":
        return cls(
            amount=int(data["amount"]),
            method=data.get("method", "card"),
            details=dict(data.get("details") or {}),
        )


@dataclass(frozen=True)
class CreateOrderRequest:
    """Checkout request handed to the saga by the transport layer"""

    product_ids: Sequence[str]
    address: Mapping[str, Any]
    payment: Payment
    user_id: str


@dataclass(frozen=True)
class PaymentOutcome:
    """Interpreted answer of the payment collaborator"""

    approved: bool
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class Order:
    """
    Order aggregate.

    Only ``status``, ``updated_at`` and ``version`` change after creation;
    stores hand out copies so callers cannot mutate persisted state.
    """

    id: str
    customer: Customer
    products: tuple[ProductSnapshot, ...]
    delivery_address: dict[str, Any]
    payment: Payment
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    version: int = 0

    @property
    def total(self) -> int:
        return sum(p.price for p in self.products)

    def copy(self) -> "Order":
        return Order(
            id=self.id,
            customer=self.customer,
            products=self.products,
            delivery_address=copy.deepcopy(self.delivery_address),
            payment=self.payment,
            status=self.status,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation"""
        return {
            "id": self.id,
            "customer": self.customer.to_dict(),
            "products": [p.to_dict() for p in self.products],
            "delivery_address": copy.deepcopy(self.delivery_address),
            "payment": self.payment.to_dict(),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Order":
        """Create from dictionary representation"""
        return cls(
            id=data["id"],
            customer=Customer.from_dict(data["customer"]),
            products=tuple(ProductSnapshot.from_dict(p) for p in data["products"]),
            delivery_address=dict(data.get("delivery_address") or {}),
            payment=Payment.from_dict(data["payment"]),
            status=OrderStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            version=int(data.get("version", 0)),
        )


@dataclass(frozen=True)
class SagaLogEntry:
    order_id: str
    step: SagaStep
    recorded_at: datetime
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "step": self.step.value,
            "recorded_at": self.recorded_at.isoformat(),
            "detail": self.detail,
        }
