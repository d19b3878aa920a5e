"""
Collaborator contracts and in-memory implementations.
"""

from ordersaga.collaborators.base import (
    CatalogLookup,
    ChargeRequest,
    ChargeResult,
    EventPublisher,
    IdentityLookup,
    PaymentGateway,
    PaymentSucceeded,
    ProductInfo,
    UserInfo,
)
from ordersaga.collaborators.memory import (
    InMemoryCatalogService,
    InMemoryEventPublisher,
    InMemoryIdentityService,
    InMemoryPaymentGateway,
)

__all__ = [
    "CatalogLookup",
    "ChargeRequest",
    "ChargeResult",
    "EventPublisher",
    "IdentityLookup",
    "PaymentGateway",
    "PaymentSucceeded",
    "ProductInfo",
    "UserInfo",
    "InMemoryCatalogService",
    "InMemoryEventPublisher",
    "InMemoryIdentityService",
    "InMemoryPaymentGateway",
]
