"""
Price & identity resolution for incoming orders.

Wraps the identity lookup and the batched catalog lookup, and validates
the client's declared amount against the catalog total. Every failure
here happens before anything is persisted.
"""

import asyncio
from collections.abc import Iterable, Sequence

from ordersaga.collaborators.base import CatalogLookup, IdentityLookup
from ordersaga.core.exceptions import (
    AmountMismatch,
    CatalogPartialMiss,
    CatalogUnavailable,
    EmptyProductList,
    IdentityNotFound,
    IdentityUnavailable,
    TransportError,
)
from ordersaga.core.logger import get_logger
from ordersaga.core.types import Customer, ProductSnapshot

logger = get_logger(__name__)

# Failures that mean "the call did not complete", as opposed to an answer
TRANSPORT_FAILURES = (TransportError, OSError, asyncio.TimeoutError)


def unique_product_ids(product_ids: Iterable[str]) -> list[str]:
    """De-duplicate ids keeping first-occurrence order."""
    return list(dict.fromkeys(product_ids))


def compute_total(snapshots: Iterable[ProductSnapshot]) -> int:
    """Sum of snapshot prices in minor units; zero for no products."""
    return sum(s.price for s in snapshots)


def validate_amount(computed: int, declared: int) -> None:
    """
    Raises:
        AmountMismatch: If the declared amount is not exactly the computed total
    """
    if computed != declared:
        raise AmountMismatch(computed=computed, declared=declared)


class PriceIdentityResolver:
    """
    Resolves the customer and product snapshots for an order.

    Args:
        identity: Identity service client
        catalog: Catalog service client
        call_timeout: Seconds allowed per outbound call
    """

    def __init__(self, identity: IdentityLookup, catalog: CatalogLookup, call_timeout: float = 5.0):
        self.identity = identity
        self.catalog = catalog
        self.call_timeout = call_timeout

    async def resolve_customer(self, user_id: str) -> Customer:
        try:
            user = await asyncio.wait_for(self.identity.get_user(user_id), self.call_timeout)
        except TRANSPORT_FAILURES as e:
            logger.warning(f"Identity lookup failed for user {user_id}: {e!r}")
            raise IdentityUnavailable(cause=e) from e

        if user is None:
            raise IdentityNotFound(user_id)

        return Customer(user_id=user.id, email=user.email, name=user.name)

    async def resolve_products(self, product_ids: Sequence[str]) -> list[ProductSnapshot]:
        """
        Look up all requested products in one batched call.

        Returns:
            Snapshots in the order the ids were requested (duplicates dropped)

        Raises:
            EmptyProductList: No ids given
            CatalogPartialMiss: Any id has no catalog match
            CatalogUnavailable: Transport failure or timeout
        """
        ids = unique_product_ids(product_ids)
        if not ids:
            raise EmptyProductList()

        try:
            found = await asyncio.wait_for(self.catalog.find_products(ids), self.call_timeout)
        except TRANSPORT_FAILURES as e:
            logger.warning(f"Catalog lookup failed for {len(ids)} products: {e!r}")
            raise CatalogUnavailable(cause=e) from e

        by_id = {p.id: p for p in found}
        missing = [pid for pid in ids if pid not in by_id]
        if missing:
            raise CatalogPartialMiss(missing)

        return [
            ProductSnapshot(product_id=pid, name=by_id[pid].name, price=by_id[pid].price)
            for pid in ids
        ]

    @staticmethod
    def compute_total(snapshots: Iterable[ProductSnapshot]) -> int:
        return compute_total(snapshots)

    @staticmethod
    def validate_amount(computed: int, declared: int) -> None:
        validate_amount(computed, declared)
