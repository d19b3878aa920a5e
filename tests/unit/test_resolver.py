"""
Tests for customer/product resolution and amount validation.
"""

import pytest

from ordersaga.core.exceptions import (
    AmountMismatch,
    CatalogPartialMiss,
    CatalogUnavailable,
    EmptyProductList,
    IdentityNotFound,
    IdentityUnavailable,
    ValidationError,
)
from ordersaga.core.types import Customer, ProductSnapshot
from ordersaga.resolver import (
    PriceIdentityResolver,
    compute_total,
    unique_product_ids,
    validate_amount,
)


@pytest.fixture
def resolver(identity, catalog):
    return PriceIdentityResolver(identity, catalog, call_timeout=0.1)


class TestResolveCustomer:
    @pytest.mark.asyncio
    async def test_known_user(self, resolver):
        customer = await resolver.resolve_customer("u1")

        assert customer == Customer(user_id="u1", email="ada@example.com", name="Ada Lovelace")

    @pytest.mark.asyncio
    async def test_unknown_user_is_a_validation_error(self, resolver):
        with pytest.raises(IdentityNotFound) as exc_info:
            await resolver.resolve_customer("ghost")

        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.user_id == "ghost"

    @pytest.mark.asyncio
    async def test_transport_failure(self, resolver, identity):
        identity.fail_next = 1

        with pytest.raises(IdentityUnavailable) as exc_info:
            await resolver.resolve_customer("u1")

        assert exc_info.value.details["dependency"] == "identity"
        assert exc_info.value.details["cause"] == "TransportError"

    @pytest.mark.asyncio
    async def test_timeout(self, resolver, identity):
        identity.hang = True

        with pytest.raises(IdentityUnavailable):
            await resolver.resolve_customer("u1")

    @pytest.mark.asyncio
    async def test_os_error_counts_as_unavailable(self, catalog):
        class BrokenIdentity:
            async def get_user(self, user_id):
                raise ConnectionRefusedError("refused")

        resolver = PriceIdentityResolver(BrokenIdentity(), catalog)

        with pytest.raises(IdentityUnavailable):
            await resolver.resolve_customer("u1")


class TestResolveProducts:
    @pytest.mark.asyncio
    async def test_snapshots_in_request_order(self, resolver):
        snapshots = await resolver.resolve_products(["p2", "p1"])

        assert snapshots == [
            ProductSnapshot(product_id="p2", name="Mouse", price=1500),
            ProductSnapshot(product_id="p1", name="Keyboard", price=1000),
        ]

    @pytest.mark.asyncio
    async def test_duplicates_are_dropped(self, resolver):
        snapshots = await resolver.resolve_products(["p1", "p2", "p1"])

        assert [s.product_id for s in snapshots] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_single_batched_call(self, resolver, catalog):
        await resolver.resolve_products(["p1", "p2", "p3"])

        assert catalog.calls == 1

    @pytest.mark.asyncio
    async def test_empty_list_fails_before_calling_catalog(self, resolver, catalog):
        with pytest.raises(EmptyProductList):
            await resolver.resolve_products([])

        assert catalog.calls == 0

    @pytest.mark.asyncio
    async def test_partial_miss_names_missing_ids(self, resolver):
        with pytest.raises(CatalogPartialMiss) as exc_info:
            await resolver.resolve_products(["p1", "nope", "p2", "gone"])

        assert exc_info.value.missing_ids == ["nope", "gone"]

    @pytest.mark.asyncio
    async def test_transport_failure(self, resolver, catalog):
        catalog.fail_next = 1

        with pytest.raises(CatalogUnavailable):
            await resolver.resolve_products(["p1"])

    @pytest.mark.asyncio
    async def test_timeout(self, resolver, catalog):
        catalog.hang = True

        with pytest.raises(CatalogUnavailable):
            await resolver.resolve_products(["p1"])


class TestAmounts:
    def test_compute_total(self):
        snapshots = [
            ProductSnapshot("p1", "Keyboard", 1000),
            ProductSnapshot("p2", "Mouse", 1500),
        ]

        assert compute_total(snapshots) == 2500
        assert PriceIdentityResolver.compute_total(snapshots) == 2500

    def test_compute_total_empty(self):
        assert compute_total([]) == 0

    def test_validate_amount_exact_match(self):
        validate_amount(2500, 2500)

    def test_validate_amount_mismatch(self):
        with pytest.raises(AmountMismatch) as exc_info:
            validate_amount(2500, 3000)

        assert exc_info.value.computed == 2500
        assert exc_info.value.declared == 3000
        assert str(exc_info.value).startswith("Payment amount has changed")

    def test_validate_amount_off_by_one_cent(self):
        with pytest.raises(AmountMismatch):
            PriceIdentityResolver.validate_amount(2500, 2499)

    def test_unique_product_ids_keeps_first_occurrence(self):
        assert unique_product_ids(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
