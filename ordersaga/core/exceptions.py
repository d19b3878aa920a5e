"""
All order saga exceptions

Callers get a typed failure that tells validation problems, unavailable
dependencies and declined payments apart:

    OrderSagaError
    ├── ValidationError          (never leaves a persisted order behind)
    │   ├── EmptyProductList
    │   ├── IdentityNotFound
    │   ├── CatalogPartialMiss
    │   └── AmountMismatch
    ├── DependencyError          (transport failure or timeout, single attempt)
    │   ├── IdentityUnavailable
    │   ├── CatalogUnavailable
    │   └── PaymentTransportError
    ├── PaymentDeclined          (recorded as paymentFailed before raising)
    ├── OrderNotFound
    ├── InvalidStatusTransition
    ├── ConcurrencyConflict
    └── StorageError
        └── SerializationError
"""

from typing import Any


class OrderSagaError(Exception):
    """Base order saga error"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class TransportError(Exception):
    """
    Raised by collaborator adapters when the remote call itself failed.

    Adapters may also let OSError or TimeoutError escape; all three are
    treated as "the dependency is unavailable".
    """


# ============================================
# Validation
# ============================================


class ValidationError(OrderSagaError):
    """Request rejected before anything was persisted"""


class EmptyProductList(ValidationError):
    def __init__(self):
        super().__init__("Order must contain at least one product")


class IdentityNotFound(ValidationError):
    def __init__(self, user_id: str):
        super().__init__("Unknown user", details={"user_id": user_id})
        self.user_id = user_id


class CatalogPartialMiss(ValidationError):
    """Some requested product ids have no catalog match"""

    def __init__(self, missing_ids: list[str]):
        super().__init__("Unknown products requested", details={"missing_ids": missing_ids})
        self.missing_ids = missing_ids


class AmountMismatch(ValidationError):
    """Declared payment amount differs from the catalog total"""

    def __init__(self, computed: int, declared: int):
        super().__init__(
            "Payment amount has changed",
            details={"computed": computed, "declared": declared},
        )
        self.computed = computed
        self.declared = declared


# ============================================
# Dependencies
# ============================================


class DependencyError(OrderSagaError):
    """A collaborator could not be reached or did not answer in time"""

    dependency = "unknown"

    def __init__(self, message: str | None = None, cause: BaseException | None = None):
        super().__init__(
            message or f"{self.dependency} service unavailable",
            details={"dependency": self.dependency, "cause": type(cause).__name__}
            if cause is not None
            else {"dependency": self.dependency},
        )
        self.cause = cause


class IdentityUnavailable(DependencyError):
    dependency = "identity"


class CatalogUnavailable(DependencyError):
    dependency = "catalog"


class PaymentTransportError(DependencyError):
    """
    The charge call failed in transit.

    The outcome is unknown, so the order is left pending for reconciliation.
    """

    dependency = "payment"


# ============================================
# Business outcomes and store errors
# ============================================


class PaymentDeclined(OrderSagaError):
    """The payment collaborator declined the charge"""

    def __init__(self, order_id: str, raw: dict[str, Any] | None = None):
        super().__init__("Payment declined", details={"order_id": order_id})
        self.order_id = order_id
        self.raw = raw or {}


class OrderNotFound(OrderSagaError):
    def __init__(self, order_id: str):
        super().__init__("Order not found", details={"order_id": order_id})
        self.order_id = order_id


class InvalidStatusTransition(OrderSagaError):
    """Status change rejected by the state machine or the caller's expectation"""

    def __init__(self, order_id: str, from_status: Any, to_status: Any):
        super().__init__(
            f"Invalid transition for order {order_id}: "
            f"{getattr(from_status, 'value', from_status)} → "
            f"{getattr(to_status, 'value', to_status)}"
        )
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status


class ConcurrencyConflict(OrderSagaError):
    """The order was modified since the caller read it"""

    def __init__(self, order_id: str, expected_version: int, actual_version: int):
        super().__init__(
            "Version mismatch",
            details={
                "order_id": order_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.order_id = order_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class StorageError(OrderSagaError):
    """Storage backend failure"""


class SerializationError(StorageError):
    def __init__(self, message: str, operation: str | None = None, data_type: str | None = None):
        super().__init__(message, details={"operation": operation, "data_type": data_type})
        self.operation = operation
        self.data_type = data_type
