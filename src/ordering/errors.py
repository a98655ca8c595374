"""Business-rule errors raised by the ordering workflows.

Each error extends the Protean exception whose HTTP mapping matches it, so
the API layer only needs a couple of extra handlers on top of Protean's
standard ones.
"""

from protean.exceptions import (
    InvalidOperationError,
    ObjectNotFoundError,
    ProteanException,
    ValidationError,
)


class EmptyCartError(ValidationError):
    def __init__(self) -> None:
        super().__init__({"cart": ["Cart is empty"]})


class AddressNotFoundError(ObjectNotFoundError):
    def __init__(self, address_id: str) -> None:
        super().__init__(f"Shipping address {address_id} not found")
        self.address_id = address_id


class InsufficientStockError(ValidationError):
    """A product cannot supply the requested quantity."""

    def __init__(self, product_name: str, available: int, requested: int) -> None:
        super().__init__({"stock": [f"{product_name}: only {available} available, {requested} requested"]})
        self.product_name = product_name
        self.available = available
        self.requested = requested


class StockValidationError(ValidationError):
    """One or more cart lines cannot be fulfilled.

    Lists every offending line so the customer can fix the whole cart in
    one pass.
    """

    def __init__(self, problems: list[str]) -> None:
        super().__init__({"stock": list(problems)})
        self.problems = list(problems)


class NotEligibleForPaymentError(ValidationError):
    def __init__(self, order_number: str, status: str, payment_status: str) -> None:
        super().__init__(
            {
                "order": [
                    f"Order {order_number} is not eligible for payment "
                    f"(status={status}, payment_status={payment_status})"
                ]
            }
        )


class OrderNotCancellableError(ValidationError):
    def __init__(self) -> None:
        super().__init__({"status": ["Order cannot be cancelled. Please contact support."]})


class PaymentNotCompletedError(ValidationError):
    """The provider reports a payment state that does not settle the order."""

    def __init__(self, message: str) -> None:
        super().__init__({"payment": [message]})


class ForbiddenError(InvalidOperationError):
    """The caller lacks authority over the requested order."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class OrderNumberConflictError(ProteanException):
    """Another order already holds the generated order number."""
