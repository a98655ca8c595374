"""Payment gateway port (abstract interface).

Defines the contract every payment provider adapter implements, so the
ordering workflows can switch between FakeGateway (development and tests)
and StripeGateway (production) without changing.

Amounts cross this boundary in minor currency units (cents), the way
payment providers expect them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class PaymentGatewayError(Exception):
    """The provider could not be reached or refused the request."""

    def __init__(self, message: str, provider_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider_code = provider_code


class InvalidSignatureError(Exception):
    """A webhook payload could not be authenticated."""

    def __init__(self, message: str = "Invalid webhook signature") -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class PaymentIntent:
    """The provider's record of a single attempted charge."""

    id: str
    client_secret: str | None
    status: str
    amount: int
    currency: str
    created: int | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def order_id(self) -> str | None:
        return self.metadata.get("orderId")


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund request."""

    id: str
    payment_intent_id: str
    status: str
    amount: int | None = None


@dataclass(frozen=True)
class WebhookEvent:
    """An authenticated provider notification."""

    id: str
    type: str
    data_object: dict = field(default_factory=dict)

    @classmethod
    def from_body(cls, body) -> "WebhookEvent":
        if not isinstance(body, dict):
            raise InvalidSignatureError("Webhook payload is not a JSON object")
        data = body.get("data")
        data_object = data.get("object") if isinstance(data, dict) else None
        return cls(
            id=str(body.get("id") or ""),
            type=str(body.get("type") or ""),
            data_object=data_object if isinstance(data_object, dict) else {},
        )


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_payment_intent(self, amount: int, currency: str, metadata: dict) -> PaymentIntent:
        """Open a new intent for ``amount`` minor units."""
        ...

    @abstractmethod
    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent: ...

    @abstractmethod
    def cancel_payment_intent(self, payment_intent_id: str) -> PaymentIntent: ...

    @abstractmethod
    def create_refund(self, payment_intent_id: str, amount: int | None = None) -> RefundResult:
        """Refund a settled intent, fully when ``amount`` is omitted."""
        ...

    @abstractmethod
    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify ``signature`` against ``payload`` and parse the event.

        Raises InvalidSignatureError when the payload cannot be trusted.
        """
        ...
