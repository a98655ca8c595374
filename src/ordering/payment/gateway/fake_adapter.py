"""Configurable fake payment gateway for development and testing.

Keeps payment intents in memory and never calls out. It can be told at
runtime to refuse requests, which is useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real provider credentials

Webhooks are accepted when signed with ``test-signature``, mirroring the
provider's test mode.
"""

import json
import time
from uuid import uuid4

from ordering.payment.gateway.port import (
    InvalidSignatureError,
    PaymentGateway,
    PaymentGatewayError,
    PaymentIntent,
    RefundResult,
    WebhookEvent,
)

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """In-memory payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment provider unavailable"
        self.intents: dict[str, PaymentIntent] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Payment provider unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def set_intent_status(self, payment_intent_id: str, status: str) -> PaymentIntent:
        """Simulate the customer (or the provider) moving an intent along."""
        intent = self._get(payment_intent_id)
        updated = PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            status=status,
            amount=intent.amount,
            currency=intent.currency,
            created=intent.created,
            metadata=intent.metadata,
        )
        self.intents[payment_intent_id] = updated
        return updated

    def _check_available(self) -> None:
        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

    def _get(self, payment_intent_id: str) -> PaymentIntent:
        try:
            return self.intents[payment_intent_id]
        except KeyError:
            raise PaymentGatewayError(
                f"No such payment_intent: '{payment_intent_id}'", provider_code="resource_missing"
            ) from None

    def create_payment_intent(self, amount: int, currency: str, metadata: dict) -> PaymentIntent:
        self.calls.append({"method": "create_payment_intent", "amount": amount, "currency": currency, "metadata": metadata})
        self._check_available()

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            created=int(time.time()),
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        return intent

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        self.calls.append({"method": "retrieve_payment_intent", "payment_intent_id": payment_intent_id})
        self._check_available()
        return self._get(payment_intent_id)

    def cancel_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        self.calls.append({"method": "cancel_payment_intent", "payment_intent_id": payment_intent_id})
        self._check_available()
        intent = self._get(payment_intent_id)
        if intent.status == "succeeded":
            raise PaymentGatewayError(
                f"PaymentIntent {payment_intent_id} has already succeeded", provider_code="payment_intent_unexpected_state"
            )
        return self.set_intent_status(payment_intent_id, "canceled")

    def create_refund(self, payment_intent_id: str, amount: int | None = None) -> RefundResult:
        self.calls.append({"method": "create_refund", "payment_intent_id": payment_intent_id, "amount": amount})
        self._check_available()
        intent = self._get(payment_intent_id)
        return RefundResult(
            id=f"re_fake_{uuid4().hex[:16]}",
            payment_intent_id=payment_intent_id,
            status="succeeded",
            amount=amount if amount is not None else intent.amount,
        )

    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        self.calls.append({"method": "construct_webhook_event", "signature": signature})
        if signature != TEST_SIGNATURE:
            raise InvalidSignatureError()

        try:
            body = json.loads(payload)
        except ValueError:
            raise InvalidSignatureError("Webhook payload is not valid JSON") from None

        return WebhookEvent.from_body(body)
