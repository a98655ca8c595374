"""Stripe payment gateway adapter.

Talks to Stripe through the stripe-python SDK. The API key is passed per
request instead of being set on the global ``stripe`` module, so several
gateways can coexist in one process (tests, multi-tenant setups).

Transient connection failures are retried; every other Stripe error is
surfaced as PaymentGatewayError carrying Stripe's message.
"""

import json

import stripe
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ordering.payment.gateway.port import (
    InvalidSignatureError,
    PaymentGateway,
    PaymentGatewayError,
    PaymentIntent,
    RefundResult,
    WebhookEvent,
)

logger = structlog.get_logger(__name__)


def _stripe_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(stripe.APIConnectionError),
    )


def _to_intent(obj) -> PaymentIntent:
    return PaymentIntent(
        id=obj["id"],
        client_secret=obj.get("client_secret"),
        status=obj["status"],
        amount=obj["amount"],
        currency=obj["currency"],
        created=obj.get("created"),
        metadata=dict(obj.get("metadata") or {}),
    )


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str | None = None) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def _call(self, operation, *args, **kwargs):
        try:
            return _stripe_retry()(operation)(*args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as exc:
            logger.error(
                "Stripe request failed",
                operation=getattr(operation, "__qualname__", str(operation)),
                code=exc.code,
                error=exc.user_message or str(exc),
            )
            raise PaymentGatewayError(exc.user_message or str(exc), provider_code=exc.code) from exc

    def create_payment_intent(self, amount: int, currency: str, metadata: dict) -> PaymentIntent:
        intent = self._call(
            stripe.PaymentIntent.create,
            amount=amount,
            currency=currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
        )
        return _to_intent(intent)

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        return _to_intent(self._call(stripe.PaymentIntent.retrieve, payment_intent_id))

    def cancel_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        return _to_intent(self._call(stripe.PaymentIntent.cancel, payment_intent_id))

    def create_refund(self, payment_intent_id: str, amount: int | None = None) -> RefundResult:
        params = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = amount
        refund = self._call(stripe.Refund.create, **params)
        return RefundResult(
            id=refund["id"],
            payment_intent_id=payment_intent_id,
            status=refund["status"],
            amount=refund.get("amount"),
        )

    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        if not self.webhook_secret:
            raise InvalidSignatureError("Webhook secret is not configured")

        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(text, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignatureError(str(exc)) from exc

        try:
            body = json.loads(text)
        except ValueError:
            raise InvalidSignatureError("Webhook payload is not valid JSON") from None
        return WebhookEvent.from_body(body)
