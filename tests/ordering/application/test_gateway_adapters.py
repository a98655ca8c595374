"""Tests for the payment gateway adapters and their factory."""

import json
from types import SimpleNamespace

import pytest
import stripe
from ordering.payment.gateway import build_gateway
from ordering.payment.gateway.fake_adapter import TEST_SIGNATURE, FakeGateway
from ordering.payment.gateway.port import InvalidSignatureError, PaymentGatewayError
from ordering.payment.gateway.stripe_adapter import StripeGateway


def _intent_dict(**overrides):
    data = {
        "id": "pi_123",
        "client_secret": "pi_123_secret_abc",
        "status": "requires_payment_method",
        "amount": 20000,
        "currency": "zar",
        "created": 1767225600,
        "metadata": {"orderId": "order-1"},
    }
    data.update(overrides)
    return data


class TestFakeGateway:
    def test_create_and_retrieve(self):
        gateway = FakeGateway()
        intent = gateway.create_payment_intent(1500, "zar", {"orderId": "order-1"})

        assert intent.id.startswith("pi_fake_")
        assert intent.status == "requires_payment_method"
        assert intent.order_id == "order-1"
        assert gateway.retrieve_payment_intent(intent.id) == intent

    def test_refuses_when_configured_to_fail(self):
        gateway = FakeGateway()
        gateway.configure(should_succeed=False, failure_reason="Maintenance")
        with pytest.raises(PaymentGatewayError, match="Maintenance"):
            gateway.create_payment_intent(1500, "zar", {})

    def test_cannot_cancel_a_succeeded_intent(self):
        gateway = FakeGateway()
        intent = gateway.create_payment_intent(1500, "zar", {})
        gateway.set_intent_status(intent.id, "succeeded")
        with pytest.raises(PaymentGatewayError):
            gateway.cancel_payment_intent(intent.id)

    def test_refund_defaults_to_full_amount(self):
        gateway = FakeGateway()
        intent = gateway.create_payment_intent(1500, "zar", {})
        assert gateway.create_refund(intent.id).amount == 1500

    def test_webhook_requires_test_signature(self):
        gateway = FakeGateway()
        payload = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}})

        event = gateway.construct_webhook_event(payload.encode(), TEST_SIGNATURE)
        assert event.type == "payment_intent.succeeded"
        assert event.data_object == {"id": "pi_1"}

        with pytest.raises(InvalidSignatureError):
            gateway.construct_webhook_event(payload.encode(), "nope")

    @pytest.mark.parametrize("payload", [b"[1, 2]", b"\"evt\"", b"42", b"not json"])
    def test_webhook_body_must_be_a_json_object(self, payload):
        with pytest.raises(InvalidSignatureError):
            FakeGateway().construct_webhook_event(payload, TEST_SIGNATURE)

    def test_webhook_with_malformed_data_has_empty_object(self):
        payload = json.dumps({"id": "evt_2", "type": "payment_intent.succeeded", "data": ["pi_1"]})
        event = FakeGateway().construct_webhook_event(payload.encode(), TEST_SIGNATURE)
        assert event.data_object == {}


class TestStripeGateway:
    def test_create_payment_intent(self, monkeypatch):
        captured = {}

        def fake_create(**kwargs):
            captured.update(kwargs)
            return _intent_dict()

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        gateway = StripeGateway(api_key="sk_test_123")

        intent = gateway.create_payment_intent(20000, "zar", {"orderId": "order-1"})

        assert intent.id == "pi_123"
        assert intent.order_id == "order-1"
        assert captured["api_key"] == "sk_test_123"
        assert captured["amount"] == 20000
        assert captured["automatic_payment_methods"] == {"enabled": True}

    def test_stripe_errors_become_gateway_errors(self, monkeypatch):
        def fake_retrieve(payment_intent_id, **kwargs):
            raise stripe.InvalidRequestError("No such payment_intent", "id", code="resource_missing")

        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fake_retrieve)

        with pytest.raises(PaymentGatewayError) as exc:
            StripeGateway(api_key="sk_test_123").retrieve_payment_intent("pi_missing")
        assert exc.value.provider_code == "resource_missing"

    def test_connection_errors_are_retried(self, monkeypatch):
        attempts = []

        def flaky_cancel(payment_intent_id, **kwargs):
            attempts.append(payment_intent_id)
            if len(attempts) < 2:
                raise stripe.APIConnectionError("connection reset")
            return _intent_dict(status="canceled")

        monkeypatch.setattr(stripe.PaymentIntent, "cancel", flaky_cancel)

        intent = StripeGateway(api_key="sk_test_123").cancel_payment_intent("pi_123")

        assert intent.status == "canceled"
        assert len(attempts) == 2

    def test_refund(self, monkeypatch):
        monkeypatch.setattr(
            stripe.Refund,
            "create",
            lambda **kwargs: {"id": "re_1", "status": "succeeded", "amount": kwargs.get("amount")},
        )
        refund = StripeGateway(api_key="sk_test_123").create_refund("pi_123", amount=500)
        assert refund.id == "re_1"
        assert refund.amount == 500

    def test_webhook_without_secret_fails_closed(self):
        with pytest.raises(InvalidSignatureError):
            StripeGateway(api_key="sk_test_123").construct_webhook_event(b"{}", "t=1,v1=abc")

    def test_webhook_signature_failure(self, monkeypatch):
        def reject(payload, header, secret, tolerance=None):
            raise stripe.SignatureVerificationError("No signatures found", header)

        monkeypatch.setattr(stripe.WebhookSignature, "verify_header", reject)
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")

        with pytest.raises(InvalidSignatureError):
            gateway.construct_webhook_event(b"{}", "t=1,v1=abc")

    def test_webhook_parses_verified_payload(self, monkeypatch):
        monkeypatch.setattr(stripe.WebhookSignature, "verify_header", lambda payload, header, secret, tolerance=None: True)
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")
        payload = json.dumps({"id": "evt_9", "type": "charge.refunded", "data": {"object": {"payment_intent": "pi_1"}}})

        event = gateway.construct_webhook_event(payload.encode(), "t=1,v1=abc")

        assert event.id == "evt_9"
        assert event.data_object["payment_intent"] == "pi_1"

    def test_verified_non_object_payload_is_rejected(self, monkeypatch):
        monkeypatch.setattr(stripe.WebhookSignature, "verify_header", lambda payload, header, secret, tolerance=None: True)
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")

        with pytest.raises(InvalidSignatureError):
            gateway.construct_webhook_event(b"[1, 2]", "t=1,v1=abc")


class TestBuildGateway:
    def test_fake(self):
        assert isinstance(build_gateway(SimpleNamespace(PAYMENT_GATEWAY="fake")), FakeGateway)

    def test_stripe(self):
        gateway = build_gateway(
            SimpleNamespace(PAYMENT_GATEWAY="stripe", STRIPE_SECRET_KEY="sk_test_1", STRIPE_WEBHOOK_SECRET="whsec_1")
        )
        assert isinstance(gateway, StripeGateway)
        assert gateway.webhook_secret == "whsec_1"

    def test_unknown(self):
        with pytest.raises(ValueError):
            build_gateway(SimpleNamespace(PAYMENT_GATEWAY="paypal"))
