"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- StripeGateway for production
"""

from ordering.payment.gateway.fake_adapter import FakeGateway
from ordering.payment.gateway.port import PaymentGateway
from ordering.payment.gateway.stripe_adapter import StripeGateway

_current_gateway: PaymentGateway | None = None


def build_gateway(domain) -> PaymentGateway:
    """Build the gateway named by the domain's ``PAYMENT_GATEWAY`` setting."""
    name = getattr(domain, "PAYMENT_GATEWAY", "fake") or "fake"
    if name == "stripe":
        return StripeGateway(
            api_key=getattr(domain, "STRIPE_SECRET_KEY", None),
            webhook_secret=getattr(domain, "STRIPE_WEBHOOK_SECRET", None),
        )
    if name == "fake":
        return FakeGateway()
    raise ValueError(f"Unknown payment gateway '{name}'")


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
