"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own state. Identifiers returned by the
API are stored so follow-up requests can reference them.
"""

from dataclasses import dataclass, field


@dataclass
class ShopperState:
    """One simulated customer working through checkout."""

    customer_number: int
    cart_item_ids: list[str] = field(default_factory=list)
    order_id: str | None = None
    order_number: str | None = None
    payment_intent_id: str | None = None
