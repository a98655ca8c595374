"""Tests for Order placement: snapshots, pricing and the OrderPlaced event."""

import pytest
from ordering.order.events import OrderPlaced
from ordering.order.order import ItemStatus, Order, OrderStatus, PaymentStatus
from protean.exceptions import ValidationError

ADDRESS = {
    "recipient_name": "Thandi Mokoena",
    "phone": "+27821234567",
    "street_address": "12 Long Street",
    "suburb": "City Centre",
    "city": "Cape Town",
    "province": "Western Cape",
    "postal_code": "8001",
    "country": "South Africa",
}


def _line(product_id="prod-001", quantity=2, unit_price=100.0, seller_id="seller-1", name="Laptop"):
    return {
        "product_id": product_id,
        "seller_id": seller_id,
        "product": {"name": name, "sku": f"SKU-{product_id}", "description": None, "brand": "Acme"},
        "quantity": quantity,
        "unit_price": unit_price,
    }


def _make_order(**overrides):
    defaults = {
        "order_number": "ORD-20260301-00001",
        "user_id": "customer-1",
        "shipping_address_id": "addr-001",
        "shipping_address": ADDRESS,
        "lines": [_line()],
    }
    defaults.update(overrides)
    return Order.place(**defaults)


class TestOrderPlacement:
    def test_starts_pending_on_both_axes(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_item_totals_and_subtotal(self):
        order = _make_order(lines=[_line("p1", 2, 100.0), _line("p2", 3, 19.99)])
        totals = sorted(item.total_price for item in order.items)
        assert totals == [59.97, 200.0]
        assert order.subtotal == 259.97

    def test_total_is_subtotal_plus_charges(self):
        order = _make_order()
        assert order.shipping_cost == 0.0
        assert order.discount == 0.0
        assert order.tax == 0.0
        assert order.total == order.subtotal + order.shipping_cost - order.discount + order.tax

    def test_items_start_pending(self):
        order = _make_order()
        assert all(item.status == ItemStatus.PENDING.value for item in order.items)

    def test_captures_address_snapshot(self):
        order = _make_order()
        snapshot = order.shipping_address_snapshot
        assert snapshot.recipient_name == "Thandi Mokoena"
        assert snapshot.city == "Cape Town"
        assert snapshot.postal_code == "8001"

    def test_captures_product_snapshot(self):
        order = _make_order(lines=[_line(name="Gaming Laptop")])
        item = order.items[0]
        assert item.product_snapshot.name == "Gaming Laptop"
        assert item.product_snapshot.brand == "Acme"
        assert str(item.seller_id) == "seller-1"

    def test_uses_given_identity(self):
        order = _make_order(order_id="order-fixed-id")
        assert str(order.id) == "order-fixed-id"

    def test_keeps_optional_details(self):
        order = _make_order(payment_method="card", notes="Ring twice", coupon_code="WELCOME10")
        assert order.payment_method == "card"
        assert order.notes == "Ring twice"
        assert order.coupon_code == "WELCOME10"

    def test_stamps_created_at(self):
        order = _make_order()
        assert order.created_at is not None
        assert order.updated_at == order.created_at

    def test_raises_order_placed(self):
        order = _make_order(lines=[_line("p1"), _line("p2")])
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.order_number == "ORD-20260301-00001"
        assert event.item_count == 2
        assert event.total == order.total

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            _make_order(lines=[_line(quantity=0)])


class TestOrderOwnership:
    def test_is_owned_by_customer(self):
        order = _make_order()
        assert order.is_owned_by("customer-1")
        assert not order.is_owned_by("customer-2")

    def test_has_seller_when_any_item_matches(self):
        order = _make_order(lines=[_line("p1", seller_id="seller-1"), _line("p2", seller_id="seller-2")])
        assert order.has_seller("seller-2")
        assert not order.has_seller("seller-3")
