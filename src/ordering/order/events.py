"""Domain events for the Order aggregate.

Events are immutable facts recorded alongside each committed change. They
give downstream consumers (notifications, reporting) an audit trail of
placement, fulfilment and payment activity.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A cart was converted into an order and its stock was committed."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    total = Float(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The fulfilment status moved to a new value."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled; its stock is returned to the catalogue."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShippingInfoUpdated:
    order_id = Identifier(required=True)
    tracking_number = String()
    shipping_carrier = String()
    estimated_delivery = DateTime()


@ordering.event(part_of="Order")
class PaymentIntentAttached:
    """A payment intent now correlates with the order.

    ``replaced_intent_id`` is set when an earlier, unconfirmed intent was
    superseded.
    """

    order_id = Identifier(required=True)
    payment_intent_id = String(required=True)
    replaced_intent_id = String()


@ordering.event(part_of="Order")
class PaymentStatusChanged:
    order_id = Identifier(required=True)
    order_number = String(required=True)
    payment_intent_id = String()
    previous_payment_status = String(required=True)
    new_payment_status = String(required=True)
    occurred_at = DateTime(required=True)
