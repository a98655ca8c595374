"""Order aggregate (CQRS): the record of a purchase made from a cart.

Monetary values, the shipping address and every product's descriptive data
are captured when the order is placed and never recomputed afterwards.

Two independent state axes:

    status (fulfilment):
        pending, confirmed, processing, shipped, out_for_delivery,
        delivered, cancelled, refunded
        Any non-terminal status may move to any other; cancelled and
        refunded are terminal. delivered_at is stamped the first time the
        order reaches delivered.

    payment_status:
        pending → paid | failed | cancelled | refunded
        failed → paid | cancelled | refunded
        cancelled → paid | refunded
        paid → refunded
        Re-applying the current value is a no-op, so redelivered provider
        events are harmless.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import NotEligibleForPaymentError, OrderNotCancellableError
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentIntentAttached,
    PaymentStatusChanged,
    ShippingInfoUpdated,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class ItemStatus(Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    RETURNED = "returned"
    REFUNDED = "refunded"


TERMINAL_STATES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

# States from which a customer may cancel their own order
CUSTOMER_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.PAID,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.REFUNDED,
    },
    PaymentStatus.FAILED: {PaymentStatus.PAID, PaymentStatus.CANCELLED, PaymentStatus.REFUNDED},
    PaymentStatus.CANCELLED: {PaymentStatus.PAID, PaymentStatus.REFUNDED},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
}

# Order status → (item statuses that lag behind it, status they move to)
_ITEM_PROGRESSION = {
    OrderStatus.SHIPPED: ({ItemStatus.PENDING}, ItemStatus.SHIPPED),
    OrderStatus.OUT_FOR_DELIVERY: ({ItemStatus.PENDING}, ItemStatus.SHIPPED),
    OrderStatus.DELIVERED: ({ItemStatus.PENDING, ItemStatus.SHIPPED}, ItemStatus.DELIVERED),
    OrderStatus.REFUNDED: (
        {ItemStatus.PENDING, ItemStatus.SHIPPED, ItemStatus.DELIVERED},
        ItemStatus.REFUNDED,
    ),
}


def parse_order_status(value):
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError({"status": [f"Unknown status '{value}'. Expected one of: {allowed}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class AddressSnapshot:
    """The shipping address exactly as it was when the order was placed.

    The customer may later edit or delete the live address; the order keeps
    shipping to this copy.
    """

    recipient_name = String(required=True, max_length=255)
    phone = String(max_length=50)
    street_address = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    suburb = String(max_length=100)
    city = String(required=True, max_length=100)
    province = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100)


@ordering.value_object(part_of="Order")
class ProductSnapshot:
    """Descriptive product data frozen on an order line."""

    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    description = Text()
    brand = String(max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """One purchased product and quantity.

    ``total_price`` is computed once at placement. The item's own status
    allows partial fulfilment to be tracked independently of the order.
    """

    product_id = Identifier(required=True)
    seller_id = Identifier()
    product_snapshot = ValueObject(ProductSnapshot)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)
    status = String(choices=ItemStatus, default=ItemStatus.PENDING.value)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    user_id = Identifier(required=True)
    shipping_address_id = Identifier(required=True)
    shipping_address_snapshot = ValueObject(AddressSnapshot)
    items = HasMany(OrderItem)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(max_length=50)
    payment_intent_id = String(max_length=255)
    paid_at = DateTime()
    subtotal = Float(default=0.0, min_value=0.0)
    shipping_cost = Float(default=0.0)
    discount = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(default=0.0)
    notes = Text()
    coupon_code = String(max_length=50)
    tracking_number = String(max_length=100)
    shipping_carrier = String(max_length=100)
    estimated_delivery = DateTime()
    delivered_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def subtotal_must_equal_sum_of_items(self):
        if self.items and round(sum(item.total_price for item in self.items), 2) != round(self.subtotal, 2):
            raise ValidationError({"subtotal": ["Order subtotal must equal the sum of its item totals"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        user_id,
        shipping_address_id,
        shipping_address,
        lines,
        payment_method=None,
        notes=None,
        coupon_code=None,
        order_id=None,
    ):
        """Create an order from priced cart lines.

        Args:
            order_number: Pre-generated ``ORD-YYYYMMDD-NNNNN`` identifier.
            shipping_address: Dict of AddressSnapshot fields.
            lines: List of dicts with product_id, seller_id, product
                (dict of ProductSnapshot fields), quantity and unit_price.
            order_id: Optional pre-generated identity.
        """
        now = datetime.now(UTC)

        items = [
            OrderItem(
                product_id=line["product_id"],
                seller_id=line.get("seller_id"),
                product_snapshot=ProductSnapshot(**line["product"]),
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                total_price=round(line["unit_price"] * line["quantity"], 2),
            )
            for line in lines
        ]
        subtotal = round(sum(item.total_price for item in items), 2)

        # Shipping, discount and tax rules are not modelled yet; they enter the total here.
        shipping_cost = 0.0
        discount = 0.0
        tax = 0.0

        identity = {"id": order_id} if order_id else {}
        order = cls(
            **identity,
            order_number=order_number,
            user_id=user_id,
            shipping_address_id=shipping_address_id,
            shipping_address_snapshot=AddressSnapshot(**shipping_address),
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            discount=discount,
            tax=tax,
            total=round(subtotal + shipping_cost - discount + tax, 2),
            notes=notes,
            coupon_code=coupon_code,
            created_at=now,
            updated_at=now,
        )
        with atomic_change(order):
            order.add_items(items)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                item_count=len(items),
                subtotal=order.subtotal,
                total=order.total,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Ownership
    # -------------------------------------------------------------------
    def is_owned_by(self, user_id):
        return str(self.user_id) == str(user_id)

    def has_seller(self, seller_id):
        return any(item.seller_id and str(item.seller_id) == str(seller_id) for item in self.items)

    @property
    def is_terminal(self):
        return OrderStatus(self.status) in TERMINAL_STATES

    # -------------------------------------------------------------------
    # Fulfilment status
    # -------------------------------------------------------------------
    def change_status(self, new_status):
        """Move the fulfilment status.

        Returns True when the status actually changed, False when the order
        already had it. Callers rely on this to run compensations only once.
        """
        target = parse_order_status(new_status)
        current = OrderStatus(self.status)
        if target == current:
            return False
        if current in TERMINAL_STATES:
            raise InvalidStateError(f"Order {self.order_number} is {current.value} and can no longer change status")

        now = datetime.now(UTC)
        self.status = target.value
        if target == OrderStatus.DELIVERED and self.delivered_at is None:
            self.delivered_at = now
        self._advance_items(target)
        self.updated_at = now

        if target == OrderStatus.CANCELLED:
            self.raise_(
                OrderCancelled(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    previous_status=current.value,
                    items=json.dumps(
                        [{"product_id": str(item.product_id), "quantity": item.quantity} for item in self.items]
                    ),
                    cancelled_at=now,
                )
            )
        else:
            self.raise_(
                OrderStatusChanged(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    previous_status=current.value,
                    new_status=target.value,
                    changed_at=now,
                )
            )
        return True

    def cancel(self, by_customer=False):
        """Cancel the order. Customers may only cancel pending or confirmed orders."""
        if OrderStatus(self.status) == OrderStatus.CANCELLED:
            return False
        if by_customer and OrderStatus(self.status) not in CUSTOMER_CANCELLABLE_STATES:
            raise OrderNotCancellableError()
        return self.change_status(OrderStatus.CANCELLED.value)

    def _advance_items(self, target):
        if target not in _ITEM_PROGRESSION:
            return
        lagging, new_item_status = _ITEM_PROGRESSION[target]
        for item in self.items:
            if ItemStatus(item.status) in lagging:
                item.status = new_item_status.value

    def update_shipping_info(self, tracking_number=None, shipping_carrier=None, estimated_delivery=None):
        """Update only the shipping fields that were supplied."""
        if tracking_number is not None:
            self.tracking_number = tracking_number
        if shipping_carrier is not None:
            self.shipping_carrier = shipping_carrier
        if estimated_delivery is not None:
            self.estimated_delivery = estimated_delivery
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ShippingInfoUpdated(
                order_id=str(self.id),
                tracking_number=self.tracking_number,
                shipping_carrier=self.shipping_carrier,
                estimated_delivery=self.estimated_delivery,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    @property
    def is_eligible_for_payment(self):
        return self.status == OrderStatus.PENDING.value and self.payment_status == PaymentStatus.PENDING.value

    def attach_payment_intent(self, payment_intent_id):
        """Correlate a new provider intent with this order.

        Returns the id of the intent it replaced, if any.
        """
        if not self.is_eligible_for_payment:
            raise NotEligibleForPaymentError(self.order_number, self.status, self.payment_status)

        previous = self.payment_intent_id
        if previous == payment_intent_id:
            return None

        self.payment_intent_id = payment_intent_id
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentIntentAttached(
                order_id=str(self.id),
                payment_intent_id=payment_intent_id,
                replaced_intent_id=previous,
            )
        )
        return previous

    def _move_payment_status(self, target):
        current = PaymentStatus(self.payment_status)
        if target == current:
            return False
        if target not in _PAYMENT_TRANSITIONS[current]:
            raise InvalidStateError(
                f"Payment for order {self.order_number} is {current.value} and cannot become {target.value}"
            )

        now = datetime.now(UTC)
        self.payment_status = target.value
        self.updated_at = now

        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                payment_intent_id=self.payment_intent_id,
                previous_payment_status=current.value,
                new_payment_status=target.value,
                occurred_at=now,
            )
        )
        return True

    def record_payment_success(self):
        """Mark the order paid and confirm it. paid_at is stamped only once."""
        if not self._move_payment_status(PaymentStatus.PAID):
            return False

        self.paid_at = datetime.now(UTC)
        if OrderStatus(self.status) == OrderStatus.PENDING:
            self.change_status(OrderStatus.CONFIRMED.value)
        return True

    def record_payment_failure(self):
        return self._move_payment_status(PaymentStatus.FAILED)

    def record_payment_cancellation(self):
        return self._move_payment_status(PaymentStatus.CANCELLED)

    def record_refund(self):
        """Mark the payment refunded and, unless the order is already closed, the order too."""
        changed = self._move_payment_status(PaymentStatus.REFUNDED)
        if not self.is_terminal:
            changed = self.change_status(OrderStatus.REFUNDED.value) or changed
        return changed
