"""Cart aggregate (CQRS): one per user, converted into an Order at checkout.

Each line freezes the unit price seen when the product was added
(``price_at_add``). ``total_items`` and ``subtotal`` are derived from the
lines and recomputed inside the same atomic change as every mutation, so
they are never observed stale.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer

from ordering.domain import ordering


@ordering.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price_at_add = Float(required=True, min_value=0.0)
    added_at = DateTime()

    @property
    def line_total(self):
        return round(self.price_at_add * self.quantity, 2)


@ordering.aggregate
class Cart:
    user_id = Identifier(required=True, unique=True)
    items = HasMany(CartItem)
    total_items = Integer(default=0, min_value=0)
    subtotal = Float(default=0.0, min_value=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def totals_must_match_items(self):
        expected_items = sum(item.quantity for item in self.items)
        expected_subtotal = round(sum(item.line_total for item in self.items), 2)
        if self.total_items != expected_items or round(self.subtotal, 2) != expected_subtotal:
            raise ValidationError({"totals": ["Cart totals are out of sync with its items"]})

    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, total_items=0, subtotal=0.0, created_at=now, updated_at=now)

    @property
    def is_empty(self):
        return not self.items

    def item_for_product(self, product_id):
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ObjectNotFoundError(f"Cart item {item_id} not found")
        return item

    def _recalculate_totals(self):
        self.total_items = sum(item.quantity for item in self.items)
        self.subtotal = round(sum(item.line_total for item in self.items), 2)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, unit_price):
        """Add a product, or increase its quantity if it is already in the cart.

        The price of an existing line stays frozen at its original value.
        """
        with atomic_change(self):
            existing = self.item_for_product(product_id)
            if existing:
                existing.quantity += quantity
                item = existing
            else:
                item = CartItem(
                    product_id=product_id,
                    quantity=quantity,
                    price_at_add=unit_price,
                    added_at=datetime.now(UTC),
                )
                self.add_items(item)
            self._recalculate_totals()
        return item

    def update_item_quantity(self, item_id, quantity):
        item = self._find_item(item_id)
        with atomic_change(self):
            item.quantity = quantity
            self._recalculate_totals()
        return item

    def remove_item(self, item_id):
        item = self._find_item(item_id)
        with atomic_change(self):
            self.remove_items(item)
            self._recalculate_totals()

    def clear(self):
        """Delete every line and zero the derived totals."""
        with atomic_change(self):
            if self.items:
                self.remove_items(list(self.items))
            self._recalculate_totals()
