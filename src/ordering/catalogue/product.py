"""Product: the slice of the catalogue that ordering depends on.

Catalogue management lives elsewhere; orders only read the descriptive
fields for snapshots and move ``stock_quantity`` up and down.
"""

from protean.fields import Boolean, Float, Identifier, Integer, String, Text

from ordering.domain import ordering
from ordering.errors import InsufficientStockError


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=50, unique=True)
    description = Text()
    brand = String(max_length=100)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    user_id = Identifier()  # Seller who lists the product

    def ensure_can_supply(self, quantity):
        """Raise InsufficientStockError unless ``quantity`` units can be sold."""
        if not self.is_active:
            raise InsufficientStockError(self.name, 0, quantity)
        if quantity > self.stock_quantity:
            raise InsufficientStockError(self.name, self.stock_quantity, quantity)

    def decrement_stock(self, quantity):
        self.ensure_can_supply(quantity)
        self.stock_quantity -= quantity

    def increment_stock(self, quantity):
        self.stock_quantity += quantity

    def snapshot(self):
        """Descriptive fields captured on an order line."""
        return {
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "brand": self.brand,
        }
