"""Cart item management: commands and handler.

Adding or raising a quantity checks the product's current stock, but does
not reserve it. Stock only moves when an order is placed.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.management import find_cart
from ordering.catalogue.product import Product
from ordering.domain import ordering
from ordering.utils.locks import cart_key, process_exclusively


@ordering.command(part_of="Cart")
class AddToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="Cart")
class UpdateCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="Cart")
class RemoveCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)


def _load_or_create(user_id):
    return find_cart(user_id) or Cart.create(user_id=user_id)


@ordering.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        cart = _load_or_create(command.user_id)
        product = current_domain.repository_for(Product).get(command.product_id)
        if not product.is_active:
            raise ValidationError({"product_id": [f"{product.name} is not available"]})

        existing = cart.item_for_product(command.product_id)
        already_in_cart = existing.quantity if existing else 0
        product.ensure_can_supply(already_in_cart + command.quantity)

        item = cart.add_item(
            product_id=command.product_id,
            quantity=command.quantity,
            unit_price=product.price,
        )
        current_domain.repository_for(Cart).add(cart)
        return str(item.id)

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        cart = find_cart(command.user_id)
        if cart is None:
            raise ObjectNotFoundError(f"Cart item {command.item_id} not found")

        item = next((i for i in cart.items if str(i.id) == str(command.item_id)), None)
        if item is not None:
            product = current_domain.repository_for(Product).get(item.product_id)
            product.ensure_can_supply(command.quantity)

        cart.update_item_quantity(command.item_id, command.quantity)
        current_domain.repository_for(Cart).add(cart)

    @handle(RemoveCartItem)
    def remove_cart_item(self, command):
        cart = find_cart(command.user_id)
        if cart is None:
            raise ObjectNotFoundError(f"Cart item {command.item_id} not found")
        cart.remove_item(command.item_id)
        current_domain.repository_for(Cart).add(cart)


def add_to_cart(user_id, product_id, quantity=1):
    process_exclusively(
        AddToCart(user_id=user_id, product_id=product_id, quantity=quantity),
        [cart_key(user_id)],
    )
    return find_cart(user_id)


def update_cart_item(user_id, item_id, quantity):
    process_exclusively(
        UpdateCartItem(user_id=user_id, item_id=item_id, quantity=quantity),
        [cart_key(user_id)],
    )
    return find_cart(user_id)


def remove_cart_item(user_id, item_id):
    process_exclusively(RemoveCartItem(user_id=user_id, item_id=item_id), [cart_key(user_id)])
    return find_cart(user_id)
