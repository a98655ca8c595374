"""Cart management: lazy creation, lookup and clearing."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.domain import ordering
from ordering.utils.locks import cart_key, process_exclusively


@ordering.command(part_of="Cart")
class CreateCart:
    """Create the user's cart unless one already exists."""

    user_id = Identifier(required=True)


@ordering.command(part_of="Cart")
class ClearCart:
    user_id = Identifier(required=True)


def find_cart(user_id):
    """Return the user's cart, or None if it was never created."""
    return current_domain.repository_for(Cart)._dao.query.filter(user_id=str(user_id)).all().first


def get_or_create_cart(user_id):
    cart = find_cart(user_id)
    if cart is None:
        process_exclusively(CreateCart(user_id=user_id), [cart_key(user_id)])
        cart = find_cart(user_id)
    return cart


@ordering.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = find_cart(command.user_id)
        if cart is None:
            cart = Cart.create(user_id=command.user_id)
            current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = find_cart(command.user_id)
        if cart is None:
            return
        cart.clear()
        current_domain.repository_for(Cart).add(cart)


def clear_cart(user_id):
    process_exclusively(ClearCart(user_id=user_id), [cart_key(user_id)])
    return find_cart(user_id)
