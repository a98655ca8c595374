"""Order placement: converts the caller's cart into an order.

Everything happens in one Unit of Work, so a failure at any step leaves the
cart, the stock levels and the order table exactly as they were:

1. the cart must have at least one line (EmptyCartError)
2. the shipping address must exist and belong to the caller
   (AddressNotFoundError)
3. every line's product must be active with enough stock. All shortfalls
   are collected into a single StockValidationError.
4. the order and its items are created with address and product snapshots
5. stock is decremented for every line
6. the cart is emptied
"""

from uuid import uuid4

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ordering.cart.cart import Cart
from ordering.cart.management import find_cart
from ordering.catalogue.product import Product
from ordering.customer.address import Address
from ordering.domain import ordering
from ordering.errors import (
    AddressNotFoundError,
    EmptyCartError,
    OrderNumberConflictError,
    StockValidationError,
)
from ordering.order.numbering import generate_order_number, order_number_key, today
from ordering.order.order import Order
from ordering.utils.locks import cart_key, get_lock_manager, process_exclusively, product_key

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    order_id = Identifier(required=True)  # Pre-generated so the caller can load the result
    user_id = Identifier(required=True)
    shipping_address_id = Identifier(required=True)
    payment_method = String(max_length=50)
    notes = Text()
    coupon_code = String(max_length=50)


def _load_shipping_address(address_id, user_id):
    try:
        address = current_domain.repository_for(Address).get(address_id)
    except ObjectNotFoundError:
        raise AddressNotFoundError(address_id) from None
    if not address.belongs_to(user_id):
        raise AddressNotFoundError(address_id)
    return address


def _price_cart_lines(cart):
    """Load every product in the cart and check it can be supplied.

    Returns ``(lines, reservations)`` where ``reservations`` pairs each
    product with the quantity to take from its stock.
    """
    product_repo = current_domain.repository_for(Product)
    problems = []
    lines = []
    reservations = []

    for item in cart.items:
        try:
            product = product_repo.get(item.product_id)
        except ObjectNotFoundError:
            problems.append(f"Product {item.product_id} is no longer available")
            continue

        if not product.is_active:
            problems.append(f"{product.name} is no longer available")
            continue
        if product.stock_quantity < item.quantity:
            problems.append(f"{product.name}: only {product.stock_quantity} available, {item.quantity} requested")
            continue

        lines.append(
            {
                "product_id": str(product.id),
                "seller_id": str(product.user_id) if product.user_id else None,
                "product": product.snapshot(),
                "quantity": item.quantity,
                "unit_price": item.price_at_add,
            }
        )
        reservations.append((product, item.quantity))

    if problems:
        raise StockValidationError(problems)
    return lines, reservations


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart = find_cart(command.user_id)
        if cart is None or cart.is_empty:
            raise EmptyCartError()

        address = _load_shipping_address(command.shipping_address_id, command.user_id)
        lines, reservations = _price_cart_lines(cart)

        order = Order.place(
            order_number=generate_order_number(),
            user_id=command.user_id,
            shipping_address_id=command.shipping_address_id,
            shipping_address=address.snapshot(),
            lines=lines,
            payment_method=command.payment_method,
            notes=command.notes,
            coupon_code=command.coupon_code,
            order_id=command.order_id,
        )

        try:
            current_domain.repository_for(Order).add(order)
        except ValidationError as exc:
            if "order_number" in exc.messages:
                raise OrderNumberConflictError(f"Order number {order.order_number} is already taken") from exc
            raise

        product_repo = current_domain.repository_for(Product)
        for product, quantity in reservations:
            product.decrement_stock(quantity)
            product_repo.add(product)

        cart.clear()
        current_domain.repository_for(Cart).add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=str(command.user_id),
            item_count=len(lines),
            total=order.total,
        )
        return str(order.id)


@retry(
    reraise=True,
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
    retry=retry_if_exception_type(OrderNumberConflictError),
)
def _place_exclusively(command):
    # The cart lock is taken first so the set of products cannot change
    # between reading it and locking those products.
    with get_lock_manager().hold([cart_key(command.user_id)]):
        cart = find_cart(command.user_id)
        product_ids = [str(item.product_id) for item in cart.items] if cart else []
        keys = [order_number_key(today())] + [product_key(pid) for pid in product_ids]
        return process_exclusively(command, keys)


def place_order(user_id, shipping_address_id, payment_method=None, notes=None, coupon_code=None):
    """Place an order from the user's cart and return the persisted Order."""
    command = PlaceOrder(
        order_id=str(uuid4()),
        user_id=user_id,
        shipping_address_id=shipping_address_id,
        payment_method=payment_method,
        notes=notes,
        coupon_code=coupon_code,
    )
    _place_exclusively(command)
    return current_domain.repository_for(Order).get(command.order_id)
