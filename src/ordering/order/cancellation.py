"""Order cancellation: command, handler and stock compensation.

Cancelling gives back every unit taken at placement. The status change and
the stock increments commit in the same Unit of Work, and stock is only
restored when the status actually changed. Cancelling an already cancelled
order is a no-op.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product
from ordering.domain import ordering
from ordering.errors import ForbiddenError
from ordering.order.authority import Role, assert_can_manage
from ordering.order.order import Order
from ordering.utils.locks import order_key, process_exclusively, product_key

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, choices=Role)


def restore_stock(order):
    """Return each item's quantity to its product's stock."""
    product_repo = current_domain.repository_for(Product)
    for item in order.items:
        try:
            product = product_repo.get(item.product_id)
        except ObjectNotFoundError:
            logger.warning(
                "Product missing while restoring stock",
                order_id=str(order.id),
                product_id=str(item.product_id),
                quantity=item.quantity,
            )
            continue
        product.increment_stock(item.quantity)
        product_repo.add(product)


def cancel_and_restore(order, by_customer=False):
    if order.cancel(by_customer=by_customer):
        restore_stock(order)
        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            restored_items=len(order.items),
        )


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        by_customer = Role(command.actor_role) == Role.CUSTOMER
        if by_customer:
            if not order.is_owned_by(command.actor_id):
                raise ForbiddenError()
        else:
            assert_can_manage(order, command.actor_id, command.actor_role)

        cancel_and_restore(order, by_customer=by_customer)
        repo.add(order)


def order_lock_keys(order_id):
    """Lock keys for changes that may move stock: the order plus its products."""
    order = current_domain.repository_for(Order).get(order_id)
    return [order_key(order.id)] + [product_key(item.product_id) for item in order.items]


def cancel_order(order_id, actor_id, actor_role):
    process_exclusively(
        CancelOrder(order_id=order_id, actor_id=actor_id, actor_role=actor_role),
        order_lock_keys(order_id),
    )
    return current_domain.repository_for(Order).get(order_id)
