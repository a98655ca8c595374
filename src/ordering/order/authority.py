"""Who may see and change an order.

- customers: only their own orders; may cancel while pending or confirmed
- sellers: orders containing at least one of their products; any status
- admins: every order; any status
"""

from enum import Enum

from ordering.errors import ForbiddenError
from ordering.order.order import OrderStatus


class Role(Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    ADMIN = "admin"


def can_view(order, user_id, role):
    role = Role(role)
    if role == Role.ADMIN:
        return True
    if role == Role.SELLER:
        return order.has_seller(user_id)
    return order.is_owned_by(user_id)


def assert_can_view(order, user_id, role):
    if not can_view(order, user_id, role):
        raise ForbiddenError()


def assert_can_manage(order, user_id, role):
    """Sellers and admins manage fulfilment; customers never do."""
    role = Role(role)
    if role == Role.CUSTOMER:
        raise ForbiddenError()
    if role == Role.SELLER and not order.has_seller(user_id):
        raise ForbiddenError()


def assert_can_set_status(order, user_id, role, new_status):
    """Customers may only cancel their own orders; everyone else needs manage rights."""
    if Role(role) == Role.CUSTOMER:
        if new_status != OrderStatus.CANCELLED.value or not order.is_owned_by(user_id):
            raise ForbiddenError()
        return
    assert_can_manage(order, user_id, role)
