"""Role-scoped order reads."""

import math

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.authority import Role, assert_can_view
from ordering.order.order import Order, OrderItem, PaymentStatus, parse_order_status


def _seller_order_ids(seller_id):
    items = (
        current_domain.repository_for(OrderItem)
        ._dao.query.filter(seller_id=str(seller_id))
        .all()
        .items
    )
    return sorted({str(item.order_id) for item in items})


def _parse_payment_status(value):
    try:
        return PaymentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in PaymentStatus)
        raise ValidationError(
            {"payment_status": [f"Unknown payment status '{value}'. Expected one of: {allowed}"]}
        ) from None


def list_orders(user_id, role, status=None, payment_status=None, page=1, limit=None):
    """Return one page of the orders visible to the caller, newest first.

    Customers see their own orders, sellers the orders containing at least
    one of their products, admins every order.
    """
    limit = limit or getattr(ordering, "DEFAULT_PAGE_SIZE", 20)
    page = max(int(page), 1)
    limit = max(int(limit), 1)

    filters = {}
    role = Role(role)
    if role == Role.CUSTOMER:
        filters["user_id"] = str(user_id)
    elif role == Role.SELLER:
        order_ids = _seller_order_ids(user_id)
        if not order_ids:
            return _page([], 0, page, limit)
        filters["id__in"] = order_ids

    if status:
        filters["status"] = parse_order_status(status).value
    if payment_status:
        filters["payment_status"] = _parse_payment_status(payment_status).value

    query = current_domain.repository_for(Order)._dao.query
    if filters:
        query = query.filter(**filters)
    result = query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
    return _page(result.items, result.total, page, limit)


def _page(orders, total, page, limit):
    return {
        "orders": list(orders),
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def get_order(order_id, user_id, role):
    order = current_domain.repository_for(Order).get(order_id)
    assert_can_view(order, user_id, role)
    return order
