"""Order lifecycle: status and shipping updates by sellers, admins and customers."""

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.authority import Role, assert_can_manage, assert_can_set_status
from ordering.order.cancellation import cancel_and_restore, order_lock_keys
from ordering.order.order import Order, OrderStatus, parse_order_status
from ordering.utils.locks import order_key, process_exclusively


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, choices=Role)


@ordering.command(part_of="Order")
class UpdateShippingInfo:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, choices=Role)
    tracking_number = String(max_length=100)
    shipping_carrier = String(max_length=100)
    estimated_delivery = DateTime()


@ordering.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        target = parse_order_status(command.status)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        assert_can_set_status(order, command.actor_id, command.actor_role, target.value)

        if target == OrderStatus.CANCELLED:
            cancel_and_restore(order, by_customer=Role(command.actor_role) == Role.CUSTOMER)
        else:
            order.change_status(target.value)
        repo.add(order)

    @handle(UpdateShippingInfo)
    def update_shipping_info(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        assert_can_manage(order, command.actor_id, command.actor_role)
        order.update_shipping_info(
            tracking_number=command.tracking_number,
            shipping_carrier=command.shipping_carrier,
            estimated_delivery=command.estimated_delivery,
        )
        repo.add(order)


def update_order_status(order_id, status, actor_id, actor_role):
    process_exclusively(
        UpdateOrderStatus(order_id=order_id, status=status, actor_id=actor_id, actor_role=actor_role),
        order_lock_keys(order_id),
    )
    return current_domain.repository_for(Order).get(order_id)


def update_shipping_info(order_id, actor_id, actor_role, tracking_number=None, shipping_carrier=None, estimated_delivery=None):
    process_exclusively(
        UpdateShippingInfo(
            order_id=order_id,
            actor_id=actor_id,
            actor_role=actor_role,
            tracking_number=tracking_number,
            shipping_carrier=shipping_carrier,
            estimated_delivery=estimated_delivery,
        ),
        [order_key(order_id)],
    )
    return current_domain.repository_for(Order).get(order_id)
