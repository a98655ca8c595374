"""Payment intents: creation, synchronous confirmation and status lookup.

Creating an intent for an order that already has an unconfirmed one issues
a fresh intent and cancels the old one at the provider, so a customer who
abandoned a first attempt cannot later complete two payments. The
cancellation is best effort: a provider error is logged and does not fail
the new intent.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import ForbiddenError, NotEligibleForPaymentError, PaymentNotCompletedError
from ordering.order.authority import Role
from ordering.order.order import Order
from ordering.payment.gateway import get_gateway
from ordering.payment.gateway.port import PaymentGatewayError
from ordering.payment.reconciliation import (
    PaymentOutcome,
    apply_payment_outcome,
    find_order_by_payment_intent,
)
from ordering.utils.locks import get_lock_manager, order_key

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class RecordPaymentIntent:
    order_id = Identifier(required=True)
    payment_intent_id = String(required=True, max_length=255)


@ordering.command_handler(part_of=Order)
class PaymentIntentHandler:
    @handle(RecordPaymentIntent)
    def record_payment_intent(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.attach_payment_intent(command.payment_intent_id)
        repo.add(order)


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def _payment_currency() -> str:
    return getattr(ordering, "PAYMENT_CURRENCY", None) or "zar"


def _cancel_superseded_intent(order, payment_intent_id):
    try:
        get_gateway().cancel_payment_intent(payment_intent_id)
    except PaymentGatewayError as exc:
        logger.warning(
            "Could not cancel superseded payment intent",
            order_id=str(order.id),
            payment_intent_id=payment_intent_id,
            error=exc.message,
        )
    else:
        logger.info(
            "Superseded payment intent cancelled",
            order_id=str(order.id),
            payment_intent_id=payment_intent_id,
        )


def create_payment_intent(order_id, user_id) -> dict:
    """Open a provider intent for the order's total.

    Returns ``{"client_secret", "payment_intent_id"}``.
    """
    repo = current_domain.repository_for(Order)

    with get_lock_manager().hold([order_key(order_id)]):
        order = repo.get(order_id)
        if not order.is_owned_by(user_id):
            raise ForbiddenError()
        if not order.is_eligible_for_payment:
            raise NotEligibleForPaymentError(order.order_number, order.status, order.payment_status)

        previous_intent_id = order.payment_intent_id
        intent = get_gateway().create_payment_intent(
            amount=to_minor_units(order.total),
            currency=_payment_currency(),
            metadata={
                "orderId": str(order.id),
                "orderNumber": order.order_number,
                "userId": str(order.user_id),
            },
        )
        current_domain.process(
            RecordPaymentIntent(order_id=str(order.id), payment_intent_id=intent.id),
            asynchronous=False,
        )

    logger.info(
        "Payment intent created",
        order_id=str(order.id),
        order_number=order.order_number,
        payment_intent_id=intent.id,
        amount=intent.amount,
        currency=intent.currency,
    )
    if previous_intent_id and previous_intent_id != intent.id:
        _cancel_superseded_intent(order, previous_intent_id)

    return {"client_secret": intent.client_secret, "payment_intent_id": intent.id}


def confirm_payment(payment_intent_id, user_id) -> dict:
    """Check an intent with the provider and settle the order if it succeeded.

    Returns ``{"status", "message", "order"}``. ``order`` is only set when
    the payment succeeded. Provider states that do not settle the order
    raise PaymentNotCompletedError.
    """
    intent = get_gateway().retrieve_payment_intent(payment_intent_id)

    order_id = intent.order_id
    if not order_id:
        order = find_order_by_payment_intent(payment_intent_id)
        if order is None:
            raise ObjectNotFoundError(f"No order for payment intent {payment_intent_id}")
        order_id = str(order.id)

    order = current_domain.repository_for(Order).get(order_id)
    if not order.is_owned_by(user_id):
        raise ForbiddenError()

    if intent.status == "succeeded":
        order = apply_payment_outcome(order_id, PaymentOutcome.SUCCEEDED, payment_intent_id=intent.id)
        return {"status": "succeeded", "message": "Payment confirmed successfully", "order": order}
    if intent.status == "processing":
        return {"status": "processing", "message": "Payment is processing", "order": None}
    if intent.status == "requires_payment_method":
        raise PaymentNotCompletedError("Payment requires a payment method")
    raise PaymentNotCompletedError(f"Payment status: {intent.status}")


def get_payment_status(order_id, user_id, role) -> dict:
    order = current_domain.repository_for(Order).get(order_id)
    if not order.is_owned_by(user_id) and Role(role) != Role.ADMIN:
        raise ForbiddenError()

    payment_details = None
    if order.payment_intent_id:
        try:
            intent = get_gateway().retrieve_payment_intent(order.payment_intent_id)
        except PaymentGatewayError as exc:
            logger.warning(
                "Failed to retrieve payment intent",
                order_id=str(order.id),
                payment_intent_id=order.payment_intent_id,
                error=exc.message,
            )
        else:
            payment_details = {
                "status": intent.status,
                "amount": intent.amount / 100,
                "currency": intent.currency,
                "created": datetime.fromtimestamp(intent.created, UTC) if intent.created else None,
            }

    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "total": order.total,
        "paid_at": order.paid_at,
        "payment_details": payment_details,
    }
