"""Payment reconciliation: applies provider outcomes to orders.

Outcomes arrive two ways: synchronously when the customer confirms a
payment, and asynchronously through signed provider webhooks. Providers
redeliver webhooks and do not guarantee their order, so every outcome is
safe to apply more than once:

- re-applying the payment status an order already has is a no-op, and
  ``paid_at`` keeps its first value
- transitions the payment state machine forbids (a failure arriving after
  the order was paid, anything after a refund) raise InvalidStateError,
  which the webhook logs and skips
- failures and cancellations reported for an intent the order no longer
  uses are ignored; a success is always honoured because money was taken

Each webhook event is isolated: its failure is logged, never propagated,
and the provider always receives an acknowledgement once dispatch ends.
"""

from enum import Enum

import structlog
from protean import handle
from protean.exceptions import InvalidStateError, ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.payment.gateway import get_gateway
from ordering.utils.locks import order_key, process_exclusively

logger = structlog.get_logger(__name__)


class PaymentOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    REFUNDED = "refunded"


# Provider event type → outcome it reports
WEBHOOK_EVENT_OUTCOMES = {
    "payment_intent.succeeded": PaymentOutcome.SUCCEEDED,
    "payment_intent.payment_failed": PaymentOutcome.FAILED,
    "payment_intent.canceled": PaymentOutcome.CANCELED,
    "charge.refunded": PaymentOutcome.REFUNDED,
}

_SUPERSEDABLE_OUTCOMES = {PaymentOutcome.FAILED, PaymentOutcome.CANCELED}


@ordering.command(part_of="Order")
class RecordPaymentOutcome:
    order_id = Identifier(required=True)
    outcome = String(required=True, choices=PaymentOutcome)
    payment_intent_id = String(max_length=255)


def find_order_by_payment_intent(payment_intent_id):
    return (
        current_domain.repository_for(Order)
        ._dao.query.filter(payment_intent_id=payment_intent_id)
        .all()
        .first
    )


@ordering.command_handler(part_of=Order)
class PaymentOutcomeHandler:
    @handle(RecordPaymentOutcome)
    def record_outcome(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        outcome = PaymentOutcome(command.outcome)

        if (
            outcome in _SUPERSEDABLE_OUTCOMES
            and command.payment_intent_id
            and order.payment_intent_id
            and command.payment_intent_id != order.payment_intent_id
        ):
            logger.info(
                "Ignoring outcome for superseded payment intent",
                order_id=str(order.id),
                outcome=outcome.value,
                payment_intent_id=command.payment_intent_id,
                current_intent_id=order.payment_intent_id,
            )
            return

        if outcome == PaymentOutcome.SUCCEEDED:
            changed = order.record_payment_success()
        elif outcome == PaymentOutcome.FAILED:
            changed = order.record_payment_failure()
        elif outcome == PaymentOutcome.CANCELED:
            changed = order.record_payment_cancellation()
        else:
            changed = order.record_refund()

        if not changed:
            logger.info(
                "Payment outcome already applied",
                order_id=str(order.id),
                outcome=outcome.value,
            )
            return

        repo.add(order)
        logger.info(
            "Payment outcome recorded",
            order_id=str(order.id),
            order_number=order.order_number,
            outcome=outcome.value,
            payment_status=order.payment_status,
            status=order.status,
        )


def apply_payment_outcome(order_id, outcome, payment_intent_id=None):
    """Apply ``outcome`` to the order while holding its lock."""
    command = RecordPaymentOutcome(
        order_id=order_id,
        outcome=PaymentOutcome(outcome).value,
        payment_intent_id=payment_intent_id,
    )
    process_exclusively(command, [order_key(order_id)])
    return current_domain.repository_for(Order).get(order_id)


def _resolve_order_id(outcome, data_object):
    """Find the order an event refers to.

    Intent events carry the order id in their metadata. Charge events only
    carry the intent id, so refunds are matched on the stored intent.
    """
    if outcome == PaymentOutcome.REFUNDED:
        payment_intent_id = data_object.get("payment_intent")
    else:
        order_id = (data_object.get("metadata") or {}).get("orderId")
        if order_id:
            return order_id, data_object.get("id")
        payment_intent_id = data_object.get("id")

    order = find_order_by_payment_intent(payment_intent_id) if payment_intent_id else None
    if order is None:
        raise ObjectNotFoundError(f"No order for payment intent {payment_intent_id}")
    return str(order.id), payment_intent_id


def handle_webhook(payload: bytes, signature: str) -> dict:
    """Verify and dispatch one provider webhook delivery.

    Raises InvalidSignatureError before touching any state when the payload
    cannot be authenticated. Otherwise always acknowledges.
    """
    event = get_gateway().construct_webhook_event(payload, signature)
    log = logger.bind(event_id=event.id, event_type=event.type)

    outcome = WEBHOOK_EVENT_OUTCOMES.get(event.type)
    if outcome is None:
        log.info("Unhandled webhook event type")
        return {"received": True}

    try:
        order_id, payment_intent_id = _resolve_order_id(outcome, event.data_object)
        apply_payment_outcome(order_id, outcome, payment_intent_id=payment_intent_id)
    except ObjectNotFoundError as exc:
        log.warning("Webhook event refers to an unknown order", error=str(exc))
    except InvalidStateError as exc:
        log.warning("Webhook event skipped: stale transition", error=str(exc))
    except Exception:
        log.exception("Webhook event handling failed")
    else:
        log.info("Webhook event processed", order_id=order_id)

    return {"received": True}
