"""FastAPI routes for the Ordering domain: cart, orders and payments.

Handlers that reach the lock managers, the database or the payment provider
block, so they are plain functions and FastAPI runs them in its threadpool.
"""

import os

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool

from ordering.api.dependencies import Caller, get_caller
from ordering.api.schemas import (
    AddToCartRequest,
    CartResponse,
    ConfigureGatewayRequest,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreatePaymentIntentRequest,
    GatewayConfigResponse,
    OrderListResponse,
    OrderResponse,
    PaginationResponse,
    PaymentIntentResponse,
    PaymentStatusResponse,
    PlaceOrderRequest,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
    UpdateShippingInfoRequest,
    WebhookAckResponse,
)
from ordering.cart.items import add_to_cart, remove_cart_item, update_cart_item
from ordering.cart.management import clear_cart, get_or_create_cart
from ordering.order.cancellation import cancel_order
from ordering.order.creation import place_order
from ordering.order.lifecycle import update_order_status, update_shipping_info
from ordering.order.queries import get_order, list_orders
from ordering.payment.gateway import get_gateway
from ordering.payment.gateway.fake_adapter import FakeGateway
from ordering.payment.intents import confirm_payment, create_payment_intent, get_payment_status
from ordering.payment.reconciliation import handle_webhook

# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
def get_cart(caller: Caller = Depends(get_caller)) -> CartResponse:
    return CartResponse.from_cart(get_or_create_cart(caller.user_id), caller.user_id)


@cart_router.post("/items", status_code=201, response_model=CartResponse)
def add_cart_item(body: AddToCartRequest, caller: Caller = Depends(get_caller)) -> CartResponse:
    cart = add_to_cart(caller.user_id, body.product_id, body.quantity)
    return CartResponse.from_cart(cart, caller.user_id)


@cart_router.put("/items/{item_id}", response_model=CartResponse)
def update_cart_item_quantity(
    item_id: str, body: UpdateCartItemRequest, caller: Caller = Depends(get_caller)
) -> CartResponse:
    cart = update_cart_item(caller.user_id, item_id, body.quantity)
    return CartResponse.from_cart(cart, caller.user_id)


@cart_router.delete("/items/{item_id}", response_model=CartResponse)
def delete_cart_item(item_id: str, caller: Caller = Depends(get_caller)) -> CartResponse:
    return CartResponse.from_cart(remove_cart_item(caller.user_id, item_id), caller.user_id)


@cart_router.delete("", response_model=CartResponse)
def empty_cart(caller: Caller = Depends(get_caller)) -> CartResponse:
    return CartResponse.from_cart(clear_cart(caller.user_id), caller.user_id)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
def create_order(body: PlaceOrderRequest, caller: Caller = Depends(get_caller)) -> OrderResponse:
    """Convert the caller's cart into an order."""
    order = place_order(
        user_id=caller.user_id,
        shipping_address_id=body.shipping_address_id,
        payment_method=body.payment_method,
        notes=body.notes,
        coupon_code=body.coupon_code,
    )
    return OrderResponse.from_order(order)


@order_router.get("", response_model=OrderListResponse)
def get_orders(
    caller: Caller = Depends(get_caller),
    status: str | None = None,
    payment_status: str | None = Query(default=None, alias="paymentStatus"),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
) -> OrderListResponse:
    result = list_orders(
        caller.user_id,
        caller.role,
        status=status,
        payment_status=payment_status,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        orders=[OrderResponse.from_order(order) for order in result["orders"]],
        pagination=PaginationResponse(**result["pagination"]),
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order_by_id(order_id: str, caller: Caller = Depends(get_caller)) -> OrderResponse:
    return OrderResponse.from_order(get_order(order_id, caller.user_id, caller.role))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
def change_order_status(
    order_id: str, body: UpdateOrderStatusRequest, caller: Caller = Depends(get_caller)
) -> OrderResponse:
    order = update_order_status(order_id, body.status, caller.user_id, caller.role)
    return OrderResponse.from_order(order)


@order_router.put("/{order_id}/shipping", response_model=OrderResponse)
def change_shipping_info(
    order_id: str, body: UpdateShippingInfoRequest, caller: Caller = Depends(get_caller)
) -> OrderResponse:
    order = update_shipping_info(
        order_id,
        caller.user_id,
        caller.role,
        tracking_number=body.tracking_number,
        shipping_carrier=body.shipping_carrier,
        estimated_delivery=body.estimated_delivery,
    )
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel(order_id: str, caller: Caller = Depends(get_caller)) -> OrderResponse:
    """Cancel the order and return its stock to the catalogue."""
    return OrderResponse.from_order(cancel_order(order_id, caller.user_id, caller.role))


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/create-intent", response_model=PaymentIntentResponse)
def create_intent(body: CreatePaymentIntentRequest, caller: Caller = Depends(get_caller)) -> PaymentIntentResponse:
    return PaymentIntentResponse(**create_payment_intent(body.order_id, caller.user_id))


@payment_router.post("/confirm", response_model=ConfirmPaymentResponse)
def confirm(body: ConfirmPaymentRequest, caller: Caller = Depends(get_caller)) -> ConfirmPaymentResponse:
    result = confirm_payment(body.payment_intent_id, caller.user_id)
    order = result["order"]
    return ConfirmPaymentResponse(
        status=result["status"],
        message=result["message"],
        order=OrderResponse.from_order(order) if order is not None else None,
    )


@payment_router.get("/status/{order_id}", response_model=PaymentStatusResponse)
def payment_status(order_id: str, caller: Caller = Depends(get_caller)) -> PaymentStatusResponse:
    return PaymentStatusResponse(**get_payment_status(order_id, caller.user_id, caller.role))


@payment_router.post("/webhook", response_model=WebhookAckResponse)
async def webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    x_gateway_signature: str | None = Header(default=None),
) -> WebhookAckResponse:
    """Receive a provider webhook. Trust comes from the signature alone."""
    payload = await request.body()
    signature = stripe_signature or x_gateway_signature or ""
    return WebhookAckResponse(**await run_in_threadpool(handle_webhook, payload, signature))


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )
