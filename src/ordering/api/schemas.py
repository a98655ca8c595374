"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands. Field names travel as camelCase on the wire.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _vo_dict(value_object):
    return value_object.to_dict() if value_object is not None else None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(CamelModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"examples": [{"productId": "prod-001", "quantity": 2}]},
    )


class UpdateCartItemRequest(CamelModel):
    quantity: int = Field(ge=1)


class CartItemResponse(CamelModel):
    id: str
    product_id: str
    quantity: int
    price_at_add: float
    line_total: float


class CartResponse(CamelModel):
    id: str | None = None
    user_id: str
    items: list[CartItemResponse] = []
    total_items: int = 0
    subtotal: float = 0.0

    @classmethod
    def from_cart(cls, cart, user_id=None) -> "CartResponse":
        if cart is None:
            return cls(user_id=str(user_id))
        return cls(
            id=str(cart.id),
            user_id=str(cart.user_id),
            items=[
                CartItemResponse(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    quantity=item.quantity,
                    price_at_add=item.price_at_add,
                    line_total=item.line_total,
                )
                for item in cart.items
            ],
            total_items=cart.total_items,
            subtotal=cart.subtotal,
        )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(CamelModel):
    shipping_address_id: str
    payment_method: str | None = None
    notes: str | None = None
    coupon_code: str | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "shippingAddressId": "addr-001",
                    "paymentMethod": "card",
                    "notes": "Leave at the gate",
                }
            ]
        },
    )


class UpdateOrderStatusRequest(CamelModel):
    status: str


class UpdateShippingInfoRequest(CamelModel):
    tracking_number: str | None = None
    shipping_carrier: str | None = None
    estimated_delivery: datetime | None = None


class ProductSnapshotResponse(CamelModel):
    name: str
    sku: str | None = None
    description: str | None = None
    brand: str | None = None


class AddressSnapshotResponse(CamelModel):
    recipient_name: str
    phone: str | None = None
    street_address: str
    address_line2: str | None = None
    suburb: str | None = None
    city: str
    province: str | None = None
    postal_code: str
    country: str | None = None


class OrderItemResponse(CamelModel):
    id: str
    product_id: str
    seller_id: str | None = None
    product_snapshot: ProductSnapshotResponse | None = None
    quantity: int
    unit_price: float
    total_price: float
    status: str


class OrderResponse(CamelModel):
    id: str
    order_number: str
    user_id: str
    status: str
    payment_status: str
    payment_method: str | None = None
    payment_intent_id: str | None = None
    paid_at: datetime | None = None
    subtotal: float
    shipping_cost: float
    discount: float
    tax: float
    total: float
    shipping_address_id: str
    shipping_address_snapshot: AddressSnapshotResponse | None = None
    notes: str | None = None
    coupon_code: str | None = None
    tracking_number: str | None = None
    shipping_carrier: str | None = None
    estimated_delivery: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[OrderItemResponse] = []

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            user_id=str(order.user_id),
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            payment_intent_id=order.payment_intent_id,
            paid_at=order.paid_at,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            discount=order.discount,
            tax=order.tax,
            total=order.total,
            shipping_address_id=str(order.shipping_address_id),
            shipping_address_snapshot=_vo_dict(order.shipping_address_snapshot),
            notes=order.notes,
            coupon_code=order.coupon_code,
            tracking_number=order.tracking_number,
            shipping_carrier=order.shipping_carrier,
            estimated_delivery=order.estimated_delivery,
            delivered_at=order.delivered_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[
                OrderItemResponse(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    seller_id=str(item.seller_id) if item.seller_id else None,
                    product_snapshot=_vo_dict(item.product_snapshot),
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    status=item.status,
                )
                for item in order.items
            ],
        )


class PaginationResponse(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class OrderListResponse(CamelModel):
    orders: list[OrderResponse]
    pagination: PaginationResponse


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class CreatePaymentIntentRequest(CamelModel):
    order_id: str


class PaymentIntentResponse(CamelModel):
    client_secret: str | None
    payment_intent_id: str


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: str


class ConfirmPaymentResponse(CamelModel):
    status: str
    message: str
    order: OrderResponse | None = None


class PaymentDetailsResponse(CamelModel):
    status: str
    amount: float
    currency: str
    created: datetime | None = None


class PaymentStatusResponse(CamelModel):
    order_id: str
    order_number: str
    payment_status: str
    payment_method: str | None = None
    total: float
    paid_at: datetime | None = None
    payment_details: PaymentDetailsResponse | None = None


class WebhookAckResponse(BaseModel):
    received: bool = True


class ConfigureGatewayRequest(CamelModel):
    should_succeed: bool = True
    failure_reason: str = "Payment provider unavailable"


class GatewayConfigResponse(CamelModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
