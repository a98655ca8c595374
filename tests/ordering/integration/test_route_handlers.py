"""Route handlers that block must run off the event loop."""

import inspect

import pytest
from fastapi.routing import APIRoute
from ordering.api.routes import cart_router, order_router, payment_router


def _endpoints():
    return {
        f"{sorted(route.methods)[0]} {route.path}": route.endpoint
        for router in (cart_router, order_router, payment_router)
        for route in router.routes
        if isinstance(route, APIRoute)
    }


@pytest.mark.parametrize(
    "route",
    [
        "POST /cart/items",
        "PUT /cart/items/{item_id}",
        "POST /orders",
        "PUT /orders/{order_id}/status",
        "POST /orders/{order_id}/cancel",
        "POST /payments/create-intent",
        "POST /payments/confirm",
        "GET /payments/status/{order_id}",
    ],
)
def test_locking_and_gateway_routes_are_plain_functions(route):
    assert not inspect.iscoroutinefunction(_endpoints()[route])

