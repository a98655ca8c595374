import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.errors import register_error_handlers
from ordering.api.routes import cart_router, order_router, payment_router
from protean.integrations.fastapi import DomainContextMiddleware


@pytest.fixture()
def client(ordering_bed):
    app = FastAPI()
    app.add_middleware(
        DomainContextMiddleware,
        route_domain_map={"/cart": ordering_bed.domain, "/orders": ordering_bed.domain, "/payments": ordering_bed.domain},
    )
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    register_error_handlers(app)
    return TestClient(app)
