"""Storefront ordering FastAPI application.

Processes commands synchronously via HTTP. Every request runs inside the
ordering domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from pyproject.toml:
#   - unset / "test" → memory stores, fake payment gateway, local locks
#   - "production"   → PostgreSQL, Stripe, Redis locks
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import DomainContextMiddleware

from ordering.domain import ordering
from ordering.payment.gateway import build_gateway, set_gateway
from ordering.utils.locks import build_lock_manager, set_lock_manager
from ordering.utils.logging import configure_logging

configure_logging()
ordering.init()

set_gateway(build_gateway(ordering))
set_lock_manager(build_lock_manager(ordering))

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront Ordering API",
    description="Carts, order placement, fulfilment status and payment reconciliation",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    DomainContextMiddleware,
    route_domain_map={
        "/cart": ordering,
        "/orders": ordering,
        "/payments": ordering,
    },
)

# ---------------------------------------------------------------------------
# Routers and error handlers
# ---------------------------------------------------------------------------
from ordering.api.errors import register_error_handlers  # noqa: E402
from ordering.api.routes import cart_router, order_router, payment_router  # noqa: E402

register_error_handlers(app)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(payment_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"ordering": {"name": ordering.name}},
        }
    )
