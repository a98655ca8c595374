"""Exception-to-response mapping for the HTTP surface.

Protean's handlers cover validation (400), not found (404), invalid state
(409) and invalid operation (422). The handlers below add the ordering
specific cases; Starlette picks the most specific class in the exception's
MRO, so ForbiddenError wins over InvalidOperationError.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import ForbiddenError
from ordering.payment.gateway.port import InvalidSignatureError, PaymentGatewayError
from ordering.utils.locks import LockTimeoutError

logger = structlog.get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError):
        return JSONResponse(status_code=403, content={"error": str(exc)})

    @app.exception_handler(PaymentGatewayError)
    async def gateway_error_handler(request: Request, exc: PaymentGatewayError):
        logger.error("Payment provider error", path=request.url.path, error=exc.message, code=exc.provider_code)
        return JSONResponse(status_code=502, content={"error": exc.message})

    @app.exception_handler(InvalidSignatureError)
    async def invalid_signature_handler(request: Request, exc: InvalidSignatureError):
        logger.warning("Rejected webhook", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=400, content={"error": f"Webhook Error: {exc.message}"})

    @app.exception_handler(LockTimeoutError)
    async def lock_timeout_handler(request: Request, exc: LockTimeoutError):
        logger.warning("Lock wait timed out", path=request.url.path, key=exc.key)
        return JSONResponse(status_code=503, content={"error": "Resource busy, please retry"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
