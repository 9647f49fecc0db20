"""HTTP mapping for the marketplace error taxonomy.

Protean's handlers render every ValidationError as 400. The handlers added
here give the business errors their own status codes while keeping the
same ``{"error": {field: [messages]}}`` body.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import (
    EmptyCart,
    InvalidTransition,
    OutOfStock,
    PaymentFailure,
    PaymentIntentMismatch,
    StoreUnavailable,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    EmptyCart: 400,
    OutOfStock: 409,
    StoreUnavailable: 409,
    PaymentIntentMismatch: 409,
    PaymentFailure: 402,
    InvalidTransition: 409,
}


def _handler_for(status_code: int):
    async def handle(request: Request, exc) -> JSONResponse:
        logger.info(
            "Request rejected",
            path=request.url.path,
            error=type(exc).__name__,
            status_code=status_code,
        )
        return JSONResponse(status_code=status_code, content={"error": exc.messages})

    return handle


def register_marketplace_handlers(app: FastAPI) -> None:
    """Install Protean's default handlers, then the marketplace-specific ones."""
    register_exception_handlers(app)
    for error_class, status_code in ERROR_STATUS_CODES.items():
        app.add_exception_handler(error_class, _handler_for(status_code))
