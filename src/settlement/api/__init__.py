"""Settlement domain API package."""

from settlement.api.routes import settlement_router, webhook_router

__all__ = ["settlement_router", "webhook_router"]
