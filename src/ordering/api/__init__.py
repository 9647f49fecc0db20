"""Ordering domain API package."""

from ordering.api.errors import register_marketplace_handlers
from ordering.api.routes import cart_router, checkout_router, driver_router, order_router

__all__ = [
    "cart_router",
    "checkout_router",
    "driver_router",
    "order_router",
    "register_marketplace_handlers",
]
