"""Ordering bounded context — Carts, Checkout and Order Delivery.

Handles per-actor shopping carts and their merge on login (CQRS), the
checkout flow that turns a cart into a single customer charge and a placed
order, and the order delivery lifecycle driven by drivers.
"""

from protean.domain import Domain

from ordering.utils.logging import get_logger

logger = get_logger(__name__)

# Domain Composition Root
ordering = Domain(name="ordering")
