"""Cross-domain event contracts for Ordering domain events.

These classes define the event shape for consumption by other domains
(e.g., the Settlement domain splitting a confirmed order's proceeds across
its stores). They are registered as external events via
domain.register_external_event() with matching __type__ strings so Protean's
stream deserialization works correctly.

The source-of-truth events are in src/ordering/order/events.py.
"""

from protean.core.event import BaseEvent
from protean.fields import DateTime, Identifier, Integer, String, Text


class OrderConfirmed(BaseEvent):
    """A paid order was confirmed and is ready to be settled with its stores."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_ref = String(required=True)
    items = Text(required=True)  # JSON list of {product_id, store_id, quantity, unit_price}
    total = Integer(required=True)
    platform_fee = Integer(required=True)
    primary_store_id = Identifier(required=True)
    payment_intent_id = String()
    confirmed_at = DateTime(required=True)
