"""Domain events for the Order aggregate.

OrderConfirmed is also published to other bounded contexts; its shape must
stay in step with shared.events.ordering.OrderConfirmed.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """An order was materialized from a confirmed checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(max_length=20, required=True)
    buyer_ref = String(required=True)
    total = Integer(required=True)
    item_count = Integer(required=True)
    payment_intent_id = String()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderConfirmed:
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


@ordering.event(part_of="Order")
class DriverAssigned:
    __version__ = 1

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    assigned_at = DateTime(required=True)
    estimated_delivery = DateTime()


@ordering.event(part_of="Order")
class DeliveryStatusAdvanced:
    """The assigned driver moved the order one step forward."""

    __version__ = 1

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    previous_status = String(max_length=20, required=True)
    status = String(max_length=20, required=True)
    location = String(max_length=255)
    recorded_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(max_length=20, required=True)
    driver_id = Identifier()
    reason = String(max_length=500)
    cancelled_at = DateTime(required=True)
