"""Domain events for the Checkout aggregate."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Checkout")
class CheckoutIntentCreated:
    """A payment intent was requested for a validated checkout attempt."""

    __version__ = 1

    checkout_id = Identifier(required=True)
    order_id = Identifier(required=True)
    payment_intent_id = String(max_length=255, required=True)
    total = Integer(required=True)
    platform_fee = Integer(required=True)
    primary_store_id = Identifier(required=True)
    expires_at = DateTime(required=True)


@ordering.event(part_of="Checkout")
class CheckoutConfirmed:
    """The provider reported the charge as succeeded.

    Carries the cart snapshot taken when the intent was created, so that
    the order is built from what the buyer was charged for.
    """

    __version__ = 1

    checkout_id = Identifier(required=True)
    actor_kind = String(max_length=10, required=True)
    actor_ref = String(max_length=255, required=True)
    order_id = Identifier(required=True)
    payment_intent_id = String(max_length=255, required=True)
    items = Text(required=True)  # JSON: list of line dicts
    delivery_info = Text(required=True)  # JSON: delivery details
    total = Integer(required=True)
    platform_fee = Integer(required=True)
    primary_store_id = Identifier(required=True)
    confirmed_at = DateTime(required=True)


@ordering.event(part_of="Checkout")
class CheckoutExpired:
    __version__ = 1

    checkout_id = Identifier(required=True)
    payment_intent_id = String(max_length=255)
    expired_at = DateTime(required=True)
