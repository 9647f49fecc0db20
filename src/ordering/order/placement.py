"""Order placement — materializes a confirmed checkout as an Order.

Placement runs in reaction to CheckoutConfirmed, in its own unit of work.
The order id was allocated when the checkout was processed, so a
redelivered CheckoutConfirmed finds the existing order and does nothing.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.checkout.events import CheckoutConfirmed
from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    order_id = Identifier(required=True)
    buyer_kind = String(max_length=10, required=True)
    buyer_ref = String(max_length=255, required=True)
    items = Text(required=True)  # JSON: list of item dicts
    delivery_info = Text(required=True)  # JSON: delivery details
    platform_fee = Integer(required=True, min_value=0)
    primary_store_id = Identifier(required=True)
    payment_intent_id = String(max_length=255)


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command: PlaceOrder) -> str:
        repo = current_domain.repository_for(Order)
        try:
            existing = repo.get(command.order_id)
        except ObjectNotFoundError:
            existing = None
        if existing is not None:
            logger.info("Order already placed", order_id=str(command.order_id))
            return str(existing.id)

        items = json.loads(command.items) if isinstance(command.items, str) else command.items
        delivery = command.delivery_info
        if isinstance(delivery, str):
            delivery = json.loads(delivery)

        order = Order.place(
            order_id=command.order_id,
            buyer_kind=command.buyer_kind,
            buyer_ref=command.buyer_ref,
            items=items,
            delivery={key: value for key, value in delivery.items() if value is not None},
            platform_fee=command.platform_fee,
            primary_store_id=command.primary_store_id,
            payment_intent_id=command.payment_intent_id,
        )
        # Paid through checkout, so the order is confirmed as soon as it exists
        order.confirm()
        repo.add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            total=order.total,
            items=len(items),
        )
        return str(order.id)


@ordering.event_handler(part_of=Order, stream_category="ordering::checkout")
class CheckoutOrderEventHandler:
    """Places the order for a confirmed checkout."""

    @handle(CheckoutConfirmed)
    def on_checkout_confirmed(self, event: CheckoutConfirmed) -> None:
        current_domain.process(
            PlaceOrder(
                order_id=event.order_id,
                buyer_kind=event.actor_kind,
                buyer_ref=event.actor_ref,
                items=event.items,
                delivery_info=event.delivery_info,
                platform_fee=event.platform_fee,
                primary_store_id=event.primary_store_id,
                payment_intent_id=event.payment_intent_id,
            ),
            asynchronous=False,
        )
