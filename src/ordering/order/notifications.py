"""Buyer notifications for order status changes.

Only signed-in buyers are notified; guest orders have no one to address.
Delivery is fire-and-forget: a failing sink is logged and never affects
the order.
"""

import structlog
from protean import handle
from protean.utils.globals import current_domain

from ordering.cart.cart import ActorKind
from ordering.domain import ordering
from ordering.notification import get_sink
from ordering.order.events import DeliveryStatusAdvanced, DriverAssigned, OrderCancelled, OrderConfirmed
from ordering.order.order import Order

logger = structlog.get_logger(__name__)

STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed and is being prepared.",
    "assigned": "A driver has been assigned to your order.",
    "picked_up": "Your order has been picked up by the driver.",
    "in_transit": "Your order is on its way to you.",
    "delivered": "Your order has been delivered successfully.",
    "cancelled": "Your order has been cancelled. If you have any questions, please contact support.",
}


def status_title(order: Order, status: str) -> str:
    return f"Order #{order.order_number} {status.replace('_', ' ').capitalize()}"


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(status, f"Your order status has been updated to {status}.")


def notify_buyer(order_id, title_for, message: str) -> None:
    order = current_domain.repository_for(Order).get(order_id)
    if ActorKind(order.buyer_kind) != ActorKind.USER:
        return

    title = title_for(order)
    try:
        get_sink().notify(
            recipient=order.buyer_ref,
            title=title,
            message=message.format(order_number=order.order_number),
            kind="order",
            link=f"/account/orders/{order.id}",
        )
    except Exception as exc:
        logger.error("Notification delivery failed", order_id=str(order.id), title=title, error=str(exc))


@ordering.event_handler(part_of=Order)
class OrderNotificationEventHandler:
    @handle(OrderConfirmed)
    def on_order_confirmed(self, event: OrderConfirmed) -> None:
        notify_buyer(
            event.order_id,
            lambda order: "Order Confirmed",
            "Your order {order_number} has been confirmed and is being processed.",
        )

    @handle(DriverAssigned)
    def on_driver_assigned(self, event: DriverAssigned) -> None:
        notify_buyer(event.order_id, lambda order: status_title(order, "assigned"), status_message("assigned"))

    @handle(DeliveryStatusAdvanced)
    def on_delivery_advanced(self, event: DeliveryStatusAdvanced) -> None:
        notify_buyer(event.order_id, lambda order: status_title(order, event.status), status_message(event.status))

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        notify_buyer(
            event.order_id,
            lambda order: "Order Cancelled",
            "Your order {order_number} has been cancelled successfully.",
        )
