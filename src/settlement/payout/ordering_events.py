"""Inbound cross-domain event handler — Settlement reacts to Ordering events.

Listens for OrderConfirmed from the Ordering domain and settles the order
with its stores. Runs outside the buyer's request: under the Engine the
event is consumed from the ``ordering::order`` stream after checkout has
already returned.

Cross-domain events are imported from shared.events.ordering and registered
as external events via settlement.register_external_event().
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.events.ordering import OrderConfirmed

from settlement.domain import settlement
from settlement.payout.settling import SettleOrder
from settlement.payout.store_settlement import StoreSettlement

logger = structlog.get_logger(__name__)

# Register external event so Protean can deserialize it
settlement.register_external_event(OrderConfirmed, "Ordering.OrderConfirmed.v1")


@settlement.event_handler(part_of=StoreSettlement, stream_category="ordering::order")
class OrderingSettlementEventHandler:
    """Opens store settlements for every confirmed order."""

    @handle(OrderConfirmed)
    def on_order_confirmed(self, event: OrderConfirmed) -> None:
        logger.info(
            "Settling confirmed order",
            order_id=str(event.order_id),
            total=event.total,
            platform_fee=event.platform_fee,
        )
        current_domain.process(
            SettleOrder(
                order_id=str(event.order_id),
                items=event.items,
                total=event.total,
                platform_fee=event.platform_fee,
                primary_store_id=str(event.primary_store_id),
            ),
            asynchronous=False,
        )
