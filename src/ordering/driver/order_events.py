"""Driver reactions to the order lifecycle.

A driver is busy from assignment until the order is delivered or
cancelled. Delivered orders count towards the driver's total.
"""

import structlog
from protean import handle
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.driver.driver import Driver, DriverStatus
from ordering.order.events import DeliveryStatusAdvanced, DriverAssigned, OrderCancelled
from ordering.order.order import OrderStatus

logger = structlog.get_logger(__name__)


@ordering.event_handler(part_of=Driver, stream_category="ordering::order")
class OrderDriverEventHandler:
    @handle(DriverAssigned)
    def on_driver_assigned(self, event: DriverAssigned) -> None:
        repo = current_domain.repository_for(Driver)
        driver = repo.get(event.driver_id)
        driver.mark_busy(event.order_id)
        repo.add(driver)

    @handle(DeliveryStatusAdvanced)
    def on_delivery_advanced(self, event: DeliveryStatusAdvanced) -> None:
        if event.status != OrderStatus.DELIVERED.value:
            return

        repo = current_domain.repository_for(Driver)
        driver = repo.get(event.driver_id)
        driver.release(completed=True)
        repo.add(driver)
        logger.info("Driver completed delivery", driver_id=str(driver.id), total_deliveries=driver.total_deliveries)

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        if not event.driver_id:
            return

        repo = current_domain.repository_for(Driver)
        driver = repo.get(event.driver_id)
        if DriverStatus(driver.status) != DriverStatus.BUSY:
            logger.warning("Cancelled order's driver was not busy", driver_id=str(driver.id), status=driver.status)
            return
        driver.release(completed=False)
        repo.add(driver)
