"""Order lifecycle commands — confirmation, driver assignment, delivery steps, cancellation."""

import os

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.driver.driver import Driver, DriverStatus
from ordering.errors import InvalidTransition
from ordering.order.events import OrderConfirmed
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


def auto_assign_enabled() -> bool:
    return os.environ.get("AUTO_ASSIGN_DRIVERS", "false").lower() in ("1", "true", "yes")


@ordering.command(part_of="Order")
class ConfirmOrder:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class AssignDriver:
    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)


@ordering.command(part_of="Order")
class AutoAssignDriver:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class AdvanceDelivery:
    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    status = String(max_length=20, required=True)
    location = String(max_length=255)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


def pick_driver(drivers: list[Driver]) -> Driver | None:
    """Least loaded online driver: lowest deliveries per rating point, then fewest deliveries."""
    candidates = [driver for driver in drivers if driver.is_available]
    if not candidates:
        return None
    return min(candidates, key=lambda driver: (driver.workload, driver.total_deliveries or 0))


def _available_driver(driver_id) -> Driver:
    try:
        driver = current_domain.repository_for(Driver).get(driver_id)
    except ObjectNotFoundError:
        raise ValidationError({"driver_id": [f"Driver {driver_id} does not exist"]}) from None
    if not driver.is_available:
        raise InvalidTransition(
            driver.status,
            DriverStatus.BUSY.value,
            reason=f"Driver {driver_id} is not available (status: {driver.status})",
        )
    return driver


@ordering.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(ConfirmOrder)
    def confirm_order(self, command: ConfirmOrder) -> None:
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.confirm()
        repo.add(order)

    @handle(AssignDriver)
    def assign_driver(self, command: AssignDriver) -> dict:
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        driver = _available_driver(command.driver_id)

        order.assign_driver(str(driver.id))
        repo.add(order)

        logger.info("Driver assigned", order_id=str(order.id), driver_id=str(driver.id))
        return {"order_id": str(order.id), "driver_id": str(driver.id), "status": order.status}

    @handle(AutoAssignDriver)
    def auto_assign_driver(self, command: AutoAssignDriver) -> dict:
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        online = (
            current_domain.repository_for(Driver)._dao.query.filter(status=DriverStatus.ONLINE.value).all().items
        )
        driver = pick_driver(online)
        if driver is None:
            raise ValidationError({"driver_id": ["No drivers are available right now"]})

        order.assign_driver(str(driver.id))
        repo.add(order)

        logger.info("Driver auto-assigned", order_id=str(order.id), driver_id=str(driver.id))
        return {"order_id": str(order.id), "driver_id": str(driver.id), "status": order.status}

    @handle(AdvanceDelivery)
    def advance_delivery(self, command: AdvanceDelivery) -> dict:
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.advance(str(command.driver_id), command.status, location=command.location)
        repo.add(order)

        logger.info("Delivery advanced", order_id=str(order.id), driver_id=str(command.driver_id), status=order.status)
        return {"order_id": str(order.id), "status": order.status}

    @handle(CancelOrder)
    def cancel_order(self, command: CancelOrder) -> dict:
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(reason=command.reason)
        repo.add(order)

        logger.info("Order cancelled", order_id=str(order.id), reason=command.reason)
        return {"order_id": str(order.id), "status": order.status}


@ordering.event_handler(part_of=Order)
class AutoAssignmentEventHandler:
    """Assigns a driver to each confirmed order when AUTO_ASSIGN_DRIVERS is on."""

    @handle(OrderConfirmed)
    def on_order_confirmed(self, event: OrderConfirmed) -> None:
        if not auto_assign_enabled():
            return
        try:
            current_domain.process(AutoAssignDriver(order_id=event.order_id), asynchronous=False)
        except ValidationError as exc:
            # The order stays confirmed; an operator assigns a driver later
            logger.warning("Automatic driver assignment skipped", order_id=str(event.order_id), reason=exc.messages)
