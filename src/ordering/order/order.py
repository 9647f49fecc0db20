"""Order aggregate (CQRS) — the order and delivery lifecycle.

State Machine:
    PENDING → CONFIRMED → ASSIGNED → PICKED_UP → IN_TRANSIT → DELIVERED
    CANCELLED (from PENDING, CONFIRMED, ASSIGNED)

Items are fixed when the order is placed. Every delivery step and every
cancellation appends a TrackingEntry; entries are never edited or removed.
"""

import json
import time
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, ValueObject

from ordering.domain import ordering
from ordering.errors import InvalidTransition
from ordering.order.events import (
    DeliveryStatusAdvanced,
    DriverAssigned,
    OrderCancelled,
    OrderConfirmed,
    OrderPlaced,
)

ESTIMATED_DELIVERY_WINDOW = timedelta(hours=2)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.ASSIGNED, OrderStatus.CANCELLED},
    OrderStatus.ASSIGNED: {OrderStatus.PICKED_UP, OrderStatus.CANCELLED},
    OrderStatus.PICKED_UP: {OrderStatus.IN_TRANSIT},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

# Steps a driver reports, each timestamped on the order
DELIVERY_STEPS = {OrderStatus.PICKED_UP, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED}


def valid_transitions() -> dict:
    return {current: set(targets) for current, targets in _VALID_TRANSITIONS.items()}


def new_order_number() -> str:
    return "JM" + str(int(time.time() * 1000))[-8:]


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class DeliveryDetails:
    """Recipient and address captured at checkout. Never changes afterwards."""

    full_name = String(required=True, max_length=255)
    email = String(required=True, max_length=254)
    phone = String(required=True, max_length=50)
    address = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    zip_code = String(max_length=20)
    country = String(max_length=100, default="US")
    instructions = String(max_length=1000)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    store_id = Identifier(required=True)
    title = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)  # minor units

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "store_id": str(self.store_id),
            "title": self.title,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


@ordering.entity(part_of="Order")
class TrackingEntry:
    """One row of the delivery log."""

    driver_id = Identifier()
    status = String(choices=OrderStatus, required=True)
    location = String(max_length=255)
    note = String(max_length=500)
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(max_length=20, required=True)
    buyer_kind = String(max_length=10, required=True)
    buyer_ref = String(max_length=255, required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    tracking = HasMany(TrackingEntry)
    delivery = ValueObject(DeliveryDetails)
    total = Integer(required=True, min_value=0)
    platform_fee = Integer(default=0, min_value=0)
    primary_store_id = Identifier()
    payment_intent_id = String(max_length=255)
    driver_id = Identifier()
    assigned_at = DateTime()
    estimated_delivery = DateTime()
    picked_up_at = DateTime()
    in_transit_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_match_items(self):
        if self.items and sum(item.line_total for item in self.items) != self.total:
            raise ValidationError({"total": ["Order total must equal the sum of its items"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_id: str,
        buyer_kind: str,
        buyer_ref: str,
        items: list[dict],
        delivery: dict,
        platform_fee: int,
        primary_store_id: str,
        payment_intent_id: str | None = None,
    ):
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            id=order_id,
            order_number=new_order_number(),
            buyer_kind=buyer_kind,
            buyer_ref=buyer_ref,
            status=OrderStatus.PENDING.value,
            items=[
                OrderItem(
                    product_id=item["product_id"],
                    store_id=item["store_id"],
                    title=item.get("title"),
                    quantity=item["quantity"],
                    unit_price=item["unit_price"],
                )
                for item in items
            ],
            delivery=DeliveryDetails(**delivery),
            total=sum(item["unit_price"] * item["quantity"] for item in items),
            platform_fee=platform_fee,
            primary_store_id=primary_store_id,
            payment_intent_id=payment_intent_id,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                buyer_ref=order.buyer_ref,
                total=order.total,
                item_count=sum(item["quantity"] for item in items),
                payment_intent_id=payment_intent_id,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self.current_status]

    def items_json(self) -> str:
        return json.dumps([item.to_dict() for item in self.items])

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: OrderStatus, reason: str | None = None) -> None:
        if target not in _VALID_TRANSITIONS[self.current_status]:
            raise InvalidTransition(self.status, target.value, reason)

    def _append_tracking(self, status: OrderStatus, now, driver_id=None, location=None, note=None) -> None:
        self.add_tracking(
            TrackingEntry(
                driver_id=driver_id,
                status=status.value,
                location=location,
                note=note,
                recorded_at=now,
            )
        )

    def confirm(self) -> None:
        self._assert_can_transition(OrderStatus.CONFIRMED)

        now = datetime.now(UTC)
        self.status = OrderStatus.CONFIRMED.value
        self.updated_at = now

        self.raise_(
            OrderConfirmed(
                order_id=str(self.id),
                buyer_ref=self.buyer_ref,
                items=self.items_json(),
                total=self.total,
                platform_fee=self.platform_fee,
                primary_store_id=str(self.primary_store_id),
                payment_intent_id=self.payment_intent_id,
                confirmed_at=now,
            )
        )

    def assign_driver(self, driver_id: str) -> None:
        if self.current_status != OrderStatus.CONFIRMED:
            raise InvalidTransition(
                self.status,
                OrderStatus.ASSIGNED.value,
                reason=f"Only confirmed orders can be assigned (order is {self.status})",
            )

        now = datetime.now(UTC)
        self.status = OrderStatus.ASSIGNED.value
        self.driver_id = driver_id
        self.assigned_at = now
        self.estimated_delivery = now + ESTIMATED_DELIVERY_WINDOW
        self.updated_at = now
        self._append_tracking(OrderStatus.ASSIGNED, now, driver_id=driver_id)

        self.raise_(
            DriverAssigned(
                order_id=str(self.id),
                driver_id=str(driver_id),
                assigned_at=now,
                estimated_delivery=self.estimated_delivery,
            )
        )

    def advance(self, driver_id: str, target: str, location: str | None = None) -> None:
        """Move one step along the delivery path on behalf of the assigned driver."""
        try:
            target_status = OrderStatus(target)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {target}"]}) from None

        if target_status not in DELIVERY_STEPS:
            raise InvalidTransition(
                self.status,
                target_status.value,
                reason="Drivers can only report picked_up, in_transit or delivered",
            )
        if self.driver_id is None or str(self.driver_id) != str(driver_id):
            raise InvalidTransition(self.status, target_status.value, reason="Order is not assigned to this driver")
        self._assert_can_transition(target_status)

        now = datetime.now(UTC)
        previous = self.status
        self.status = target_status.value
        setattr(self, f"{target_status.value}_at", now)
        self.updated_at = now
        self._append_tracking(target_status, now, driver_id=driver_id, location=location)

        self.raise_(
            DeliveryStatusAdvanced(
                order_id=str(self.id),
                driver_id=str(driver_id),
                previous_status=previous,
                status=target_status.value,
                location=location,
                recorded_at=now,
            )
        )

    def cancel(self, reason: str | None = None) -> None:
        self._assert_can_transition(
            OrderStatus.CANCELLED,
            reason=f"Order cannot be cancelled once it is {self.status}",
        )

        now = datetime.now(UTC)
        previous = self.status
        self.status = OrderStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancellation_reason = reason
        self.updated_at = now
        self._append_tracking(OrderStatus.CANCELLED, now, driver_id=self.driver_id, note=reason)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous,
                driver_id=str(self.driver_id) if self.driver_id else None,
                reason=reason,
                cancelled_at=now,
            )
        )
