"""Tests for Order state machine — valid transitions, driver scoping and the tracking log."""

from uuid import uuid4

import pytest
from ordering.errors import InvalidTransition
from ordering.order.events import DeliveryStatusAdvanced, DriverAssigned, OrderCancelled, OrderConfirmed, OrderPlaced
from ordering.order.order import Order, OrderStatus, new_order_number, valid_transitions
from protean.exceptions import ValidationError

DELIVERY = {
    "full_name": "Amina Njeri",
    "email": "amina@example.com",
    "phone": "+254700000000",
    "address": "12 Moi Avenue",
    "city": "Nairobi",
}


def _make_order(buyer_kind="user", buyer_ref="user-1"):
    return Order.place(
        order_id=str(uuid4()),
        buyer_kind=buyer_kind,
        buyer_ref=buyer_ref,
        items=[
            {"product_id": "p1", "store_id": "store-a", "title": "Mug", "quantity": 2, "unit_price": 1500},
            {"product_id": "p2", "store_id": "store-b", "title": "Tea", "quantity": 1, "unit_price": 1000},
        ],
        delivery=DELIVERY,
        platform_fee=120,
        primary_store_id="store-a",
        payment_intent_id="pi_1",
    )


def _order_at_state(target_status):
    """Create an order and advance it to the desired state."""
    order = _make_order()
    order._events.clear()
    if target_status == OrderStatus.PENDING:
        return order

    order.confirm()
    order._events.clear()
    if target_status == OrderStatus.CONFIRMED:
        return order

    order.assign_driver("drv-1")
    order._events.clear()
    if target_status == OrderStatus.ASSIGNED:
        return order

    for step in (OrderStatus.PICKED_UP, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED):
        order.advance("drv-1", step.value)
        order._events.clear()
        if target_status == step:
            return order

    raise AssertionError(f"Unreachable state {target_status}")


class TestPlacement:
    def test_place_creates_pending_order(self):
        order = _make_order()

        assert order.current_status == OrderStatus.PENDING
        assert order.total == 4000
        assert order.order_number.startswith("JM")
        assert len(order.items) == 2
        assert isinstance(order._events[-1], OrderPlaced)

    def test_place_requires_items(self):
        with pytest.raises(ValidationError):
            Order.place(
                order_id=str(uuid4()),
                buyer_kind="user",
                buyer_ref="user-1",
                items=[],
                delivery=DELIVERY,
                platform_fee=0,
                primary_store_id="store-a",
            )

    def test_order_number_format(self):
        number = new_order_number()
        assert number.startswith("JM")
        assert len(number) == 10


class TestConfirm:
    def test_confirm_raises_settlement_contract_event(self):
        order = _order_at_state(OrderStatus.PENDING)
        order.confirm()

        event = order._events[-1]
        assert isinstance(event, OrderConfirmed)
        assert event.total == 4000
        assert event.platform_fee == 120
        assert event.primary_store_id == "store-a"
        assert event.payment_intent_id == "pi_1"

    def test_order_without_intent_confirms_with_no_intent_reference(self):
        order = Order.place(
            order_id=str(uuid4()),
            buyer_kind="user",
            buyer_ref="user-1",
            items=[{"product_id": "p1", "store_id": "store-a", "title": "Mug", "quantity": 1, "unit_price": 1500}],
            delivery=DELIVERY,
            platform_fee=45,
            primary_store_id="store-a",
        )
        order._events.clear()

        order.confirm()

        event = order._events[-1]
        assert isinstance(event, OrderConfirmed)
        assert event.payment_intent_id is None

    def test_cannot_confirm_twice(self):
        with pytest.raises(InvalidTransition):
            _order_at_state(OrderStatus.CONFIRMED).confirm()


class TestAssignDriver:
    def test_assign_from_confirmed(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        order.assign_driver("drv-1")

        assert order.current_status == OrderStatus.ASSIGNED
        assert str(order.driver_id) == "drv-1"
        assert order.estimated_delivery > order.assigned_at
        assert isinstance(order._events[-1], DriverAssigned)

    def test_assignment_appends_tracking_row(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        order.assign_driver("drv-1")

        assert [entry.status for entry in order.tracking] == ["assigned"]

    def test_cannot_assign_pending_order(self):
        with pytest.raises(InvalidTransition):
            _order_at_state(OrderStatus.PENDING).assign_driver("drv-1")

    def test_cannot_reassign(self):
        with pytest.raises(InvalidTransition):
            _order_at_state(OrderStatus.ASSIGNED).assign_driver("drv-2")


class TestAdvance:
    def test_full_delivery_path(self):
        order = _order_at_state(OrderStatus.ASSIGNED)
        rows_before = len(order.tracking)

        order.advance("drv-1", "picked_up", location="Store A")
        order.advance("drv-1", "in_transit")
        order.advance("drv-1", "delivered", location="Front door")

        assert order.current_status == OrderStatus.DELIVERED
        assert order.picked_up_at is not None
        assert order.in_transit_at is not None
        assert order.delivered_at is not None
        assert len(order.tracking) - rows_before == 3

    def test_advance_raises_event(self):
        order = _order_at_state(OrderStatus.ASSIGNED)
        order.advance("drv-1", "picked_up", location="Store A")

        event = order._events[-1]
        assert isinstance(event, DeliveryStatusAdvanced)
        assert event.previous_status == "assigned"
        assert event.status == "picked_up"
        assert event.location == "Store A"

    def test_skipping_steps_is_rejected(self):
        order = _order_at_state(OrderStatus.ASSIGNED)
        with pytest.raises(InvalidTransition):
            order.advance("drv-1", "delivered")
        assert order.current_status == OrderStatus.ASSIGNED

    def test_other_driver_is_rejected(self):
        with pytest.raises(InvalidTransition):
            _order_at_state(OrderStatus.ASSIGNED).advance("drv-2", "picked_up")

    def test_non_delivery_status_is_rejected(self):
        with pytest.raises(InvalidTransition):
            _order_at_state(OrderStatus.ASSIGNED).advance("drv-1", "cancelled")

    def test_unknown_status_is_a_validation_error(self):
        with pytest.raises(ValidationError) as exc:
            _order_at_state(OrderStatus.ASSIGNED).advance("drv-1", "teleported")
        assert not isinstance(exc.value, InvalidTransition)

    def test_delivered_is_terminal(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        assert order.is_terminal
        with pytest.raises(InvalidTransition):
            order.advance("drv-1", "in_transit")


class TestCancel:
    @pytest.mark.parametrize("state", [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.ASSIGNED])
    def test_cancellable_states(self, state):
        order = _order_at_state(state)
        order.cancel(reason="Changed my mind")

        assert order.current_status == OrderStatus.CANCELLED
        assert order.cancellation_reason == "Changed my mind"
        assert order.tracking[-1].status == "cancelled"
        event = order._events[-1]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == state.value

    @pytest.mark.parametrize("state", [OrderStatus.PICKED_UP, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED])
    def test_cannot_cancel_once_picked_up(self, state):
        with pytest.raises(InvalidTransition):
            _order_at_state(state).cancel()

    def test_cancel_carries_driver(self):
        order = _order_at_state(OrderStatus.ASSIGNED)
        order.cancel()
        assert order._events[-1].driver_id == "drv-1"


class TestTransitionTable:
    def test_terminal_states_have_no_exits(self):
        table = valid_transitions()
        assert table[OrderStatus.DELIVERED] == set()
        assert table[OrderStatus.CANCELLED] == set()

    def test_copy_does_not_leak(self):
        table = valid_transitions()
        table[OrderStatus.PENDING].add(OrderStatus.DELIVERED)
        assert OrderStatus.DELIVERED not in valid_transitions()[OrderStatus.PENDING]
