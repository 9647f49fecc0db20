"""BDD tests for the delivery lifecycle."""

import json
from uuid import uuid4

from ordering.driver.driver import Driver
from ordering.driver.management import RegisterDriver, SetDriverStatus
from ordering.order.delivery import AdvanceDelivery, AssignDriver, CancelOrder
from ordering.order.placement import PlaceOrder
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/delivery.feature")


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a confirmed order")
def _(context, delivery_info):
    items = [{"product_id": "mug", "store_id": "store-a", "title": "Mug", "quantity": 1, "unit_price": 2000}]
    context["order_id"] = current_domain.process(
        PlaceOrder(
            order_id=str(uuid4()),
            buyer_kind="user",
            buyer_ref="user-1",
            items=json.dumps(items),
            delivery_info=delivery_info,
            platform_fee=60,
            primary_store_id="store-a",
            payment_intent_id="pi_fake_bdd",
        ),
        asynchronous=False,
    )


@given("an online driver")
def _(context):
    driver_id = current_domain.process(
        RegisterDriver(full_name="Otieno", email="otieno@example.com", phone="+254711000000"),
        asynchronous=False,
    )
    current_domain.process(SetDriverStatus(driver_id=driver_id, status="online"), asynchronous=False)
    context["driver_id"] = driver_id


@given("the driver is assigned to the order")
def _(context):
    current_domain.process(
        AssignDriver(order_id=context["order_id"], driver_id=context["driver_id"]),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the driver reports "{status}"'))
@when(parsers.cfparse('the driver reports "{status}"'))
def _(context, error, status):
    try:
        current_domain.process(
            AdvanceDelivery(order_id=context["order_id"], driver_id=context["driver_id"], status=status),
            asynchronous=False,
        )
    except ValidationError as exc:
        error["exc"] = exc


@when("the order is cancelled")
def _(context, error):
    try:
        current_domain.process(CancelOrder(order_id=context["order_id"], reason="No longer needed"), asynchronous=False)
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the driver is "{status}" with {count:d} delivery'))
@then(parsers.cfparse('the driver is "{status}" with {count:d} deliveries'))
def _(context, status, count):
    driver = current_domain.repository_for(Driver).get(context["driver_id"])
    assert driver.status == status
    assert driver.total_deliveries == count
