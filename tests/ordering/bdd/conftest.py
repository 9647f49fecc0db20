"""Shared BDD fixtures and step definitions for the Ordering domain."""

import json

import pytest
from ordering.cart.cart import Cart, CartActor
from ordering.cart.items import AddCartItem
from ordering.errors import EmptyCart, InvalidTransition, OutOfStock, PaymentFailure, StoreUnavailable
from ordering.order.order import Order
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

_ERROR_CLASSES = {
    "EmptyCart": EmptyCart,
    "OutOfStock": OutOfStock,
    "StoreUnavailable": StoreUnavailable,
    "PaymentFailure": PaymentFailure,
    "InvalidTransition": InvalidTransition,
    "ValidationError": ValidationError,
}

DELIVERY = {
    "full_name": "Amina Njeri",
    "email": "amina@example.com",
    "phone": "+254700000000",
    "address": "12 Moi Avenue",
    "city": "Nairobi",
    "state": "Nairobi",
    "zip_code": "00100",
}


def actor_for(name: str) -> CartActor:
    """'guest sess-1' or 'user user-1' as written in the feature files."""
    kind, _, ref = name.partition(" ")
    return CartActor.guest(ref) if kind == "guest" else CartActor.user(ref)


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def context():
    """Values carried between steps of one scenario."""
    return {}


@pytest.fixture()
def delivery_info():
    return json.dumps(DELIVERY)


# ---------------------------------------------------------------------------
# Given steps: marketplace setup
# ---------------------------------------------------------------------------
@given(parsers.cfparse('store "{store_id}" sells "{product_id}" at {price:d} with {stock:d} in stock'))
def _(catalogue, directory, store_id, product_id, price, stock):
    catalogue.add_product(product_id, store_id, price=price, stock=stock, title=product_id.title())
    directory.register(store_id)


@given(parsers.cfparse('store "{store_id}" cannot accept payments'))
def _(directory, store_id):
    directory.register(store_id, accepts_charges=False)


@given(parsers.cfparse('the {who} cart holds {quantity:d} "{product_id}"'))
def _(who, quantity, product_id):
    actor = actor_for(who)
    current_domain.process(
        AddCartItem(actor_kind=actor.kind, actor_ref=actor.ref, product_id=product_id, quantity=quantity),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps: shared
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the {who} cart holds {quantity:d} "{product_id}"'))
def _(who, quantity, product_id):
    cart = current_domain.repository_for(Cart).get(actor_for(who).key)
    assert cart.quantity_of(product_id) == quantity


@then(parsers.cfparse("the {who} cart is empty"))
def _(who):
    cart = current_domain.repository_for(Cart).get(actor_for(who).key)
    assert cart.is_empty


@then(parsers.cfparse("the action fails with {error_name}"))
def _(error, error_name):
    assert error["exc"] is not None, "Expected an error but none was raised"
    assert isinstance(error["exc"], _ERROR_CLASSES[error_name])


@then(parsers.cfparse('the order status is "{status}"'))
def _(context, status):
    order = current_domain.repository_for(Order).get(context["order_id"])
    assert order.status == status
