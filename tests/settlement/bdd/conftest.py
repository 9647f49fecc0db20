"""Shared BDD fixtures and step definitions for the Settlement domain."""

import pytest
from pytest_bdd import given, parsers


@pytest.fixture()
def order_lines():
    """Items of the order under test, in the order they were bought."""
    return []


@pytest.fixture()
def accounts():
    """Connected accounts opened during the scenario, keyed by store."""
    return {}


@given(parsers.cfparse('store "{store_id}" has a connected account'))
def _(connect_store, accounts, store_id):
    accounts[store_id] = connect_store(store_id)


@given(parsers.cfparse('the order bought {quantity:d} items at {price:d} from store "{store_id}"'))
def _(order_lines, quantity, price, store_id):
    order_lines.append(
        {"product_id": f"{store_id}-item", "store_id": store_id, "quantity": quantity, "unit_price": price}
    )
