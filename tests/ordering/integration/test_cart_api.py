"""Integration tests for Cart API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api import cart_router, register_marketplace_handlers
from ordering.cart.cart import Cart
from protean import current_domain


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    register_marketplace_handlers(app)
    return TestClient(app)


@pytest.fixture(autouse=True)
def products(catalogue):
    catalogue.add_product("prod-001", "store-a", price=1500, stock=3, title="Kettle")
    catalogue.add_product("prod-002", "store-b", price=400, stock=20, title="Filter")
    catalogue.add_product("prod-003", "store-b", price=900, stock=0, title="Grinder")


GUEST = {"X-Session-Id": "sess-api"}


def _bearer(auth, user_id="user-api"):
    return {"Authorization": f"Bearer {auth.issue(user_id)}"}


class TestActorResolution:
    def test_no_actor_is_rejected(self, client):
        response = client.get("/cart")
        assert response.status_code == 401

    def test_invalid_token_is_rejected(self, client):
        response = client.get("/cart", headers={"Authorization": "Bearer not-a-token", **GUEST})
        assert response.status_code == 401

    def test_guest_cart(self, client):
        response = client.get("/cart", headers=GUEST)

        assert response.status_code == 200
        assert response.json()["cart_id"] == "guest:sess-api"
        assert response.json()["items"] == []

    def test_token_wins_over_session(self, client, auth):
        response = client.get("/cart", headers={**_bearer(auth), **GUEST})

        assert response.json()["cart_id"] == "user:user-api"


class TestCartItems:
    def test_add_item(self, client):
        response = client.post("/cart/add", json={"product_id": "prod-001", "quantity": 2}, headers=GUEST)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3000
        assert body["items"][0]["store_id"] == "store-a"

    def test_add_is_clamped_to_stock(self, client):
        response = client.post("/cart/add", json={"product_id": "prod-001", "quantity": 10}, headers=GUEST)

        assert response.json()["items"][0]["quantity"] == 3

    def test_out_of_stock_is_conflict(self, client):
        response = client.post("/cart/add", json={"product_id": "prod-003", "quantity": 1}, headers=GUEST)

        assert response.status_code == 409
        assert "error" in response.json()

    def test_unknown_product_is_bad_request(self, client):
        response = client.post("/cart/add", json={"product_id": "prod-404", "quantity": 1}, headers=GUEST)

        assert response.status_code == 400

    def test_update_and_remove(self, client):
        client.post("/cart/add", json={"product_id": "prod-001", "quantity": 1}, headers=GUEST)
        client.post("/cart/add", json={"product_id": "prod-002", "quantity": 1}, headers=GUEST)

        updated = client.put("/cart/update", json={"product_id": "prod-002", "quantity": 5}, headers=GUEST)
        assert updated.status_code == 200
        assert updated.json()["total"] == 1500 + 2000

        removed = client.delete("/cart/remove/prod-001", headers=GUEST)
        assert [item["product_id"] for item in removed.json()["items"]] == ["prod-002"]

    def test_clear(self, client):
        client.post("/cart/add", json={"product_id": "prod-002", "quantity": 2}, headers=GUEST)

        response = client.delete("/cart/clear", headers=GUEST)

        assert response.status_code == 200
        assert current_domain.repository_for(Cart).get("guest:sess-api").is_empty


class TestMergeEndpoint:
    def test_merge_into_signed_in_cart(self, client, auth):
        client.post("/cart/add", json={"product_id": "prod-002", "quantity": 4}, headers=GUEST)

        response = client.post("/cart/merge", json={"session_id": "sess-api"}, headers=_bearer(auth))

        assert response.status_code == 200
        body = response.json()
        assert body["cart_id"] == "user:user-api"
        assert body["lines_merged"] == 1
        assert body["items"][0]["quantity"] == 4

    def test_guest_cannot_merge(self, client):
        response = client.post("/cart/merge", json={"session_id": "sess-other"}, headers=GUEST)

        assert response.status_code == 401
