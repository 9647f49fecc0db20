"""End-to-end flow across Ordering and Settlement.

A store onboards in Settlement, its capability reaches the Ordering store
directory, a buyer checks out a two-store cart, the provider webhook
confirms the payment, and Settlement splits the proceeds.
"""

import json

import pytest
from ordering.directory.settlement_events import SettlementDirectoryEventHandler
from ordering.order.order import Order, OrderStatus
from settlement.account.account import ConnectedAccount
from settlement.payout.ordering_events import OrderingSettlementEventHandler
from settlement.payout.store_settlement import StoreSettlement, TransferStatus
from settlement.provider.fake_adapter import TEST_SIGNATURE
from shared.events.ordering import OrderConfirmed
from shared.events.settlement import AccountCapabilitiesUpdated

DELIVERY = {
    "full_name": "Amina Njeri",
    "email": "amina@example.com",
    "phone": "+254700000000",
    "address": "12 Moi Avenue",
    "city": "Nairobi",
    "state": "Nairobi",
    "zip_code": "00100",
}


@pytest.fixture(autouse=True)
def products(catalogue):
    catalogue.add_product("mug", "store-a", price=2000, stock=10, title="Mug")
    catalogue.add_product("tea", "store-b", price=1000, stock=10, title="Tea")


@pytest.fixture()
def buyer(auth):
    return {"Authorization": f"Bearer {auth.issue('user-1')}"}


def _webhook(client, body):
    return client.post(
        "/webhooks/payment-provider",
        content=json.dumps(body),
        headers={"Stripe-Signature": TEST_SIGNATURE, "Content-Type": "application/json"},
    )


def _relay_capabilities(store_id, ordering_domain, settlement_domain):
    """Deliver the store's latest capability to Ordering, as the Engine would."""
    with settlement_domain.domain_context():
        account = settlement_domain.repository_for(ConnectedAccount).get(store_id)
        event = AccountCapabilitiesUpdated(
            store_id=store_id,
            provider_account_id=account.provider_account_id,
            status=account.status,
            charges_enabled=account.charges_enabled,
            payouts_enabled=account.payouts_enabled,
            updated_at=account.updated_at,
        )

    with ordering_domain.domain_context():
        SettlementDirectoryEventHandler().on_capabilities_updated(event)


def _relay_order_confirmed(order_id, ordering_domain, settlement_domain):
    with ordering_domain.domain_context():
        order = ordering_domain.repository_for(Order).get(order_id)
        event = OrderConfirmed(
            order_id=str(order.id),
            buyer_ref=order.buyer_ref,
            items=order.items_json(),
            total=order.total,
            platform_fee=order.platform_fee,
            primary_store_id=str(order.primary_store_id),
            payment_intent_id=order.payment_intent_id,
            confirmed_at=order.updated_at,
        )

    with settlement_domain.domain_context():
        OrderingSettlementEventHandler().on_order_confirmed(event)


def _onboard(client, store_id, ordering_domain, settlement_domain, event_number):
    account_id = client.post(
        "/settlement/accounts", json={"store_id": store_id, "email": f"{store_id}@example.com"}
    ).json()["provider_account_id"]
    response = _webhook(
        client,
        {
            "id": f"evt_{event_number}",
            "type": "account.updated",
            "created": event_number,
            "account": account_id,
            "data": {
                "object": {
                    "id": account_id,
                    "charges_enabled": True,
                    "payouts_enabled": True,
                    "details_submitted": True,
                }
            },
        },
    )
    assert response.json()["status"] == "applied"
    _relay_capabilities(store_id, ordering_domain, settlement_domain)
    return account_id


def _fill_cart(client, headers):
    client.post("/cart/add", json={"product_id": "mug", "quantity": 3}, headers=headers)
    client.post("/cart/add", json={"product_id": "tea", "quantity": 2}, headers=headers)


class TestStoreOnboardingReachesCheckout:
    def test_store_without_account_blocks_checkout(self, client, buyer, ordering_domain, settlement_domain):
        _onboard(client, "store-a", ordering_domain, settlement_domain, 1)
        _fill_cart(client, buyer)

        response = client.post("/checkout/process", json={"delivery_info": DELIVERY}, headers=buyer)

        assert response.status_code == 409

    def test_onboarded_stores_can_be_charged(self, client, buyer, provider, ordering_domain, settlement_domain):
        account_a = _onboard(client, "store-a", ordering_domain, settlement_domain, 1)
        _onboard(client, "store-b", ordering_domain, settlement_domain, 2)
        _fill_cart(client, buyer)

        response = client.post("/checkout/process", json={"delivery_info": DELIVERY}, headers=buyer)

        assert response.status_code == 200
        (intent,) = [call for call in provider.calls if call["method"] == "create_payment_intent"]
        assert (intent["amount"], intent["application_fee_amount"]) == (8000, 240)
        assert intent["destination"] == account_a

    def test_restricted_store_stops_accepting_charges(self, client, buyer, ordering_domain, settlement_domain):
        _onboard(client, "store-a", ordering_domain, settlement_domain, 1)
        account_b = _onboard(client, "store-b", ordering_domain, settlement_domain, 2)
        _webhook(
            client,
            {
                "id": "evt_3",
                "type": "account.updated",
                "created": 3,
                "account": account_b,
                "data": {
                    "object": {
                        "id": account_b,
                        "charges_enabled": False,
                        "payouts_enabled": False,
                        "details_submitted": True,
                        "requirements": {"disabled_reason": "requirements.past_due"},
                    }
                },
            },
        )
        _relay_capabilities("store-b", ordering_domain, settlement_domain)
        _fill_cart(client, buyer)

        response = client.post("/checkout/process", json={"delivery_info": DELIVERY}, headers=buyer)

        assert response.status_code == 409


class TestPaidOrderIsSettled:
    def _checkout_pending_payment(self, client, buyer, provider):
        provider.configure(intent_status="processing")
        _fill_cart(client, buyer)
        processed = client.post("/checkout/process", json={"delivery_info": DELIVERY}, headers=buyer).json()
        confirmed = client.post(
            "/checkout/confirm", json={"payment_intent_id": processed["payment_intent_id"]}, headers=buyer
        )
        assert confirmed.json()["status"] == "processing"
        return processed

    def test_webhook_confirms_checkout_and_places_order(
        self, client, buyer, provider, sink, ordering_domain, settlement_domain
    ):
        _onboard(client, "store-a", ordering_domain, settlement_domain, 1)
        _onboard(client, "store-b", ordering_domain, settlement_domain, 2)
        processed = self._checkout_pending_payment(client, buyer, provider)

        response = _webhook(
            client,
            {
                "id": "evt_pi_1",
                "type": "payment_intent.succeeded",
                "created": 10,
                "data": {"object": {"id": processed["payment_intent_id"]}},
            },
        )

        assert response.json()["status"] == "confirmed"
        order = client.get(f"/orders/{processed['order_id']}", headers=buyer).json()
        assert OrderStatus(order["status"]) == OrderStatus.CONFIRMED
        assert order["payment_intent_id"] == processed["payment_intent_id"]
        assert client.get("/cart", headers=buyer).json()["item_count"] == 0
        assert [notice["recipient"] for notice in sink.sent] == ["user-1"]

    def test_redelivered_payment_webhook_is_ignored(self, client, buyer, provider, ordering_domain, settlement_domain):
        _onboard(client, "store-a", ordering_domain, settlement_domain, 1)
        _onboard(client, "store-b", ordering_domain, settlement_domain, 2)
        processed = self._checkout_pending_payment(client, buyer, provider)
        body = {
            "id": "evt_pi_1",
            "type": "payment_intent.succeeded",
            "created": 10,
            "data": {"object": {"id": processed["payment_intent_id"]}},
        }
        _webhook(client, body)

        assert _webhook(client, body).json()["status"] == "ignored"
        with ordering_domain.domain_context():
            orders = ordering_domain.repository_for(Order)._dao.query.all().items
        assert len(orders) == 1

    def test_confirmed_order_is_split_across_stores(
        self, client, buyer, provider, ordering_domain, settlement_domain
    ):
        _onboard(client, "store-a", ordering_domain, settlement_domain, 1)
        account_b = _onboard(client, "store-b", ordering_domain, settlement_domain, 2)
        _fill_cart(client, buyer)
        processed = client.post("/checkout/process", json={"delivery_info": DELIVERY}, headers=buyer).json()
        client.post("/checkout/confirm", json={"payment_intent_id": processed["payment_intent_id"]}, headers=buyer)

        _relay_order_confirmed(processed["order_id"], ordering_domain, settlement_domain)

        breakdown = client.get(f"/settlement/orders/{processed['order_id']}").json()["stores"]
        assert [(row["store_id"], row["transfer_status"]) for row in breakdown] == [
            ("store-a", "Retained"),
            ("store-b", "Transferred"),
        ]
        assert breakdown[0]["retained_amount"] == 5820
        assert breakdown[1]["net_transfer"] == 1940
        (transfer,) = [call for call in provider.calls if call["method"] == "create_transfer"]
        assert transfer["destination"] == account_b

    def test_settlement_replay_transfers_once(self, client, buyer, provider, ordering_domain, settlement_domain):
        _onboard(client, "store-a", ordering_domain, settlement_domain, 1)
        _onboard(client, "store-b", ordering_domain, settlement_domain, 2)
        _fill_cart(client, buyer)
        processed = client.post("/checkout/process", json={"delivery_info": DELIVERY}, headers=buyer).json()
        client.post("/checkout/confirm", json={"payment_intent_id": processed["payment_intent_id"]}, headers=buyer)

        _relay_order_confirmed(processed["order_id"], ordering_domain, settlement_domain)
        _relay_order_confirmed(processed["order_id"], ordering_domain, settlement_domain)

        assert len([call for call in provider.calls if call["method"] == "create_transfer"]) == 1
        with settlement_domain.domain_context():
            row = settlement_domain.repository_for(StoreSettlement).get(f"{processed['order_id']}:store-b")
        assert TransferStatus(row.transfer_status) == TransferStatus.TRANSFERRED
