"""Tests for the Checkout aggregate — attempts, intent reuse, expiry and confirmation."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.cart.cart import CartActor
from ordering.checkout.checkout import Checkout, CheckoutStatus, DeliveryInfo
from ordering.checkout.events import CheckoutConfirmed, CheckoutExpired, CheckoutIntentCreated
from ordering.errors import InvalidTransition, PaymentIntentMismatch
from protean.exceptions import ValidationError

DELIVERY = {
    "full_name": "Amina Njeri",
    "email": "amina@example.com",
    "phone": "+254700000000",
    "address": "12 Moi Avenue",
    "city": "Nairobi",
    "state": "Nairobi",
    "zip_code": "00100",
}

ITEMS = [
    {"product_id": "p1", "store_id": "store-a", "title": "Mug", "quantity": 2, "unit_price": 1500},
    {"product_id": "p2", "store_id": "store-b", "title": "Tea", "quantity": 1, "unit_price": 1000},
]


def _validated(content_key="key-1"):
    checkout = Checkout.begin(CartActor.user("user-1"))
    checkout.validate(
        items=ITEMS,
        delivery_info=DeliveryInfo.from_payload(DELIVERY),
        total=4000,
        platform_fee=120,
        primary_store_id="store-a",
        primary_account_id="acct_a",
        content_key=content_key,
    )
    return checkout


def _with_intent(intent_id="pi_1"):
    checkout = _validated()
    checkout.record_intent(intent_id, f"{intent_id}_secret")
    return checkout


class TestDeliveryInfo:
    def test_from_payload(self):
        info = DeliveryInfo.from_payload(DELIVERY)
        assert info.city == "Nairobi"
        assert info.country == "US"

    def test_missing_required_field(self):
        payload = {key: value for key, value in DELIVERY.items() if key != "address"}
        with pytest.raises(ValidationError) as exc:
            DeliveryInfo.from_payload(payload)
        assert "address" in exc.value.messages

    def test_blank_field_counts_as_missing(self):
        with pytest.raises(ValidationError):
            DeliveryInfo.from_payload({**DELIVERY, "phone": ""})

    def test_email_must_look_like_an_address(self):
        with pytest.raises(ValidationError) as exc:
            DeliveryInfo.from_payload({**DELIVERY, "email": "not-an-email"})
        assert "email" in exc.value.messages

    def test_to_dict_round_trips_fields(self):
        info = DeliveryInfo.from_payload({**DELIVERY, "instructions": "Ring twice"})
        assert info.to_dict()["instructions"] == "Ring twice"


class TestCheckoutBegin:
    def test_begins_in_building(self):
        checkout = Checkout.begin(CartActor.guest("sess-1"))
        assert checkout.checkout_id == "guest:sess-1"
        assert CheckoutStatus(checkout.status) == CheckoutStatus.BUILDING
        assert checkout.attempt == 0


class TestValidate:
    def test_starts_new_attempt_with_order_id(self):
        checkout = _validated()

        assert CheckoutStatus(checkout.status) == CheckoutStatus.VALIDATED
        assert checkout.attempt == 1
        assert checkout.order_id is not None
        assert checkout.snapshot == ITEMS
        assert checkout.provider_idempotency_key == "checkout:key-1:1"

    def test_revalidating_supersedes_previous_attempt(self):
        checkout = _with_intent()
        first_order_id = checkout.order_id

        checkout.validate(
            items=ITEMS,
            delivery_info=DeliveryInfo.from_payload(DELIVERY),
            total=4000,
            platform_fee=120,
            primary_store_id="store-a",
            primary_account_id="acct_a",
            content_key="key-2",
        )

        assert checkout.attempt == 2
        assert checkout.payment_intent_id is None
        assert checkout.order_id != first_order_id


class TestRecordIntent:
    def test_records_intent_and_expiry(self):
        checkout = _with_intent()

        assert CheckoutStatus(checkout.status) == CheckoutStatus.INTENT_CREATED
        assert checkout.payment_intent_id == "pi_1"
        assert checkout.expires_at > datetime.now(UTC)
        assert isinstance(checkout._events[-1], CheckoutIntentCreated)

    def test_cannot_record_intent_before_validation(self):
        checkout = Checkout.begin(CartActor.user("user-1"))
        with pytest.raises(InvalidTransition):
            checkout.record_intent("pi_1", "secret")

    def test_payment_view(self):
        view = _with_intent().payment_view()

        assert view["payment_intent_id"] == "pi_1"
        assert view["client_secret"] == "pi_1_secret"
        assert view["total"] == 4000
        assert view["platform_fee"] == 120


class TestIntentReuse:
    def test_same_content_reuses_live_intent(self):
        assert _with_intent().can_reuse_intent("key-1")

    def test_different_content_does_not_reuse(self):
        assert not _with_intent().can_reuse_intent("key-other")

    def test_expired_intent_is_not_reused(self):
        checkout = _with_intent()
        later = datetime.now(UTC) + timedelta(hours=2)

        assert not checkout.can_reuse_intent("key-1", now=later)


class TestConfirmability:
    def test_matching_live_intent_is_confirmable(self):
        _with_intent().assert_confirmable("pi_1")

    def test_mismatched_intent(self):
        with pytest.raises(PaymentIntentMismatch):
            _with_intent().assert_confirmable("pi_other")

    def test_expired_intent(self):
        later = datetime.now(UTC) + timedelta(hours=2)
        with pytest.raises(PaymentIntentMismatch):
            _with_intent().assert_confirmable("pi_1", now=later)


class TestConfirmAndExpire:
    def test_confirm_raises_event_with_snapshot(self):
        checkout = _with_intent()
        checkout.confirm()

        assert CheckoutStatus(checkout.status) == CheckoutStatus.CONFIRMED
        event = checkout._events[-1]
        assert isinstance(event, CheckoutConfirmed)
        assert event.order_id == str(checkout.order_id)
        assert event.total == 4000
        assert event.platform_fee == 120
        assert event.primary_store_id == "store-a"

    def test_confirm_twice_is_rejected(self):
        checkout = _with_intent()
        checkout.confirm()
        with pytest.raises(InvalidTransition):
            checkout.confirm()

    def test_expire(self):
        checkout = _with_intent()
        checkout.expire()

        assert CheckoutStatus(checkout.status) == CheckoutStatus.EXPIRED
        assert checkout.is_expired()
        assert isinstance(checkout._events[-1], CheckoutExpired)

    def test_confirmed_checkout_cannot_expire(self):
        checkout = _with_intent()
        checkout.confirm()
        with pytest.raises(InvalidTransition):
            checkout.expire()
