"""Checkout aggregate — one payment attempt per actor.

State Machine:
    BUILDING → VALIDATED → INTENT_CREATED → CONFIRMED
    INTENT_CREATED → EXPIRED

Only the actor's most recent attempt is kept. A new ``process`` call with
different cart contents or delivery details replaces it; the same contents
within the expiry window reuse the existing payment intent.
"""

import json
import os
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text, ValueObject

from ordering.checkout.events import CheckoutConfirmed, CheckoutExpired, CheckoutIntentCreated
from ordering.domain import ordering
from ordering.errors import InvalidTransition, PaymentIntentMismatch


class CheckoutStatus(Enum):
    BUILDING = "Building"
    VALIDATED = "Validated"
    INTENT_CREATED = "IntentCreated"
    CONFIRMED = "Confirmed"
    EXPIRED = "Expired"


_VALID_TRANSITIONS = {
    CheckoutStatus.BUILDING: {CheckoutStatus.VALIDATED},
    CheckoutStatus.VALIDATED: {CheckoutStatus.INTENT_CREATED},
    CheckoutStatus.INTENT_CREATED: {CheckoutStatus.CONFIRMED, CheckoutStatus.EXPIRED},
    CheckoutStatus.CONFIRMED: set(),
    CheckoutStatus.EXPIRED: set(),
}


def intent_ttl() -> timedelta:
    return timedelta(minutes=int(os.environ.get("CHECKOUT_INTENT_TTL_MINUTES", "30")))


def _utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Checkout")
class DeliveryInfo:
    """Where and to whom the order is delivered."""

    full_name = String(required=True, max_length=255)
    email = String(required=True, max_length=254)
    phone = String(required=True, max_length=50)
    address = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(max_length=100, default="US")
    instructions = String(max_length=1000)

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return (
            "full_name",
            "email",
            "phone",
            "address",
            "city",
            "state",
            "zip_code",
            "country",
            "instructions",
        )

    @classmethod
    def from_payload(cls, payload: dict):
        if "@" not in str(payload.get("email") or "@"):
            raise ValidationError({"email": ["Enter a valid email address"]})
        return cls(**{name: payload[name] for name in cls.field_names() if payload.get(name) not in (None, "")})

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.field_names()}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Checkout:
    checkout_id = Identifier(identifier=True, required=True)  # the actor key
    actor_kind = String(max_length=10, required=True)
    actor_ref = String(max_length=255, required=True)
    status = String(choices=CheckoutStatus, default=CheckoutStatus.BUILDING.value)
    delivery_info = ValueObject(DeliveryInfo)
    items = Text()  # JSON: cart snapshot at process time
    total = Integer(default=0)
    platform_fee = Integer(default=0)
    primary_store_id = Identifier()
    primary_account_id = String(max_length=255)
    content_key = String(max_length=64)
    attempt = Integer(default=0)
    payment_intent_id = String(max_length=255)
    client_secret = String(max_length=255)
    order_id = Identifier()
    expires_at = DateTime()
    confirmed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def begin(cls, actor):
        now = datetime.now(UTC)
        return cls(
            checkout_id=actor.key,
            actor_kind=actor.kind,
            actor_ref=actor.ref,
            status=CheckoutStatus.BUILDING.value,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def snapshot(self) -> list[dict]:
        return json.loads(self.items) if self.items else []

    @property
    def provider_idempotency_key(self) -> str:
        return f"checkout:{self.content_key}:{self.attempt}"

    def is_expired(self, now: datetime | None = None) -> bool:
        if CheckoutStatus(self.status) == CheckoutStatus.EXPIRED:
            return True
        if CheckoutStatus(self.status) != CheckoutStatus.INTENT_CREATED or self.expires_at is None:
            return False
        return _utc(self.expires_at) <= (now or datetime.now(UTC))

    @property
    def open_intent_id(self) -> str | None:
        """The provider intent this attempt still holds open, if any."""
        if CheckoutStatus(self.status) == CheckoutStatus.INTENT_CREATED:
            return self.payment_intent_id
        return None

    def can_reuse_intent(self, content_key: str, now: datetime | None = None) -> bool:
        """True when the same contents already have a live payment intent."""
        return (
            CheckoutStatus(self.status) == CheckoutStatus.INTENT_CREATED
            and self.content_key == content_key
            and not self.is_expired(now)
        )

    def payment_view(self) -> dict:
        return {
            "client_secret": self.client_secret,
            "payment_intent_id": self.payment_intent_id,
            "order_id": str(self.order_id),
            "total": self.total,
            "platform_fee": self.platform_fee,
            "expires_at": self.expires_at,
        }

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: CheckoutStatus) -> None:
        current = CheckoutStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(current.value, target.value)

    def validate(
        self,
        items: list[dict],
        delivery_info: DeliveryInfo,
        total: int,
        platform_fee: int,
        primary_store_id: str,
        primary_account_id: str | None,
        content_key: str,
    ) -> None:
        """Start a fresh attempt from a validated cart snapshot.

        Any earlier attempt of this actor is superseded. The caller cancels
        its ``open_intent_id`` at the provider first, so the actor never
        holds two payable intents.
        """
        self.status = CheckoutStatus.VALIDATED.value
        self.items = json.dumps(items)
        self.delivery_info = delivery_info
        self.total = total
        self.platform_fee = platform_fee
        self.primary_store_id = primary_store_id
        self.primary_account_id = primary_account_id
        self.content_key = content_key
        self.attempt = (self.attempt or 0) + 1
        self.payment_intent_id = None
        self.client_secret = None
        self.order_id = str(uuid4())
        self.expires_at = None
        self.confirmed_at = None
        self.updated_at = datetime.now(UTC)

    def record_intent(self, payment_intent_id: str, client_secret: str) -> None:
        self._assert_can_transition(CheckoutStatus.INTENT_CREATED)

        now = datetime.now(UTC)
        self.status = CheckoutStatus.INTENT_CREATED.value
        self.payment_intent_id = payment_intent_id
        self.client_secret = client_secret
        self.expires_at = now + intent_ttl()
        self.updated_at = now

        self.raise_(
            CheckoutIntentCreated(
                checkout_id=str(self.checkout_id),
                order_id=str(self.order_id),
                payment_intent_id=payment_intent_id,
                total=self.total,
                platform_fee=self.platform_fee,
                primary_store_id=str(self.primary_store_id),
                expires_at=self.expires_at,
            )
        )

    def assert_confirmable(self, payment_intent_id: str, now: datetime | None = None) -> None:
        if self.payment_intent_id != payment_intent_id:
            raise PaymentIntentMismatch(payment_intent_id)
        if self.is_expired(now):
            raise PaymentIntentMismatch(payment_intent_id, reason="has expired; start checkout again")

    def confirm(self) -> None:
        self._assert_can_transition(CheckoutStatus.CONFIRMED)

        now = datetime.now(UTC)
        self.status = CheckoutStatus.CONFIRMED.value
        self.confirmed_at = now
        self.updated_at = now

        self.raise_(
            CheckoutConfirmed(
                checkout_id=str(self.checkout_id),
                actor_kind=self.actor_kind,
                actor_ref=self.actor_ref,
                order_id=str(self.order_id),
                payment_intent_id=self.payment_intent_id,
                items=self.items,
                delivery_info=json.dumps(self.delivery_info.to_dict()),
                total=self.total,
                platform_fee=self.platform_fee,
                primary_store_id=str(self.primary_store_id),
                confirmed_at=now,
            )
        )

    def expire(self) -> None:
        self._assert_can_transition(CheckoutStatus.EXPIRED)

        now = datetime.now(UTC)
        self.status = CheckoutStatus.EXPIRED.value
        self.updated_at = now
        self.raise_(
            CheckoutExpired(
                checkout_id=str(self.checkout_id),
                payment_intent_id=self.payment_intent_id,
                expired_at=now,
            )
        )
