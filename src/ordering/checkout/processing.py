"""Checkout processing — validate the cart and create one payment intent.

Every check runs before the provider is called, so a rejected checkout
has no side effects. A repeated submission of the same cart and delivery
details returns the live intent instead of creating a second charge.
"""

import hashlib
import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import String, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import ActorKind, CartActor
from ordering.cart.items import load_cart
from ordering.catalogue import get_catalogue
from ordering.checkout.checkout import Checkout, DeliveryInfo
from ordering.checkout.policies import get_policy
from ordering.directory import get_directory
from ordering.domain import ordering
from ordering.errors import EmptyCart, OutOfStock, PaymentFailure, StoreUnavailable
from settlement.charges import build_intent_request, cancel_intent, charge_customer
from settlement.errors import ProviderError
from settlement.fees import platform_fee, platform_fee_rate

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Checkout")
class ProcessCheckout:
    actor_kind = String(choices=ActorKind, required=True)
    actor_ref = String(max_length=255, required=True)
    delivery_info = Text(required=True)  # JSON: delivery details


def content_key(actor_key: str, lines: list[dict], delivery: dict) -> str:
    """Deterministic digest of who is buying what, delivered where."""
    cart = sorted(
        (
            {"product_id": line["product_id"], "quantity": line["quantity"], "unit_price": line["unit_price"]}
            for line in lines
        ),
        key=lambda line: line["product_id"],
    )
    canonical = json.dumps(
        {
            "actor": actor_key,
            "cart": cart,
            "delivery": delivery,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def priced_lines(cart) -> list[dict]:
    """Re-read every line from the catalogue; fail if any line exceeds current stock."""
    catalogue = get_catalogue()
    lines = []
    for line in cart.lines:
        product = catalogue.get_product(str(line.product_id))
        available = product.stock if product else 0
        if available <= 0 or line.quantity > available:
            raise OutOfStock(str(line.product_id), available=available)
        lines.append(
            {
                "product_id": str(line.product_id),
                "store_id": str(product.store_id),
                "title": product.title,
                "quantity": line.quantity,
                "unit_price": product.price,
            }
        )
    return lines


@ordering.command_handler(part_of=Checkout)
class ProcessCheckoutHandler:
    @handle(ProcessCheckout)
    def process_checkout(self, command: ProcessCheckout) -> dict:
        actor = CartActor(kind=command.actor_kind, ref=command.actor_ref)
        payload = json.loads(command.delivery_info) if isinstance(command.delivery_info, str) else command.delivery_info
        delivery = DeliveryInfo.from_payload(payload or {})

        cart = load_cart(actor)
        if cart is None or cart.is_empty:
            raise EmptyCart(actor.key)

        lines = priced_lines(cart)

        # All stores must be able to take payment, or nothing is charged
        directory = get_directory()
        store_ids = list(dict.fromkeys(line["store_id"] for line in lines))
        capabilities = {store_id: directory.payment_capability(store_id) for store_id in store_ids}
        unavailable = [store_id for store_id, capability in capabilities.items() if not capability.accepts_charges]
        if unavailable:
            logger.warning("Checkout rejected, stores cannot accept payments", actor=actor.key, store_ids=unavailable)
            raise StoreUnavailable(unavailable)

        total = sum(line["unit_price"] * line["quantity"] for line in lines)
        if total <= 0:
            raise ValidationError({"total": ["Order total must be greater than zero"]})
        fee = platform_fee(total, platform_fee_rate())
        primary_store_id = get_policy().choose(lines)
        key = content_key(actor.key, lines, delivery.to_dict())

        repo = current_domain.repository_for(Checkout)
        try:
            checkout = repo.get(actor.key)
        except ObjectNotFoundError:
            checkout = Checkout.begin(actor)

        if checkout.can_reuse_intent(key):
            logger.info("Reusing live payment intent", actor=actor.key, intent_id=checkout.payment_intent_id)
            return checkout.payment_view()

        superseded = checkout.open_intent_id
        if superseded:
            try:
                cancel_intent(superseded)
            except ProviderError as exc:
                logger.error(
                    "Superseded payment intent could not be cancelled",
                    actor=actor.key,
                    intent_id=superseded,
                    error=str(exc),
                    code=exc.code,
                )
                raise PaymentFailure(
                    superseded,
                    provider_status="error",
                    reason="The previous payment attempt is still in progress, please retry",
                ) from exc

        checkout.validate(
            items=lines,
            delivery_info=delivery,
            total=total,
            platform_fee=fee,
            primary_store_id=primary_store_id,
            primary_account_id=capabilities[primary_store_id].account_id,
            content_key=key,
        )

        request = build_intent_request(
            total=total,
            store_ids=store_ids,
            primary_account_id=checkout.primary_account_id,
            idempotency_key=checkout.provider_idempotency_key,
            receipt_email=delivery.email,
            metadata={"order_id": str(checkout.order_id), "checkout_id": actor.key},
        )
        try:
            intent = charge_customer(request)
        except ProviderError as exc:
            logger.error("Payment intent creation failed", actor=actor.key, error=str(exc), code=exc.code)
            raise PaymentFailure(
                "", provider_status="error", reason="Payment could not be started, please retry"
            ) from exc

        checkout.record_intent(intent.intent_id, intent.client_secret)
        repo.add(checkout)

        logger.info(
            "Checkout processed",
            actor=actor.key,
            order_id=str(checkout.order_id),
            total=total,
            platform_fee=fee,
            primary_store_id=primary_store_id,
            stores=len(store_ids),
        )
        return checkout.payment_view()
