"""Checkout confirmation and expiry — commands and handler.

An order is only materialized on a definitive success signal: either the
buyer's confirm call finds the intent ``succeeded``, or the provider's
``payment_intent.succeeded`` webhook corroborates it. ``processing`` is
acknowledged without creating anything.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import String
from protean.utils.globals import current_domain

from ordering.cart.cart import ActorKind, CartActor
from ordering.checkout.checkout import Checkout, CheckoutStatus
from ordering.domain import ordering
from ordering.errors import PaymentFailure, PaymentIntentMismatch
from settlement.charges import cancel_intent, retrieve_intent
from settlement.errors import ProviderError

logger = structlog.get_logger(__name__)

PENDING_INTENT_STATUSES = {"processing", "requires_capture"}


@ordering.command(part_of="Checkout")
class ConfirmCheckout:
    actor_kind = String(choices=ActorKind, required=True)
    actor_ref = String(max_length=255, required=True)
    payment_intent_id = String(max_length=255, required=True)


@ordering.command(part_of="Checkout")
class ConfirmCheckoutByIntent:
    payment_intent_id = String(max_length=255, required=True)


@ordering.command(part_of="Checkout")
class ExpireCheckouts:
    reason = String(max_length=50, default="scheduled")


def _confirmed(checkout: Checkout) -> dict:
    return {"status": "confirmed", "order_id": str(checkout.order_id)}


@ordering.command_handler(part_of=Checkout)
class CheckoutConfirmationHandler:
    @handle(ConfirmCheckout)
    def confirm_checkout(self, command: ConfirmCheckout) -> dict:
        actor = CartActor(kind=command.actor_kind, ref=command.actor_ref)
        repo = current_domain.repository_for(Checkout)
        try:
            checkout = repo.get(actor.key)
        except ObjectNotFoundError:
            raise PaymentIntentMismatch(command.payment_intent_id, reason="has no checkout in progress") from None

        if (
            CheckoutStatus(checkout.status) == CheckoutStatus.CONFIRMED
            and checkout.payment_intent_id == command.payment_intent_id
        ):
            return _confirmed(checkout)

        checkout.assert_confirmable(command.payment_intent_id)

        try:
            intent = retrieve_intent(command.payment_intent_id)
        except ProviderError as exc:
            logger.error("Payment intent lookup failed", intent_id=command.payment_intent_id, error=str(exc))
            raise PaymentFailure(command.payment_intent_id, provider_status="unknown") from exc

        if intent.status == "succeeded":
            checkout.confirm()
            repo.add(checkout)
            logger.info("Checkout confirmed", actor=actor.key, order_id=str(checkout.order_id))
            return _confirmed(checkout)

        if intent.status in PENDING_INTENT_STATUSES:
            logger.info("Payment still processing", actor=actor.key, intent_id=intent.intent_id)
            return {"status": "processing", "order_id": None}

        logger.warning("Payment not completed", actor=actor.key, intent_id=intent.intent_id, status=intent.status)
        raise PaymentFailure(intent.intent_id, provider_status=intent.status, reason=intent.last_error)

    @handle(ConfirmCheckoutByIntent)
    def confirm_by_intent(self, command: ConfirmCheckoutByIntent) -> str:
        """Webhook path. Returns ``confirmed``, ``ignored``, ``expired`` or ``unknown_intent``."""
        repo = current_domain.repository_for(Checkout)
        matches = repo._dao.query.filter(payment_intent_id=command.payment_intent_id).all().items
        if not matches:
            # Paid through a superseded client secret: money was taken with no order behind it
            logger.error(
                "Succeeded intent matches no checkout; refund required",
                intent_id=command.payment_intent_id,
                refund_required=True,
            )
            return "unknown_intent"

        checkout = matches[0]
        status = CheckoutStatus(checkout.status)
        if status == CheckoutStatus.CONFIRMED:
            return "ignored"
        if status == CheckoutStatus.INTENT_CREATED and checkout.is_expired():
            checkout.expire()
            repo.add(checkout)
            status = CheckoutStatus.EXPIRED
        if status == CheckoutStatus.EXPIRED:
            logger.error(
                "Payment succeeded for an expired checkout; manual follow-up required",
                intent_id=command.payment_intent_id,
                checkout_id=str(checkout.checkout_id),
                refund_required=True,
            )
            return "expired"

        checkout.confirm()
        repo.add(checkout)
        logger.info(
            "Checkout confirmed by webhook",
            checkout_id=str(checkout.checkout_id),
            order_id=str(checkout.order_id),
        )
        return "confirmed"

    @handle(ExpireCheckouts)
    def expire_checkouts(self, command: ExpireCheckouts) -> int:
        repo = current_domain.repository_for(Checkout)
        now = datetime.now(UTC)
        open_attempts = repo._dao.query.filter(status=CheckoutStatus.INTENT_CREATED.value).all().items

        expired = 0
        for checkout in open_attempts:
            if not checkout.is_expired(now):
                continue
            try:
                cancel_intent(checkout.payment_intent_id)
            except ProviderError as exc:
                # Left open so the next sweep retries; confirm already treats it as expired
                logger.error(
                    "Could not cancel payment intent of expired checkout",
                    checkout_id=str(checkout.checkout_id),
                    intent_id=checkout.payment_intent_id,
                    error=str(exc),
                    code=exc.code,
                )
                continue
            checkout.expire()
            repo.add(checkout)
            expired += 1

        logger.info("Expired stale checkouts", count=expired, reason=command.reason)
        return expired
