"""Stripe Connect adapter for the payment provider port.

Uses express connected accounts. The customer charge is a destination
charge on the primary store's account (``on_behalf_of`` +
``transfer_data.destination``) with the platform fee attached as
``application_fee_amount``; every other store is paid with a separate
transfer.
"""

import structlog
import stripe

from settlement.errors import InvalidSignature, ProviderError, TransferFailure
from settlement.provider.port import (
    AccountSnapshot,
    BalanceSnapshot,
    IntentRequest,
    IntentResult,
    OnboardingLink,
    PaymentProvider,
    ProviderEvent,
    TransferResult,
)

logger = structlog.get_logger(__name__)


def _account_snapshot(account) -> AccountSnapshot:
    requirements = account.get("requirements") or {}
    return AccountSnapshot(
        account_id=account["id"],
        charges_enabled=bool(account.get("charges_enabled")),
        payouts_enabled=bool(account.get("payouts_enabled")),
        details_submitted=bool(account.get("details_submitted")),
        disabled_reason=requirements.get("disabled_reason"),
        capabilities=dict(account.get("capabilities") or {}),
    )


def _intent_result(intent) -> IntentResult:
    last_error = intent.get("last_payment_error") or {}
    return IntentResult(
        intent_id=intent["id"],
        client_secret=intent.get("client_secret"),
        status=intent["status"],
        amount=int(intent["amount"]),
        last_error=last_error.get("message"),
    )


class StripePaymentProvider(PaymentProvider):
    """Payment provider backed by the Stripe API."""

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self._client = stripe
        self._client.api_key = api_key
        self._webhook_secret = webhook_secret

    def create_connected_account(self, store_id: str, email: str | None, country: str) -> AccountSnapshot:
        try:
            account = self._client.Account.create(
                type="express",
                country=country,
                email=email,
                capabilities={
                    "card_payments": {"requested": True},
                    "transfers": {"requested": True},
                },
                metadata={"store_id": store_id},
                idempotency_key=f"account:{store_id}",
            )
        except stripe.StripeError as exc:
            raise ProviderError(str(exc), code=getattr(exc, "code", None)) from exc
        return _account_snapshot(account)

    def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> OnboardingLink:
        try:
            link = self._client.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            )
        except stripe.StripeError as exc:
            raise ProviderError(str(exc), code=getattr(exc, "code", None)) from exc
        return OnboardingLink(url=link["url"], expires_at=link.get("expires_at"))

    def retrieve_account(self, account_id: str) -> AccountSnapshot:
        try:
            account = self._client.Account.retrieve(account_id)
        except stripe.StripeError as exc:
            raise ProviderError(str(exc), code=getattr(exc, "code", None)) from exc
        return _account_snapshot(account)

    def create_payment_intent(self, request: IntentRequest) -> IntentResult:
        params = {
            "amount": request.amount,
            "currency": request.currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": {
                **request.metadata,
                "store_ids": ",".join(request.store_ids),
                "multi_vendor": str(len(request.store_ids) > 1).lower(),
            },
        }
        if request.destination_account_id:
            params["application_fee_amount"] = request.application_fee_amount
            params["on_behalf_of"] = request.destination_account_id
            params["transfer_data"] = {"destination": request.destination_account_id}
        if request.receipt_email:
            params["receipt_email"] = request.receipt_email

        try:
            intent = self._client.PaymentIntent.create(idempotency_key=request.idempotency_key, **params)
        except stripe.StripeError as exc:
            raise ProviderError(str(exc), code=getattr(exc, "code", None)) from exc
        return _intent_result(intent)

    def retrieve_payment_intent(self, intent_id: str) -> IntentResult:
        try:
            intent = self._client.PaymentIntent.retrieve(intent_id)
        except stripe.StripeError as exc:
            raise ProviderError(str(exc), code=getattr(exc, "code", None)) from exc
        return _intent_result(intent)

    def cancel_payment_intent(self, intent_id: str) -> IntentResult:
        try:
            intent = self._client.PaymentIntent.retrieve(intent_id)
            if intent.status == "canceled":
                return _intent_result(intent)
            intent = self._client.PaymentIntent.cancel(intent_id, cancellation_reason="abandoned")
        except stripe.StripeError as exc:
            raise ProviderError(str(exc), code=getattr(exc, "code", None)) from exc
        return _intent_result(intent)

    def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        idempotency_key: str,
        metadata: dict | None = None,
    ) -> TransferResult:
        metadata = metadata or {}
        try:
            transfer = self._client.Transfer.create(
                amount=amount,
                currency=currency,
                destination=destination,
                metadata=metadata,
                transfer_group=metadata.get("order_id"),
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            logger.warning(
                "Stripe transfer rejected",
                destination=destination,
                amount=amount,
                error_code=getattr(exc, "code", None),
            )
            raise TransferFailure(
                store_id=metadata.get("store_id", ""),
                message=str(exc),
                code=getattr(exc, "code", None),
            ) from exc
        return TransferResult(transfer_id=transfer["id"], amount=int(transfer["amount"]), destination=destination)

    def retrieve_balance(self, account_id: str) -> BalanceSnapshot:
        try:
            balance = self._client.Balance.retrieve(stripe_account=account_id)
        except stripe.StripeError as exc:
            raise ProviderError(str(exc), code=getattr(exc, "code", None)) from exc
        available = balance.get("available") or []
        pending = balance.get("pending") or []
        return BalanceSnapshot(
            available=sum(int(b["amount"]) for b in available),
            pending=sum(int(b["amount"]) for b in pending),
            currency=available[0]["currency"] if available else "usd",
        )

    def construct_webhook_event(self, payload: bytes, signature: str) -> ProviderEvent:
        try:
            event = self._client.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature("Invalid webhook signature") from exc
        except ValueError as exc:
            raise InvalidSignature("Malformed webhook payload") from exc

        return ProviderEvent(
            event_id=event["id"],
            event_type=event["type"],
            created=int(event["created"]),
            account_id=event.get("account"),
            data=dict(event["data"]["object"]),
        )
