"""Configurable fake payment provider for development and testing.

Simulates a provider with connected accounts, payment intents and transfers
without any external calls. It honours idempotency keys the way a real
provider does (a repeated key returns the original object), and can be
configured at runtime to:

- decline new payment intents, or leave them in ``processing``
- fail transfers to specific destinations (or all of them)

Every call is appended to ``calls`` so tests can assert on side effects.
Webhook payloads are accepted when signed with ``test-signature``.
"""

import json
from uuid import uuid4

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

TEST_SIGNATURE = "test-signature"


class FakePaymentProvider(PaymentProvider):
    """In-memory payment provider."""

    def __init__(self) -> None:
        self.intent_status: str = "succeeded"
        self.failure_reason: str = "Your card was declined."
        self.failing_destinations: set[str] = set()
        self.fail_all_transfers: bool = False
        self.calls: list[dict] = []
        self.accounts: dict[str, AccountSnapshot] = {}
        self.intents: dict[str, IntentResult] = {}
        self.transfers: dict[str, TransferResult] = {}
        self._idempotent: dict[str, str] = {}

    # -------------------------------------------------------------------
    # Runtime configuration
    # -------------------------------------------------------------------
    def configure(self, intent_status: str = "succeeded", failure_reason: str = "Your card was declined.") -> None:
        """Set the status that newly created payment intents settle into."""
        self.intent_status = intent_status
        self.failure_reason = failure_reason

    def fail_transfers_to(self, *destinations: str) -> None:
        self.failing_destinations.update(destinations)

    def restore_transfers(self) -> None:
        self.failing_destinations.clear()
        self.fail_all_transfers = False

    def set_account_state(self, account_id: str, **changes) -> AccountSnapshot:
        """Mutate a connected account as if the store progressed through onboarding."""
        current = self.accounts[account_id]
        updated = AccountSnapshot(
            account_id=account_id,
            charges_enabled=changes.get("charges_enabled", current.charges_enabled),
            payouts_enabled=changes.get("payouts_enabled", current.payouts_enabled),
            details_submitted=changes.get("details_submitted", current.details_submitted),
            disabled_reason=changes.get("disabled_reason", current.disabled_reason),
            capabilities=changes.get("capabilities", current.capabilities),
        )
        self.accounts[account_id] = updated
        return updated

    def set_intent_status(self, intent_id: str, status: str) -> None:
        intent = self.intents[intent_id]
        self.intents[intent_id] = IntentResult(
            intent_id=intent.intent_id,
            client_secret=intent.client_secret,
            status=status,
            amount=intent.amount,
            last_error=self.failure_reason if status == "requires_payment_method" else None,
        )

    # -------------------------------------------------------------------
    # Connected accounts
    # -------------------------------------------------------------------
    def create_connected_account(self, store_id: str, email: str | None, country: str) -> AccountSnapshot:
        self.calls.append({"method": "create_connected_account", "store_id": store_id, "email": email})
        account = AccountSnapshot(
            account_id=f"acct_fake_{uuid4().hex[:12]}",
            capabilities={"card_payments": "inactive", "transfers": "inactive"},
        )
        self.accounts[account.account_id] = account
        return account

    def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> OnboardingLink:
        self.calls.append({"method": "create_onboarding_link", "account_id": account_id})
        self._require_account(account_id)
        return OnboardingLink(url=f"https://connect.fake/setup/{account_id}/{uuid4().hex[:8]}")

    def retrieve_account(self, account_id: str) -> AccountSnapshot:
        self.calls.append({"method": "retrieve_account", "account_id": account_id})
        return self._require_account(account_id)

    # -------------------------------------------------------------------
    # Charges
    # -------------------------------------------------------------------
    def create_payment_intent(self, request: IntentRequest) -> IntentResult:
        self.calls.append(
            {
                "method": "create_payment_intent",
                "amount": request.amount,
                "application_fee_amount": request.application_fee_amount,
                "destination": request.destination_account_id,
                "idempotency_key": request.idempotency_key,
            }
        )
        existing = self._idempotent.get(request.idempotency_key)
        if existing is not None:
            return self.intents[existing]

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        intent = IntentResult(
            intent_id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
            status="requires_payment_method",
            amount=request.amount,
        )
        self.intents[intent_id] = intent
        self._idempotent[request.idempotency_key] = intent_id
        return intent

    def retrieve_payment_intent(self, intent_id: str) -> IntentResult:
        self.calls.append({"method": "retrieve_payment_intent", "intent_id": intent_id})
        intent = self.intents.get(intent_id)
        if intent is None:
            raise ProviderError(f"No such payment_intent: {intent_id}", code="resource_missing")
        if intent.status == "requires_payment_method":
            # The buyer completed (or failed) payment on the client side
            self.set_intent_status(intent_id, self.intent_status)
        return self.intents[intent_id]

    def cancel_payment_intent(self, intent_id: str) -> IntentResult:
        self.calls.append({"method": "cancel_payment_intent", "intent_id": intent_id})
        intent = self.intents.get(intent_id)
        if intent is None:
            raise ProviderError(f"No such payment_intent: {intent_id}", code="resource_missing")
        if intent.status == "succeeded":
            raise ProviderError(
                f"PaymentIntent {intent_id} has already succeeded and cannot be canceled",
                code="payment_intent_unexpected_state",
            )
        if intent.status != "canceled":
            self.set_intent_status(intent_id, "canceled")
        return self.intents[intent_id]

    # -------------------------------------------------------------------
    # Transfers and balances
    # -------------------------------------------------------------------
    def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        idempotency_key: str,
        metadata: dict | None = None,
    ) -> TransferResult:
        self.calls.append(
            {
                "method": "create_transfer",
                "amount": amount,
                "destination": destination,
                "idempotency_key": idempotency_key,
            }
        )
        existing = self._idempotent.get(idempotency_key)
        if existing is not None:
            return self.transfers[existing]

        if self.fail_all_transfers or destination in self.failing_destinations:
            raise TransferFailure(
                store_id=(metadata or {}).get("store_id", ""),
                message=f"Transfer to {destination} rejected",
                code="account_invalid",
            )

        transfer = TransferResult(transfer_id=f"tr_fake_{uuid4().hex[:12]}", amount=amount, destination=destination)
        self.transfers[transfer.transfer_id] = transfer
        self._idempotent[idempotency_key] = transfer.transfer_id
        return transfer

    def retrieve_balance(self, account_id: str) -> BalanceSnapshot:
        self.calls.append({"method": "retrieve_balance", "account_id": account_id})
        self._require_account(account_id)
        available = sum(t.amount for t in self.transfers.values() if t.destination == account_id)
        return BalanceSnapshot(available=available, pending=0, currency="usd")

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def construct_webhook_event(self, payload: bytes, signature: str) -> ProviderEvent:
        if signature != TEST_SIGNATURE:
            raise InvalidSignature("Invalid webhook signature")
        body = json.loads(payload)
        return ProviderEvent(
            event_id=body["id"],
            event_type=body["type"],
            created=int(body.get("created", 0)),
            account_id=body.get("account"),
            data=body.get("data", {}).get("object", {}),
        )

    def _require_account(self, account_id: str) -> AccountSnapshot:
        account = self.accounts.get(account_id)
        if account is None:
            raise ProviderError(f"No such account: {account_id}", code="resource_missing")
        return account
