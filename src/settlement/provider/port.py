"""Payment provider port (abstract interface).

Defines the contract that every provider adapter must implement: connected
account onboarding, payment intents, transfers, balances and webhook
verification. This enables swapping between FakePaymentProvider (dev/test)
and StripePaymentProvider (production) without changing domain code.

All amounts are integer minor units.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class AccountSnapshot:
    """Provider-side state of a connected account."""

    account_id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    disabled_reason: str | None = None
    capabilities: dict = field(default_factory=dict)


@dataclass(frozen=True)
class OnboardingLink:
    url: str
    expires_at: int | None = None


@dataclass(frozen=True)
class IntentRequest:
    """Everything needed to create the single customer charge for a checkout."""

    amount: int
    currency: str
    application_fee_amount: int
    destination_account_id: str | None
    store_ids: tuple[str, ...]
    idempotency_key: str
    receipt_email: str | None = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class IntentResult:
    """A payment intent as reported by the provider."""

    intent_id: str
    client_secret: str | None
    status: str
    amount: int
    last_error: str | None = None


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str
    amount: int
    destination: str


@dataclass(frozen=True)
class BalanceSnapshot:
    available: int
    pending: int
    currency: str


@dataclass(frozen=True)
class ProviderEvent:
    """A verified webhook event."""

    event_id: str
    event_type: str
    created: int
    account_id: str | None
    data: dict


class PaymentProvider(ABC):
    """Abstract payment provider interface."""

    @abstractmethod
    def create_connected_account(self, store_id: str, email: str | None, country: str) -> AccountSnapshot:
        """Create an express connected account able to take card payments and receive transfers."""
        ...

    @abstractmethod
    def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> OnboardingLink:
        ...

    @abstractmethod
    def retrieve_account(self, account_id: str) -> AccountSnapshot:
        ...

    @abstractmethod
    def create_payment_intent(self, request: IntentRequest) -> IntentResult:
        """Create (or, for a repeated idempotency key, return) a payment intent."""
        ...

    @abstractmethod
    def retrieve_payment_intent(self, intent_id: str) -> IntentResult:
        ...

    @abstractmethod
    def cancel_payment_intent(self, intent_id: str) -> IntentResult:
        """Cancel an intent that has not succeeded, so its client secret can no longer be paid.

        Cancelling an already cancelled intent returns it unchanged. Raises
        ProviderError when the intent has already succeeded.
        """
        ...

    @abstractmethod
    def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        idempotency_key: str,
        metadata: dict | None = None,
    ) -> TransferResult:
        """Move funds to a connected account. Raises TransferFailure on rejection."""
        ...

    @abstractmethod
    def retrieve_balance(self, account_id: str) -> BalanceSnapshot:
        ...

    @abstractmethod
    def construct_webhook_event(self, payload: bytes, signature: str) -> ProviderEvent:
        """Verify the signature over the raw payload and parse the event.

        Raises InvalidSignature when verification fails.
        """
        ...
