"""Payment provider factory.

Provides get_provider() / set_provider() to swap implementations:
- FakePaymentProvider for development and testing (default)
- StripePaymentProvider when PAYMENT_PROVIDER=stripe
"""

import os

from settlement.provider.fake_adapter import FakePaymentProvider
from settlement.provider.port import PaymentProvider

_current_provider: PaymentProvider | None = None


def get_provider() -> PaymentProvider:
    """Return the current payment provider, building it from the environment on first use."""
    global _current_provider
    if _current_provider is None:
        adapter = os.environ.get("PAYMENT_PROVIDER", "fake")
        if adapter == "fake":
            _current_provider = FakePaymentProvider()
        elif adapter == "stripe":
            from settlement.provider.stripe_adapter import StripePaymentProvider

            _current_provider = StripePaymentProvider(
                api_key=os.environ["STRIPE_SECRET_KEY"],
                webhook_secret=os.environ["STRIPE_WEBHOOK_SECRET"],
            )
        else:
            raise ValueError(f"Unknown payment provider: {adapter}")
    return _current_provider


def set_provider(provider: PaymentProvider) -> None:
    """Override the active provider (useful for tests)."""
    global _current_provider
    _current_provider = provider


def reset_provider() -> None:
    """Reset to the environment-configured provider."""
    global _current_provider
    _current_provider = None
