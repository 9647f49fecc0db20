"""Customer charge creation.

Called synchronously by the checkout flow. It works only through the
provider port and touches no settlement aggregate, so it is safe to call
from any bounded context.
"""

import os

import structlog

from settlement.fees import platform_fee, platform_fee_rate
from settlement.provider import get_provider
from settlement.provider.port import IntentRequest, IntentResult

logger = structlog.get_logger(__name__)


def payment_currency() -> str:
    return os.environ.get("PAYMENT_CURRENCY", "usd").lower()


def build_intent_request(
    total: int,
    store_ids: list[str],
    primary_account_id: str | None,
    idempotency_key: str,
    receipt_email: str | None = None,
    metadata: dict | None = None,
) -> IntentRequest:
    """Assemble the single-charge request with the platform fee pre-computed."""
    return IntentRequest(
        amount=total,
        currency=payment_currency(),
        application_fee_amount=platform_fee(total, platform_fee_rate()),
        destination_account_id=primary_account_id,
        store_ids=tuple(store_ids),
        idempotency_key=idempotency_key,
        receipt_email=receipt_email,
        metadata=metadata or {},
    )


def charge_customer(request: IntentRequest) -> IntentResult:
    """Create the customer's payment intent against the primary store's account.

    The provider deduplicates on ``request.idempotency_key``, so a retried
    call returns the intent created the first time.
    """
    intent = get_provider().create_payment_intent(request)
    logger.info(
        "Payment intent created",
        intent_id=intent.intent_id,
        amount=request.amount,
        application_fee=request.application_fee_amount,
        destination=request.destination_account_id or "platform",
        stores=len(request.store_ids),
    )
    return intent


def retrieve_intent(intent_id: str) -> IntentResult:
    return get_provider().retrieve_payment_intent(intent_id)


def cancel_intent(intent_id: str) -> IntentResult:
    """Cancel an intent whose checkout was superseded or expired.

    Raises ProviderError if the provider refuses, which includes an intent
    that already succeeded.
    """
    intent = get_provider().cancel_payment_intent(intent_id)
    logger.info("Payment intent cancelled", intent_id=intent_id, status=intent.status)
    return intent
