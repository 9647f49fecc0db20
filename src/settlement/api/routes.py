"""FastAPI routes for the Settlement domain — connected accounts, store settlements, provider webhooks."""

import json

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from protean.utils.globals import current_domain

from settlement.account.account import AccountStatus, ConnectedAccount
from settlement.account.onboarding import (
    CreateOnboardingLink,
    DisconnectConnectedAccount,
    EnsureConnectedAccount,
)
from settlement.account.webhook import ACCOUNT_EVENT_TYPES, ReconcileAccountWebhook
from settlement.api.schemas import (
    AccountStatusResponse,
    BalanceResponse,
    CreateConnectedAccountRequest,
    OnboardingLinkResponse,
    OnboardingResponse,
    OrderSettlementResponse,
    RetryTransfersResponse,
    StatusResponse,
    StoreSettlementSchema,
)
from settlement.errors import InvalidSignature
from settlement.payout.settling import RetryFailedTransfers
from settlement.payout.store_settlement import StoreSettlement
from settlement.provider import get_provider
from settlement.provider.port import ProviderEvent

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Settlement Router
# ---------------------------------------------------------------------------
settlement_router = APIRouter(prefix="/settlement", tags=["settlement"])


@settlement_router.post("/accounts", status_code=201, response_model=OnboardingResponse)
async def create_connected_account(body: CreateConnectedAccountRequest) -> OnboardingResponse:
    """Open a connected account for a store (idempotent) and return an onboarding link."""
    command = EnsureConnectedAccount(
        store_id=body.store_id,
        email=body.email,
        country=body.country,
    )
    result = current_domain.process(command, asynchronous=False)
    return OnboardingResponse(**result)


@settlement_router.get("/accounts/{store_id}/status", response_model=AccountStatusResponse)
async def account_status(store_id: str) -> AccountStatusResponse:
    account = current_domain.repository_for(ConnectedAccount).get(store_id)
    return AccountStatusResponse(
        store_id=str(account.store_id),
        provider_account_id=account.provider_account_id,
        status=account.status,
        charges_enabled=account.charges_enabled,
        payouts_enabled=account.payouts_enabled,
        details_submitted=account.details_submitted,
        disabled_reason=account.disabled_reason,
        capabilities=account.capability_map,
        last_webhook_event_id=account.last_webhook_event_id,
        connected_at=account.connected_at,
        disconnected_at=account.disconnected_at,
    )


@settlement_router.post("/accounts/{store_id}/onboarding-link", response_model=OnboardingLinkResponse)
async def refresh_onboarding_link(store_id: str) -> OnboardingLinkResponse:
    url = current_domain.process(CreateOnboardingLink(store_id=store_id), asynchronous=False)
    return OnboardingLinkResponse(onboarding_url=url)


@settlement_router.get("/accounts/{store_id}/balance", response_model=BalanceResponse)
async def account_balance(store_id: str) -> BalanceResponse:
    account = current_domain.repository_for(ConnectedAccount).get(store_id)
    if AccountStatus(account.status) != AccountStatus.CONNECTED:
        raise HTTPException(status_code=400, detail="Connected account is not fully onboarded")

    balance = get_provider().retrieve_balance(account.provider_account_id)
    return BalanceResponse(
        store_id=store_id,
        available=balance.available,
        pending=balance.pending,
        currency=balance.currency,
    )


@settlement_router.delete("/accounts/{store_id}", response_model=StatusResponse)
async def disconnect_account(store_id: str) -> StatusResponse:
    """Mark the account disconnected. The record is kept, never deleted."""
    current_domain.process(DisconnectConnectedAccount(store_id=store_id), asynchronous=False)
    return StatusResponse(status="disconnected")


@settlement_router.get("/orders/{order_id}", response_model=OrderSettlementResponse)
async def order_settlement(order_id: str) -> OrderSettlementResponse:
    rows = current_domain.repository_for(StoreSettlement)._dao.query.filter(order_id=order_id).all().items
    if not rows:
        raise HTTPException(status_code=404, detail=f"No settlement recorded for order {order_id}")

    return OrderSettlementResponse(
        order_id=order_id,
        stores=[
            StoreSettlementSchema(
                store_id=str(row.store_id),
                gross_share=row.gross_share,
                fee_share=row.fee_share,
                net_transfer=row.net_transfer,
                retained_amount=row.retained_amount or 0,
                is_primary=row.is_primary,
                transfer_status=row.transfer_status,
                transfer_id=row.transfer_id,
                attempt_count=row.attempt_count or 0,
                last_error=row.last_error,
                next_attempt_at=row.next_attempt_at,
            )
            for row in sorted(rows, key=lambda r: (not r.is_primary, str(r.store_id)))
        ],
    )


@settlement_router.post("/transfers/retry", response_model=RetryTransfersResponse)
async def retry_transfers() -> RetryTransfersResponse:
    outcomes = current_domain.process(RetryFailedTransfers(reason="manual"), asynchronous=False)
    return RetryTransfersResponse(outcomes=outcomes or {})


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _confirm_checkout_for(event: ProviderEvent) -> str:
    """Corroborate a checkout from a ``payment_intent.succeeded`` event in the Ordering domain."""
    from ordering.checkout.confirmation import ConfirmCheckoutByIntent
    from ordering.domain import ordering

    with ordering.domain_context():
        return ordering.process(
            ConfirmCheckoutByIntent(payment_intent_id=str(event.data.get("id", ""))),
            asynchronous=False,
        )


@webhook_router.post("/payment-provider", response_model=StatusResponse)
async def payment_provider_webhook(
    request: Request,
    stripe_signature: str = Header(default=""),
) -> StatusResponse:
    """Verify and dispatch a payment provider webhook.

    Duplicate, stale and unrecognised events are acknowledged with 200 so
    the provider does not keep redelivering them.
    """
    payload = await request.body()
    try:
        event = get_provider().construct_webhook_event(payload, stripe_signature)
    except InvalidSignature as exc:
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature") from exc

    if event.event_type in ACCOUNT_EVENT_TYPES:
        provider_account_id = event.account_id or event.data.get("account") or event.data.get("id")
        outcome = current_domain.process(
            ReconcileAccountWebhook(
                event_id=event.event_id,
                event_type=event.event_type,
                created=event.created,
                provider_account_id=provider_account_id,
                payload=json.dumps(event.data),
            ),
            asynchronous=False,
        )
        return StatusResponse(status=outcome)

    if event.event_type == "payment_intent.succeeded":
        return StatusResponse(status=_confirm_checkout_for(event))

    logger.info("Unhandled webhook event type", event_type=event.event_type, event_id=event.event_id)
    return StatusResponse(status="ignored")
