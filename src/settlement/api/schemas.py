"""Pydantic request/response schemas for the Settlement API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Connected account schemas
# ---------------------------------------------------------------------------
class CreateConnectedAccountRequest(BaseModel):
    store_id: str
    email: str | None = None
    country: str = Field(default="US", min_length=2, max_length=2)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "store_id": "store-001",
                    "email": "owner@example.com",
                    "country": "US",
                }
            ]
        }
    }


class OnboardingResponse(BaseModel):
    store_id: str
    provider_account_id: str
    onboarding_url: str
    status: str
    created: bool = False


class OnboardingLinkResponse(BaseModel):
    onboarding_url: str


class AccountStatusResponse(BaseModel):
    store_id: str
    provider_account_id: str
    status: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool
    disabled_reason: str | None = None
    capabilities: dict = Field(default_factory=dict)
    last_webhook_event_id: str | None = None
    connected_at: datetime | None = None
    disconnected_at: datetime | None = None


class BalanceResponse(BaseModel):
    store_id: str
    available: int
    pending: int
    currency: str


# ---------------------------------------------------------------------------
# Settlement schemas
# ---------------------------------------------------------------------------
class StoreSettlementSchema(BaseModel):
    store_id: str
    gross_share: int
    fee_share: int
    net_transfer: int
    retained_amount: int
    is_primary: bool
    transfer_status: str
    transfer_id: str | None = None
    attempt_count: int = 0
    last_error: str | None = None
    next_attempt_at: datetime | None = None


class OrderSettlementResponse(BaseModel):
    order_id: str
    stores: list[StoreSettlementSchema]


class RetryTransfersResponse(BaseModel):
    outcomes: dict[str, str]


# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"
