"""Account webhook reconciliation — command and handler.

Applies provider account events to the matching ConnectedAccount. The
handler never raises on replays: a duplicate or stale event is logged and
reported as ``ignored`` so the provider stops redelivering it.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from settlement.account.account import ConnectedAccount
from settlement.domain import settlement
from settlement.errors import DuplicateWebhookEvent
from settlement.provider import get_provider

logger = structlog.get_logger(__name__)

# Event types whose same-second ties are settled from a fresh account snapshot
SNAPSHOT_EVENT_TYPES = frozenset({"account.updated", "capability.updated"})

ACCOUNT_EVENT_TYPES = frozenset(
    {
        "account.updated",
        "capability.updated",
        "account.application.authorized",
        "account.application.deauthorized",
    }
)


@settlement.command(part_of="ConnectedAccount")
class ReconcileAccountWebhook:
    event_id = Identifier(required=True)
    event_type = String(max_length=100, required=True)
    created = Integer(required=True)
    provider_account_id = String(max_length=255, required=True)
    payload = Text()  # JSON: the event's data.object


def find_by_provider_account(provider_account_id: str) -> ConnectedAccount | None:
    results = (
        current_domain.repository_for(ConnectedAccount)
        ._dao.query.filter(provider_account_id=provider_account_id)
        .all()
        .items
    )
    return results[0] if results else None


@settlement.command_handler(part_of=ConnectedAccount)
class AccountWebhookHandler:
    @handle(ReconcileAccountWebhook)
    def reconcile(self, command):
        account = find_by_provider_account(command.provider_account_id)
        if account is None:
            logger.warning(
                "Webhook for unknown connected account",
                event_id=str(command.event_id),
                event_type=command.event_type,
                provider_account_id=command.provider_account_id,
            )
            return "unknown_account"

        data = json.loads(command.payload) if command.payload else {}
        event_id = str(command.event_id)

        try:
            if command.event_type in SNAPSHOT_EVENT_TYPES and account.ties_with_marker(event_id, command.created):
                snapshot = get_provider().retrieve_account(command.provider_account_id)
                account.reconcile_from_snapshot(event_id=event_id, created=command.created, snapshot=snapshot)
                logger.info(
                    "Same-second webhook reconciled from account snapshot",
                    event_id=event_id,
                    last_event_id=account.last_webhook_event_id,
                    store_id=str(account.store_id),
                )
            elif command.event_type == "account.updated":
                requirements = data.get("requirements") or {}
                account.apply_account_update(
                    event_id=event_id,
                    created=command.created,
                    charges_enabled=data.get("charges_enabled", False),
                    payouts_enabled=data.get("payouts_enabled", False),
                    details_submitted=data.get("details_submitted", False),
                    disabled_reason=requirements.get("disabled_reason"),
                    capabilities=data.get("capabilities"),
                )
            elif command.event_type == "capability.updated":
                account.apply_capability_update(
                    event_id=event_id,
                    created=command.created,
                    capability=data.get("id", ""),
                    capability_status=data.get("status", ""),
                )
            elif command.event_type == "account.application.authorized":
                account.apply_authorization(event_id=event_id, created=command.created, authorized=True)
            elif command.event_type == "account.application.deauthorized":
                account.apply_authorization(event_id=event_id, created=command.created, authorized=False)
            else:
                logger.info("Unhandled account webhook type", event_type=command.event_type)
                return "ignored"
        except DuplicateWebhookEvent as exc:
            logger.info(
                "Duplicate or stale webhook ignored",
                event_id=exc.event_id,
                last_event_id=exc.last_event_id,
                store_id=str(account.store_id),
            )
            return "ignored"

        current_domain.repository_for(ConnectedAccount).add(account)
        logger.info(
            "Account webhook applied",
            event_id=event_id,
            event_type=command.event_type,
            store_id=str(account.store_id),
            status=account.status,
        )
        return "applied"
