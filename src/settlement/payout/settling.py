"""Order settlement — commands and handlers.

Settling an order is split into independent units of work:

1. ``SettleOrder`` computes every store's share and opens one
   StoreSettlement row per store. Replays find the rows already present.
2. Each opened non-primary row triggers its own ``IssueStoreTransfer``, so
   one store's provider failure is recorded on that store's row only and
   never rolls back the order or its sibling transfers.
3. ``RetryFailedTransfers`` re-issues failed transfers whose backoff has
   elapsed; rows that exhaust their attempts move to manual review.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from settlement.account.account import ConnectedAccount
from settlement.charges import payment_currency
from settlement.domain import settlement
from settlement.errors import ProviderError, TransferFailure
from settlement.fees import split_order
from settlement.payout.events import StoreSettlementOpened
from settlement.payout.store_settlement import StoreSettlement, TransferStatus, settlement_key
from settlement.provider import get_provider

logger = structlog.get_logger(__name__)


@settlement.command(part_of="StoreSettlement")
class SettleOrder:
    order_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, store_id, quantity, unit_price}
    total = Integer(required=True)
    platform_fee = Integer(required=True)
    primary_store_id = Identifier(required=True)


@settlement.command(part_of="StoreSettlement")
class IssueStoreTransfer:
    settlement_id = Identifier(required=True)


@settlement.command(part_of="StoreSettlement")
class RetryFailedTransfers:
    """Re-attempt failed transfers whose backoff window has passed."""

    reason = String(max_length=255, default="scheduled")


def _destination_for(store_id) -> ConnectedAccount:
    try:
        account = current_domain.repository_for(ConnectedAccount).get(store_id)
    except ObjectNotFoundError as exc:
        raise TransferFailure(store_id=str(store_id), message="Store has no connected account") from exc
    if not account.can_receive_transfers:
        raise TransferFailure(
            store_id=str(store_id),
            message=f"Connected account {account.provider_account_id} cannot receive payouts ({account.status})",
        )
    return account


def attempt_transfer(row: StoreSettlement) -> None:
    """Try to pay one store its net share, recording the outcome on its row."""
    if row.net_transfer == 0:
        row.record_transfer(None)
        return

    try:
        account = _destination_for(row.store_id)
        result = get_provider().create_transfer(
            amount=row.net_transfer,
            currency=row.currency,
            destination=account.provider_account_id,
            idempotency_key=row.transfer_idempotency_key,
            metadata={"order_id": str(row.order_id), "store_id": str(row.store_id)},
        )
    except ProviderError as exc:
        row.record_failure(str(exc))
        logger.error(
            "Store transfer failed",
            order_id=str(row.order_id),
            store_id=str(row.store_id),
            amount=row.net_transfer,
            attempt=row.attempt_count,
            status=row.transfer_status,
            error=str(exc),
        )
        return

    row.record_transfer(result.transfer_id)
    logger.info(
        "Store transfer issued",
        order_id=str(row.order_id),
        store_id=str(row.store_id),
        amount=row.net_transfer,
        transfer_id=result.transfer_id,
    )


@settlement.command_handler(part_of=StoreSettlement)
class SettlementHandler:
    @handle(SettleOrder)
    def settle_order(self, command):
        repo = current_domain.repository_for(StoreSettlement)
        items = json.loads(command.items) if isinstance(command.items, str) else command.items

        # The fee fixed on the charge is authoritative even if the rate changed since
        shares = split_order(items, str(command.primary_store_id), fee=command.platform_fee)

        opened = []
        for share in shares:
            key = settlement_key(command.order_id, share.store_id)
            try:
                repo.get(key)
            except ObjectNotFoundError:
                row = StoreSettlement.open(order_id=command.order_id, share=share, currency=payment_currency())
                repo.add(row)
                opened.append(key)

        logger.info(
            "Order settlement opened",
            order_id=str(command.order_id),
            stores=len(shares),
            opened=len(opened),
        )
        return opened

    @handle(IssueStoreTransfer)
    def issue_transfer(self, command):
        repo = current_domain.repository_for(StoreSettlement)
        row = repo.get(command.settlement_id)
        if row.is_due():
            attempt_transfer(row)
            repo.add(row)
        return row.transfer_status

    @handle(RetryFailedTransfers)
    def retry_failed(self, command):
        repo = current_domain.repository_for(StoreSettlement)
        failed = repo._dao.query.filter(transfer_status=TransferStatus.FAILED.value).all().items

        now = datetime.now(UTC)
        due = [row for row in failed if row.is_due(now)]
        logger.info("Retrying failed transfers", due=len(due), failed=len(failed), reason=command.reason)

        outcomes = {}
        for row in due:
            attempt_transfer(row)
            repo.add(row)
            outcomes[str(row.settlement_id)] = row.transfer_status
        return outcomes


@settlement.event_handler(part_of=StoreSettlement)
class StoreSettlementEventHandler:
    """Kicks off the transfer for every newly opened non-primary row."""

    @handle(StoreSettlementOpened)
    def on_settlement_opened(self, event: StoreSettlementOpened) -> None:
        if event.is_primary:
            return
        current_domain.process(
            IssueStoreTransfer(settlement_id=str(event.settlement_id)),
            asynchronous=False,
        )
